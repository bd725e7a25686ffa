"""
Pytest configuration and shared fixtures.

Provides factories for validation records and for nodesync_status rows
shaped like the ones the DataStax driver returns with ``dict_factory``.
"""

from collections import namedtuple
from datetime import datetime, timedelta, timezone

import pytest

from nodesync_audit.coverage.record import ValidationRecord
from nodesync_audit.coverage.token_range import TokenRange

KEYSPACE = "ks"
TABLE = "events"

# The driver returns UDT values as named tuples when no class is registered.
NodeSyncValidation = namedtuple(
    "nodesync_validation",
    ["started_at", "outcome", "missing_nodes", "was_incremental"]
)

BASE_TIME = datetime(2020, 10, 15, 1, 38, 29, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """Timestamp ``minutes`` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


class FakeSource:
    """In-memory data source returning canned rows per table."""

    def __init__(self, rows_by_table=None, errors_by_table=None):
        self.rows_by_table = rows_by_table or {}
        self.errors_by_table = errors_by_table or {}
        self.calls = []

    def fetch_rows(self, keyspace, table):
        self.calls.append((keyspace, table))
        if table in self.errors_by_table:
            raise self.errors_by_table[table]
        return list(self.rows_by_table.get(table, []))


@pytest.fixture
def make_record():
    """Factory for validation records of ks.events."""
    def _make(lower, upper, outcome=0, minutes=0, success_minutes=None,
              missing_nodes=(), keyspace=KEYSPACE, table=TABLE):
        return ValidationRecord(
            keyspace=keyspace,
            table=table,
            token_range=TokenRange(lower, upper),
            last_validation_at=at(minutes),
            last_outcome=outcome,
            last_success_at=at(success_minutes) if success_minutes is not None else None,
            missing_nodes=frozenset(missing_nodes),
        )
    return _make


@pytest.fixture
def make_validation():
    """Factory for nodesync_validation UDT values."""
    def _make(minutes=0, outcome=0, missing_nodes=None, was_incremental=True, naive=False):
        started_at = at(minutes)
        if naive:
            started_at = started_at.replace(tzinfo=None)
        return NodeSyncValidation(started_at, outcome, missing_nodes, was_incremental)
    return _make


@pytest.fixture
def make_row():
    """Factory for nodesync_status rows as dictionaries."""
    def _make(start_token, end_token, success=None, failure=None,
              keyspace=KEYSPACE, table=TABLE):
        return {
            "keyspace_name": keyspace,
            "table_name": table,
            "range_group": b"\xdd",
            "start_token": start_token,
            "end_token": end_token,
            "last_successful_validation": success,
            "last_unsuccessful_validation": failure,
            "locked_by": None,
        }
    return _make


@pytest.fixture
def fake_source():
    """Factory for in-memory data sources."""
    return FakeSource
