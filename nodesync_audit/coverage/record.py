"""
Validation Records for NodeSync Coverage

Decodes rows of ``system_distributed.nodesync_status`` into immutable
per-range validation records, splitting ranges that wrap past the end of
the token ring.

Row layout (one row per validated token range):

    keyspace_name | table_name | range_group | start_token | end_token
        | last_successful_validation | last_unsuccessful_validation | locked_by

Both validation columns are ``nodesync_validation`` UDTs
``{started_at, outcome, missing_nodes, was_incremental}`` and may be null.
"""

import logging
from collections import abc
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from functools import total_ordering
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from nodesync_audit.coverage.outcome import ValidationOutcome, describe_outcome
from nodesync_audit.coverage.token_range import (
    FULL_TOKEN_RANGE,
    MAX_TOKEN,
    MIN_TOKEN,
    TokenRange,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MalformedRowError(ValueError):
    """Raised when a nodesync_status row cannot be decoded into records."""
    pass


def _field(value: Any, name: str) -> Any:
    """Read a column or UDT field from a dict row or a named tuple."""
    if isinstance(value, abc.Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def as_utc(timestamp: datetime) -> datetime:
    """Interpret naive driver timestamps as UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


@dataclass(frozen=True)
class ValidationFact:
    """
    One validation attempt as stored in a nodesync_validation UDT.

    Attributes:
        started_at: When the validation started (UTC)
        outcome: Raw outcome code (0-5 for known outcomes)
        missing_nodes: Replicas that could not be reached
        was_incremental: Whether the validation was incremental
    """

    started_at: datetime
    outcome: int
    missing_nodes: FrozenSet[str] = frozenset()
    was_incremental: Optional[bool] = None

    @classmethod
    def from_udt(cls, udt: Any, column: str = "validation") -> Optional["ValidationFact"]:
        """
        Decode a UDT value into a fact.

        Args:
            udt: UDT value (named tuple or mapping), or None for a null column
            column: Column name, used in error messages

        Returns:
            Decoded fact, or None if the column is null

        Raises:
            MalformedRowError: If the UDT lacks a start time or outcome, or
                holds a field of the wrong type
        """
        if udt is None:
            return None

        started_at = _field(udt, "started_at")
        outcome = _field(udt, "outcome")

        if started_at is None or outcome is None:
            raise MalformedRowError(
                f"Column {column} is missing started_at or outcome: {udt!r}"
            )

        if not isinstance(started_at, datetime):
            raise MalformedRowError(
                f"Column {column} has a non-timestamp started_at: {started_at!r}"
            )
        if not _is_integer(outcome):
            raise MalformedRowError(
                f"Column {column} has a non-integer outcome: {outcome!r}"
            )

        missing_nodes = _field(udt, "missing_nodes") or ()
        if isinstance(missing_nodes, (str, bytes)) or not isinstance(missing_nodes, abc.Iterable):
            raise MalformedRowError(
                f"Column {column} has a missing_nodes value that is not a set: {missing_nodes!r}"
            )

        return cls(
            started_at=as_utc(started_at),
            outcome=outcome,
            missing_nodes=frozenset(str(node) for node in missing_nodes),
            was_incremental=_field(udt, "was_incremental"),
        )


def latest_fact(
    success: Optional[ValidationFact],
    failure: Optional[ValidationFact]
) -> Optional[ValidationFact]:
    """
    Pick the most recent of the successful and unsuccessful validations.

    The successful one wins only when it is strictly more recent.
    """
    if success is None:
        return failure
    if failure is None:
        return success
    return success if success.started_at > failure.started_at else failure


def _latest_success(first: Optional[datetime], second: Optional[datetime]) -> bool:
    """True if ``first`` is strictly more recent than ``second`` (absent is oldest)."""
    if first is None:
        return False
    if second is None:
        return True
    return first > second


@total_ordering
@dataclass(frozen=True, eq=False)
class ValidationRecord:
    """
    Effective validation state of one token range of a table.

    Records sort by token range, then by last validation time. Two records
    with the same range and validation time are equal.

    Attributes:
        keyspace: Keyspace name
        table: Table name
        token_range: Covered tokens
        last_validation_at: Start of the most recent validation attempt
        last_outcome: Outcome code of the most recent attempt
        last_success_at: Start of the most recent successful attempt, if any
        missing_nodes: Replicas missing during the most recent attempt
    """

    keyspace: str
    table: str
    token_range: TokenRange
    last_validation_at: datetime
    last_outcome: int
    last_success_at: Optional[datetime] = None
    missing_nodes: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def sort_key(self) -> Tuple[int, int, datetime]:
        return (self.token_range.lower, self.token_range.upper, self.last_validation_at)

    @property
    def outcome(self) -> Optional[ValidationOutcome]:
        """Outcome as an enum member, or None for unrecognized codes."""
        return ValidationOutcome.from_code(self.last_outcome)

    @property
    def qualified_table(self) -> str:
        return f"{self.keyspace}.{self.table}"

    def __eq__(self, other):
        if not isinstance(other, ValidationRecord):
            return NotImplemented
        return self.sort_key == other.sort_key

    def __lt__(self, other):
        if not isinstance(other, ValidationRecord):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __hash__(self):
        return hash(self.sort_key)

    def __str__(self) -> str:
        return (
            f"{self.qualified_table}, range {self.token_range}, "
            f"lastOutcome={describe_outcome(self.last_outcome)}"
        )

    def merge_with(self, other: "ValidationRecord") -> "ValidationRecord":
        """
        Merge with an intersecting record into one record spanning both.

        The merged record keeps the least recent validation attempt, the
        worst outcome, the most recent success and the missing nodes that
        go with that success.

        Args:
            other: Record whose range intersects this one

        Returns:
            Merged record

        Raises:
            IncompatibleRangesError: If the ranges do not intersect
        """
        if _latest_success(self.last_success_at, other.last_success_at):
            last_success_at, missing_nodes = self.last_success_at, self.missing_nodes
        else:
            last_success_at, missing_nodes = other.last_success_at, other.missing_nodes

        return replace(
            self,
            token_range=self.token_range.merge(other.token_range),
            last_validation_at=min(self.last_validation_at, other.last_validation_at),
            last_outcome=max(self.last_outcome, other.last_outcome),
            last_success_at=last_success_at,
            missing_nodes=missing_nodes,
        )

    def with_lower(self, lower: int) -> "ValidationRecord":
        return replace(self, token_range=self.token_range.with_lower(lower))

    def with_upper(self, upper: int) -> "ValidationRecord":
        return replace(self, token_range=self.token_range.with_upper(upper))

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the record, used by the JSON report."""
        return {
            "keyspace": self.keyspace,
            "table": self.table,
            "start_token": self.token_range.lower,
            "end_token": self.token_range.upper,
            "last_validation_at": self.last_validation_at.isoformat(),
            "last_outcome": self.last_outcome,
            "last_outcome_label": describe_outcome(self.last_outcome),
            "last_success_at": (
                self.last_success_at.isoformat() if self.last_success_at else None
            ),
            "missing_nodes": sorted(self.missing_nodes),
        }


def unvalidated_record(
    keyspace: str,
    table: str,
    token_range: TokenRange = FULL_TOKEN_RANGE
) -> ValidationRecord:
    """
    Build the record assumed for tokens without any validation history.

    Args:
        keyspace: Keyspace name
        table: Table name
        token_range: Tokens covered (the whole ring by default)

    Returns:
        UNVALIDATED record stamped at the epoch with no missing nodes
    """
    return ValidationRecord(
        keyspace=keyspace,
        table=table,
        token_range=token_range,
        last_validation_at=EPOCH,
        last_outcome=int(ValidationOutcome.UNVALIDATED),
        last_success_at=None,
        missing_nodes=frozenset(),
    )


def records_from_row(row: Any) -> List[ValidationRecord]:
    """
    Decode one nodesync_status row into one or two validation records.

    A row whose start token is greater than its end token wraps past the
    end of the ring and yields ``[start;MAX_TOKEN]`` and
    ``[MIN_TOKEN;end]`` with identical validation data.

    Args:
        row: Row as a mapping (``dict_factory``) or a named tuple

    Returns:
        Decoded records

    Raises:
        MalformedRowError: If required columns or both validation facts
            are missing, or a column holds a value of the wrong type
    """
    keyspace = _field(row, "keyspace_name")
    table = _field(row, "table_name")
    start_token = _field(row, "start_token")
    end_token = _field(row, "end_token")

    if keyspace is None or table is None or start_token is None or end_token is None:
        raise MalformedRowError(
            f"Row is missing keyspace_name, table_name, start_token or end_token: {row!r}"
        )

    for column, token in (("start_token", start_token), ("end_token", end_token)):
        if not _is_integer(token):
            raise MalformedRowError(f"Column {column} is not an integer token: {token!r}")

    success = ValidationFact.from_udt(
        _field(row, "last_successful_validation"), "last_successful_validation"
    )
    failure = ValidationFact.from_udt(
        _field(row, "last_unsuccessful_validation"), "last_unsuccessful_validation"
    )

    last = latest_fact(success, failure)
    if last is None:
        raise MalformedRowError(
            f"Row for {keyspace}.{table} range ({start_token}, {end_token}) "
            f"has no validation data"
        )

    if start_token > end_token:
        ranges = [TokenRange(start_token, MAX_TOKEN), TokenRange(MIN_TOKEN, end_token)]
        logger.debug(
            f"Split wrapping range ({start_token}, {end_token}) of {keyspace}.{table}"
        )
    else:
        ranges = [TokenRange(start_token, end_token)]

    return [
        ValidationRecord(
            keyspace=keyspace,
            table=table,
            token_range=token_range,
            last_validation_at=last.started_at,
            last_outcome=last.outcome,
            last_success_at=success.started_at if success else None,
            missing_nodes=last.missing_nodes,
        )
        for token_range in ranges
    ]


def decode_rows(rows: Iterable[Any]) -> List[ValidationRecord]:
    """Decode every row of a result set, flattening wrapped ranges."""
    records = []
    for row in rows:
        records.extend(records_from_row(row))
    return records
