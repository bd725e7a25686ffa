"""
Coverage Reconciler for NodeSync Audits

Reduces the per-range validation records of one table into the minimal,
ordered set of records that covers the whole token ring, so every token
gets exactly one effective validation outcome.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from nodesync_audit.coverage.outcome import describe_outcome, outcome_name
from nodesync_audit.coverage.record import EPOCH, ValidationRecord, unvalidated_record
from nodesync_audit.coverage.token_range import (
    MAX_TOKEN,
    MIN_TOKEN,
    RING_SIZE,
    TokenRange,
)

logger = logging.getLogger(__name__)


class CoverageError(RuntimeError):
    """Raised when a reconciled coverage set does not span the ring cleanly."""
    pass


class CoverageReconciler:
    """
    Sweeps sorted validation records of a single table into ring coverage.

    Tokens before the first input record are UNVALIDATED, up to and
    including its lower bound. The sweep then always works on the last
    record of the coverage:

    - an input record that does not touch it leaves a gap, which is
      covered by an UNVALIDATED gap record starting right after it
    - an input record with the same outcome is merged into it
    - an input record with a different outcome starting at the same token
      replaces it
    - otherwise it is trimmed to end where the input record starts, or
      kept as is when the input record starts right after it

    Neighbouring records that end up with the same outcome are merged, and
    whatever lies past the last record once the sweep ends is UNVALIDATED.
    A reconciler holds no state between calls.
    """

    def __init__(self, keyspace: str, table: str):
        """
        Initialize the reconciler.

        Args:
            keyspace: Keyspace of the audited table
            table: Audited table
        """
        self.keyspace = keyspace
        self.table = table
        logger.debug(f"Initialized CoverageReconciler for {keyspace}.{table}")

    def reconcile(self, records: Iterable[ValidationRecord]) -> List[ValidationRecord]:
        """
        Build the coverage set of the table.

        Args:
            records: Decoded validation records of the table, in any order

        Returns:
            Ordered, non-overlapping records spanning the full ring

        Raises:
            ValueError: If a record belongs to another table
            InvalidTokenRangeError: If trimming would invert a range, which
                means the input was not processed in sorted order
        """
        ordered = self.sort_records(records)

        coverage: List[ValidationRecord] = []

        for record in ordered:
            self._apply(coverage, record)

        if not coverage:
            coverage.append(unvalidated_record(self.keyspace, self.table))
        elif coverage[-1].token_range.upper < MAX_TOKEN:
            self._push(coverage, self._gap(coverage[-1].token_range.upper + 1, MAX_TOKEN))

        logger.info(
            f"Reconciled {len(ordered)} records of {self.keyspace}.{self.table} "
            f"into {len(coverage)} ranges"
        )
        return coverage

    def sort_records(self, records: Iterable[ValidationRecord]) -> List[ValidationRecord]:
        """
        Check ownership, drop duplicates and sort records for the sweep.

        Records with the same range and validation time are duplicates; the
        first one seen is kept.
        """
        unique: Dict[ValidationRecord, ValidationRecord] = {}

        for record in records:
            if record.keyspace != self.keyspace or record.table != self.table:
                raise ValueError(
                    f"Record for {record.qualified_table} cannot be reconciled "
                    f"with {self.keyspace}.{self.table}"
                )
            if record in unique:
                logger.debug(f"Dropping duplicate record {record}")
                continue
            unique[record] = record

        return sorted(unique.values())

    def _apply(self, coverage: List[ValidationRecord], record: ValidationRecord) -> None:
        """Fold one input record into the coverage, replacing its last element."""
        incoming = record.token_range

        if not coverage:
            if incoming.lower > MIN_TOKEN:
                self._push(coverage, self._gap(MIN_TOKEN, incoming.lower))
            self._push(coverage, record)
            return

        highest = coverage.pop()

        if not highest.token_range.intersects(incoming):
            logger.debug(f"Gap between {highest.token_range} and {incoming}")
            self._push(coverage, highest)
            self._push(coverage, self._gap(highest.token_range.upper + 1, incoming.lower))
            self._push(coverage, record)

        elif highest.last_outcome == record.last_outcome:
            logger.debug(f"Merging {incoming} into {highest.token_range}")
            self._push(coverage, highest.merge_with(record))

        elif highest.token_range.lower == incoming.lower:
            logger.debug(f"{incoming} supersedes {highest.token_range}")
            self._push(coverage, record)

        else:
            # Trimming never extends a record the input only touches.
            upper = min(highest.token_range.upper, incoming.lower)
            logger.debug(f"Trimming {highest.token_range} at {upper}")
            self._push(coverage, highest.with_upper(upper))
            self._push(coverage, record)

    @staticmethod
    def _push(coverage: List[ValidationRecord], record: ValidationRecord) -> None:
        """Append a record, merging it into the last one when both share an outcome."""
        if coverage:
            last = coverage[-1]
            if last.last_outcome == record.last_outcome and last.token_range.intersects(record.token_range):
                coverage[-1] = last.merge_with(record)
                return
        coverage.append(record)

    def _gap(self, lower: int, upper: int) -> ValidationRecord:
        return unvalidated_record(self.keyspace, self.table, TokenRange(lower, upper))


def reconcile_table(
    keyspace: str,
    table: str,
    records: Iterable[ValidationRecord]
) -> List[ValidationRecord]:
    """Shortcut for ``CoverageReconciler(keyspace, table).reconcile(records)``."""
    return CoverageReconciler(keyspace, table).reconcile(records)


def verify_coverage(coverage: List[ValidationRecord]) -> None:
    """
    Check that a coverage set is ordered, contiguous and spans the ring.

    Neighbouring records may share their boundary token or meet at
    consecutive tokens.

    Args:
        coverage: Records returned by the reconciler

    Raises:
        CoverageError: If the records leave a gap, overlap beyond a shared
            boundary, or do not reach both ends of the ring
    """
    if not coverage:
        raise CoverageError("Coverage set is empty")

    if coverage[0].token_range.lower != MIN_TOKEN:
        raise CoverageError(
            f"Coverage starts at {coverage[0].token_range.lower} instead of {MIN_TOKEN}"
        )

    if coverage[-1].token_range.upper != MAX_TOKEN:
        raise CoverageError(
            f"Coverage ends at {coverage[-1].token_range.upper} instead of {MAX_TOKEN}"
        )

    for previous, current in zip(coverage, coverage[1:]):
        boundary = previous.token_range.upper
        if current.token_range.lower not in (boundary, boundary + 1):
            raise CoverageError(
                f"Ranges {previous.token_range} and {current.token_range} "
                f"are not contiguous"
            )


def summarize_coverage(coverage: List[ValidationRecord]) -> Dict[str, Any]:
    """
    Summarize how much of the ring each outcome covers.

    Shared boundary tokens are counted once, for the later record, so
    every record of a reconciled coverage counts at least one token.

    Args:
        coverage: Records returned by the reconciler

    Returns:
        Dictionary with:
        - ranges: Number of records
        - outcomes: Per outcome name (``in_sync``, ``unvalidated``...), the
          ``label``, ``ranges``, ``tokens`` and ``ring_fraction``
        - oldest_validation_at: Least recent validation of a validated range
    """
    labels: Dict[str, str] = {}
    ranges_by_outcome: Dict[str, int] = defaultdict(int)
    tokens_by_outcome: Dict[str, int] = defaultdict(int)
    oldest: Optional[datetime] = None

    for index, record in enumerate(coverage):
        name = outcome_name(record.last_outcome)
        labels.setdefault(name, describe_outcome(record.last_outcome))

        lower, upper = record.token_range.lower, record.token_range.upper
        if index + 1 < len(coverage):
            upper = min(upper, coverage[index + 1].token_range.lower - 1)

        ranges_by_outcome[name] += 1
        if lower <= upper:
            tokens_by_outcome[name] += upper - lower + 1

        if record.last_validation_at > EPOCH:
            if oldest is None or record.last_validation_at < oldest:
                oldest = record.last_validation_at

    return {
        "ranges": len(coverage),
        "outcomes": {
            name: {
                "label": labels[name],
                "ranges": ranges_by_outcome[name],
                "tokens": tokens_by_outcome[name],
                "ring_fraction": tokens_by_outcome[name] / RING_SIZE,
            }
            for name in sorted(ranges_by_outcome)
        },
        "oldest_validation_at": oldest,
    }
