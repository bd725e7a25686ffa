"""
Coverage Module for NodeSync Audits

Token ranges, per-range validation records and the reconciler that turns
them into a gap-free coverage of the token ring.

Usage:
    from nodesync_audit.coverage import CoverageReconciler, records_from_row

    records = [record for row in rows for record in records_from_row(row)]
    coverage = CoverageReconciler("ks", "table").reconcile(records)
"""

from nodesync_audit.coverage.outcome import ValidationOutcome, describe_outcome
from nodesync_audit.coverage.reconciler import (
    CoverageError,
    CoverageReconciler,
    reconcile_table,
    summarize_coverage,
    verify_coverage,
)
from nodesync_audit.coverage.record import (
    EPOCH,
    MalformedRowError,
    ValidationFact,
    ValidationRecord,
    decode_rows,
    records_from_row,
    unvalidated_record,
)
from nodesync_audit.coverage.token_range import (
    FULL_TOKEN_RANGE,
    MAX_TOKEN,
    MIN_TOKEN,
    IncompatibleRangesError,
    InvalidTokenRangeError,
    TokenRange,
)

__all__ = [
    "CoverageError",
    "CoverageReconciler",
    "EPOCH",
    "FULL_TOKEN_RANGE",
    "IncompatibleRangesError",
    "InvalidTokenRangeError",
    "MAX_TOKEN",
    "MIN_TOKEN",
    "MalformedRowError",
    "TokenRange",
    "ValidationFact",
    "ValidationOutcome",
    "ValidationRecord",
    "decode_rows",
    "describe_outcome",
    "reconcile_table",
    "records_from_row",
    "summarize_coverage",
    "unvalidated_record",
    "verify_coverage",
]
