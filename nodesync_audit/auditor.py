"""
NodeSync Auditor

Drives the audit of every configured table: fetch the validation rows,
decode them, reconcile them into ring coverage and record metrics. Tables
are independent; a failure in one never stops the others.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from cassandra import DriverException
from cassandra.cluster import NoHostAvailable

from nodesync_audit.coverage.reconciler import (
    CoverageError,
    CoverageReconciler,
    summarize_coverage,
    verify_coverage,
)
from nodesync_audit.coverage.record import ValidationRecord, decode_rows
from nodesync_audit.monitoring.metrics import CoverageMetrics
from nodesync_audit.utils.run_context import AuditContext, get_audit_id

logger = logging.getLogger(__name__)

# Failures confined to a single table.
TABLE_ERRORS = (ValueError, CoverageError, DriverException, NoHostAvailable)


class RowSource(Protocol):
    """Anything able to return the nodesync_status rows of a table."""

    def fetch_rows(self, keyspace: str, table: str) -> List[Any]:
        ...


@dataclass
class TableAuditResult:
    """
    Outcome of auditing one table.

    Attributes:
        keyspace: Keyspace name
        table: Table name
        coverage: Reconciled coverage (empty if the audit failed)
        rows_fetched: Number of nodesync_status rows read
        records_decoded: Number of records after wraparound splitting
        duration_seconds: Time spent on the table
        error: Error message if the audit failed
        summary: Coverage summary (see ``summarize_coverage``)
    """

    keyspace: str
    table: str
    coverage: List[ValidationRecord] = field(default_factory=list)
    rows_fetched: int = 0
    records_decoded: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def qualified_table(self) -> str:
        return f"{self.keyspace}.{self.table}"


class NodeSyncAuditor:
    """Audits the NodeSync coverage of a list of tables."""

    def __init__(
        self,
        source: RowSource,
        metrics: Optional[CoverageMetrics] = None,
        workers: int = 1
    ):
        """
        Initialize the auditor.

        Args:
            source: Data source returning nodesync_status rows
            metrics: Metrics to record into (a private set if omitted)
            workers: Number of tables audited in parallel
        """
        if workers < 1:
            raise ValueError(f"Workers must be at least 1, got {workers}")

        self.source = source
        self.metrics = metrics or CoverageMetrics()
        self.workers = workers

    def audit_table(self, keyspace: str, table: str) -> TableAuditResult:
        """
        Audit one table.

        Errors confined to the table (malformed rows, inverted ranges,
        coverage violations, driver failures) are logged and returned in the
        result rather than raised.

        Args:
            keyspace: Keyspace name
            table: Table name

        Returns:
            Audit result of the table
        """
        result = TableAuditResult(keyspace=keyspace, table=table)
        start_time = time.monotonic()

        with AuditContext(get_audit_id()):
            try:
                rows = self.source.fetch_rows(keyspace, table)
                result.rows_fetched = len(rows)

                records = decode_rows(rows)
                result.records_decoded = len(records)

                coverage = CoverageReconciler(keyspace, table).reconcile(records)
                verify_coverage(coverage)

                result.coverage = coverage
                result.summary = summarize_coverage(coverage)

            except TABLE_ERRORS as e:
                result.error = f"{type(e).__name__}: {e}"
                logger.error(
                    f"Audit of {keyspace}.{table} failed: {result.error}",
                    extra={'keyspace': keyspace, 'table': table}
                )

            result.duration_seconds = time.monotonic() - start_time

        self.metrics.record_table_audit(result)

        if result.succeeded:
            logger.info(
                f"Audited {keyspace}.{table}: {result.rows_fetched} rows, "
                f"{len(result.coverage)} ranges in {result.duration_seconds:.3f}s",
                extra={
                    'keyspace': keyspace,
                    'table': table,
                    'duration': result.duration_seconds,
                    'records': result.records_decoded,
                    'ranges': len(result.coverage),
                }
            )

        return result

    def audit_tables(self, keyspace: str, tables: List[str]) -> List[TableAuditResult]:
        """
        Audit several tables of a keyspace.

        Args:
            keyspace: Keyspace name
            tables: Table names

        Returns:
            Results in the order of ``tables``
        """
        with AuditContext() as audit_id:
            logger.info(f"Starting audit {audit_id} of {len(tables)} tables in {keyspace}")

            if self.workers == 1 or len(tables) < 2:
                return [self.audit_table(keyspace, table) for table in tables]

            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                futures = [
                    executor.submit(self._audit_in_context, audit_id, keyspace, table)
                    for table in tables
                ]
                return [future.result() for future in futures]

    def _audit_in_context(self, audit_id: str, keyspace: str, table: str) -> TableAuditResult:
        # Worker threads start with an empty context.
        with AuditContext(audit_id):
            return self.audit_table(keyspace, table)
