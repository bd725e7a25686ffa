"""
Prometheus Metrics for NodeSync Audits

Per-table audit results: run counts, durations, and how much of the token
ring each validation outcome covers.
"""

import logging
from typing import Any, Dict, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    push_to_gateway,
    start_http_server,
)

from nodesync_audit.coverage.outcome import ValidationOutcome

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "nodesync_audit"


class CoverageMetrics:
    """
    Prometheus metrics for NodeSync coverage audits.

    Metrics live in their own registry so several instances (tests,
    parallel runs) never clash on the global one.
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        namespace: str = DEFAULT_NAMESPACE
    ):
        """
        Initialize coverage metrics.

        Args:
            registry: Registry to register into (a new one if omitted)
            namespace: Metric name prefix
        """
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace

        self.table_audits_total = Counter(
            f'{namespace}_table_audits_total',
            'Total number of table audits',
            ['keyspace', 'table', 'status'],
            registry=self.registry
        )

        self.table_audit_duration_seconds = Histogram(
            f'{namespace}_table_audit_duration_seconds',
            'Duration of table audits in seconds',
            ['keyspace', 'table'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30, 60, 300],
            registry=self.registry
        )

        self.rows_fetched_total = Counter(
            f'{namespace}_rows_fetched_total',
            'Total nodesync_status rows fetched',
            ['keyspace', 'table'],
            registry=self.registry
        )

        self.coverage_ranges = Gauge(
            f'{namespace}_coverage_ranges',
            'Number of reconciled ranges per validation outcome',
            ['keyspace', 'table', 'outcome'],
            registry=self.registry
        )

        self.ring_fraction = Gauge(
            f'{namespace}_ring_fraction',
            'Fraction of the token ring per validation outcome (0-1)',
            ['keyspace', 'table', 'outcome'],
            registry=self.registry
        )

        self.oldest_validation_timestamp_seconds = Gauge(
            f'{namespace}_oldest_validation_timestamp_seconds',
            'Unix time of the least recently validated range',
            ['keyspace', 'table'],
            registry=self.registry
        )

        logger.debug(f"CoverageMetrics initialized with namespace {namespace}")

    def record_table_audit(self, result: Any) -> None:
        """
        Record the result of a table audit.

        Args:
            result: TableAuditResult of the table
        """
        keyspace, table = result.keyspace, result.table
        status = 'success' if result.error is None else 'failure'

        self.table_audits_total.labels(
            keyspace=keyspace,
            table=table,
            status=status
        ).inc()

        self.table_audit_duration_seconds.labels(
            keyspace=keyspace,
            table=table
        ).observe(result.duration_seconds)

        self.rows_fetched_total.labels(keyspace=keyspace, table=table).inc(result.rows_fetched)

        if result.error is None:
            self.update_coverage(keyspace, table, result.summary)

    def update_coverage(self, keyspace: str, table: str, summary: Dict[str, Any]) -> None:
        """
        Set coverage gauges from a coverage summary.

        Every known outcome is set, to zero when absent, so a range
        changing outcome does not leave a stale series behind.

        Args:
            keyspace: Keyspace name
            table: Table name
            summary: Result of ``summarize_coverage``
        """
        outcomes = summary.get("outcomes", {})
        names = {outcome.name.lower() for outcome in ValidationOutcome} | set(outcomes)

        for name in sorted(names):
            entry = outcomes.get(name, {})
            self.coverage_ranges.labels(
                keyspace=keyspace,
                table=table,
                outcome=name
            ).set(entry.get("ranges", 0))
            self.ring_fraction.labels(
                keyspace=keyspace,
                table=table,
                outcome=name
            ).set(entry.get("ring_fraction", 0.0))

        oldest = summary.get("oldest_validation_at")
        if oldest is not None:
            self.oldest_validation_timestamp_seconds.labels(
                keyspace=keyspace,
                table=table
            ).set(oldest.timestamp())

        logger.debug(f"Updated coverage metrics for {keyspace}.{table}")

    def start_server(self, port: int) -> None:
        """Expose the metrics over HTTP for Prometheus scraping."""
        try:
            start_http_server(port, registry=self.registry)
            logger.info(f"Metrics server started on port {port}")
        except OSError as e:
            if "Address already in use" in str(e):
                logger.warning(f"Metrics server already running on port {port}")
            else:
                raise

    def push(self, gateway_url: str, job_name: str = DEFAULT_NAMESPACE) -> None:
        """
        Push the metrics to a Prometheus Pushgateway.

        Args:
            gateway_url: Pushgateway address
            job_name: Job label

        Raises:
            Exception: If the push fails
        """
        try:
            push_to_gateway(gateway_url, job=job_name, registry=self.registry)
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise
