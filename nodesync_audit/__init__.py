"""
NodeSync Coverage Audit

Audits the NodeSync (anti-entropy validation) status of tables: fetches the
per-range validation records of a table and reduces them to an ordered,
gap-free coverage of the token ring with the effective validation outcome
of every range, never-validated ranges included.

Main components:
- coverage: Token ranges, validation records and the coverage reconciler
- source: nodesync_status data source over the DataStax driver
- auditor: Per-table audit driver
- reporting: Text and JSON rendering of audit results
- monitoring: Prometheus metrics and alert rules

Usage:
    from nodesync_audit import NodeSyncAuditor, NodeSyncStatusSource, CoverageReporter

    with NodeSyncStatusSource("localhost", 9042, "DC1") as source:
        results = NodeSyncAuditor(source).audit_tables("ks", ["table"])
    CoverageReporter().report(results)
"""

from nodesync_audit.auditor import NodeSyncAuditor, TableAuditResult
from nodesync_audit.config import AuditConfig
from nodesync_audit.coverage import CoverageReconciler, TokenRange, ValidationRecord
from nodesync_audit.reporting import CoverageReporter
from nodesync_audit.source import NodeSyncStatusSource

__all__ = [
    "AuditConfig",
    "CoverageReconciler",
    "CoverageReporter",
    "NodeSyncAuditor",
    "NodeSyncStatusSource",
    "TableAuditResult",
    "TokenRange",
    "ValidationRecord",
]

__version__ = "1.0.0"
