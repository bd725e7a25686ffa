"""
Monitoring Module for NodeSync Audits

Usage:
    from nodesync_audit.monitoring import CoverageMetrics, AlertRuleGenerator

    metrics = CoverageMetrics()
    metrics.record_table_audit(result)

    AlertRuleGenerator().write("nodesync_alerts.yml")
"""

from nodesync_audit.monitoring.metrics import CoverageMetrics
from nodesync_audit.monitoring.alerts import AlertRuleGenerator

__all__ = [
    "CoverageMetrics",
    "AlertRuleGenerator",
]
