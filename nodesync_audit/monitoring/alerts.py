"""
Alert Rules for NodeSync Audits

Prometheus alert rules over the coverage metrics, written out as YAML for
the Prometheus rule files.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from nodesync_audit.monitoring.metrics import DEFAULT_NAMESPACE

logger = logging.getLogger(__name__)


class AlertRuleGenerator:
    """Generates Prometheus alert rules for NodeSync coverage."""

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        unvalidated_fraction_threshold: float = 0.10,
        stale_validation_days: int = 10
    ):
        """
        Initialize the generator.

        Args:
            namespace: Metric name prefix used by CoverageMetrics
            unvalidated_fraction_threshold: Unvalidated ring fraction that
                triggers a warning
            stale_validation_days: Age of the least recent validation that
                triggers a warning
        """
        if not 0 <= unvalidated_fraction_threshold <= 1:
            raise ValueError(
                f"Unvalidated fraction threshold must be between 0 and 1, "
                f"got {unvalidated_fraction_threshold}"
            )
        if stale_validation_days < 1:
            raise ValueError(f"Stale validation days must be at least 1, got {stale_validation_days}")

        self.namespace = namespace
        self.unvalidated_fraction_threshold = unvalidated_fraction_threshold
        self.stale_validation_days = stale_validation_days

    def generate_alert_rules(self) -> Dict[str, Any]:
        """
        Generate the alert rule configuration.

        Returns:
            Dict with alert rule groups in Prometheus format
        """
        config = {"groups": [self._generate_coverage_alerts()]}
        logger.info(f"Generated {len(config['groups'][0]['rules'])} NodeSync alert rules")
        return config

    def _generate_coverage_alerts(self) -> Dict[str, Any]:
        ns = self.namespace
        stale_seconds = self.stale_validation_days * 86400

        return {
            "name": "nodesync_coverage",
            "interval": "1m",
            "rules": [
                {
                    "alert": "NodeSyncAuditFailure",
                    "expr": f"increase({ns}_table_audits_total{{status=\"failure\"}}[1h]) > 0",
                    "labels": {
                        "severity": "warning",
                        "component": "nodesync"
                    },
                    "annotations": {
                        "summary": "NodeSync audit failed",
                        "description": "Auditing {{ $labels.keyspace }}.{{ $labels.table }} failed in the last hour"
                    }
                },
                {
                    "alert": "NodeSyncUnvalidatedRing",
                    "expr": (
                        f"{ns}_ring_fraction{{outcome=\"unvalidated\"}} > "
                        f"{self.unvalidated_fraction_threshold}"
                    ),
                    "for": "1h",
                    "labels": {
                        "severity": "warning",
                        "component": "nodesync"
                    },
                    "annotations": {
                        "summary": "Large unvalidated part of the token ring",
                        "description": (
                            "{{ $value | humanizePercentage }} of the ring of "
                            "{{ $labels.keyspace }}.{{ $labels.table }} has no completed validation "
                            f"(threshold: {self.unvalidated_fraction_threshold})"
                        )
                    }
                },
                {
                    "alert": "NodeSyncFailedRanges",
                    "expr": f"{ns}_ring_fraction{{outcome=\"failed\"}} > 0",
                    "for": "30m",
                    "labels": {
                        "severity": "critical",
                        "component": "nodesync"
                    },
                    "annotations": {
                        "summary": "NodeSync validations failing",
                        "description": "{{ $value | humanizePercentage }} of the ring of {{ $labels.keyspace }}.{{ $labels.table }} failed validation"
                    }
                },
                {
                    "alert": "NodeSyncStaleValidation",
                    "expr": (
                        f"time() - {ns}_oldest_validation_timestamp_seconds > {stale_seconds}"
                    ),
                    "for": "1h",
                    "labels": {
                        "severity": "warning",
                        "component": "nodesync"
                    },
                    "annotations": {
                        "summary": "NodeSync validation is stale",
                        "description": (
                            "A range of {{ $labels.keyspace }}.{{ $labels.table }} was last validated "
                            f"more than {self.stale_validation_days} days ago"
                        )
                    }
                },
            ]
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.generate_alert_rules(), sort_keys=False)

    def write(self, path: Union[str, Path]) -> Path:
        """
        Write the alert rules to a YAML file.

        Args:
            path: Destination file

        Returns:
            Path written
        """
        path = Path(path)
        path.write_text(self.to_yaml())
        logger.info(f"Alert rules written to {path}")
        return path
