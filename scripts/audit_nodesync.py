#!/usr/bin/env python3
"""
NodeSync Coverage Audit Tool

Prints, for each audited table, the reconciled NodeSync validation state of
the whole token ring: one line per range with its effective outcome,
including ranges that were never validated.

Usage:
    ./scripts/audit_nodesync.py
    ./scripts/audit_nodesync.py 10.0.0.12 9042 DC2
    ./scripts/audit_nodesync.py --keyspace app --table users --table orders --json
    ./scripts/audit_nodesync.py --metrics-port 9108 --workers 4
    ./scripts/audit_nodesync.py --emit-alert-rules nodesync_alerts.yml

Environment:
    NODESYNC_AUDIT_HOST, NODESYNC_AUDIT_PORT, NODESYNC_AUDIT_DC,
    NODESYNC_AUDIT_KEYSPACE, NODESYNC_AUDIT_TABLES (comma separated),
    NODESYNC_AUDIT_USERNAME, NODESYNC_AUDIT_PASSWORD,
    NODESYNC_AUDIT_VAULT_PATH (with VAULT_ADDR and VAULT_TOKEN),
    NODESYNC_AUDIT_TIMEOUT, NODESYNC_AUDIT_WORKERS,
    NODESYNC_AUDIT_METRICS_PORT, NODESYNC_AUDIT_PUSHGATEWAY, JSON_LOGGING
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cassandra.cluster import NoHostAvailable
from hvac.exceptions import VaultError

from nodesync_audit.auditor import NodeSyncAuditor
from nodesync_audit.config import AuditConfig
from nodesync_audit.logging_config import configure_logging
from nodesync_audit.monitoring import AlertRuleGenerator, CoverageMetrics
from nodesync_audit.reporting import CoverageReporter
from nodesync_audit.source import NodeSyncStatusSource
from nodesync_audit.utils.vault_client import resolve_credentials

logger = logging.getLogger("nodesync_audit.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Audit NodeSync validation coverage of tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument("host", nargs="?", help="Contact point (default: localhost)")
    parser.add_argument("port", nargs="?", type=int, help="Native protocol port (default: 9042)")
    parser.add_argument("dc", nargs="?", help="Local datacenter (default: DC1)")

    parser.add_argument("--keyspace", help="Keyspace of the audited tables")
    parser.add_argument("--table", action="append", dest="tables", help="Table to audit (repeatable)")
    parser.add_argument("--json", action="store_true", help="Print a JSON report")
    parser.add_argument("--workers", type=int, help="Tables audited in parallel")
    parser.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")
    parser.add_argument("--pushgateway", help="Push metrics to this Pushgateway when done")
    parser.add_argument("--emit-alert-rules", metavar="PATH", help="Write Prometheus alert rules and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    return parser


def load_config(args: argparse.Namespace) -> AuditConfig:
    """Environment configuration with command line overrides applied."""
    return AuditConfig.from_env().with_overrides(
        host=args.host,
        port=args.port,
        local_dc=args.dc,
        keyspace=args.keyspace,
        tables=args.tables,
        workers=args.workers,
        metrics_port=args.metrics_port,
        pushgateway_url=args.pushgateway,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    if args.emit_alert_rules:
        AlertRuleGenerator().write(args.emit_alert_rules)
        return 0

    try:
        config = load_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.info(f"Auditing with {config.describe()}")

    metrics = CoverageMetrics()
    if config.metrics_port:
        metrics.start_server(config.metrics_port)

    try:
        credentials = resolve_credentials(config.username, config.password, config.vault_path)

        with NodeSyncStatusSource.from_config(config, credentials) as source:
            auditor = NodeSyncAuditor(source, metrics=metrics, workers=config.workers)
            results = auditor.audit_tables(config.keyspace, config.tables)

    except (NoHostAvailable, VaultError, ValueError) as e:
        logger.error(f"Error: {e}", exc_info=args.verbose)
        return 1

    CoverageReporter(as_json=args.json).report(results)

    if config.pushgateway_url:
        try:
            metrics.push(config.pushgateway_url)
        except Exception as e:
            logger.warning(f"Metrics were not pushed: {e}")

    failed = [result.qualified_table for result in results if not result.succeeded]
    if failed:
        logger.warning(f"{len(failed)} table audits failed: {', '.join(failed)}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
