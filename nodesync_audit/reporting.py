"""
Coverage Reporter

Renders audit results, either as plain text lines (a header per table then
one line per reconciled range) or as a JSON document.
"""

import json
import sys
from typing import Any, Dict, List, Optional, TextIO

from nodesync_audit.auditor import TableAuditResult
from nodesync_audit.coverage.record import ValidationRecord


class CoverageReporter:
    """Writes audit results to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None, as_json: bool = False):
        """
        Initialize the reporter.

        Args:
            stream: Output stream (stdout if omitted)
            as_json: Render JSON instead of text
        """
        self.stream = stream or sys.stdout
        self.as_json = as_json

    @staticmethod
    def format_header(keyspace: str, table: str) -> str:
        return f"Checking {keyspace}.{table}..."

    @staticmethod
    def format_record(record: ValidationRecord) -> str:
        """Format one range, e.g. ``ks.t, range [0;10], lastOutcome=0 (fully in sync)``."""
        return str(record)

    def render_text(self, result: TableAuditResult) -> List[str]:
        """
        Render one table as text lines.

        Args:
            result: Audit result of the table

        Returns:
            Header line followed by one line per range, or by the error
        """
        lines = [self.format_header(result.keyspace, result.table)]

        if not result.succeeded:
            lines.append(f"Audit failed: {result.error}")
            return lines

        lines.extend(self.format_record(record) for record in result.coverage)
        return lines

    def to_dict(self, result: TableAuditResult) -> Dict[str, Any]:
        summary = dict(result.summary)
        if summary.get("oldest_validation_at") is not None:
            summary["oldest_validation_at"] = summary["oldest_validation_at"].isoformat()

        return {
            "keyspace": result.keyspace,
            "table": result.table,
            "status": "success" if result.succeeded else "failure",
            "error": result.error,
            "rows_fetched": result.rows_fetched,
            "records_decoded": result.records_decoded,
            "duration_seconds": round(result.duration_seconds, 6),
            "summary": summary,
            "ranges": [record.to_dict() for record in result.coverage],
        }

    def render_json(self, results: List[TableAuditResult]) -> str:
        return json.dumps({"tables": [self.to_dict(result) for result in results]}, indent=2)

    def report(self, results: List[TableAuditResult]) -> None:
        """Write every result to the stream."""
        if self.as_json:
            self.stream.write(self.render_json(results) + "\n")
        else:
            for result in results:
                for line in self.render_text(result):
                    self.stream.write(line + "\n")

        self.stream.flush()
