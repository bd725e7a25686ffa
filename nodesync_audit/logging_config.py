"""
Logging Setup for NodeSync Audits

Human-readable console logging, with optional structured JSON lines for
log shippers.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from nodesync_audit.utils.run_context import audit_id_filter

_EXTRA_FIELDS = {
    'keyspace': 'keyspace',
    'table': 'table',
    'duration': 'duration_seconds',
    'records': 'records',
    'ranges': 'ranges',
}


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with audit ID support."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'audit_id': getattr(record, 'audit_id', 'N/A'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attribute, key in _EXTRA_FIELDS.items():
            if hasattr(record, attribute):
                log_data[key] = getattr(record, attribute)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    verbose: bool = False,
    json_logging: Optional[bool] = None,
    logger_name: str = "nodesync_audit"
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        verbose: Log at DEBUG instead of INFO
        json_logging: Emit JSON lines instead of text (defaults to the
            JSON_LOGGING env var)
        logger_name: Logger to configure

    Returns:
        The configured logger
    """
    if json_logging is None:
        json_logging = os.getenv('JSON_LOGGING', 'false').lower() == 'true'

    handler = logging.StreamHandler()
    if json_logging:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    handler.addFilter(audit_id_filter)

    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    return logger
