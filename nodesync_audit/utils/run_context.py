"""
Audit Run Context for NodeSync Audits

Tracks the identifier of the current audit so that every log line written
while auditing a table can be tied back to its run.
"""

import contextvars
import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

_audit_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'audit_id',
    default=None
)


def generate_audit_id() -> str:
    """Generate a new audit identifier (UUID4)."""
    return str(uuid.uuid4())


def get_audit_id() -> Optional[str]:
    """Return the audit identifier of the current context, if any."""
    return _audit_id.get()


def set_audit_id(audit_id: str) -> None:
    """
    Set the audit identifier of the current context.

    Args:
        audit_id: Identifier to set

    Raises:
        ValueError: If audit_id is empty or not a string
    """
    if not audit_id or not isinstance(audit_id, str):
        raise ValueError("Audit ID must be a non-empty string")

    _audit_id.set(audit_id)


def clear_audit_id() -> None:
    _audit_id.set(None)


class AuditContext:
    """
    Context manager scoping an audit identifier.

    Nested contexts restore the enclosing identifier on exit.
    """

    def __init__(self, audit_id: Optional[str] = None):
        """
        Initialize the context.

        Args:
            audit_id: Identifier to use; a new one is generated if omitted
        """
        self.audit_id = audit_id
        self._token = None

    def __enter__(self) -> str:
        if not self.audit_id:
            self.audit_id = generate_audit_id()

        self._token = _audit_id.set(self.audit_id)
        logger.debug(f"Entered audit context: {self.audit_id}")
        return self.audit_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        _audit_id.reset(self._token)
        self._token = None


def audit_id_filter(record: logging.LogRecord) -> bool:
    """
    Logging filter stamping records with the current audit identifier.

    Always lets the record through.
    """
    record.audit_id = get_audit_id() or "N/A"
    return True
