"""
Configuration for NodeSync Audits

Connection settings and the list of audited tables, read from environment
variables and overridable from the command line.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_KEYSPACE = "domain_1300"

DEFAULT_TABLES = [
    "xml_doc_1300",
    "xml_doc_1305",
    "xml_doc_1307",
    "xml_idx_1300_1",
    "xml_idx_1300_2",
    "xml_idx_1300_3",
    "xml_idx_1300_4",
    "xml_idx_1300_5",
    "xml_idx_1301_1",
    "xml_idx_1305_1",
]


def _env_int(environ: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_list(environ: Mapping[str, str], name: str, default: List[str]) -> List[str]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class AuditConfig:
    """
    Settings of one audit run.

    Attributes:
        host: Contact point of the cluster
        port: Native protocol port
        local_dc: Datacenter used by the load balancing policy
        keyspace: Keyspace of the audited tables
        tables: Audited tables
        username: Optional user for plain text authentication
        password: Optional password for plain text authentication
        vault_path: Optional Vault KV path holding username/password
        request_timeout: Query timeout in seconds
        workers: Number of tables audited in parallel
        metrics_port: Port to expose Prometheus metrics on, if any
        pushgateway_url: Pushgateway to push metrics to, if any
    """

    host: str = "localhost"
    port: int = 9042
    local_dc: str = "DC1"
    keyspace: str = DEFAULT_KEYSPACE
    tables: List[str] = field(default_factory=lambda: list(DEFAULT_TABLES))
    username: Optional[str] = None
    password: Optional[str] = None
    vault_path: Optional[str] = None
    request_timeout: float = 30.0
    workers: int = 1
    metrics_port: Optional[int] = None
    pushgateway_url: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check the settings.

        Raises:
            ValueError: If a setting is out of range or no table is configured
        """
        if not self.host:
            raise ValueError("Host must not be empty")
        if not 0 < self.port < 65536:
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
        if not self.tables:
            raise ValueError("At least one table must be configured")
        if self.workers < 1:
            raise ValueError(f"Workers must be at least 1, got {self.workers}")
        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if (self.username is None) != (self.password is None):
            raise ValueError("Username and password must be provided together")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AuditConfig":
        """
        Build a configuration from ``NODESYNC_AUDIT_*`` environment variables.

        Args:
            environ: Environment to read (defaults to ``os.environ``)

        Returns:
            Configuration with defaults for unset variables

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        environ = os.environ if environ is None else environ

        config = cls(
            host=environ.get("NODESYNC_AUDIT_HOST", "localhost"),
            port=_env_int(environ, "NODESYNC_AUDIT_PORT", 9042),
            local_dc=environ.get("NODESYNC_AUDIT_DC", "DC1"),
            keyspace=environ.get("NODESYNC_AUDIT_KEYSPACE", DEFAULT_KEYSPACE),
            tables=_env_list(environ, "NODESYNC_AUDIT_TABLES", DEFAULT_TABLES),
            username=environ.get("NODESYNC_AUDIT_USERNAME") or None,
            password=environ.get("NODESYNC_AUDIT_PASSWORD") or None,
            vault_path=environ.get("NODESYNC_AUDIT_VAULT_PATH") or None,
            request_timeout=_env_float(environ, "NODESYNC_AUDIT_TIMEOUT", 30.0),
            workers=_env_int(environ, "NODESYNC_AUDIT_WORKERS", 1),
            metrics_port=_env_int(environ, "NODESYNC_AUDIT_METRICS_PORT", None),
            pushgateway_url=environ.get("NODESYNC_AUDIT_PUSHGATEWAY") or None,
        )

        logger.debug(f"Loaded configuration from environment: {config.describe()}")
        return config

    def with_overrides(self, **overrides: Any) -> "AuditConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def describe(self) -> str:
        """Summary safe to log (no credentials)."""
        return (
            f"host={self.host}:{self.port}, dc={self.local_dc}, "
            f"keyspace={self.keyspace}, tables={len(self.tables)}, "
            f"auth={'yes' if self.username else 'vault' if self.vault_path else 'no'}"
        )
