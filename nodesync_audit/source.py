"""
NodeSync Status Source

Reads the per-range validation rows NodeSync keeps in
``system_distributed.nodesync_status`` for a table.
"""

import logging
from typing import Any, Dict, List, Optional

from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile
from cassandra.policies import DCAwareRoundRobinPolicy
from cassandra.query import dict_factory

from nodesync_audit.config import AuditConfig
from nodesync_audit.coverage.record import ValidationRecord, decode_rows
from nodesync_audit.utils.vault_client import Credentials

logger = logging.getLogger(__name__)

NODESYNC_STATUS_QUERY = (
    "SELECT * "
    "FROM system_distributed.nodesync_status "
    "WHERE keyspace_name = %s "
    "AND table_name = %s "
    "ALLOW FILTERING"
)


class NodeSyncStatusSource:
    """
    Data source over a live cluster.

    Rows are returned as dictionaries. Use as a context manager, or call
    ``connect()`` and ``close()`` explicitly.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 9042,
        local_dc: str = "DC1",
        credentials: Optional[Credentials] = None,
        request_timeout: float = 30.0
    ):
        """
        Initialize the source.

        Args:
            host: Contact point
            port: Native protocol port
            local_dc: Local datacenter for the load balancing policy
            credentials: Optional plain text credentials
            request_timeout: Query timeout in seconds
        """
        self.host = host
        self.port = port
        self.local_dc = local_dc
        self.credentials = credentials
        self.request_timeout = request_timeout

        self.cluster = None
        self.session = None

    @classmethod
    def from_config(
        cls,
        config: AuditConfig,
        credentials: Optional[Credentials] = None
    ) -> "NodeSyncStatusSource":
        return cls(
            host=config.host,
            port=config.port,
            local_dc=config.local_dc,
            credentials=credentials,
            request_timeout=config.request_timeout,
        )

    def connect(self) -> "NodeSyncStatusSource":
        """
        Open the cluster connection.

        Raises:
            cassandra.cluster.NoHostAvailable: If no contact point answers
        """
        logger.info(
            f"Connecting to {self.host}:{self.port} and using {self.local_dc} "
            f"as local datacenter"
        )

        profile = ExecutionProfile(
            load_balancing_policy=DCAwareRoundRobinPolicy(local_dc=self.local_dc),
            request_timeout=self.request_timeout,
            row_factory=dict_factory,
        )

        auth_provider = None
        if self.credentials is not None:
            auth_provider = PlainTextAuthProvider(
                username=self.credentials.username,
                password=self.credentials.password,
            )

        self.cluster = Cluster(
            [self.host],
            port=self.port,
            execution_profiles={EXEC_PROFILE_DEFAULT: profile},
            auth_provider=auth_provider,
        )
        self.session = self.cluster.connect()
        return self

    def fetch_rows(self, keyspace: str, table: str) -> List[Dict[str, Any]]:
        """
        Fetch the nodesync_status rows of a table.

        Args:
            keyspace: Keyspace name
            table: Table name

        Returns:
            Rows as dictionaries (possibly empty)

        Raises:
            RuntimeError: If the source is not connected
            cassandra.DriverException: If the query fails
        """
        if self.session is None:
            raise RuntimeError("NodeSyncStatusSource is not connected")

        logger.debug(f"Executing nodesync_status query for {keyspace}.{table}")
        result = self.session.execute(NODESYNC_STATUS_QUERY, (keyspace, table))
        rows = list(result)

        logger.info(f"Fetched {len(rows)} nodesync_status rows for {keyspace}.{table}")
        return rows

    def fetch_records(self, keyspace: str, table: str) -> List[ValidationRecord]:
        """Fetch and decode the validation records of a table."""
        return decode_rows(self.fetch_rows(keyspace, table))

    def close(self) -> None:
        if self.cluster is not None:
            self.cluster.shutdown()
            logger.debug(f"Closed connection to {self.host}:{self.port}")
        self.cluster = None
        self.session = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
