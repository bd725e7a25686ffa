"""
Vault Credentials for NodeSync Audits

Reads the data store credentials from a HashiCorp Vault KV v2 secret so
they never have to be passed on the command line.
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import hvac
from hvac.exceptions import InvalidPath, VaultError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Plain text authentication credentials."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


class VaultClient:
    """
    Minimal Vault client for credential lookups.

    Supports use as a context manager.
    """

    def __init__(
        self,
        vault_url: Optional[str] = None,
        vault_token: Optional[str] = None,
        verify_ssl: bool = True,
        mount_point: str = "secret"
    ):
        """
        Initialize the Vault client.

        Args:
            vault_url: Vault server URL (defaults to VAULT_ADDR env var)
            vault_token: Vault token (defaults to VAULT_TOKEN env var)
            verify_ssl: Whether to verify SSL certificates
            mount_point: KV v2 secrets engine mount point

        Raises:
            ValueError: If the URL or the token is missing
            VaultError: If Vault rejects the token or is unreachable
        """
        self.vault_url = vault_url or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.mount_point = mount_point

        if not self.vault_url:
            raise ValueError("Vault URL must be provided via parameter or VAULT_ADDR environment variable")

        if not self.vault_token:
            raise ValueError("Vault token must be provided via parameter or VAULT_TOKEN environment variable")

        try:
            self.client = hvac.Client(
                url=self.vault_url,
                token=self.vault_token,
                verify=verify_ssl
            )
            authenticated = self.client.is_authenticated()
        except Exception as e:
            logger.error(f"Failed to initialize Vault client: {e}")
            raise VaultError(f"Vault initialization failed: {e}") from e

        if not authenticated:
            raise VaultError("Failed to authenticate with Vault")

        logger.info(f"Connected to Vault at {self.vault_url}")

    def get_secret(self, path: str) -> Dict[str, Any]:
        """
        Read the latest version of a KV v2 secret.

        Args:
            path: Secret path relative to the mount point

        Returns:
            Secret data

        Raises:
            InvalidPath: If nothing is stored at the path
            VaultError: If the read fails
        """
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=self.mount_point
            )
        except InvalidPath:
            logger.error(f"Secret not found at path: {path}")
            raise
        except Exception as e:
            logger.error(f"Failed to retrieve secret from {path}: {e}")
            raise VaultError(f"Secret retrieval failed: {e}") from e

        if not response or "data" not in response:
            raise InvalidPath(f"No data found at path: {path}")

        return response["data"].get("data", {})

    def get_credentials(self, path: str) -> Credentials:
        """
        Read username and password stored at a secret path.

        Args:
            path: Secret path holding ``username`` and ``password`` keys

        Returns:
            Credentials found at the path

        Raises:
            VaultError: If either key is missing
        """
        secret = self.get_secret(path)

        username = secret.get("username")
        password = secret.get("password")
        if not username or not password:
            raise VaultError(f"Secret at {path} must define username and password")

        logger.info(f"Retrieved credentials from {path}")
        return Credentials(username=username, password=password)

    def close(self):
        self.client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def resolve_credentials(
    username: Optional[str],
    password: Optional[str],
    vault_path: Optional[str]
) -> Optional[Credentials]:
    """
    Work out which credentials to connect with.

    Explicit credentials win over Vault; without either, no authentication
    is used.

    Args:
        username: Explicit username
        password: Explicit password
        vault_path: Vault secret path to fall back on

    Returns:
        Credentials, or None for an unauthenticated connection
    """
    if username and password:
        return Credentials(username=username, password=password)

    if vault_path:
        with VaultClient() as vault:
            return vault.get_credentials(vault_path)

    return None
