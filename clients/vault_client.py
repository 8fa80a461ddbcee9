"""
HashiCorp Vault lookups for deployment secrets.

Local development and tests set DATABASE_URL directly; deployed instances
authenticate to Vault with AppRole and read KV v2 secrets under the
'timesheet/' prefix. Missing configuration fails at startup, not mid-request.
"""

import os
import logging
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "timesheet"

# Process-wide client and secret cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """AppRole-authenticated reader for KV v2 secrets under one prefix."""

    def __init__(self, vault_addr: str | None = None, vault_namespace: str | None = None):
        addr = vault_addr or os.getenv("VAULT_ADDR")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_addr = addr
        self.client = hvac.Client(url=addr, namespace=namespace) if namespace else hvac.Client(url=addr)

        try:
            login = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except Exception as e:
            logger.error("AppRole login to %s failed: %s", addr, e)
            raise PermissionError(f"AppRole authentication failed: {e}") from e

        self.client.token = login["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info("Vault client ready: %s", addr)

    def get_secret(self, path: str, field: str) -> str:
        """
        One field of the secret at timesheet/<path>.

        Raises:
            PermissionError: Path missing or not readable with this role
            KeyError: Secret exists but has no such field
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            raise PermissionError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error("Access denied to secret %s: %s", full_path, e)
            raise PermissionError(f"Access denied to secret '{full_path}': {e}") from e

        data = response["data"]["data"]
        if field not in data:
            raise KeyError(
                f"Field '{field}' not found in secret '{full_path}'. "
                f"Available: {', '.join(data)}"
            )
        return data[field]


def _cached_secret(path: str, field: str) -> str:
    key = f"{path}/{field}"
    if key not in _secret_cache:
        _secret_cache[key] = _ensure_vault_client().get_secret(path, field)
    return _secret_cache[key]


def get_database_url() -> str:
    """
    PostgreSQL connection URL.

    DATABASE_URL in the environment wins; otherwise timesheet/database:url
    is read from Vault once per process.
    """
    return os.getenv("DATABASE_URL") or _cached_secret("database", "url")
