"""
Secret reads from HashiCorp Vault (KV v2, AppRole login).

Every path is resolved under 'lightshare/'; callers cannot reach secrets
outside it. bootstrap.py reads what it needs once at startup and passes the
values down. There is no module-level client and no cache here.
"""

import logging
import os
from typing import Dict, Iterable

import hvac
import requests
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized, VaultDown

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "lightshare"


class VaultError(Exception):
    """Vault could not be reached. Startup cannot continue without secrets."""


class VaultClient:
    """
    AppRole-authenticated Vault session.

    Address, namespace and AppRole credentials come from VAULT_ADDR,
    VAULT_NAMESPACE, VAULT_ROLE_ID and VAULT_SECRET_ID.
    """

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        timeout: int = 10,
    ):
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR must be set")
        if not (role_id and secret_id):
            raise ValueError("VAULT_ROLE_ID and VAULT_SECRET_ID must both be set")

        options = {"url": self.vault_addr, "timeout": timeout}
        if self.vault_namespace:
            options["namespace"] = self.vault_namespace
        self.client = hvac.Client(**options)

        self._login(role_id, secret_id)
        logger.info(f"Authenticated to Vault at {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except Exception as e:
            logger.error(f"Vault AppRole login failed: {e}")
            raise PermissionError(f"Vault AppRole authentication failed: {e}") from e

        self.client.token = response["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed: token not accepted")

    def get_secret(self, path: str, field: str) -> str:
        """One field of lightshare/<path>. Same errors as get_secrets."""
        return self.get_secrets(path, [field])[field]

    def get_secrets(self, path: str, fields: Iterable[str]) -> Dict[str, str]:
        """
        Several fields of lightshare/<path>, read in one request.

        Raises:
            PermissionError: Path missing or access denied.
            KeyError: A requested field is absent.
            VaultError: Vault unreachable or sealed.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            logger.error(f"No secret at {full_path}")
            raise PermissionError(f"No secret at '{full_path}'") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Denied reading {full_path}: {e}")
            raise PermissionError(f"Access denied to '{full_path}'") from e
        except (VaultDown, requests.exceptions.RequestException) as e:
            logger.error(f"Vault unavailable while reading {full_path}: {e}")
            raise VaultError(f"Vault unavailable: {e}") from e

        data = response["data"]["data"]
        fields = list(fields)
        missing = [name for name in fields if name not in data]
        if missing:
            raise KeyError(
                f"{', '.join(missing)} not found in '{full_path}' "
                f"(has: {', '.join(sorted(data))})"
            )
        return {name: data[name] for name in fields}


def get_database_url(vault: VaultClient) -> str:
    return vault.get_secret("database", "url")


def get_valkey_url(vault: VaultClient) -> str:
    return vault.get_secret("valkey", "url")


def get_email_config(vault: VaultClient) -> Dict[str, str]:
    """Keys: gateway_url, api_key, hmac_secret."""
    return vault.get_secrets("email", ["gateway_url", "api_key", "hmac_secret"])


def get_auth_secrets(vault: VaultClient) -> Dict[str, str]:
    """Keys: jwt_secret, encryption_key (64 hex chars)."""
    return vault.get_secrets("auth", ["jwt_secret", "encryption_key"])
