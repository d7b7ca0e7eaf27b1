"""
Application wiring.

Secrets come from Vault once at startup. Each component gets its config and
collaborators through its constructor; nothing reads configuration later.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from auth.config import AuthConfig
from auth.database import RefreshTokenDatabase, UserDatabase
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.tokens import TokenSigner
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    VaultClient,
    get_auth_secrets,
    get_database_url,
    get_email_config,
    get_valkey_url,
)
from connections.config import VaultConfig
from connections.database import AccountDatabase
from connections.service import ProviderConnectionService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, plus the connections to close."""

    auth: AuthService
    connections: ProviderConnectionService
    refresh_tokens: RefreshTokenDatabase
    security_logger: SecurityLogger
    postgres: PostgresClient
    valkey: ValkeyClient

    def close(self) -> None:
        self.postgres.close()
        self.valkey.close()


def build_services(vault: VaultClient | None = None) -> Services:
    """
    Read secrets and construct the service graph.

    Non-secret settings come from the environment (a .env file is loaded if
    present): EMAIL_LINK_BASE_URL and PROVIDER_TIMEOUT_SECONDS.

    Raises:
        VaultError / PermissionError / KeyError: Secrets unavailable.
        pydantic.ValidationError: A secret is present but malformed.
    """
    load_dotenv()

    vault = vault or VaultClient()
    auth_secrets = get_auth_secrets(vault)

    auth_config = AuthConfig(jwt_secret=auth_secrets["jwt_secret"])
    vault_config = VaultConfig(
        encryption_key=auth_secrets["encryption_key"],
        provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10")),
    )

    postgres = PostgresClient(get_database_url(vault))
    valkey = ValkeyClient(get_valkey_url(vault))

    email_config = get_email_config(vault)
    email_client = EmailGatewayClient(
        gateway_url=email_config["gateway_url"],
        api_key=email_config["api_key"],
        hmac_secret=email_config["hmac_secret"],
        link_base_url=os.getenv("EMAIL_LINK_BASE_URL", "lightshare://"),
    )

    security_logger = SecurityLogger(postgres)
    refresh_tokens = RefreshTokenDatabase(postgres)

    auth_service = AuthService(
        config=auth_config,
        users=UserDatabase(postgres),
        refresh_tokens=refresh_tokens,
        signer=TokenSigner(auth_config),
        passwords=PasswordHasher(rounds=auth_config.bcrypt_rounds),
        rate_limiter=RateLimiter(valkey, auth_config),
        email_client=email_client,
        security_logger=security_logger,
    )

    connection_service = ProviderConnectionService(
        config=vault_config,
        accounts=AccountDatabase(postgres),
        security_logger=security_logger,
    )

    logger.info("Services initialized")

    return Services(
        auth=auth_service,
        connections=connection_service,
        refresh_tokens=refresh_tokens,
        security_logger=security_logger,
        postgres=postgres,
        valkey=valkey,
    )
