"""
Provider credential vault.

Users hand us a provider API token once. We check it with the provider,
encrypt it, and keep it alongside what the provider told us about the
account. The raw token is never stored, logged, or returned.
"""

import logging
from typing import Callable
from uuid import UUID

from auth.security_logger import SecurityEvent, SecurityLogger
from connections.cipher import CredentialCipher
from connections.config import VaultConfig
from connections.database import AccountDatabase
from connections.exceptions import (
    AccountNotFoundError,
    AccountNotOwnedError,
    InvalidProviderError,
    InvalidProviderTokenError,
)
from connections.types import Account
from providers.base import AccountInfo, Provider, ProviderClient
from providers.exceptions import ProviderTokenRejectedError
from providers.factory import create_provider_client

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Provider], ProviderClient]


def _associated_data(owner_user_id: UUID, provider: str) -> bytes:
    """Binds a ciphertext to its owner and provider."""
    return f"{owner_user_id}:{provider}".encode("utf-8")


class ProviderConnectionService:
    """Connect, list, refresh and disconnect a user's provider accounts."""

    def __init__(
        self,
        config: VaultConfig,
        accounts: AccountDatabase,
        security_logger: SecurityLogger,
        client_factory: ClientFactory | None = None,
    ):
        self._accounts = accounts
        self._cipher = CredentialCipher(config.encryption_key)
        self._security_logger = security_logger
        self._client_factory = client_factory or (
            lambda provider: create_provider_client(provider, timeout=config.provider_timeout_seconds)
        )

    def _audit_committed(self, event: SecurityEvent, **fields) -> None:
        # The account change is already committed; a lost audit row must not undo it
        try:
            self._security_logger.log(event, **fields)
        except Exception as e:
            logger.error(f"Security event {event.value} not recorded: {e}")

    def _parse_provider(self, provider_name: str) -> Provider:
        try:
            return Provider(provider_name.strip().lower())
        except ValueError as e:
            raise InvalidProviderError(f"Unknown provider: {provider_name}") from e

    def connect(self, user_id: UUID, provider_name: str, raw_token: str) -> Account:
        """
        Validate a token with its provider and store it encrypted.

        Steps:
        1. Resolve the provider (unknown names fail before any network call)
        2. Ask the provider who the token belongs to
        3. Encrypt the token bound to (user, provider)
        4. Insert; the unique key rejects a second connect of the same account

        Raises:
            InvalidProviderError: Unknown provider name.
            ProviderNotImplementedError: Known provider without a client.
            InvalidProviderTokenError: Empty token, or provider rejected it.
            ProviderUnavailableError: Provider could not be reached.
            AccountAlreadyConnectedError: Already connected for this user.
        """
        provider = self._parse_provider(provider_name)
        client = self._client_factory(provider)

        if not raw_token or not raw_token.strip():
            raise InvalidProviderTokenError("Provider token is empty")

        try:
            info = client.validate_token(raw_token)
        except ProviderTokenRejectedError as e:
            raise InvalidProviderTokenError(f"{provider.value} rejected the token") from e

        encrypted = self._cipher.encrypt(raw_token, _associated_data(user_id, provider.value))

        account = self._accounts.create(
            owner_user_id=user_id,
            provider=provider.value,
            provider_account_id=info.provider_account_id,
            encrypted_token=encrypted,
            metadata={"label": info.label, **info.metadata},
        )

        logger.info(f"User {user_id} connected {provider.value} account {account.id}")
        self._audit_committed(
            SecurityEvent.PROVIDER_CONNECTED,
            user_id=user_id,
            details={"provider": provider.value, "account_id": str(account.id)},
        )

        return account

    def list_accounts(self, user_id: UUID) -> list[Account]:
        """The user's connected accounts, newest first."""
        return self._accounts.find_by_user_id(user_id)

    def _get_owned(self, user_id: UUID, account_id: UUID) -> Account:
        account = self._accounts.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        if account.owner_user_id != user_id:
            raise AccountNotOwnedError(f"Account {account_id} not found")
        return account

    def disconnect(self, user_id: UUID, account_id: UUID) -> None:
        """
        Remove a connected account.

        Raises:
            AccountNotFoundError: No such account (or deleted concurrently).
            AccountNotOwnedError: Account belongs to another user.
        """
        account = self._get_owned(user_id, account_id)

        if not self._accounts.delete(account.id, user_id):
            raise AccountNotFoundError(f"Account {account_id} not found")

        logger.info(f"User {user_id} disconnected {account.provider} account {account.id}")
        self._audit_committed(
            SecurityEvent.PROVIDER_DISCONNECTED,
            user_id=user_id,
            details={"provider": account.provider, "account_id": str(account.id)},
        )

    def decrypt_token(self, user_id: UUID, account_id: UUID) -> str:
        """Plaintext token for an owned account, for making provider calls.

        Raises:
            AccountNotFoundError, AccountNotOwnedError
            DecryptionFailedError: Stored ciphertext no longer opens.
        """
        account = self._get_owned(user_id, account_id)
        return self._cipher.decrypt(
            account.encrypted_token,
            _associated_data(account.owner_user_id, account.provider),
        )

    def refresh_account_info(self, user_id: UUID, account_id: UUID) -> AccountInfo:
        """
        Re-fetch account details from the provider and store them as metadata.

        Raises:
            AccountNotFoundError, AccountNotOwnedError
            InvalidProviderError: Stored provider is no longer recognized.
            InvalidProviderTokenError: Provider now rejects the stored token.
            ProviderUnavailableError: Provider could not be reached.
        """
        account = self._get_owned(user_id, account_id)
        provider = self._parse_provider(account.provider)
        client = self._client_factory(provider)

        token = self._cipher.decrypt(
            account.encrypted_token,
            _associated_data(account.owner_user_id, account.provider),
        )

        try:
            info = client.get_account_info(token)
        except ProviderTokenRejectedError as e:
            raise InvalidProviderTokenError(f"{provider.value} rejected the stored token") from e

        if not self._accounts.update_metadata(account.id, user_id, {"label": info.label, **info.metadata}):
            raise AccountNotFoundError(f"Account {account_id} not found")

        return info
