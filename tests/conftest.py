"""Shared test fixtures for LightShare test suite.

Nothing here touches a real Postgres, Valkey or email gateway. The store
fakes keep the same conditional-update semantics as the SQL they stand in
for (single-use redemption, revoke-only-if-active, owner-scoped delete), so
service tests exercise the same races the database resolves.
"""

import threading
from datetime import timedelta
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest

from auth.config import AuthConfig
from auth.exceptions import AlreadyRegisteredError
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.tokens import TokenSigner
from auth.types import RefreshTokenRecord, User
from clients.email_client import EmailGatewayClient
from connections.cipher import generate_key
from connections.config import VaultConfig
from connections.exceptions import AccountAlreadyConnectedError
from connections.types import Account
from utils.timezone import now_utc


# =============================================================================
# TEST CONSTANTS
# =============================================================================

TEST_JWT_SECRET = "test-jwt-secret-that-is-long-enough-0123456789"
TEST_PASSWORD = "longenough1"

# Primary test user - use for single-user tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

# Secondary test user - use for ownership tests
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")


# =============================================================================
# IN-MEMORY STORES
# =============================================================================


class InMemoryValkey:
    """incr_with_ttl/ttl/delete over a dict. TTLs are recorded, never elapse."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    def incr_with_ttl(self, key, ttl_seconds) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        self.ttls[key] = ttl_seconds
        return self.values[key]

    def ttl(self, key) -> int:
        if key not in self.values:
            return -2
        return self.ttls.get(key, -1)

    def delete(self, key) -> bool:
        self.ttls.pop(key, None)
        return self.values.pop(key, None) is not None

    def close(self) -> None:
        pass


class InMemoryUserDatabase:
    """Stand-in for auth.database.UserDatabase."""

    def __init__(self):
        self._users: dict[UUID, User] = {}
        self._lock = threading.Lock()

    def _update(self, user: User, **changes) -> User:
        updated = user.model_copy(update={**changes, "updated_at": now_utc()})
        self._users[user.id] = updated
        return updated

    def create_user(self, email, password_hash, verification_token, verification_expires_at) -> User:
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise AlreadyRegisteredError("Email already registered")
            now = now_utc()
            user = User(
                id=uuid4(),
                email=email,
                password_hash=password_hash,
                verification_token=verification_token,
                verification_expires_at=verification_expires_at,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            return user

    def get_user_by_email(self, email):
        return next((u for u in self._users.values() if u.email == email), None)

    def get_user_by_id(self, user_id):
        return self._users.get(user_id)

    def get_user_by_verification_token(self, token):
        now = now_utc()
        return next(
            (u for u in self._users.values()
             if u.verification_token == token and u.verification_expires_at > now),
            None,
        )

    def set_verification_token(self, user_id, token, expires_at) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or user.email_verified:
                return False
            self._update(user, verification_token=token, verification_expires_at=expires_at)
            return True

    def verify_email(self, token):
        with self._lock:
            user = self.get_user_by_verification_token(token)
            if user is None:
                return None
            return self._update(
                user,
                email_verified=True,
                verification_token=None,
                verification_expires_at=None,
            )

    def verification_token_exists(self, token) -> bool:
        return any(u.verification_token == token for u in self._users.values())

    def set_magic_link_token(self, email, token, expires_at) -> bool:
        with self._lock:
            user = self.get_user_by_email(email)
            if user is None:
                return False
            self._update(user, magic_link_token=token, magic_link_expires_at=expires_at)
            return True

    def get_user_by_magic_link_token(self, token):
        now = now_utc()
        return next(
            (u for u in self._users.values()
             if u.magic_link_token == token and u.magic_link_expires_at > now),
            None,
        )

    def redeem_magic_link_token(self, token):
        with self._lock:
            user = self.get_user_by_magic_link_token(token)
            if user is None:
                return None
            return self._update(user, magic_link_token=None, magic_link_expires_at=None)

    def magic_link_token_exists(self, token) -> bool:
        return any(u.magic_link_token == token for u in self._users.values())

    # Test helpers

    def all(self) -> list[User]:
        return list(self._users.values())

    def expire_tokens(self, email) -> None:
        """Push both pending tokens into the past."""
        user = self.get_user_by_email(email)
        past = now_utc() - timedelta(minutes=1)
        changes = {}
        if user.verification_token:
            changes["verification_expires_at"] = past
        if user.magic_link_token:
            changes["magic_link_expires_at"] = past
        self._update(user, **changes)


class InMemoryRefreshTokenDatabase:
    """Stand-in for auth.database.RefreshTokenDatabase."""

    def __init__(self):
        self._rows: dict[str, RefreshTokenRecord] = {}
        self._lock = threading.Lock()

    def create(self, user_id, token_hash, expires_at, user_agent=None, ip_address=None):
        with self._lock:
            record = RefreshTokenRecord(
                id=uuid4(),
                user_id=user_id,
                token_hash=token_hash,
                expires_at=expires_at,
                created_at=now_utc(),
                user_agent=user_agent,
                ip_address=ip_address,
            )
            self._rows[token_hash] = record
            return record

    def get_by_token_hash(self, token_hash):
        return self._rows.get(token_hash)

    def _revoke_locked(self, token_hash) -> bool:
        record = self._rows.get(token_hash)
        if record is None or record.is_revoked:
            return False
        self._rows[token_hash] = record.model_copy(update={"revoked_at": now_utc()})
        return True

    def revoke(self, token_hash) -> bool:
        with self._lock:
            return self._revoke_locked(token_hash)

    def revoke_all_for_user(self, user_id) -> int:
        with self._lock:
            hashes = [h for h, r in self._rows.items() if r.user_id == user_id and not r.is_revoked]
            for token_hash in hashes:
                self._revoke_locked(token_hash)
            return len(hashes)

    def rotate(self, old_token_hash, user_id, new_token_hash, expires_at, user_agent=None, ip_address=None):
        with self._lock:
            if not self._revoke_locked(old_token_hash):
                return None
            record = RefreshTokenRecord(
                id=uuid4(),
                user_id=user_id,
                token_hash=new_token_hash,
                expires_at=expires_at,
                created_at=now_utc(),
                user_agent=user_agent,
                ip_address=ip_address,
            )
            self._rows[new_token_hash] = record
            return record

    def delete_expired(self, older_than=timedelta(days=7)) -> int:
        with self._lock:
            cutoff = now_utc() - older_than
            stale = [
                h for h, r in self._rows.items()
                if r.expires_at < cutoff or (r.revoked_at is not None and r.revoked_at < cutoff)
            ]
            for token_hash in stale:
                del self._rows[token_hash]
            return len(stale)

    # Test helpers

    def for_user(self, user_id) -> list[RefreshTokenRecord]:
        return [r for r in self._rows.values() if r.user_id == user_id]

    def expire(self, token_hash) -> None:
        record = self._rows[token_hash]
        self._rows[token_hash] = record.model_copy(
            update={"expires_at": now_utc() - timedelta(seconds=1)}
        )


class InMemoryAccountDatabase:
    """Stand-in for connections.database.AccountDatabase."""

    def __init__(self):
        self._rows: dict[UUID, Account] = {}
        self._lock = threading.Lock()

    def create(self, owner_user_id, provider, provider_account_id, encrypted_token, metadata=None):
        with self._lock:
            for row in self._rows.values():
                if (row.owner_user_id, row.provider, row.provider_account_id) == (
                    owner_user_id, provider, provider_account_id
                ):
                    raise AccountAlreadyConnectedError(
                        f"{provider} account {provider_account_id} is already connected"
                    )
            now = now_utc()
            account = Account(
                id=uuid4(),
                owner_user_id=owner_user_id,
                provider=provider,
                provider_account_id=provider_account_id,
                encrypted_token=encrypted_token,
                metadata=metadata or {},
                created_at=now,
                updated_at=now,
            )
            self._rows[account.id] = account
            return account

    def find_by_id(self, account_id):
        return self._rows.get(account_id)

    def find_by_user_id(self, owner_user_id):
        # Newest first; equal timestamps fall back to reverse insertion order
        owned = [a for a in reversed(list(self._rows.values())) if a.owner_user_id == owner_user_id]
        return sorted(owned, key=lambda a: a.created_at, reverse=True)

    def update_metadata(self, account_id, owner_user_id, metadata) -> bool:
        with self._lock:
            account = self._rows.get(account_id)
            if account is None or account.owner_user_id != owner_user_id:
                return False
            self._rows[account_id] = account.model_copy(
                update={"metadata": metadata, "updated_at": now_utc()}
            )
            return True

    def delete(self, account_id, owner_user_id) -> bool:
        with self._lock:
            account = self._rows.get(account_id)
            if account is None or account.owner_user_id != owner_user_id:
                return False
            del self._rows[account_id]
            return True


# =============================================================================
# CONFIG FIXTURES
# =============================================================================


@pytest.fixture
def auth_config() -> AuthConfig:
    """Auth config with cheap bcrypt and a low login limit."""
    return AuthConfig(
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        login_rate_limit_attempts=3,
    )


@pytest.fixture
def vault_config() -> VaultConfig:
    return VaultConfig(encryption_key=generate_key())


# =============================================================================
# STORE AND COLLABORATOR FIXTURES
# =============================================================================


@pytest.fixture
def valkey() -> InMemoryValkey:
    return InMemoryValkey()


@pytest.fixture
def users() -> InMemoryUserDatabase:
    return InMemoryUserDatabase()


@pytest.fixture
def refresh_tokens() -> InMemoryRefreshTokenDatabase:
    return InMemoryRefreshTokenDatabase()


@pytest.fixture
def accounts() -> InMemoryAccountDatabase:
    return InMemoryAccountDatabase()


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    return Mock(spec=EmailGatewayClient)


@pytest.fixture
def mock_security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def signer(auth_config) -> TokenSigner:
    return TokenSigner(auth_config)


@pytest.fixture
def auth_service(auth_config, users, refresh_tokens, valkey, signer, mock_email_client, mock_security_logger):
    """AuthService over in-memory stores with mocked email and audit log."""
    return AuthService(
        config=auth_config,
        users=users,
        refresh_tokens=refresh_tokens,
        signer=signer,
        passwords=PasswordHasher(rounds=auth_config.bcrypt_rounds),
        rate_limiter=RateLimiter(valkey, auth_config),
        email_client=mock_email_client,
        security_logger=mock_security_logger,
    )
