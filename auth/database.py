"""Database operations for authentication.

Tables: users, refresh_tokens.

Single-use tokens (email verification, magic link) are redeemed with one
conditional UPDATE ... RETURNING that both checks expiry and clears the
token, so two concurrent redemptions of the same token can't both succeed.
Refresh token revocation is likewise conditional on revoked_at IS NULL.
"""

from datetime import datetime, timedelta
from typing import Any, Dict
from uuid import UUID, uuid4

import psycopg2.errors

from clients.postgres_client import PostgresClient
from auth.exceptions import AlreadyRegisteredError
from auth.types import RefreshTokenRecord, User
from utils.timezone import now_utc

_USER_COLUMNS = """id, email, password_hash, email_verified,
       email_verification_token, email_verification_expires_at,
       magic_link_token, magic_link_expires_at,
       role, created_at, updated_at"""

_REFRESH_COLUMNS = """id, user_id, token_hash, expires_at, created_at,
       revoked_at, user_agent, ip_address"""


def _as_uuid(value: Any) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def _row_to_user(row: Dict[str, Any]) -> User:
    return User(
        id=_as_uuid(row["id"]),
        email=row["email"],
        password_hash=row["password_hash"],
        email_verified=row["email_verified"],
        role=row["role"],
        verification_token=row["email_verification_token"],
        verification_expires_at=row["email_verification_expires_at"],
        magic_link_token=row["magic_link_token"],
        magic_link_expires_at=row["magic_link_expires_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_refresh_token(row: Dict[str, Any]) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=_as_uuid(row["id"]),
        user_id=_as_uuid(row["user_id"]),
        token_hash=row["token_hash"],
        expires_at=row["expires_at"],
        created_at=row["created_at"],
        revoked_at=row["revoked_at"],
        user_agent=row["user_agent"],
        ip_address=str(row["ip_address"]) if row["ip_address"] else None,
    )


def _truncate(value: str | None, limit: int) -> str | None:
    return value[:limit] if value else value


class UserDatabase:
    """User rows and their single-use email tokens."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def create_user(
        self,
        email: str,
        password_hash: str,
        verification_token: str,
        verification_expires_at: datetime,
    ) -> User:
        """Insert an unverified user.

        Raises:
            AlreadyRegisteredError: If the email is already taken.
        """
        now = now_utc()
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (
                       id, email, password_hash, email_verified,
                       email_verification_token, email_verification_expires_at,
                       role, created_at, updated_at)
                   VALUES (%s, %s, %s, false, %s, %s, 'user', %s, %s)
                   RETURNING {_USER_COLUMNS}""",
                (uuid4(), email, password_hash, verification_token,
                 verification_expires_at, now, now),
            )
        except psycopg2.errors.UniqueViolation as e:
            raise AlreadyRegisteredError("Email already registered") from e
        return _row_to_user(rows[0])

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by (already normalized) email."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s",
            (email,),
        )
        return _row_to_user(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return _row_to_user(row) if row else None

    def get_user_by_verification_token(self, token: str) -> User | None:
        """Find the user holding an unexpired verification token."""
        row = self._db.execute_single(
            f"""SELECT {_USER_COLUMNS} FROM users
               WHERE email_verification_token = %s
                 AND email_verification_expires_at > %s""",
            (token, now_utc()),
        )
        return _row_to_user(row) if row else None

    def set_verification_token(self, user_id: UUID, token: str, expires_at: datetime) -> bool:
        """Replace the pending verification token. Returns False if user is missing."""
        count = self._db.execute_rowcount(
            """UPDATE users
               SET email_verification_token = %s,
                   email_verification_expires_at = %s,
                   updated_at = %s
               WHERE id = %s AND email_verified = false""",
            (token, expires_at, now_utc(), user_id),
        )
        return count > 0

    def verify_email(self, token: str) -> User | None:
        """Mark verified and clear the token, only if it exists and is unexpired.

        Returns:
            The updated user, or None if no unexpired token matched.
        """
        now = now_utc()
        rows = self._db.execute_returning(
            f"""UPDATE users
               SET email_verified = true,
                   email_verification_token = NULL,
                   email_verification_expires_at = NULL,
                   updated_at = %s
               WHERE email_verification_token = %s
                 AND email_verification_expires_at > %s
               RETURNING {_USER_COLUMNS}""",
            (now, token, now),
        )
        return _row_to_user(rows[0]) if rows else None

    def verification_token_exists(self, token: str) -> bool:
        """True if the token is stored, expired or not."""
        row = self._db.execute_single(
            "SELECT 1 AS found FROM users WHERE email_verification_token = %s",
            (token,),
        )
        return row is not None

    def set_magic_link_token(self, email: str, token: str, expires_at: datetime) -> bool:
        """Store a magic link token, overwriting any previous one.

        Returns:
            False if no user has this email.
        """
        count = self._db.execute_rowcount(
            """UPDATE users
               SET magic_link_token = %s,
                   magic_link_expires_at = %s,
                   updated_at = %s
               WHERE email = %s""",
            (token, expires_at, now_utc(), email),
        )
        return count > 0

    def get_user_by_magic_link_token(self, token: str) -> User | None:
        """Find the user holding an unexpired magic link token."""
        row = self._db.execute_single(
            f"""SELECT {_USER_COLUMNS} FROM users
               WHERE magic_link_token = %s
                 AND magic_link_expires_at > %s""",
            (token, now_utc()),
        )
        return _row_to_user(row) if row else None

    def redeem_magic_link_token(self, token: str) -> User | None:
        """Clear an unexpired magic link token and return its user.

        Returns:
            The user, or None if no unexpired token matched (including when a
            concurrent redemption got there first).
        """
        now = now_utc()
        rows = self._db.execute_returning(
            f"""UPDATE users
               SET magic_link_token = NULL,
                   magic_link_expires_at = NULL,
                   updated_at = %s
               WHERE magic_link_token = %s
                 AND magic_link_expires_at > %s
               RETURNING {_USER_COLUMNS}""",
            (now, token, now),
        )
        return _row_to_user(rows[0]) if rows else None

    def magic_link_token_exists(self, token: str) -> bool:
        """True if the token is stored, expired or not."""
        row = self._db.execute_single(
            "SELECT 1 AS found FROM users WHERE magic_link_token = %s",
            (token,),
        )
        return row is not None


class RefreshTokenDatabase:
    """Persisted refresh tokens, keyed by SHA-256 hash of the raw token."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def create(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshTokenRecord:
        """Store a newly issued refresh token."""
        rows = self._db.execute_returning(
            f"""INSERT INTO refresh_tokens
                   (id, user_id, token_hash, expires_at, created_at, user_agent, ip_address)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING {_REFRESH_COLUMNS}""",
            (uuid4(), user_id, token_hash, expires_at, now_utc(),
             _truncate(user_agent, 500), _truncate(ip_address, 45)),
        )
        return _row_to_refresh_token(rows[0])

    def get_by_token_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        """Look up a token by hash. Revoked and expired rows are returned too."""
        row = self._db.execute_single(
            f"SELECT {_REFRESH_COLUMNS} FROM refresh_tokens WHERE token_hash = %s",
            (token_hash,),
        )
        return _row_to_refresh_token(row) if row else None

    def revoke(self, token_hash: str) -> bool:
        """Revoke a token if it is still active.

        Returns:
            True if this call revoked it; False if missing or already revoked.
        """
        count = self._db.execute_rowcount(
            """UPDATE refresh_tokens
               SET revoked_at = %s
               WHERE token_hash = %s AND revoked_at IS NULL""",
            (now_utc(), token_hash),
        )
        return count > 0

    def revoke_all_for_user(self, user_id: UUID) -> int:
        """Revoke every active token the user owns. Returns how many were revoked."""
        return self._db.execute_rowcount(
            """UPDATE refresh_tokens
               SET revoked_at = %s
               WHERE user_id = %s AND revoked_at IS NULL""",
            (now_utc(), user_id),
        )

    def rotate(
        self,
        old_token_hash: str,
        user_id: UUID,
        new_token_hash: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshTokenRecord | None:
        """Revoke the old token and store its successor in one transaction.

        Returns:
            The new record, or None if the old token was no longer active
            (a concurrent rotation or logout won). Nothing is inserted then.
        """
        now = now_utc()
        with self._db.transaction() as cur:
            cur.execute(
                """UPDATE refresh_tokens
                   SET revoked_at = %s
                   WHERE token_hash = %s AND revoked_at IS NULL
                   RETURNING id""",
                (now, old_token_hash),
            )
            if cur.fetchone() is None:
                return None

            cur.execute(
                f"""INSERT INTO refresh_tokens
                       (id, user_id, token_hash, expires_at, created_at, user_agent, ip_address)
                   VALUES (%s, %s, %s, %s, %s, %s, %s)
                   RETURNING {_REFRESH_COLUMNS}""",
                (uuid4(), user_id, new_token_hash, expires_at, now,
                 _truncate(user_agent, 500), _truncate(ip_address, 45)),
            )
            return _row_to_refresh_token(cur.fetchone())

    def delete_expired(self, older_than: timedelta = timedelta(days=7)) -> int:
        """Purge tokens that expired or were revoked before the cutoff."""
        cutoff = now_utc() - older_than
        return self._db.execute_rowcount(
            """DELETE FROM refresh_tokens
               WHERE expires_at < %s OR revoked_at < %s""",
            (cutoff, cutoff),
        )
