"""Database operations for connected provider accounts (table: accounts)."""

import json
from typing import Any, Dict
from uuid import UUID, uuid4

import psycopg2
import psycopg2.errors
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from connections.exceptions import AccountAlreadyConnectedError
from connections.types import Account
from utils.timezone import now_utc

_ACCOUNT_COLUMNS = """id, owner_user_id, provider, provider_account_id,
       encrypted_token, metadata, created_at, updated_at"""


def _row_to_account(row: Dict[str, Any]) -> Account:
    metadata = row["metadata"]
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    account_id = row["id"]
    owner_id = row["owner_user_id"]
    return Account(
        id=UUID(account_id) if isinstance(account_id, str) else account_id,
        owner_user_id=UUID(owner_id) if isinstance(owner_id, str) else owner_id,
        provider=row["provider"],
        provider_account_id=row["provider_account_id"],
        # BYTEA comes back as memoryview
        encrypted_token=bytes(row["encrypted_token"]),
        metadata=metadata or {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class AccountDatabase:
    """Connected accounts, unique per (owner, provider, provider account)."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def create(
        self,
        owner_user_id: UUID,
        provider: str,
        provider_account_id: str,
        encrypted_token: bytes,
        metadata: Dict[str, Any] | None = None,
    ) -> Account:
        """Store a newly connected account.

        Raises:
            AccountAlreadyConnectedError: Same owner already connected this
                provider account.
        """
        now = now_utc()
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO accounts
                       (id, owner_user_id, provider, provider_account_id,
                        encrypted_token, metadata, created_at, updated_at)
                   VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                   RETURNING {_ACCOUNT_COLUMNS}""",
                (uuid4(), owner_user_id, provider, provider_account_id,
                 psycopg2.Binary(encrypted_token), Json(metadata or {}), now, now),
            )
        except psycopg2.errors.UniqueViolation as e:
            raise AccountAlreadyConnectedError(
                f"{provider} account {provider_account_id} is already connected"
            ) from e
        return _row_to_account(rows[0])

    def find_by_id(self, account_id: UUID) -> Account | None:
        """Get account by ID regardless of owner."""
        row = self._db.execute_single(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s",
            (account_id,),
        )
        return _row_to_account(row) if row else None

    def find_by_user_id(self, owner_user_id: UUID) -> list[Account]:
        """All accounts the user owns, newest first."""
        rows = self._db.execute(
            f"""SELECT {_ACCOUNT_COLUMNS} FROM accounts
               WHERE owner_user_id = %s
               ORDER BY created_at DESC""",
            (owner_user_id,),
        )
        return [_row_to_account(row) for row in rows]

    def update_metadata(self, account_id: UUID, owner_user_id: UUID, metadata: Dict[str, Any]) -> bool:
        """Replace the account's metadata. Returns False if no owned row matched."""
        count = self._db.execute_rowcount(
            """UPDATE accounts
               SET metadata = %s, updated_at = %s
               WHERE id = %s AND owner_user_id = %s""",
            (Json(metadata), now_utc(), account_id, owner_user_id),
        )
        return count > 0

    def delete(self, account_id: UUID, owner_user_id: UUID) -> bool:
        """Delete an account the user owns. Returns False if no owned row matched."""
        count = self._db.execute_rowcount(
            "DELETE FROM accounts WHERE id = %s AND owner_user_id = %s",
            (account_id, owner_user_id),
        )
        return count > 0
