"""Audit trail for sign-in and credential events.

Rows go to the append-only security_events table. Archival moves old rows
into a JSON-lines file and then deletes them. Details carry reasons and
identifiers only; raw tokens, passwords and provider secrets never reach
this module.
"""

import json
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from auth.types import ClientContext
from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

_EVENT_COLUMNS = "id, event_type, email, user_id, ip_address, user_agent, details, created_at"


class SecurityEvent(Enum):
    """Audited event kinds. Values are stored verbatim in event_type."""

    USER_SIGNED_UP = "user_signed_up"
    EMAIL_VERIFIED = "email_verified"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    RATE_LIMITED = "rate_limited"
    MAGIC_LINK_REQUESTED = "magic_link_requested"
    MAGIC_LINK_REDEEMED = "magic_link_redeemed"
    MAGIC_LINK_EXPIRED = "magic_link_expired"
    REFRESH_TOKEN_ROTATED = "refresh_token_rotated"
    REFRESH_TOKEN_REUSED = "refresh_token_reused"
    LOGGED_OUT = "logged_out"
    LOGGED_OUT_ALL = "logged_out_all"
    PROVIDER_CONNECTED = "provider_connected"
    PROVIDER_DISCONNECTED = "provider_disconnected"


def _archive_line(row: dict[str, Any]) -> str:
    def text(value):
        return str(value) if value is not None else None

    created_at: datetime = row["created_at"]
    return json.dumps({
        "id": text(row["id"]),
        "event_type": row["event_type"],
        "email": row["email"],
        "user_id": text(row["user_id"]),
        "ip_address": text(row["ip_address"]),
        "user_agent": row["user_agent"],
        "details": row["details"],
        "created_at": created_at.isoformat(),
    })


class SecurityLogger:
    """Writes and reads security_events. Write failures propagate."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        client: ClientContext | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append one event. `client` supplies the caller's IP and user agent."""
        ip_address = client.ip_address if client else None
        user_agent = client.user_agent if client else None

        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                ip_address,
                user_agent,
                Json(details) if details else None,
                now_utc(),
            ),
        )

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Newest events first, narrowed by whichever filters are given."""
        filters = [
            ("email = %s", email),
            ("user_id = %s", str(user_id) if user_id else None),
            ("event_type = %s", event_type.value if event_type else None),
        ]
        active = [(clause, value) for clause, value in filters if value]

        where = " AND ".join(clause for clause, _ in active) or "1=1"
        params = tuple(value for _, value in active) + (limit,)

        return self._db.execute(
            f"""SELECT {_EVENT_COLUMNS}
                FROM security_events
                WHERE {where}
                ORDER BY created_at DESC
                LIMIT %s""",
            params,
        )

    def rotate_logs(self, older_than_days: int, output_path: Path) -> int:
        """Move events older than the cutoff into a JSON-lines archive.

        Lines are appended, so repeated rotations share one file. Rows are
        deleted only after the archive write succeeds.

        Returns:
            Number of events archived
        """
        cutoff = now_utc() - timedelta(days=older_than_days)

        rows = self._db.execute(
            f"""SELECT {_EVENT_COLUMNS}
                FROM security_events
                WHERE created_at < %s
                ORDER BY created_at ASC""",
            (cutoff,),
        )
        if not rows:
            return 0

        with Path(output_path).open("a") as archive:
            archive.writelines(_archive_line(row) + "\n" for row in rows)

        self._db.execute_rowcount(
            "DELETE FROM security_events WHERE created_at < %s",
            (cutoff,),
        )
        return len(rows)
