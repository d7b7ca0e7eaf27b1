"""
Pooled PostgreSQL access for the auth and credential stores.

One ThreadedConnectionPool per database URL, shared by every client built
for that URL. Each pooled connection is opened with a server-side
statement_timeout, so a stuck query fails instead of pinning a request.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extensions
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Tuple | Dict | None


def _adapt(value: Any) -> Any:
    """Stringify UUIDs, recursing into tuples, lists and dicts."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_adapt(v) for v in value)
    if isinstance(value, dict):
        return {k: _adapt(v) for k, v in value.items()}
    return value


class PostgresClient:
    """
    psycopg2 client whose queries return rows as plain dicts.

    Usage:
        db = PostgresClient(database_url, statement_timeout_ms=5000)
        row = db.execute_single("SELECT * FROM users WHERE id = %s", (user_id,))

        with db.transaction() as cur:
            cur.execute("UPDATE refresh_tokens SET revoked_at = now() WHERE ...")
            cur.execute("INSERT INTO refresh_tokens ...")
    """

    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(
        self,
        database_url: str,
        connect_timeout: int = 10,
        statement_timeout_ms: int = 5000,
        min_connections: int = 2,
        max_connections: int = 20,
    ):
        if not database_url:
            raise ValueError("database_url is required")
        if statement_timeout_ms <= 0:
            raise ValueError("statement_timeout_ms must be positive")

        self._database_url = database_url
        self._connect_timeout = connect_timeout
        self._statement_timeout_ms = statement_timeout_ms
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._pool()

    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        with self._pools_lock:
            pool = self._connection_pools.get(self._database_url)
            if pool is None:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._min_connections,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=self._connect_timeout,
                    options=f"-c statement_timeout={self._statement_timeout_ms}",
                )
                psycopg2.extras.register_uuid()
                self._connection_pools[self._database_url] = pool
                logger.info(
                    f"Connection pool created (max {self._max_connections}, "
                    f"statement_timeout {self._statement_timeout_ms}ms)"
                )
            return pool

    @contextmanager
    def get_connection(self) -> Iterator[psycopg2.extensions.connection]:
        """Borrow a connection. An exception rolls back before it is returned."""
        pool = self._pool()
        try:
            conn = pool.getconn()
        except psycopg2.pool.PoolError as e:
            logger.error(f"No pooled connection available: {e}")
            raise
        try:
            yield conn
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator[psycopg2.extras.RealDictCursor]:
        """
        Dict-row cursor on one borrowed connection.

        Everything executed inside the block commits together when it exits
        normally and rolls back if it raises. The single-statement helpers
        below are one-statement transactions.
        """
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                yield cur
            conn.commit()

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Rows as dicts; empty when the statement produces no result set."""
        with self.transaction() as cur:
            cur.execute(query, _adapt(params))
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        rows = self.execute(query, params)
        return rows[0] if rows else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """For INSERT/UPDATE/DELETE ... RETURNING."""
        with self.transaction() as cur:
            cur.execute(query, _adapt(params))
            return [dict(row) for row in cur.fetchall()]

    def execute_rowcount(self, query: str, params: Params = None) -> int:
        """Affected row count, for conditional UPDATE/DELETE without RETURNING."""
        with self.transaction() as cur:
            cur.execute(query, _adapt(params))
            return cur.rowcount

    def close(self) -> None:
        with self._pools_lock:
            pool = self._connection_pools.pop(self._database_url, None)
        if pool is not None:
            pool.closeall()
            logger.info("Connection pool closed")
