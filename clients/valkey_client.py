"""
Valkey access for short-lived counters.

Only the login rate limiter uses it. The URL comes from Vault; connection
problems raise immediately rather than degrading to "no limit".
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Thin redis-py wrapper with string responses.

    Usage:
        valkey = ValkeyClient("redis://localhost:6379/0")
        count = valkey.incr_with_ttl("ratelimit:login:a@example.com", 900)
    """

    def __init__(self, url: str, socket_timeout: float = 5.0):
        """
        Connect and ping once.

        Raises:
            redis.ConnectionError: Server unreachable
        """
        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        self._client.ping()
        logger.info("Connected to Valkey")

    def incr_with_ttl(self, key: str, ttl_seconds: int) -> int:
        """
        Increment a counter and (re)set its expiry in one MULTI/EXEC.

        A missing key starts at 1. Returns the post-increment value.
        """
        with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            count, _ = pipe.execute()
        return int(count)

    def ttl(self, key: str) -> int:
        """Seconds until expiry; -1 when the key never expires, -2 when absent."""
        return self._client.ttl(key)

    def delete(self, key: str) -> bool:
        """True when a key was actually removed."""
        return self._client.delete(key) > 0

    def close(self) -> None:
        self._client.close()
        logger.info("Valkey connection closed")
