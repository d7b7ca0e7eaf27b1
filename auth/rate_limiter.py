"""Password login throttling.

Counters live in Valkey under the normalized email, registered or not, so a
lockout never reveals whether an account exists. The window slides: every
attempt, including rejected ones, pushes the expiry out again.
"""

from auth.config import AuthConfig
from auth.exceptions import RateLimitedError
from clients.valkey_client import ValkeyClient


class RateLimiter:
    """Counts login attempts per email and rejects those over the limit."""

    KEY_PREFIX = "ratelimit:login:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._limit = config.login_rate_limit_attempts
        self._window_seconds = config.login_rate_limit_window_minutes * 60

    def _key(self, email: str) -> str:
        return self.KEY_PREFIX + email.strip().lower()

    def check_rate_limit(self, email: str) -> None:
        """Record an attempt.

        Raises:
            RateLimitedError: More than the allowed attempts in the window.
        """
        key = self._key(email)
        attempts = self._valkey.incr_with_ttl(key, self._window_seconds)
        if attempts <= self._limit:
            return

        remaining = self._valkey.ttl(key)
        raise RateLimitedError(retry_after_seconds=max(remaining, 1))

    def reset_rate_limit(self, email: str) -> None:
        """Forget past attempts, called after a successful login."""
        self._valkey.delete(self._key(email))
