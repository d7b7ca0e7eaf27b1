"""Tests for RateLimiter - per-email password login throttling."""

import pytest

from auth.config import AuthConfig
from auth.exceptions import RateLimitedError
from auth.rate_limiter import RateLimiter

LIMIT = 3
WINDOW_SECONDS = 5 * 60


@pytest.fixture
def limiter(valkey):
    config = AuthConfig(
        jwt_secret="s" * 32,
        login_rate_limit_attempts=LIMIT,
        login_rate_limit_window_minutes=5,
    )
    return RateLimiter(valkey, config)


def _use_up(limiter, email, attempts=LIMIT):
    """Make `attempts` login attempts, ignoring lockouts."""
    for _ in range(attempts):
        try:
            limiter.check_rate_limit(email)
        except RateLimitedError:
            pass


class TestLockout:
    """Attempts up to the limit pass; the next one is rejected."""

    def test_attempts_up_to_limit_pass(self, limiter):
        for _ in range(LIMIT):
            limiter.check_rate_limit("alice@example.com")

    def test_attempt_after_limit_rejected(self, limiter):
        _use_up(limiter, "alice@example.com")

        with pytest.raises(RateLimitedError) as exc_info:
            limiter.check_rate_limit("alice@example.com")

        assert exc_info.value.retry_after_seconds == WINDOW_SECONDS

    def test_counters_are_per_email(self, limiter):
        _use_up(limiter, "alice@example.com")
        limiter.check_rate_limit("bob@example.com")

    def test_key_ignores_case_and_whitespace(self, limiter):
        _use_up(limiter, " Alice@Example.com ")

        with pytest.raises(RateLimitedError):
            limiter.check_rate_limit("alice@example.com")

    def test_retry_after_never_zero(self, limiter, valkey, monkeypatch):
        """A key that vanished before the TTL read still yields a positive wait."""
        _use_up(limiter, "carol@example.com")
        monkeypatch.setattr(valkey, "ttl", lambda key: -2)

        with pytest.raises(RateLimitedError) as exc_info:
            limiter.check_rate_limit("carol@example.com")

        assert exc_info.value.retry_after_seconds == 1


class TestWindow:
    """The window slides with every attempt."""

    def test_first_attempt_opens_window(self, limiter, valkey):
        limiter.check_rate_limit("dave@example.com")
        assert valkey.ttl("ratelimit:login:dave@example.com") == WINDOW_SECONDS

    def test_rejected_attempts_still_count(self, limiter, valkey):
        _use_up(limiter, "erin@example.com", attempts=LIMIT + 4)
        assert valkey.values["ratelimit:login:erin@example.com"] == LIMIT + 4


class TestReset:

    def test_reset_lifts_lockout(self, limiter):
        _use_up(limiter, "frank@example.com", attempts=LIMIT + 1)

        limiter.reset_rate_limit("frank@example.com")

        limiter.check_rate_limit("frank@example.com")

    def test_reset_without_history_is_noop(self, limiter):
        limiter.reset_rate_limit("nobody@example.com")

