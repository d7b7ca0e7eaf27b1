"""Tests for auth/random_tokens.py - opaque email tokens."""

import base64
from unittest.mock import patch

import pytest

from auth.random_tokens import MIN_TOKEN_BYTES, RandomSourceError, generate_token


class TestGenerateToken:

    def test_default_entropy(self):
        token = generate_token()
        padded = token + "=" * (-len(token) % 4)
        assert len(base64.urlsafe_b64decode(padded)) == MIN_TOKEN_BYTES

    def test_url_safe(self):
        token = generate_token(64)
        assert "+" not in token and "/" not in token and "=" not in token

    def test_unique(self):
        assert len({generate_token() for _ in range(100)}) == 100

    def test_below_minimum_rejected(self):
        with pytest.raises(ValueError):
            generate_token(MIN_TOKEN_BYTES - 1)

    def test_os_failure_raises(self):
        """Never degrades to a weaker generator."""
        with patch("auth.random_tokens.secrets.token_urlsafe", side_effect=OSError("no entropy")):
            with pytest.raises(RandomSourceError):
                generate_token()
