"""Opaque random tokens for email verification and magic links."""

import secrets

MIN_TOKEN_BYTES = 32


class RandomSourceError(RuntimeError):
    """The OS random source is unavailable. Never fall back to a weaker generator."""


def generate_token(byte_length: int = MIN_TOKEN_BYTES) -> str:
    """Return a URL-safe token carrying byte_length bytes of CSPRNG entropy.

    Raises:
        ValueError: If byte_length is below MIN_TOKEN_BYTES.
        RandomSourceError: If the OS cannot supply secure random bytes.
    """
    if byte_length < MIN_TOKEN_BYTES:
        raise ValueError(f"Tokens need at least {MIN_TOKEN_BYTES} bytes of entropy, got {byte_length}")
    try:
        return secrets.token_urlsafe(byte_length)
    except (OSError, NotImplementedError) as e:
        raise RandomSourceError(f"Secure random source unavailable: {e}") from e
