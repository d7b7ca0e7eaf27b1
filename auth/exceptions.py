"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidEmailError(AuthError):
    """Email address is malformed."""


class WeakPasswordError(AuthError):
    """Password is too short, or too long for bcrypt (72 bytes)."""


class AlreadyRegisteredError(AuthError):
    """An account already exists for this email."""


class InvalidCredentialsError(AuthError):
    """
    Email/password combination rejected.

    Raised identically for unknown email and wrong password so callers
    can't distinguish the two.
    """


class EmailNotVerifiedError(AuthError):
    """Password was correct but the email address is not verified yet."""


class InvalidTokenError(AuthError):
    """
    Token is malformed, has a bad signature, or doesn't exist.

    Used for signed access/refresh tokens and for emailed single-use tokens.
    """


class TokenExpiredError(AuthError):
    """Token was genuine but is past its expiry."""


class WrongTokenTypeError(AuthError):
    """An access token was presented where a refresh token is required, or vice versa."""


class RefreshTokenNotFoundError(AuthError):
    """Signed refresh token has no stored record (never issued, or purged)."""


class RefreshTokenRevokedError(AuthError):
    """
    Refresh token was revoked (logout, logout-all, or already rotated).

    Revocation is terminal; the client must log in again.
    """


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")
