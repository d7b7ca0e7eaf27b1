"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidEmailError,
    WeakPasswordError,
    AlreadyRegisteredError,
    InvalidCredentialsError,
    EmailNotVerifiedError,
    InvalidTokenError,
    TokenExpiredError,
    WrongTokenTypeError,
    RefreshTokenNotFoundError,
    RefreshTokenRevokedError,
    RateLimitedError,
)
from auth.types import (
    User,
    RefreshTokenRecord,
    TokenPair,
    TokenClaims,
    ClientContext,
    AuthenticatedUser,
)
from auth.config import AuthConfig
from auth.database import UserDatabase, RefreshTokenDatabase
from auth.passwords import PasswordHasher
from auth.random_tokens import generate_token
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.tokens import TokenSigner, hash_token
from auth.service import AuthService
