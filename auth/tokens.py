"""
Signed access/refresh tokens (JWT, HS256).

Both tokens of a pair carry the same identity claims and differ in their
"type" claim and lifetime. Validation is strict about the algorithm and the
issuer, so a token signed with another algorithm or for another service is
rejected as invalid rather than trusted.

Every token also gets a random jti. Without it, two pairs issued for the same
user within one second would be byte-identical, and the refresh token store
(keyed by token hash) could not tell the rotated token from its successor.

TokenSigner holds no state beyond its config and does no I/O.
"""

import hashlib
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import jwt
from pydantic import ValidationError

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError, TokenExpiredError, WrongTokenTypeError
from auth.types import TokenClaims, TokenPair
from utils.timezone import from_timestamp, now_utc

ACCESS = "access"
REFRESH = "refresh"

_REQUIRED_CLAIMS = ["exp", "iat", "nbf", "iss", "sub", "jti"]


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token, used as its storage key."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class TokenSigner:
    """Issue and validate signed access/refresh token pairs."""

    ALGORITHM = "HS256"

    def __init__(self, config: AuthConfig):
        self._config = config
        self._access_lifetime = timedelta(minutes=config.access_token_expiry_minutes)
        self._refresh_lifetime = timedelta(days=config.refresh_token_expiry_days)

    def issue(self, user_id: UUID, email: str, role: str) -> TokenPair:
        """Create an access/refresh pair for the user."""
        # JWT NumericDates are whole seconds
        now = now_utc().replace(microsecond=0)
        access_expires_at = now + self._access_lifetime
        refresh_expires_at = now + self._refresh_lifetime

        return TokenPair(
            access_token=self._sign(user_id, email, role, ACCESS, now, access_expires_at),
            refresh_token=self._sign(user_id, email, role, REFRESH, now, refresh_expires_at),
            expires_at=access_expires_at,
        )

    def _sign(
        self,
        user_id: UUID,
        email: str,
        role: str,
        token_type: str,
        issued_at: datetime,
        expires_at: datetime,
    ) -> str:
        payload = {
            "sub": str(user_id),
            "iss": self._config.jwt_issuer,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires_at,
            "jti": uuid4().hex,
            "user_id": str(user_id),
            "email": email,
            "role": role,
            "type": token_type,
        }
        return jwt.encode(payload, self._config.jwt_secret, algorithm=self.ALGORITHM)

    def validate(self, token: str) -> TokenClaims:
        """Verify signature, issuer and time claims.

        Raises:
            TokenExpiredError: Signature is good but exp has passed.
            InvalidTokenError: Anything else wrong with the token.
        """
        try:
            payload = jwt.decode(
                token,
                self._config.jwt_secret,
                algorithms=[self.ALGORITHM],
                issuer=self._config.jwt_issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError("Invalid token") from e

        try:
            claims = TokenClaims(
                user_id=payload["user_id"],
                email=payload["email"],
                role=payload["role"],
                token_type=payload["type"],
                subject=payload["sub"],
                issuer=payload["iss"],
                issued_at=from_timestamp(payload["iat"]),
                not_before=from_timestamp(payload["nbf"]),
                expires_at=from_timestamp(payload["exp"]),
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise InvalidTokenError("Token is missing required claims") from e

        if claims.subject != str(claims.user_id):
            raise InvalidTokenError("Token subject does not match user")

        return claims

    def validate_access(self, token: str) -> TokenClaims:
        """Validate a token and require it to be an access token."""
        return self._validate_type(token, ACCESS)

    def validate_refresh(self, token: str) -> TokenClaims:
        """Validate a token and require it to be a refresh token."""
        return self._validate_type(token, REFRESH)

    def _validate_type(self, token: str, expected: str) -> TokenClaims:
        claims = self.validate(token)
        if claims.token_type != expected:
            raise WrongTokenTypeError(f"Expected {expected} token, got {claims.token_type}")
        return claims
