"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Constructed once at startup (see bootstrap.py) and injected into every
    component that needs it. Construction fails fast with a pydantic
    ValidationError if the signing secret is missing or any value is out
    of bounds.
    """

    model_config = {"frozen": True}

    # Token signing
    jwt_secret: str = Field(
        ...,
        description="HMAC secret for signing access/refresh tokens",
        min_length=32,
        repr=False,
    )
    jwt_issuer: str = Field(
        default="lightshare",
        description="Value of the iss claim on issued tokens",
        min_length=1,
    )
    access_token_expiry_minutes: int = Field(
        default=60,
        description="Access token lifetime",
        ge=1,
        le=1440,
    )
    refresh_token_expiry_days: int = Field(
        default=30,
        description="Refresh token lifetime (signed claim)",
        ge=1,
        le=365,
    )
    refresh_store_grace_days: int = Field(
        default=29,
        description="Stored refresh token expiry = access expiry + this many days",
        ge=0,
        le=365,
    )

    # Single-use emailed tokens
    verification_expiry_hours: int = Field(
        default=24,
        description="How long email verification links remain valid",
        ge=1,
        le=168,
    )
    magic_link_expiry_minutes: int = Field(
        default=15,
        description="How long magic links remain valid",
        ge=5,
        le=60,
    )

    # Passwords
    min_password_length: int = Field(
        default=8,
        description="Minimum accepted password length",
        ge=8,
        le=72,
    )
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor",
        ge=4,
        le=16,
    )

    # Login rate limiting
    login_rate_limit_attempts: int = Field(
        default=10,
        description="Max password login attempts per email per window",
        ge=1,
        le=100,
    )
    login_rate_limit_window_minutes: int = Field(
        default=15,
        description="Login rate limit window duration",
        ge=1,
        le=1440,
    )
