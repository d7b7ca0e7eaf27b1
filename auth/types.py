"""Pydantic models for auth domain."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class User(BaseModel):
    """A registered user of the system.

    Secret columns (password hash, pending tokens) are excluded from
    serialization and repr so a User can be returned to callers as-is.
    """

    id: UUID
    email: str
    password_hash: str = Field(..., exclude=True, repr=False)
    email_verified: bool = False
    role: str = "user"
    verification_token: str | None = Field(default=None, exclude=True, repr=False)
    verification_expires_at: datetime | None = Field(default=None, exclude=True)
    magic_link_token: str | None = Field(default=None, exclude=True, repr=False)
    magic_link_expires_at: datetime | None = Field(default=None, exclude=True)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RefreshTokenRecord(BaseModel):
    """A persisted refresh token. Only the SHA-256 hash of the raw token is kept."""

    id: UUID
    user_id: UUID
    token_hash: str = Field(..., repr=False)
    expires_at: datetime
    created_at: datetime
    revoked_at: datetime | None = None
    user_agent: str | None = None
    ip_address: str | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


class TokenPair(BaseModel):
    """Signed access + refresh tokens handed to the client. Never persisted."""

    access_token: str = Field(..., repr=False)
    refresh_token: str = Field(..., repr=False)
    expires_at: datetime = Field(..., description="Access token expiry")
    token_type: str = "Bearer"


class TokenClaims(BaseModel):
    """Verified contents of an access or refresh token."""

    user_id: UUID
    email: str
    role: str
    token_type: Literal["access", "refresh"]
    subject: str
    issuer: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime


class ClientContext(BaseModel):
    """Request metadata recorded alongside refresh tokens and security events."""

    user_agent: str | None = None
    ip_address: str | None = None


class SignupRequest(BaseModel):
    """Signup input. Email is normalized before validation."""

    email: EmailStr
    password: str


class AuthenticatedUser(BaseModel):
    """User info and tokens returned after successful authentication."""

    user: User
    tokens: TokenPair
