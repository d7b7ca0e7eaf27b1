"""Pydantic models for connected provider accounts."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class Account(BaseModel):
    """A provider account connected by a user.

    The encrypted token stays on the model for the vault's own use but is
    never serialized or shown in repr.
    """

    id: UUID
    owner_user_id: UUID
    provider: str
    provider_account_id: str
    encrypted_token: bytes = Field(..., exclude=True, repr=False)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
