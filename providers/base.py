"""Provider identifiers and the client interface every provider implements."""

from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field


class Provider(str, Enum):
    """Supported smart-light providers."""

    LIFX = "lifx"
    HUE = "hue"


class AccountInfo(BaseModel):
    """What a provider reports about the account behind a token."""

    provider_account_id: str = Field(..., min_length=1)
    label: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProviderClient(Protocol):
    """Talks to one provider's API with a user-supplied token."""

    def validate_token(self, token: str) -> AccountInfo:
        """Check the token against the provider and describe its account.

        Raises:
            ProviderTokenRejectedError: Provider rejected the token.
            ProviderUnavailableError: Provider could not be reached.
        """
        ...

    def get_account_info(self, token: str) -> AccountInfo:
        """Fetch current account details for a stored token."""
        ...
