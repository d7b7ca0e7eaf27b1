"""Smart-light provider API clients."""

from providers.base import AccountInfo, Provider, ProviderClient
from providers.exceptions import (
    ProviderError,
    ProviderTokenRejectedError,
    ProviderUnavailableError,
    ProviderNotImplementedError,
)
from providers.lifx import LifxClient
from providers.factory import create_provider_client
