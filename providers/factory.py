"""Map a provider to its API client."""

from providers.base import Provider, ProviderClient
from providers.exceptions import ProviderNotImplementedError
from providers.lifx import LifxClient


def create_provider_client(provider: Provider, timeout: float = 10) -> ProviderClient:
    """
    Build the API client for a provider.

    Raises:
        ProviderNotImplementedError: Provider has no client yet.
    """
    if provider == Provider.LIFX:
        return LifxClient(timeout=timeout)
    elif provider == Provider.HUE:
        raise ProviderNotImplementedError("Hue support is not yet implemented")
    else:
        raise ProviderNotImplementedError(f"Unsupported provider: {provider}")
