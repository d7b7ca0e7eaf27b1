"""Errors raised by provider API clients."""


class ProviderError(Exception):
    """Base class for provider API failures."""


class ProviderTokenRejectedError(ProviderError):
    """The provider says the token is not valid."""


class ProviderUnavailableError(ProviderError):
    """Provider could not be reached or returned something unusable."""


class ProviderNotImplementedError(ProviderError):
    """Provider is known but has no client yet."""
