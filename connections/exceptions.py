"""Typed exceptions for the provider credential vault."""


class ProviderConnectionError(Exception):
    """Base class for provider account errors."""


class InvalidProviderError(ProviderConnectionError):
    """Provider name is not one we know."""


class InvalidProviderTokenError(ProviderConnectionError):
    """The provider rejected the token (or it was empty)."""


class AccountAlreadyConnectedError(ProviderConnectionError):
    """This provider account is already connected for the user."""


class AccountNotFoundError(ProviderConnectionError):
    """No connected account with this ID."""


class AccountNotOwnedError(ProviderConnectionError):
    """
    The account exists but belongs to someone else.

    Outward-facing layers should answer this exactly like AccountNotFoundError.
    """


class CipherError(Exception):
    """Base class for credential encryption errors."""


class InvalidKeyError(CipherError, ValueError):
    """Encryption key is not 32 bytes (64 hex characters)."""


class DecryptionFailedError(CipherError):
    """Ciphertext was truncated, tampered with, or sealed under another key."""
