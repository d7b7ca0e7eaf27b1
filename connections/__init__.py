"""Provider credential vault: encrypted storage of users' provider tokens."""

from connections.exceptions import (
    ProviderConnectionError,
    InvalidProviderError,
    InvalidProviderTokenError,
    AccountAlreadyConnectedError,
    AccountNotFoundError,
    AccountNotOwnedError,
    CipherError,
    InvalidKeyError,
    DecryptionFailedError,
)
from connections.cipher import CredentialCipher, encrypt, decrypt, generate_key, parse_key
from connections.config import VaultConfig
from connections.types import Account
from connections.database import AccountDatabase
from connections.service import ProviderConnectionService
