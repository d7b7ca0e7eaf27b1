"""
AES-256-GCM encryption for provider tokens at rest.

Ciphertext layout: 12-byte random nonce || encrypted payload || 16-byte tag.
A fresh nonce per call means encrypting the same token twice gives two
different ciphertexts.
"""

import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from connections.exceptions import DecryptionFailedError, InvalidKeyError

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise InvalidKeyError(f"Encryption key must be exactly {KEY_SIZE} bytes")


def encrypt(plaintext: str, key: bytes, associated_data: bytes | None = None) -> bytes:
    """Seal plaintext under key. associated_data, if given, must match on decrypt."""
    _check_key(key)
    nonce = secrets.token_bytes(NONCE_SIZE)
    return nonce + AESGCM(bytes(key)).encrypt(nonce, plaintext.encode("utf-8"), associated_data)


def decrypt(ciphertext: bytes, key: bytes, associated_data: bytes | None = None) -> str:
    """
    Open a ciphertext produced by encrypt().

    Raises:
        InvalidKeyError: Key is the wrong length.
        DecryptionFailedError: Too short, tampered, wrong key or wrong associated data.
    """
    _check_key(key)
    if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionFailedError("Ciphertext is too short")

    nonce, sealed = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
    try:
        plaintext = AESGCM(bytes(key)).decrypt(nonce, sealed, associated_data)
    except InvalidTag as e:
        raise DecryptionFailedError("Ciphertext failed authentication") from e

    return plaintext.decode("utf-8")


def generate_key() -> str:
    """New random key as 64 hex characters, the form it is stored in Vault."""
    return secrets.token_hex(KEY_SIZE)


def parse_key(hex_key: str) -> bytes:
    """Decode a 64-hex-character key.

    Raises:
        InvalidKeyError: Not hex, or not 32 bytes once decoded.
    """
    try:
        key = bytes.fromhex(hex_key.strip())
    except ValueError as e:
        raise InvalidKeyError("Encryption key must be hex encoded") from e
    _check_key(key)
    return key


class CredentialCipher:
    """Holds the vault key so callers never pass it around."""

    def __init__(self, key: bytes):
        _check_key(key)
        self._key = bytes(key)

    def __repr__(self) -> str:
        return "CredentialCipher(key=<redacted>)"

    def encrypt(self, plaintext: str, associated_data: bytes | None = None) -> bytes:
        return encrypt(plaintext, self._key, associated_data)

    def decrypt(self, ciphertext: bytes, associated_data: bytes | None = None) -> str:
        return decrypt(ciphertext, self._key, associated_data)
