"""
Password hashing with bcrypt.

bcrypt is adaptive (cost factor), salts every hash, and its comparison
runs in constant time. bcrypt only reads the first 72 bytes of input and
current releases reject anything longer, so callers validate length first
(see MAX_PASSWORD_BYTES).
"""

import bcrypt

MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt hashing with a timing-equalization dummy for unknown users."""

    def __init__(self, rounds: int = 12):
        self._rounds = rounds
        # Computed once per hasher so the first unknown-user login is not
        # measurably faster than later ones.
        self._dummy_hash = self.hash("lightshare-timing-dummy")

    def hash(self, password: str) -> str:
        """Return a salted bcrypt hash of password.

        Raises:
            ValueError: If password exceeds MAX_PASSWORD_BYTES.
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return True if password matches the hash. Malformed hashes never match."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, password: str) -> bool:
        """
        Burn one full bcrypt comparison and return False.

        Call this when the user doesn't exist so the response takes as long
        as a wrong-password check.
        """
        self.verify(password, self._dummy_hash)
        return False
