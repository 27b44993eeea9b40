"""
Credential Codec

Converts plaintext passwords and password answers to their stored form and
back. The storage format is a tagged value chosen by configuration:

    CLEAR (0)     - stored == plaintext, retrievable
    HASHED (1)    - bcrypt over SHA-256, verify only
    ENCRYPTED (2) - Fernet under the application key, retrievable
"""

import logging
from enum import IntEnum
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from membership_authkit.auth.security import SecurityHardening
from membership_authkit.errors import UnsupportedOperationError

logger = logging.getLogger(__name__)


class PasswordFormat(IntEnum):
    """Stored credential format; the numeric value is what the store persists."""

    CLEAR = 0
    HASHED = 1
    ENCRYPTED = 2

    @classmethod
    def parse(cls, value: Union[str, int, "PasswordFormat"]) -> "PasswordFormat":
        """
        Accept a format name ("hashed"), its number, or the enum itself.

        Raises:
            ValueError: If the value names no known format
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(
                f"Invalid password format: {value!r}. Must be one of: clear, hashed, encrypted"
            )


class CredentialCodec:
    """
    Pure transforms between plaintext and stored credentials.

    Usage:
        codec = CredentialCodec(encryption_key=key)
        stored = codec.encode("secret!", PasswordFormat.ENCRYPTED)
        codec.verify("secret!", stored, PasswordFormat.ENCRYPTED)  # True
        codec.decode(stored, PasswordFormat.ENCRYPTED)             # "secret!"
    """

    def __init__(self, encryption_key: Optional[str] = None, hash_rounds: int = 12):
        self.hash_rounds = hash_rounds
        self._fernet = Fernet(encryption_key) if encryption_key else None

    def encode(self, plaintext: str, fmt: PasswordFormat) -> str:
        if plaintext is None:
            plaintext = ""

        if fmt == PasswordFormat.CLEAR:
            return plaintext
        if fmt == PasswordFormat.HASHED:
            return SecurityHardening.hash_password(plaintext, rounds=self.hash_rounds)
        if fmt == PasswordFormat.ENCRYPTED:
            return self._cipher().encrypt(plaintext.encode("utf-8")).decode("ascii")

        raise UnsupportedOperationError(f"Unsupported password format: {fmt!r}")

    def verify(self, plaintext: str, stored: Optional[str], fmt: PasswordFormat) -> bool:
        """Never raises for a wrong or malformed stored value."""
        if plaintext is None or stored is None:
            return False

        if fmt == PasswordFormat.HASHED:
            return SecurityHardening.verify_password(plaintext, stored)

        try:
            expected = self.decode(stored, fmt)
        except UnsupportedOperationError as e:
            logger.error(f"Credential verification failed: {e}")
            return False

        return SecurityHardening.constant_time_compare(plaintext, expected)

    def decode(self, stored: str, fmt: PasswordFormat) -> str:
        """
        Reconstruct the plaintext.

        Raises:
            UnsupportedOperationError: For hashed credentials, unknown formats
                or ciphertext that does not decrypt under the current key
        """
        if fmt == PasswordFormat.CLEAR:
            return stored
        if fmt == PasswordFormat.HASHED:
            raise UnsupportedOperationError("Cannot unencode a hashed password.")
        if fmt == PasswordFormat.ENCRYPTED:
            try:
                return self._cipher().decrypt(stored.encode("ascii")).decode("utf-8")
            except (InvalidToken, UnicodeError) as e:
                raise UnsupportedOperationError(
                    "The stored password could not be decrypted with the configured key."
                ) from e

        raise UnsupportedOperationError(f"Unsupported password format: {fmt!r}")

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            raise UnsupportedOperationError(
                "Encrypted passwords require an encryption key to be configured."
            )
        return self._fernet

    @staticmethod
    def generate_password(length: int, min_non_alphanumeric: int) -> str:
        """Random plaintext for password resets (never contains a comma)."""
        return SecurityHardening.generate_random_password(length, min_non_alphanumeric)
