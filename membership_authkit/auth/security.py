"""
Security Hardening Module

Low-level primitives behind the credential codec: constant-time comparison,
bcrypt hashing and random password generation.
"""

import hashlib
import hmac
import logging
import secrets
import string

import bcrypt

logger = logging.getLogger(__name__)

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

# Characters used when generating reset passwords. Commas are excluded so a
# generated password can travel through comma-delimited lists.
PUNCTUATION = "!@#$%^&*()_-+=[]{};:.<>?/|~"


class SecurityHardening:
    """
    Class with static methods for security hardening.
    """

    @staticmethod
    def constant_time_compare(a: str, b: str) -> bool:
        """
        Constant time comparison to prevent timing attacks.

        Args:
            a: First string
            b: Second string

        Returns:
            bool: True if strings are equal
        """
        return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))

    @staticmethod
    def hash_password(password: str, rounds: int = 12) -> str:
        """
        Hashes password with BCrypt.

        First does a SHA-256 hash to:
        1. Protect passwords > 72 bytes (BCrypt limit)
        2. Prevent null-byte truncation
        3. Normalize length

        Args:
            password: Plain text password
            rounds: BCrypt cost factor (4-31)

        Returns:
            str: Hashed password (salt embedded, 60 chars)
        """
        sha256_hash = hashlib.sha256(password.encode("utf-8")).hexdigest()
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(sha256_hash.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """
        Verifies password against a bcrypt hash.

        Args:
            password: Plain text password
            password_hash: Stored hash

        Returns:
            bool: True if password is correct
        """
        if not password_hash or not password_hash.startswith(BCRYPT_PREFIXES):
            logger.error(f"Unknown password hash format: {(password_hash or '')[:7]}...")
            return False

        sha256_hash = hashlib.sha256(password.encode("utf-8")).hexdigest()
        try:
            return bcrypt.checkpw(sha256_hash.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False

    @staticmethod
    def generate_random_password(length: int = 14, min_non_alphanumeric: int = 1) -> str:
        """
        Generates secure random password.

        Used by password reset. The result always contains at least one
        lower-case letter, one upper-case letter, one digit and
        ``min_non_alphanumeric`` punctuation characters.

        Args:
            length: Password length
            min_non_alphanumeric: Minimum number of punctuation characters

        Returns:
            str: Random password
        """
        length = max(length, min_non_alphanumeric + 3)
        alphabet = string.ascii_letters + string.digits + PUNCTUATION

        password = [
            secrets.choice(string.ascii_lowercase),
            secrets.choice(string.ascii_uppercase),
            secrets.choice(string.digits),
        ]
        password += [secrets.choice(PUNCTUATION) for _ in range(min_non_alphanumeric)]
        password += [secrets.choice(alphabet) for _ in range(length - len(password))]

        secrets.SystemRandom().shuffle(password)
        return "".join(password)
