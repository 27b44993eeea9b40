"""
Configuration management for the membership and role providers.

Values are read from MEMBERSHIP_AUTH_* environment variables and can be
overridden per instance. Providers receive a ProviderConfig in their
constructor; there is no module-level mutable configuration.
"""

import logging
import os
import re
from typing import Any, Dict, Mapping, Optional

from cryptography.fernet import Fernet

from membership_authkit.auth.codec import PasswordFormat

logger = logging.getLogger(__name__)

ENV_PREFIX = "MEMBERSHIP_AUTH_"

_TRUE_VALUES = ("1", "true", "yes", "on")


class ProviderConfig:
    """Load-once settings shared by MembershipProvider and RoleProvider."""

    def __init__(self, env: Optional[Mapping[str, str]] = None, **overrides: Any):
        self._env = os.environ if env is None else env
        self._overrides = overrides
        self._known = set()

        # Scope and storage
        self.APPLICATION_NAME = self._get("application_name", "/")
        self.DATABASE_URL = self._get("database_url", "sqlite:///membership.db")
        self.COMMAND_TIMEOUT = self._get_int("command_timeout", 30)

        # Credential storage
        self.PASSWORD_FORMAT = PasswordFormat.parse(self._get("password_format", "hashed"))
        self.ENCRYPTION_KEY = self._get("encryption_key", None)
        self.HASH_ROUNDS = self._get_int("hash_rounds", 12)

        # Password lifecycle
        self.ENABLE_PASSWORD_RETRIEVAL = self._get_bool("enable_password_retrieval", True)
        self.ENABLE_PASSWORD_RESET = self._get_bool("enable_password_reset", True)
        self.REQUIRES_QUESTION_AND_ANSWER = self._get_bool("requires_question_and_answer", False)
        self.REQUIRES_UNIQUE_EMAIL = self._get_bool("requires_unique_email", True)

        # Lockout
        self.MAX_INVALID_PASSWORD_ATTEMPTS = self._get_int("max_invalid_password_attempts", 5)
        self.PASSWORD_ATTEMPT_WINDOW = self._get_int("password_attempt_window", 10)  # minutes

        # Password strength
        self.MIN_REQUIRED_PASSWORD_LENGTH = self._get_int(
            "min_required_password_length", 7, env_name="MIN_PASSWORD_LENGTH"
        )
        self.MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS = self._get_int(
            "min_required_non_alphanumeric_characters", 1, env_name="MIN_NON_ALPHANUMERIC"
        )
        self.PASSWORD_STRENGTH_REGULAR_EXPRESSION = self._get(
            "password_strength_regular_expression", "", env_name="PASSWORD_STRENGTH_REGEX"
        )

        # Enumeration
        self.USER_IS_ONLINE_TIME_WINDOW = self._get_int(
            "user_is_online_time_window", 15, env_name="ONLINE_WINDOW"
        )  # minutes
        self.DEFAULT_PAGE_SIZE = self._get_int("default_page_size", 2147483647)

        # Logging and Audit
        self.LOG_LEVEL = self._get("log_level", "INFO")
        self.AUDIT_LOG_ENABLED = self._get_bool("audit_log_enabled", True, env_name="AUDIT_LOG")

        unknown = sorted(set(self._overrides) - self._known)
        if unknown:
            raise ValueError(f"Unknown configuration setting(s): {', '.join(unknown)}")

        if self.PASSWORD_FORMAT == PasswordFormat.ENCRYPTED and not self.ENCRYPTION_KEY:
            self.ENCRYPTION_KEY = self._generate_encryption_key()

        self._validate()

    # ========================================
    # Lookup helpers
    # ========================================

    def _get(self, setting: str, default: Any, env_name: Optional[str] = None) -> Any:
        """
        Resolve one setting: keyword override, then environment, then default.

        Overrides are keyed by the setting name; the lower-cased env var
        suffix is accepted as an alias.
        """
        env_name = env_name or setting.upper()
        aliases = (setting, env_name.lower())
        self._known.update(aliases)
        for key in aliases:
            if key in self._overrides:
                return self._overrides[key]
        return self._env.get(ENV_PREFIX + env_name, default)

    def _get_int(self, setting: str, default: int, env_name: Optional[str] = None) -> int:
        value = self._get(setting, default, env_name)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{setting} must be an integer, got {value!r}")

    def _get_bool(self, setting: str, default: bool, env_name: Optional[str] = None) -> bool:
        value = self._get(setting, default, env_name)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_VALUES

    @staticmethod
    def _generate_encryption_key() -> str:
        """Generate a Fernet key when none is configured for the encrypted format."""
        key = Fernet.generate_key().decode("ascii")
        logger.warning(
            f"⚠️  Using auto-generated encryption key. Set {ENV_PREFIX}ENCRYPTION_KEY! "
            "Encrypted passwords will not be recoverable after a restart."
        )
        return key

    def _validate(self):
        """Validate configuration settings."""
        if not self.APPLICATION_NAME or not str(self.APPLICATION_NAME).strip():
            raise ValueError("APPLICATION_NAME must be set and non-empty")

        if "," in self.APPLICATION_NAME:
            raise ValueError("APPLICATION_NAME must not contain commas")

        if len(self.APPLICATION_NAME) > 256:
            raise ValueError("APPLICATION_NAME must not exceed 256 characters")

        if self.MAX_INVALID_PASSWORD_ATTEMPTS < 1:
            raise ValueError("MAX_INVALID_PASSWORD_ATTEMPTS must be at least 1")

        if self.PASSWORD_ATTEMPT_WINDOW < 1:
            raise ValueError("PASSWORD_ATTEMPT_WINDOW must be at least 1 minute")

        if self.MIN_REQUIRED_PASSWORD_LENGTH < 1 or self.MIN_REQUIRED_PASSWORD_LENGTH > 128:
            raise ValueError("MIN_REQUIRED_PASSWORD_LENGTH must be between 1 and 128")

        if self.MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS < 0:
            raise ValueError("MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS must not be negative")

        if self.MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS > self.MIN_REQUIRED_PASSWORD_LENGTH:
            raise ValueError(
                "MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS cannot exceed MIN_REQUIRED_PASSWORD_LENGTH"
            )

        if self.PASSWORD_STRENGTH_REGULAR_EXPRESSION:
            try:
                re.compile(self.PASSWORD_STRENGTH_REGULAR_EXPRESSION)
            except re.error as e:
                raise ValueError(f"PASSWORD_STRENGTH_REGULAR_EXPRESSION is invalid: {e}")

        if self.HASH_ROUNDS < 4 or self.HASH_ROUNDS > 31:
            raise ValueError("HASH_ROUNDS must be between 4 and 31")

        if self.USER_IS_ONLINE_TIME_WINDOW < 1:
            raise ValueError("USER_IS_ONLINE_TIME_WINDOW must be at least 1 minute")

        if self.DEFAULT_PAGE_SIZE < 1:
            raise ValueError("DEFAULT_PAGE_SIZE must be greater than zero")

        if self.COMMAND_TIMEOUT < 1:
            raise ValueError("COMMAND_TIMEOUT must be at least 1 second")

        if self.ENCRYPTION_KEY:
            try:
                Fernet(self.ENCRYPTION_KEY)
            except (TypeError, ValueError) as e:
                raise ValueError(f"ENCRYPTION_KEY is not a valid Fernet key: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Public settings (upper-case attributes), for display."""
        return {key: value for key, value in self.__dict__.items() if key.isupper()}

    def __repr__(self):
        """Safe representation hiding sensitive data."""
        return (
            f"<ProviderConfig application={self.APPLICATION_NAME!r} "
            f"format={self.PASSWORD_FORMAT.name.lower()} "
            f"max_attempts={self.MAX_INVALID_PASSWORD_ATTEMPTS} "
            f"window={self.PASSWORD_ATTEMPT_WINDOW}m>"
        )
