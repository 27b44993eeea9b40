"""
Tests for ProviderConfig.
"""

import pytest
from cryptography.fernet import Fernet

from membership_authkit.auth.codec import PasswordFormat
from membership_authkit.utils.config import ProviderConfig


class TestDefaults:
    def test_defaults(self):
        config = ProviderConfig(env={})

        assert config.APPLICATION_NAME == "/"
        assert config.PASSWORD_FORMAT is PasswordFormat.HASHED
        assert config.MAX_INVALID_PASSWORD_ATTEMPTS == 5
        assert config.PASSWORD_ATTEMPT_WINDOW == 10
        assert config.MIN_REQUIRED_PASSWORD_LENGTH == 7
        assert config.MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS == 1
        assert config.ENABLE_PASSWORD_RESET is True
        assert config.ENABLE_PASSWORD_RETRIEVAL is True
        assert config.REQUIRES_QUESTION_AND_ANSWER is False
        assert config.REQUIRES_UNIQUE_EMAIL is True
        assert config.USER_IS_ONLINE_TIME_WINDOW == 15
        assert config.COMMAND_TIMEOUT == 30


class TestSources:
    def test_reads_prefixed_environment(self):
        env = {
            "MEMBERSHIP_AUTH_APPLICATION_NAME": "/shop",
            "MEMBERSHIP_AUTH_PASSWORD_FORMAT": "clear",
            "MEMBERSHIP_AUTH_MAX_INVALID_PASSWORD_ATTEMPTS": "3",
            "MEMBERSHIP_AUTH_REQUIRES_UNIQUE_EMAIL": "false",
        }
        config = ProviderConfig(env=env)

        assert config.APPLICATION_NAME == "/shop"
        assert config.PASSWORD_FORMAT is PasswordFormat.CLEAR
        assert config.MAX_INVALID_PASSWORD_ATTEMPTS == 3
        assert config.REQUIRES_UNIQUE_EMAIL is False

    def test_overrides_win_over_environment(self):
        config = ProviderConfig(
            env={"MEMBERSHIP_AUTH_MIN_PASSWORD_LENGTH": "12"}, min_required_password_length=8
        )
        assert config.MIN_REQUIRED_PASSWORD_LENGTH == 8

    def test_overrides_by_setting_name(self):
        config = ProviderConfig(
            env={},
            min_required_password_length=3,
            min_required_non_alphanumeric_characters=0,
            password_strength_regular_expression=r"\d",
            user_is_online_time_window=1,
            audit_log_enabled=False,
            default_page_size=50,
            log_level="DEBUG",
        )

        assert config.MIN_REQUIRED_PASSWORD_LENGTH == 3
        assert config.MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS == 0
        assert config.PASSWORD_STRENGTH_REGULAR_EXPRESSION == r"\d"
        assert config.USER_IS_ONLINE_TIME_WINDOW == 1
        assert config.AUDIT_LOG_ENABLED is False
        assert config.DEFAULT_PAGE_SIZE == 50
        assert config.LOG_LEVEL == "DEBUG"

    def test_env_suffix_is_accepted_as_alias(self):
        config = ProviderConfig(env={}, min_password_length=9, online_window=2, audit_log=False)

        assert config.MIN_REQUIRED_PASSWORD_LENGTH == 9
        assert config.USER_IS_ONLINE_TIME_WINDOW == 2
        assert config.AUDIT_LOG_ENABLED is False

    def test_unknown_override_is_rejected(self):
        with pytest.raises(ValueError, match="min_pasword_length"):
            ProviderConfig(env={}, min_pasword_length=3)


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"application_name": ""},
            {"application_name": "a,b"},
            {"max_invalid_password_attempts": 0},
            {"password_attempt_window": 0},
            {"min_required_password_length": 0},
            {"min_required_password_length": 4, "min_required_non_alphanumeric_characters": 5},
            {"password_strength_regular_expression": "("},
            {"hash_rounds": 2},
            {"password_format": "rot13"},
            {"encryption_key": "not-a-key"},
            {"command_timeout": "soon"},
        ],
    )
    def test_rejects_invalid_settings(self, overrides):
        with pytest.raises(ValueError):
            ProviderConfig(env={}, **overrides)


class TestSecrets:
    def test_encrypted_format_without_key_generates_one(self, caplog):
        config = ProviderConfig(env={}, password_format="encrypted")

        assert config.ENCRYPTION_KEY
        Fernet(config.ENCRYPTION_KEY)
        assert "auto-generated encryption key" in caplog.text

    def test_repr_hides_key(self):
        key = Fernet.generate_key().decode()
        config = ProviderConfig(env={}, password_format="encrypted", encryption_key=key)

        assert key not in repr(config)
        assert config.to_dict()["ENCRYPTION_KEY"] == key
