"""
Tests for the credential codec and its security primitives.
"""

import pytest
from cryptography.fernet import Fernet

from membership_authkit.auth.codec import CredentialCodec, PasswordFormat
from membership_authkit.auth.security import SecurityHardening
from membership_authkit.errors import UnsupportedOperationError


@pytest.fixture
def codec():
    return CredentialCodec(encryption_key=Fernet.generate_key().decode(), hash_rounds=4)


ALL_FORMATS = [PasswordFormat.CLEAR, PasswordFormat.HASHED, PasswordFormat.ENCRYPTED]


class TestVerify:
    @pytest.mark.parametrize("fmt", ALL_FORMATS)
    def test_correct_plaintext_verifies(self, codec, fmt):
        stored = codec.encode("Passw0rd!", fmt)
        assert codec.verify("Passw0rd!", stored, fmt) is True

    @pytest.mark.parametrize("fmt", ALL_FORMATS)
    def test_wrong_plaintext_is_rejected(self, codec, fmt):
        stored = codec.encode("Passw0rd!", fmt)
        assert codec.verify("passw0rd!", stored, fmt) is False

    @pytest.mark.parametrize("fmt", ALL_FORMATS)
    def test_malformed_stored_value_is_rejected_without_raising(self, codec, fmt):
        if fmt == PasswordFormat.CLEAR:
            pytest.skip("any string is a valid clear value")
        assert codec.verify("Passw0rd!", "not-a-credential", fmt) is False

    def test_none_inputs_are_rejected(self, codec):
        assert codec.verify(None, "x", PasswordFormat.CLEAR) is False
        assert codec.verify("x", None, PasswordFormat.CLEAR) is False


class TestEncodeDecode:
    def test_clear_is_stored_verbatim(self, codec):
        assert codec.encode("Passw0rd!", PasswordFormat.CLEAR) == "Passw0rd!"

    def test_none_encodes_as_empty(self, codec):
        assert codec.encode(None, PasswordFormat.CLEAR) == ""

    def test_hashes_are_salted(self, codec):
        first = codec.encode("Passw0rd!", PasswordFormat.HASHED)
        second = codec.encode("Passw0rd!", PasswordFormat.HASHED)
        assert first != second
        assert first.startswith("$2b$")

    def test_encrypted_value_hides_plaintext_and_decrypts(self, codec):
        stored = codec.encode("Passw0rd!", PasswordFormat.ENCRYPTED)
        assert "Passw0rd!" not in stored
        assert codec.decode(stored, PasswordFormat.ENCRYPTED) == "Passw0rd!"

    def test_hashed_cannot_be_decoded(self, codec):
        stored = codec.encode("Passw0rd!", PasswordFormat.HASHED)
        with pytest.raises(UnsupportedOperationError, match="Cannot unencode a hashed password."):
            codec.decode(stored, PasswordFormat.HASHED)

    def test_decrypting_with_another_key_fails(self, codec):
        stored = codec.encode("Passw0rd!", PasswordFormat.ENCRYPTED)
        other = CredentialCodec(encryption_key=Fernet.generate_key().decode())
        with pytest.raises(UnsupportedOperationError):
            other.decode(stored, PasswordFormat.ENCRYPTED)

    def test_encrypted_without_key_is_unsupported(self):
        with pytest.raises(UnsupportedOperationError):
            CredentialCodec().encode("Passw0rd!", PasswordFormat.ENCRYPTED)


class TestPasswordFormat:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("hashed", PasswordFormat.HASHED),
            ("Clear", PasswordFormat.CLEAR),
            ("2", PasswordFormat.ENCRYPTED),
            (1, PasswordFormat.HASHED),
            (PasswordFormat.CLEAR, PasswordFormat.CLEAR),
        ],
    )
    def test_parse(self, value, expected):
        assert PasswordFormat.parse(value) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            PasswordFormat.parse("rot13")


class TestGeneratedPasswords:
    def test_meets_requested_shape(self):
        password = CredentialCodec.generate_password(14, 3)
        assert len(password) == 14
        assert sum(1 for ch in password if not ch.isalnum()) >= 3
        assert "," not in password

    def test_are_random(self):
        assert SecurityHardening.generate_random_password() != (
            SecurityHardening.generate_random_password()
        )

    def test_verify_password_rejects_unknown_hash_format(self):
        assert SecurityHardening.verify_password("x", "md5$abc") is False
