"""Tests for credential encryption at rest."""

import base64

import pytest

from corebound.config import CoreboundConfig
from corebound.credentials import (
    ENC_PREFIX,
    PLAIN_PREFIX,
    CredentialCipher,
    decrypt_credential,
    encrypt_credential,
    generate_key,
    key_preview,
)
from corebound.exceptions import ConfigurationError, CredentialError


@pytest.fixture
def cipher():
    return CredentialCipher(generate_key())


class TestCredentialCipher:
    """Test the stored value formats."""

    def test_encrypt_then_decrypt(self, cipher):
        stored = cipher.encrypt("0xsecret")

        assert stored.startswith(ENC_PREFIX)
        assert "0xsecret" not in stored
        assert cipher.decrypt(stored) == "0xsecret"

    def test_fresh_iv_per_value(self, cipher):
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_stored_layout(self, cipher):
        """Test the blob is iv (12) + tag (16) + ciphertext."""
        blob = base64.b64decode(cipher.encrypt("abcd")[len(ENC_PREFIX):])
        assert len(blob) == 12 + 16 + 4

    def test_plain_without_key(self):
        cipher = CredentialCipher(None)

        stored = cipher.encrypt("sk-test")

        assert not cipher.has_key
        assert stored == PLAIN_PREFIX + "sk-test"
        assert cipher.decrypt(stored) == "sk-test"

    def test_legacy_value_returned_as_is(self, cipher):
        assert cipher.decrypt("0xlegacy") == "0xlegacy"

    def test_tampered_value_rejected(self, cipher):
        blob = bytearray(base64.b64decode(cipher.encrypt("0xsecret")[len(ENC_PREFIX):]))
        blob[-1] ^= 0x01
        tampered = ENC_PREFIX + base64.b64encode(bytes(blob)).decode("ascii")

        with pytest.raises(CredentialError, match="failed authentication"):
            cipher.decrypt(tampered)

    def test_wrong_key_rejected(self, cipher):
        stored = cipher.encrypt("0xsecret")
        with pytest.raises(CredentialError):
            CredentialCipher(generate_key()).decrypt(stored)

    def test_encrypted_value_without_key(self, cipher):
        stored = cipher.encrypt("0xsecret")
        with pytest.raises(CredentialError, match="no encryption key is configured"):
            CredentialCipher().decrypt(stored)

    @pytest.mark.parametrize("stored,message", [
        ("", "Credential is empty"),
        (None, "Credential is empty"),
        (ENC_PREFIX + "!!!", "not valid base64"),
        (ENC_PREFIX + base64.b64encode(b"short").decode("ascii"), "truncated"),
    ])
    def test_malformed_values(self, cipher, stored, message):
        with pytest.raises(CredentialError, match=message):
            cipher.decrypt(stored)


class TestKeys:

    def test_hex_key_accepted(self):
        cipher = CredentialCipher("ab" * 32)
        assert cipher.has_key
        assert cipher.decrypt(cipher.encrypt("x")) == "x"

    @pytest.mark.parametrize("raw_key", ["too-short", "ab" * 16, base64.b64encode(b"k" * 16).decode()])
    def test_bad_key(self, raw_key):
        with pytest.raises(ConfigurationError, match="must be 32 bytes"):
            CredentialCipher(raw_key)

    def test_generated_key_is_32_bytes(self):
        assert len(base64.b64decode(generate_key())) == 32

    def test_config_helpers(self):
        config = CoreboundConfig(credentials_encryption_key=generate_key())
        stored = encrypt_credential("0xsecret", config)
        assert stored.startswith(ENC_PREFIX)
        assert decrypt_credential(stored, config) == "0xsecret"

    @pytest.mark.parametrize("key,preview", [
        ("sk-abcdef1234", "****1234"),
        ("abc", "****"),
        ("", "****"),
    ])
    def test_key_preview(self, key, preview):
        assert key_preview(key) == preview
