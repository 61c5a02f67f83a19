"""
Tests for the AES-256-GCM token vault.

These tests verify:
- Round trip and fresh IV per call
- Key validation on every call
- Tamper and format detection
"""

import pytest

from app.core.encryption import ConfigurationError, CryptoVault, DecryptionError
from tests.conftest import TEST_ENCRYPTION_KEY


class TestRoundTrip:

    def test_decrypt_returns_original(self, vault):
        for plaintext in ["ya29.a0AfB_byC", "", "日本語のトークン", "x" * 4096]:
            assert vault.decrypt(vault.encrypt(plaintext)) == plaintext

    def test_same_plaintext_encrypts_differently(self, vault):
        first = vault.encrypt("refresh-token")
        second = vault.encrypt("refresh-token")

        assert first != second
        assert first.split(":")[0] != second.split(":")[0]

    def test_output_format(self, vault):
        iv_hex, tag_hex, body_hex = vault.encrypt("abc").split(":")

        assert len(iv_hex) == 24
        assert len(tag_hex) == 32
        assert len(body_hex) == 6


class TestKeyValidation:

    def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="ENCRYPTION_KEY is not set"):
            CryptoVault(key_hex="").encrypt("x")

    def test_short_key(self):
        with pytest.raises(ConfigurationError, match="must be 32 bytes"):
            CryptoVault(key_hex="abcd").encrypt("x")

    def test_non_hex_key(self):
        with pytest.raises(ConfigurationError, match="must be 32 bytes"):
            CryptoVault(key_hex="z" * 64).encrypt("x")

    def test_key_checked_on_decrypt_too(self, vault):
        stored = vault.encrypt("x")
        with pytest.raises(ConfigurationError):
            CryptoVault(key_hex=None).decrypt(stored)


class TestTamperDetection:

    def test_flipped_ciphertext_byte(self, vault):
        iv_hex, tag_hex, body_hex = vault.encrypt("secret-token").split(":")
        flipped = format(int(body_hex[:2], 16) ^ 0x01, "02x") + body_hex[2:]

        with pytest.raises(DecryptionError):
            vault.decrypt(":".join([iv_hex, tag_hex, flipped]))

    def test_flipped_tag_byte(self, vault):
        iv_hex, tag_hex, body_hex = vault.encrypt("secret-token").split(":")
        flipped = format(int(tag_hex[:2], 16) ^ 0x80, "02x") + tag_hex[2:]

        with pytest.raises(DecryptionError):
            vault.decrypt(":".join([iv_hex, flipped, body_hex]))

    def test_wrong_key(self, vault):
        stored = vault.encrypt("secret-token")
        other = CryptoVault(key_hex="f" * 64)

        with pytest.raises(DecryptionError):
            other.decrypt(stored)

    @pytest.mark.parametrize("value", [
        "",
        "only-one-part",
        "a:b",
        "a:b:c:d",
        ":00112233445566778899aabbccddeeff:00",
        "000000000000000000000000::00",
        "zz:zz:zz",
        "0011:00112233445566778899aabbccddeeff:00",
    ])
    def test_malformed_values(self, vault, value):
        with pytest.raises(DecryptionError):
            vault.decrypt(value)

    def test_uses_configured_key_constant(self):
        assert len(bytes.fromhex(TEST_ENCRYPTION_KEY)) == 32
