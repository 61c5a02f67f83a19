"""
Token encryption - AES-256-GCM for OAuth tokens stored in the database.

Google access and refresh tokens are encrypted before they are written to
user_accounts and decrypted right before use. The key is never persisted
by this module.

Ciphertext format:
==================
    "<iv_hex>:<tag_hex>:<ciphertext_hex>"

- iv: 12 random bytes, fresh for every call (same plaintext -> different output)
- tag: 16-byte GCM authentication tag
- ciphertext: same length as the UTF-8 plaintext

The three segments make decrypt() self-describing: no nonce or tag has to
be stored anywhere else.

Key:
====
32 bytes supplied as 64 hex characters (ENCRYPTION_KEY). The key is
validated on every call, so a missing or truncated key fails loudly at
the point of use instead of at import time.
"""

import binascii
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger("linecal.core.encryption")

_REQUIRED_KEY_LENGTH = 32
_IV_LENGTH = 12
_TAG_LENGTH = 16
_SEPARATOR = ":"


class ConfigurationError(Exception):
    """Raised when required secret material is missing or malformed."""


class DecryptionError(Exception):
    """Raised when a stored value cannot be decrypted for any reason."""


class CryptoVault:
    """
    Symmetric encrypt/decrypt of opaque secrets.

    Example:
        vault = CryptoVault(key_hex=settings.ENCRYPTION_KEY)
        stored = vault.encrypt("ya29.a0Af...")
        token = vault.decrypt(stored)
    """

    def __init__(self, key_hex: Optional[str]):
        self._key_hex = key_hex

    def _load_key(self) -> bytes:
        """Validate and decode the configured key."""
        if not self._key_hex:
            raise ConfigurationError("ENCRYPTION_KEY is not set")

        try:
            key = bytes.fromhex(self._key_hex.strip())
        except ValueError:
            raise ConfigurationError(
                "ENCRYPTION_KEY must be 32 bytes encoded as 64 hex characters"
            )

        if len(key) != _REQUIRED_KEY_LENGTH:
            raise ConfigurationError(
                f"ENCRYPTION_KEY must be 32 bytes (64 hex characters), got {len(key)} bytes"
            )
        return key

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a string.

        Args:
            plaintext: Secret to protect (e.g. a refresh token)

        Returns:
            "iv:tag:ciphertext" in lowercase hex

        Raises:
            ConfigurationError: If the key is missing or has the wrong length
        """
        key = self._load_key()
        iv = os.urandom(_IV_LENGTH)

        # AESGCM appends the tag to the ciphertext; split it out so the
        # stored format names each part explicitly.
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-_TAG_LENGTH], sealed[-_TAG_LENGTH:]

        return _SEPARATOR.join([iv.hex(), tag.hex(), ciphertext.hex()])

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by encrypt().

        Args:
            ciphertext: "iv:tag:ciphertext" string

        Returns:
            The original plaintext

        Raises:
            ConfigurationError: If the key is missing or has the wrong length
            DecryptionError: If the value is malformed, tampered with,
                             or was encrypted under another key
        """
        key = self._load_key()

        if not ciphertext:
            raise DecryptionError("Encrypted value is empty")

        parts = ciphertext.split(_SEPARATOR)
        if len(parts) != 3:
            raise DecryptionError("Invalid encrypted value format")

        iv_hex, tag_hex, body_hex = parts
        if not iv_hex or not tag_hex:
            raise DecryptionError("Encrypted value is missing its IV or auth tag")

        try:
            iv = binascii.unhexlify(iv_hex)
            tag = binascii.unhexlify(tag_hex)
            body = binascii.unhexlify(body_hex)
        except (binascii.Error, ValueError):
            raise DecryptionError("Encrypted value is not valid hex")

        if len(iv) != _IV_LENGTH or len(tag) != _TAG_LENGTH:
            raise DecryptionError("Encrypted value has an invalid IV or auth tag length")

        try:
            plaintext = AESGCM(key).decrypt(iv, body + tag, None)
        except InvalidTag:
            logger.warning("Rejected encrypted value: authentication tag mismatch")
            raise DecryptionError("Authentication failed (tampered value or wrong key)")

        return plaintext.decode("utf-8")
