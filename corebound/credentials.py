"""Encryption of stored exchange secrets and AI provider keys.

Stored values carry a prefix describing how they were written:

    enc:<base64(iv || tag || ciphertext)>   AES-256-GCM, 12-byte IV, 16-byte tag
    plain:<value>                           no key configured (local development)
    <value>                                 legacy rows written before prefixes

Usage:
    from corebound.credentials import CredentialCipher

    cipher = CredentialCipher.from_config(config)
    stored = cipher.encrypt("0xabc...")
    secret = cipher.decrypt(stored)
"""

import base64
import binascii
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import CoreboundConfig
from .exceptions import ConfigurationError, CredentialError

logger = logging.getLogger(__name__)

ENC_PREFIX = "enc:"
PLAIN_PREFIX = "plain:"
KEY_BYTES = 32
IV_BYTES = 12
TAG_BYTES = 16


def _parse_key(raw_key: str) -> bytes:
    """Decode a 32-byte key given as base64 or hex.

    Raises:
        ConfigurationError: If the key does not decode to 32 bytes
    """
    raw_key = raw_key.strip()
    try:
        key = base64.b64decode(raw_key, validate=True)
        if len(key) == KEY_BYTES:
            return key
    except binascii.Error:
        pass

    try:
        key = bytes.fromhex(raw_key)
        if len(key) == KEY_BYTES:
            return key
    except ValueError:
        pass

    raise ConfigurationError(
        "CREDENTIALS_ENCRYPTION_KEY must be 32 bytes encoded as base64 or hex"
    )


class CredentialCipher:
    """AES-256-GCM cipher for credential columns.

    Args:
        raw_key: Base64 or hex key, or None/empty to store values as "plain:"
    """

    def __init__(self, raw_key: Optional[str] = None):
        self._aesgcm = AESGCM(_parse_key(raw_key)) if raw_key else None

    @classmethod
    def from_config(cls, config: CoreboundConfig) -> "CredentialCipher":
        return cls(config.credentials_encryption_key or None)

    @property
    def has_key(self) -> bool:
        return self._aesgcm is not None

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a credential for storage.

        Args:
            plaintext: Secret to store

        Returns:
            "enc:..." when a key is configured, else "plain:..."
        """
        if self._aesgcm is None:
            logger.warning("No credentials key configured, storing credential unencrypted")
            return PLAIN_PREFIX + plaintext

        iv = os.urandom(IV_BYTES)
        # AESGCM returns ciphertext || tag; the stored layout is iv || tag || ciphertext
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return ENC_PREFIX + base64.b64encode(iv + tag + ciphertext).decode("ascii")

    def decrypt(self, stored: Optional[str]) -> str:
        """Decrypt a stored credential.

        Raises:
            CredentialError: Empty value, "enc:" value without a key, or a
                value that fails authentication
        """
        if not stored:
            raise CredentialError("Credential is empty")

        if stored.startswith(PLAIN_PREFIX):
            return stored[len(PLAIN_PREFIX):]

        if not stored.startswith(ENC_PREFIX):
            return stored

        if self._aesgcm is None:
            raise CredentialError("Credential is encrypted but no encryption key is configured")

        try:
            blob = base64.b64decode(stored[len(ENC_PREFIX):], validate=True)
        except binascii.Error as e:
            raise CredentialError(f"Credential is not valid base64: {e}") from e

        if len(blob) < IV_BYTES + TAG_BYTES:
            raise CredentialError("Credential is truncated")

        iv = blob[:IV_BYTES]
        tag = blob[IV_BYTES:IV_BYTES + TAG_BYTES]
        ciphertext = blob[IV_BYTES + TAG_BYTES:]
        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise CredentialError("Credential failed authentication") from e

        return plaintext.decode("utf-8")


def encrypt_credential(plaintext: str, config: CoreboundConfig) -> str:
    return CredentialCipher.from_config(config).encrypt(plaintext)


def decrypt_credential(stored: Optional[str], config: CoreboundConfig) -> str:
    return CredentialCipher.from_config(config).decrypt(stored)


def key_preview(key: str) -> str:
    """Mask a key for display, keeping the last four characters.

    Examples:
        >>> key_preview("sk-abcdef1234")
        '****1234'
        >>> key_preview("abc")
        '****'
    """
    if not key or len(key) < 4:
        return "****"
    return "****" + key[-4:]


def generate_key() -> str:
    """Generate a fresh base64-encoded 32-byte key."""
    return base64.b64encode(os.urandom(KEY_BYTES)).decode("ascii")
