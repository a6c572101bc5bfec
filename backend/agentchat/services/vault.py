"""
Encrypt and decrypt provider API keys for storage.

Keys are sealed with AES-256-GCM and serialized as three lowercase hex
segments joined by colons: ``iv:auth_tag:ciphertext``.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
from functools import lru_cache
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from dotenv import load_dotenv

from ..constants import AUTH_TAG_LENGTH, ENCRYPTION_KEY_ENV, IV_LENGTH, KEY_LENGTH
from ..errors import AuthenticationFailedError, KeyConfigurationError, MalformedCredentialError

load_dotenv(Path(__file__).parent.parent.parent / ".env")

logger = logging.getLogger(__name__)

_HEX_SEGMENT = re.compile(r"[0-9a-fA-F]+")

# AESGCM accepts nonces between 8 and 128 bytes
_MIN_IV_BYTES = 8
_MAX_IV_BYTES = 128


def generate_encryption_key() -> str:
    """Return a random key for API_KEY_ENCRYPTION_KEY.

    Only the first KEY_LENGTH bytes of the configured secret become the AES
    key, so the generated value is exactly KEY_LENGTH URL-safe characters
    (192 bits of randomness) rather than a longer string that would be cut.
    """
    return secrets.token_urlsafe(KEY_LENGTH * 3 // 4)


class CredentialVault:
    """Symmetric encryption for provider API keys.

    A missing or short key is only reported when the vault is used, so the
    application can start (and serve default catalogs) without one.
    """

    def __init__(self, secret: str | bytes | None):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self._secret = secret

    @classmethod
    def from_env(cls) -> "CredentialVault":
        return cls(os.getenv(ENCRYPTION_KEY_ENV))

    def _cipher(self) -> AESGCM:
        if not self._secret:
            raise KeyConfigurationError(f"{ENCRYPTION_KEY_ENV} is not set")
        if len(self._secret) < KEY_LENGTH:
            raise KeyConfigurationError(
                f"{ENCRYPTION_KEY_ENV} must be at least {KEY_LENGTH} characters long"
            )
        return AESGCM(self._secret[:KEY_LENGTH])

    @staticmethod
    def is_valid_format(value: str) -> bool:
        """True if ``value`` is three non-empty hex segments separated by colons."""
        if not isinstance(value, str):
            return False
        parts = value.split(":")
        return len(parts) == 3 and all(_HEX_SEGMENT.fullmatch(part) for part in parts)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` under a fresh random IV."""
        cipher = self._cipher()
        if not plaintext:
            raise ValueError("Cannot encrypt empty value")

        iv = os.urandom(IV_LENGTH)
        sealed = cipher.encrypt(iv, plaintext.encode("utf-8"), None)
        # AESGCM appends the tag to the ciphertext
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, encrypted: str) -> str:
        """
        Decrypt a value produced by :meth:`encrypt`.

        Raises MalformedCredentialError when the value cannot be parsed and
        AuthenticationFailedError when the tag does not verify (tampered
        data or a different key). Partial plaintext is never returned.
        """
        cipher = self._cipher()
        if not self.is_valid_format(encrypted):
            raise MalformedCredentialError("Invalid encrypted data format")

        iv_hex, tag_hex, ciphertext_hex = encrypted.split(":")
        try:
            iv = bytes.fromhex(iv_hex)
            tag = bytes.fromhex(tag_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
        except ValueError as exc:
            raise MalformedCredentialError("Invalid hex encoding in encrypted data") from exc

        if len(tag) != AUTH_TAG_LENGTH:
            raise MalformedCredentialError(f"Auth tag must be {AUTH_TAG_LENGTH} bytes")
        if not _MIN_IV_BYTES <= len(iv) <= _MAX_IV_BYTES:
            raise MalformedCredentialError(f"IV length {len(iv)} is not supported")

        try:
            plaintext = cipher.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            logger.error("Failed to decrypt credential: authentication tag mismatch")
            raise AuthenticationFailedError("Authentication tag verification failed") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedCredentialError("Decrypted credential is not valid UTF-8") from exc


@lru_cache
def get_vault() -> CredentialVault:
    return CredentialVault.from_env()


__all__ = ["CredentialVault", "generate_encryption_key", "get_vault"]
