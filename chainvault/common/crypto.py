"""Client-side authenticated encryption.

Payload format: base64(salt || nonce || ciphertext || tag)

- PBKDF2-HMAC-SHA256 with 100,000 iterations derives a 256-bit key per call
- AES-256-GCM provides confidentiality and integrity
- salt (32 bytes) and nonce (12 bytes) are random for every encryption
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from chainvault.common.exceptions import EncryptionError

SALT_LENGTH = 32
NONCE_LENGTH = 12
KEY_LENGTH = 32
TAG_LENGTH = 16
KDF_ITERATIONS = 100_000

_DECRYPTION_FAILED = "Decryption failed"


class CryptoEngine:
    """Stateless encrypt/decrypt with a caller-supplied secret."""

    @staticmethod
    def derive_key(secret: str, salt: bytes) -> bytes:
        """Derive the AES key for one payload from the secret and its salt."""
        return PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=KDF_ITERATIONS,
        ).derive(secret.encode("utf-8"))

    @staticmethod
    def encrypt(plaintext: str, secret: str) -> str:
        """Encrypt plaintext under secret and return the base64 payload."""
        if not secret:
            msg = "Cannot encrypt without a secret"
            raise EncryptionError(msg)

        salt = os.urandom(SALT_LENGTH)
        nonce = os.urandom(NONCE_LENGTH)
        key = CryptoEngine.derive_key(secret, salt)
        sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(salt + nonce + sealed).decode("ascii")

    @staticmethod
    def decrypt(payload: str, secret: str) -> str:
        """Decrypt a payload produced by encrypt().

        Any failure raises the same EncryptionError so callers cannot tell a
        wrong secret from a tampered or truncated payload.
        """
        try:
            combined = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError, TypeError) as err:
            raise EncryptionError(_DECRYPTION_FAILED) from err

        # The decoder ignores the unused low bits of the last character, so
        # only the canonical encoding of the decoded bytes is accepted.
        if base64.b64encode(combined).decode("ascii") != payload:
            raise EncryptionError(_DECRYPTION_FAILED)

        if not secret or len(combined) < SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH:
            raise EncryptionError(_DECRYPTION_FAILED)

        salt = combined[:SALT_LENGTH]
        nonce = combined[SALT_LENGTH : SALT_LENGTH + NONCE_LENGTH]
        sealed = combined[SALT_LENGTH + NONCE_LENGTH :]

        key = CryptoEngine.derive_key(secret, salt)
        try:
            plaintext = AESGCM(key).decrypt(nonce, sealed, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as err:
            raise EncryptionError(_DECRYPTION_FAILED) from err

    @staticmethod
    def is_valid_secret_format(secret: str | None) -> bool:
        """Cheap local check: non-empty, strict base64, decodes to some bytes."""
        if not secret or not isinstance(secret, str):
            return False
        try:
            return len(base64.b64decode(secret, validate=True)) > 0
        except (binascii.Error, ValueError):
            return False


encrypt_data = CryptoEngine.encrypt
decrypt_data = CryptoEngine.decrypt
is_valid_secret_format = CryptoEngine.is_valid_secret_format
