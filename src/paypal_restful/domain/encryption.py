"""Encryption of the session-cached OAuth2 access token.

The token is encrypted with AES-256-GCM under a key derived (HKDF-SHA256)
from the PayPal client secret. A fresh random nonce is generated for every
save and stored as a prefix of the ciphertext.

Limitation: this only keeps the token opaque inside the session store. Its
confidentiality is bounded by the secrecy of the client secret itself; it is
not a general-purpose secret-management scheme.
"""

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12
KEY_INFO = b"paypal-restful-token-v1"


class EncryptionError(Exception):
    """Base exception for encryption-related errors."""

    pass


class DecryptionError(Exception):
    """Exception raised when a cached token cannot be decrypted."""

    pass


def derive_token_key(client_secret: str) -> bytes:
    """Derive the 32-byte token-encryption key from the client secret.

    The derivation is deterministic: the same secret always yields the same
    key, so a token saved during one request can be read back in the next.

    Raises:
        ValueError: If client_secret is empty
    """
    if not client_secret:
        raise ValueError("client_secret cannot be empty")

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=KEY_INFO,
    )
    return hkdf.derive(client_secret.encode("utf-8"))


def encrypt_token(access_token: str, client_secret: str) -> str:
    """Encrypt an access token for storage.

    Returns:
        base64 text of ``nonce || ciphertext`` (ciphertext includes the GCM tag)

    Raises:
        ValueError: If the token or secret is empty
        EncryptionError: If encryption fails
    """
    if not access_token:
        raise ValueError("access_token cannot be empty")

    key = derive_token_key(client_secret)
    try:
        nonce = os.urandom(NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, access_token.encode("utf-8"), associated_data=None)
    except Exception as e:
        logger.error(f"Token encryption failed: {type(e).__name__}")
        raise EncryptionError("Failed to encrypt access token") from e
    finally:
        del key

    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt_token(stored: str, client_secret: str) -> str:
    """Decrypt a value produced by ``encrypt_token``.

    Raises:
        DecryptionError: If the value is malformed, was tampered with, or was
            encrypted under a different client secret
    """
    try:
        raw = base64.b64decode(stored.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, AttributeError) as e:
        raise DecryptionError("Stored token is not valid base64") from e

    if len(raw) <= NONCE_LENGTH:
        raise DecryptionError("Stored token is truncated")

    nonce, ciphertext = raw[:NONCE_LENGTH], raw[NONCE_LENGTH:]
    try:
        key = derive_token_key(client_secret)
    except ValueError as e:
        raise DecryptionError("No client secret available for decryption") from e

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, associated_data=None)
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError) as e:
        # Don't expose detailed error messages for security
        logger.warning(f"Token decryption failed: {type(e).__name__}")
        raise DecryptionError("Failed to decrypt token - invalid key or corrupted data") from e
    finally:
        del key
