"""
Encryption utilities for the Cookie Consent module
AES-GCM sealing of consent records carried inside the cookie
"""

import os
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.exceptions import InvalidTag
import structlog

from ..exceptions import EncryptionError, DecryptionError

logger = structlog.get_logger(__name__)

NONCE_SIZE = 12  # 96-bit nonce for GCM
TAG_SIZE = 16
KEY_SIZE = 32


def derive_key(secret: bytes, info: bytes) -> bytes:
    """Derive a 32-byte purpose-bound key from an operator secret (HKDF-SHA256)"""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=info,
    )
    return hkdf.derive(secret)


def encrypt_bytes(key: bytes, plaintext: bytes, associated_data: bytes | None = None) -> bytes:
    """
    Encrypt bytes using AES-GCM

    Args:
        key: 32-byte encryption key
        plaintext: Data to encrypt
        associated_data: Optional associated data for authentication

    Returns:
        Encrypted data with nonce prepended (nonce + ciphertext + tag)
    """
    if len(key) != KEY_SIZE:
        raise EncryptionError("Key must be 32 bytes for AES-256")

    aesgcm = AESGCM(key)
    nonce = os.urandom(NONCE_SIZE)

    # Ciphertext already carries the auth tag
    return nonce + aesgcm.encrypt(nonce, plaintext, associated_data)


def decrypt_bytes(key: bytes, encrypted_data: bytes, associated_data: bytes | None = None) -> bytes:
    """
    Decrypt bytes using AES-GCM

    Args:
        key: 32-byte encryption key
        encrypted_data: Encrypted data with nonce prepended
        associated_data: Optional associated data for authentication

    Returns:
        Decrypted plaintext

    Raises:
        DecryptionError: On a short payload or an authentication failure
    """
    if len(key) != KEY_SIZE:
        raise DecryptionError("Key must be 32 bytes for AES-256")

    if len(encrypted_data) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionError("Encrypted data too short", reason="truncated")

    aesgcm = AESGCM(key)
    nonce = encrypted_data[:NONCE_SIZE]
    ciphertext = encrypted_data[NONCE_SIZE:]

    try:
        return aesgcm.decrypt(nonce, ciphertext, associated_data)
    except InvalidTag:
        logger.warning("Decryption failed - invalid authentication tag")
        raise DecryptionError("Invalid authentication tag - data may be corrupted or tampered",
                              reason="invalid_tag")
