"""
Cryptographic utilities for the Cookie Consent module
Token sealing, MACs and hashing
"""

from .encrypt import encrypt_bytes, decrypt_bytes, derive_key
from .hash import (
    secure_hash,
    hash_string,
    hmac_digest,
    hmac_hash,
    constant_time_equals,
    create_data_fingerprint,
    HashChain,
)

__all__ = [
    "encrypt_bytes",
    "decrypt_bytes",
    "derive_key",
    "secure_hash",
    "hash_string",
    "hmac_digest",
    "hmac_hash",
    "constant_time_equals",
    "create_data_fingerprint",
    "HashChain",
]
