"""
Hashing utilities for the Cookie Consent module
Token MACs, consent proofs and tamper-evident audit chains
"""

import hashlib
import hmac
import json
from typing import Any, Dict
import structlog

logger = structlog.get_logger(__name__)


def secure_hash(data: bytes) -> str:
    """Hex-encoded SHA-256 of data"""
    return hashlib.sha256(data).hexdigest()


def hash_string(text: str) -> str:
    """Hash a string with SHA-256"""
    return secure_hash(text.encode('utf-8'))


def hmac_digest(key: bytes, data: bytes) -> bytes:
    """Raw HMAC-SHA256 of data"""
    return hmac.new(key, data, hashlib.sha256).digest()


def hmac_hash(key: bytes, data: bytes) -> str:
    """
    Create HMAC hash for message authentication

    Args:
        key: Secret key for HMAC
        data: Data to authenticate

    Returns:
        Hex-encoded HMAC-SHA256
    """
    return hmac_digest(key, data).hex()


def constant_time_equals(left: str | bytes, right: str | bytes) -> bool:
    """Compare two MACs without leaking timing information"""
    if isinstance(left, str):
        left = left.encode('utf-8')
    if isinstance(right, str):
        right = right.encode('utf-8')
    return hmac.compare_digest(left, right)


def create_data_fingerprint(data: Dict[str, Any]) -> str:
    """
    Create deterministic fingerprint of data structure

    Args:
        data: Dictionary to fingerprint

    Returns:
        Fingerprint hash
    """
    # Sort keys for deterministic output
    normalized = json.dumps(data, sort_keys=True, separators=(',', ':'))
    return hash_string(normalized)


class HashChain:
    """Hash chain for tamper-evident logging"""

    GENESIS = secure_hash(b"genesis")

    def __init__(self, initial_hash: str | None = None):
        self.current_hash = initial_hash or self.GENESIS
        self.chain_length = 0

    def add_entry(self, data: bytes) -> str:
        """Add entry to hash chain"""
        combined = self.current_hash.encode('utf-8') + data
        self.current_hash = secure_hash(combined)
        self.chain_length += 1

        logger.debug("Added hash chain entry",
                    length=self.chain_length,
                    hash=self.current_hash[:16])

        return self.current_hash

    @classmethod
    def verify_chain(cls, entries: list[bytes], expected_final_hash: str, initial_hash: str | None = None) -> bool:
        """Verify integrity of hash chain, optionally resuming from ``initial_hash``"""
        temp_chain = cls(initial_hash)

        for entry in entries:
            temp_chain.add_entry(entry)

        return constant_time_equals(temp_chain.current_hash, expected_final_hash)
