"""
ID generation utilities for the Cookie Consent module
Unique identifiers for consent records and request tracing
"""

import json
import secrets
import time
import uuid
import hashlib
import structlog

logger = structlog.get_logger(__name__)


def generate_consent_id(ip_address: str = "", user_agent: str = "") -> str:
    """Generate an opaque consent record ID.

    Each side of the protocol mints its own IDs, so the value only has to be
    unique, not reproducible.
    """
    data = {
        "time": time.time(),
        "random": secrets.token_hex(16),
        "ip": ip_address,
        "ua": user_agent,
    }
    return hashlib.sha256(json.dumps(data, sort_keys=True).encode("utf-8")).hexdigest()


def generate_trace_id() -> str:
    """Generate trace ID for request tracking"""
    return f"trace_{uuid.uuid4().hex}"
