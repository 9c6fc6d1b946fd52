"""
Utility functions for the Cookie Consent module
ID generation, network helpers and validation
"""

from .ids import generate_consent_id, generate_trace_id
from .network import detect_client_ip, anonymize_ip, is_valid_ip
from .validators import (
    validate_category_key,
    validate_known_category,
    validate_samesite,
    validate_position,
    validate_template,
    validate_cookie_name,
    validate_expiry_days,
)

__all__ = [
    # ID generation
    "generate_consent_id",
    "generate_trace_id",
    # Network
    "detect_client_ip",
    "anonymize_ip",
    "is_valid_ip",
    # Validators
    "validate_category_key",
    "validate_known_category",
    "validate_samesite",
    "validate_position",
    "validate_template",
    "validate_cookie_name",
    "validate_expiry_days",
]
