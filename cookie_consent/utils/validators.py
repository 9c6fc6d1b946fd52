"""
Validators for the Cookie Consent module

Provides validation utilities for category keys, cookie attributes and
banner presentation settings. All of them run at configuration time.
"""

import re
import logging
from typing import Optional, Any, List, Iterable

from ..constants import BannerDefaults, CookieDefaults
from ..exceptions import ValidationError, InvalidCategoryError

logger = logging.getLogger(__name__)

# =============================================================================
# REGEX PATTERNS
# =============================================================================

CATEGORY_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_-]{0,63}$")
COOKIE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_\-.]{1,128}$")

# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_category_key(
    key: Any,
    field_name: str = "category",
) -> str:
    """
    Validate the format of a category key.

    Args:
        key: Category key to validate
        field_name: Field name for error messages

    Returns:
        Validated key

    Raises:
        ValidationError: If the key is missing or malformed
    """
    if not isinstance(key, str) or not key.strip():
        raise ValidationError(f"{field_name} must be a non-empty string", field=field_name)

    key = key.strip()

    if not CATEGORY_KEY_PATTERN.match(key):
        raise ValidationError(
            f"{field_name} has invalid format: '{key}'",
            field=field_name
        )

    return key


def validate_known_category(
    category: str,
    known: Iterable[str],
) -> str:
    """
    Validate that a category is part of the configured set.

    Raises:
        InvalidCategoryError: If the category is not configured
    """
    known_list: List[str] = list(known)
    if category not in known_list:
        raise InvalidCategoryError(category, known_list)
    return category


def validate_samesite(value: Any, secure: bool = True) -> str:
    """
    Validate a cookie SameSite attribute.

    ``None`` is only accepted together with the Secure attribute since
    browsers drop such cookies otherwise.
    """
    if not isinstance(value, str):
        raise ValidationError("cookie_samesite must be a string", field="cookie_samesite")

    normalized = value.strip().capitalize()
    if normalized not in CookieDefaults.SAMESITE_VALUES:
        raise ValidationError(
            f"Invalid cookie_samesite: '{value}'",
            field="cookie_samesite",
            details={"valid_values": list(CookieDefaults.SAMESITE_VALUES)}
        )

    if normalized == "None" and not secure:
        raise ValidationError(
            "cookie_samesite 'None' requires cookie_secure",
            field="cookie_samesite"
        )

    return normalized


def validate_position(position: Any) -> str:
    """Validate the banner position"""
    if position not in BannerDefaults.POSITIONS:
        raise ValidationError(
            f"Invalid position: '{position}'",
            field="position",
            details={"valid_positions": list(BannerDefaults.POSITIONS)}
        )
    return position


def validate_template(template: Any) -> str:
    """Validate the banner template name"""
    if template not in BannerDefaults.TEMPLATES:
        raise ValidationError(
            f"Invalid template: '{template}'",
            field="template",
            details={"valid_templates": list(BannerDefaults.TEMPLATES)}
        )
    return template


def validate_cookie_name(name: Any) -> str:
    """Validate the consent cookie name"""
    if not isinstance(name, str) or not COOKIE_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid cookie_name: '{name}'",
            field="cookie_name"
        )
    return name


def validate_expiry_days(
    days: Any,
    field_name: str = "cookie_expiry_days",
    min_days: int = 1,
    max_days: int = 3650
) -> Optional[int]:
    """
    Validate cookie expiry days.

    Raises:
        ValidationError: If validation fails
    """
    try:
        days_int = int(days)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)

    if days_int < min_days:
        raise ValidationError(
            f"{field_name} must be at least {min_days}",
            field=field_name
        )

    if days_int > max_days:
        raise ValidationError(
            f"{field_name} cannot exceed {max_days}",
            field=field_name
        )

    return days_int
