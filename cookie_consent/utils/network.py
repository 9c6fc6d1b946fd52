"""
Network helpers for the Cookie Consent module
Client IP detection from proxy headers and IP anonymisation
"""

import ipaddress
from typing import Mapping, Optional

UNKNOWN_IP = "0.0.0.0"

# Checked in order; the first header holding a valid address wins
CLIENT_IP_HEADERS = (
    "cf-connecting-ip",
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
)


def is_valid_ip(value: str) -> bool:
    """Check whether a string is a valid IPv4 or IPv6 address"""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def detect_client_ip(headers: Mapping[str, str], remote_addr: Optional[str] = None) -> str:
    """
    Detect the client IP address from proxy headers.

    Args:
        headers: Request headers (lookups are lower-cased)
        remote_addr: Socket peer address used as the last resort

    Returns:
        First valid address found, or ``0.0.0.0``
    """
    normalized = {key.lower(): value for key, value in headers.items()}

    for header in CLIENT_IP_HEADERS:
        value = normalized.get(header)
        if not value:
            continue
        candidate = value.split(",")[0].strip()
        if is_valid_ip(candidate):
            return candidate

    if remote_addr and is_valid_ip(remote_addr):
        return remote_addr

    return UNKNOWN_IP


def anonymize_ip(ip: str) -> str:
    """
    Anonymise an IP address for logging.

    IPv4 addresses get their last octet zeroed; IPv6 addresses get their
    last group replaced by ``0000``. Anything else maps to ``0.0.0.0``.
    """
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return UNKNOWN_IP

    if address.version == 4:
        parts = ip.split(".")
        parts[3] = "0"
        return ".".join(parts)

    return ip[: ip.rfind(":") + 1] + "0000"
