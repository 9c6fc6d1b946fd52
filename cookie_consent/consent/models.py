"""
Consent data models for the Cookie Consent module
Immutable consent records and the per-request context they are captured from
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional, Dict, Any, Iterable
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
import structlog

from ..crypto.hash import create_data_fingerprint, hash_string
from ..utils.ids import generate_consent_id
from ..utils.network import anonymize_ip, UNKNOWN_IP

logger = structlog.get_logger(__name__)

# Keys produced by to_dict() that are derived, not stored
DERIVED_KEYS = ("ip_anonymized", "consent_proof")


class ConsentMethod(str, Enum):
    """How a consent decision was made"""
    ACCEPT_ALL = "accept_all"
    REJECT_ALL = "reject_all"
    BANNER = "banner"
    PREFERENCES = "preferences"
    API = "api"
    WITHDRAW = "withdraw"


@dataclass
class RequestContext:
    """
    Request-scoped inputs captured at consent time.

    Built by the host integration layer; the consent core never reads
    request globals itself.
    """
    ip_address: str = UNKNOWN_IP
    user_agent: str = ""
    page_url: str = ""
    referrer: str = ""
    do_not_track: bool = False
    cookies: Dict[str, str] = field(default_factory=dict)
    server_name: str = "localhost"


class ConsentRecord(BaseModel):
    """One immutable consent decision"""
    consent_id: str = Field(default_factory=generate_consent_id)
    accepted_categories: List[str] = Field(default_factory=list)
    rejected_categories: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    user_identifier: Optional[str] = Field(default=None, description="Caller-supplied account reference")

    # Captured at creation
    ip_address: str = Field(default=UNKNOWN_IP)
    user_agent: str = Field(default="")
    page_url: str = Field(default="")
    referrer: str = Field(default="")

    consent_method: str = Field(default=ConsentMethod.BANNER.value)
    previous_consent: Optional[Dict[str, Any]] = Field(default=None, description="Snapshot of the superseded record")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator("accepted_categories", "rejected_categories")
    @classmethod
    def _unique_ordered(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_validator("consent_method", mode="before")
    @classmethod
    def _method_value(cls, value: Any) -> Any:
        if isinstance(value, ConsentMethod):
            return value.value
        return value

    # ------------------------------------------------------------------
    # Derived accessors
    # ------------------------------------------------------------------

    @property
    def anonymized_ip(self) -> str:
        return anonymize_ip(self.ip_address)

    def proof_payload(self) -> Dict[str, Any]:
        """Commitment inputs; raw IP and user agent only appear hashed"""
        return {
            "consent_id": self.consent_id,
            "timestamp": self.timestamp.isoformat(),
            "accepted": self.accepted_categories,
            "rejected": self.rejected_categories,
            "ip_hash": hash_string(self.ip_address),
            "ua_hash": hash_string(self.user_agent),
        }

    @property
    def proof(self) -> str:
        return create_data_fingerprint(self.proof_payload())

    def has_category(self, category: str) -> bool:
        return category in self.accepted_categories

    def is_all_accepted(self) -> bool:
        return not self.rejected_categories

    def is_all_rejected(self, required: Iterable[str]) -> bool:
        required_set = set(required)
        return all(category in required_set for category in self.accepted_categories)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["ip_anonymized"] = self.anonymized_ip
        data["consent_proof"] = self.proof
        return data

    def snapshot(self, depth: int = 3) -> Dict[str, Any]:
        """to_dict() with the embedded history trimmed to ``depth`` levels"""
        return trim_history(self.to_dict(), depth)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsentRecord":
        values = {key: value for key, value in data.items() if key not in DERIVED_KEYS}
        return cls.model_validate(values)


class ConsentSummary(BaseModel):
    """Client-facing view of the current consent state"""
    hasConsent: bool
    accepted: List[str]
    rejected: List[str]
    consentId: Optional[str] = None
    timestamp: Optional[str] = None


def trim_history(snapshot: Dict[str, Any], depth: int) -> Dict[str, Any]:
    """Cut nested previous_consent snapshots below ``depth`` levels"""
    trimmed = dict(snapshot)
    previous = trimmed.get("previous_consent")
    if isinstance(previous, dict):
        trimmed["previous_consent"] = trim_history(previous, depth - 1) if depth > 1 else None
    return trimmed


def parse_record(data: Any) -> Optional[ConsentRecord]:
    """
    Validate an untrusted snapshot into a record.

    Returns None for anything that is not a well-formed record.
    """
    if not isinstance(data, dict):
        return None
    try:
        return ConsentRecord.from_dict(data)
    except PydanticValidationError as exc:
        logger.warning("Discarding malformed consent snapshot", errors=exc.error_count())
        return None
