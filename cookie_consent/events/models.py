"""
Event models for the Cookie Consent module
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from ..constants import ConsentEventTypes, ScriptEventTypes
from ..consent.models import ConsentRecord


@dataclass
class Event:
    """Base event; listeners may halt delivery with stop_propagation()"""
    name: str
    propagation_stopped: bool = field(default=False, init=False, repr=False)

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


@dataclass
class ConsentEvent(Event):
    """Consent lifecycle event carrying the affected record"""
    record: Optional[ConsentRecord] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def consent_id(self) -> str:
        return self.record.consent_id

    @property
    def accepted_categories(self) -> List[str]:
        return list(self.record.accepted_categories)

    @property
    def rejected_categories(self) -> List[str]:
        return list(self.record.rejected_categories)

    @property
    def anonymized_ip(self) -> str:
        return self.record.anonymized_ip

    @property
    def proof(self) -> str:
        return self.record.proof

    def is_first_consent(self) -> bool:
        return self.name == ConsentEventTypes.GIVEN

    def is_update(self) -> bool:
        return self.name == ConsentEventTypes.UPDATED

    def is_withdrawn(self) -> bool:
        return self.name == ConsentEventTypes.WITHDRAWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.name,
            "consent_data": self.record.to_dict(),
            "additional_data": self.additional_data,
        }

    def to_log_dict(self) -> Dict[str, Any]:
        """Flat view for audit logging; the raw IP is replaced by its anonymised form"""
        record = self.record
        return {
            "event_type": self.name,
            "consent_id": record.consent_id,
            "accepted_categories": record.accepted_categories,
            "rejected_categories": record.rejected_categories,
            "timestamp": record.timestamp.isoformat(),
            "user_identifier": record.user_identifier,
            "ip_anonymized": record.anonymized_ip,
            "user_agent": record.user_agent,
            "page_url": record.page_url,
            "referrer": record.referrer,
            "consent_method": record.consent_method,
            "previous_consent_id": (record.previous_consent or {}).get("consent_id"),
            "consent_proof": record.proof,
            "metadata": record.metadata,
            "additional_data": self.additional_data,
        }


@dataclass
class ScriptEvent(Event):
    """Gate decision for a registered script"""
    script_id: str = ""
    category: str = ""
    provider: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def loaded(self) -> bool:
        return self.name == ScriptEventTypes.LOADED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "script_id": self.script_id,
            "category": self.category,
            "provider": self.provider,
            "metadata": self.metadata,
        }


@dataclass
class BannerEvent(Event):
    """Rendering hook; after-render listeners may replace ``html``"""
    data: Dict[str, Any] = field(default_factory=dict)
    html: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"event_name": self.name, "data": self.data}


@dataclass
class ClientEvent(Event):
    """Event dispatched by the browser-side agent"""
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.name, "detail": self.payload, "timestamp": self.timestamp.isoformat()}
