"""
Consent audit trail
Hash-chained record of consent lifecycle events
"""

import json
from collections import deque
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
import structlog

from ..constants import ConsentEventTypes, StorageDefaults
from ..crypto.hash import HashChain
from ..utils.ids import generate_trace_id
from .dispatcher import EventDispatcher
from .models import ConsentEvent

logger = structlog.get_logger(__name__)

AUDITED_EVENTS = (
    ConsentEventTypes.GIVEN,
    ConsentEventTypes.UPDATED,
    ConsentEventTypes.WITHDRAWN,
    ConsentEventTypes.EXPIRED,
)


class AuditEntry(BaseModel):
    """One link in the audit chain"""
    id: str
    event_type: str
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: Dict[str, Any] = Field(default_factory=dict)
    hash: Optional[str] = None

    def to_audit_string(self) -> str:
        """Canonical form fed into the hash chain"""
        audit_data = {
            "id": self.id,
            "event_type": self.event_type,
            "recorded_at": self.recorded_at.isoformat(),
            "data": self.data,
        }
        return json.dumps(audit_data, sort_keys=True, separators=(',', ':'), default=str)


class ConsentAuditLog:
    """
    In-memory audit subscriber for consent events.

    Keeps the newest ``max_entries`` entries; older ones are dropped from
    memory while the chain stays verifiable from the hash that preceded the
    oldest retained entry. Hosts needing a complete trail subscribe their own
    persistent sink to the same dispatcher.
    """

    def __init__(self, max_entries: int = StorageDefaults.AUDIT_MAX_ENTRIES):
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self.hash_chain = HashChain()
        self._base_hash = self.hash_chain.current_hash

    @property
    def entries(self) -> List[AuditEntry]:
        return list(self._entries)

    def attach(self, dispatcher: EventDispatcher, priority: int = -100) -> "ConsentAuditLog":
        """Subscribe to every consent lifecycle event on ``dispatcher``"""
        for event_name in AUDITED_EVENTS:
            dispatcher.on(event_name, self.record, priority)
        return self

    def record(self, event: ConsentEvent) -> AuditEntry:
        entry = AuditEntry(
            id=generate_trace_id(),
            event_type=event.name,
            data=event.to_log_dict(),
        )
        entry.hash = self.hash_chain.add_entry(entry.to_audit_string().encode("utf-8"))
        if len(self._entries) == self._entries.maxlen:
            self._base_hash = self._entries[0].hash
        self._entries.append(entry)

        logger.info("Consent audit entry recorded",
                    event_type=entry.event_type,
                    consent_id=entry.data.get("consent_id"),
                    chain_length=self.hash_chain.chain_length)
        return entry

    def verify(self) -> bool:
        """Re-hash every entry and compare against the chain head"""
        payloads = [entry.to_audit_string().encode("utf-8") for entry in self._entries]
        valid = HashChain.verify_chain(payloads, self.hash_chain.current_hash, self._base_hash)
        if not valid:
            logger.error("Consent audit chain verification failed", entries=len(self._entries))
        return valid

    def entries_for(self, consent_id: str) -> List[AuditEntry]:
        return [entry for entry in self.entries if entry.data.get("consent_id") == consent_id]
