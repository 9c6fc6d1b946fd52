"""
Event bus for consent, script gate, banner and client events
"""

from .models import Event, ConsentEvent, ScriptEvent, BannerEvent, ClientEvent
from .dispatcher import EventDispatcher
from .audit import ConsentAuditLog, AuditEntry

__all__ = [
    "Event",
    "ConsentEvent",
    "ScriptEvent",
    "BannerEvent",
    "ClientEvent",
    "EventDispatcher",
    "ConsentAuditLog",
    "AuditEntry",
]
