"""
Synchronous event dispatcher
Priority-ordered listeners, wildcard subscriptions and one-shot handlers
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TypeVar
import structlog

from ..constants import WILDCARD_EVENT
from .models import Event

logger = structlog.get_logger(__name__)

Listener = Callable[[Event], None]
E = TypeVar("E", bound=Event)


@dataclass(eq=False)
class _Registration:
    callback: Listener
    priority: int
    # The callback passed to on(), kept so off() can find once() wrappers
    original: Listener


class EventDispatcher:
    """
    Delivers events to subscribed callbacks in-process.

    Wildcard (``*``) listeners run before named ones; within each group
    higher priority runs first and equal priorities keep registration
    order. Listener exceptions propagate to the dispatcher's caller.
    """

    def __init__(self):
        self._listeners: Dict[str, List[_Registration]] = {}

    def on(self, event_name: str, callback: Listener, priority: int = 0) -> "EventDispatcher":
        self._add(event_name, _Registration(callback, priority, callback))
        return self

    def once(self, event_name: str, callback: Listener, priority: int = 0) -> "EventDispatcher":
        registration = _Registration(callback, priority, callback)

        def wrapper(event: Event) -> None:
            self._remove(event_name, registration)
            callback(event)

        registration.callback = wrapper
        self._add(event_name, registration)
        return self

    def off(self, event_name: str, callback: Optional[Listener] = None) -> "EventDispatcher":
        if callback is None:
            self._listeners.pop(event_name, None)
            return self
        registrations = self._listeners.get(event_name, [])
        self._listeners[event_name] = [
            r for r in registrations if r.original is not callback and r.callback is not callback
        ]
        if not self._listeners[event_name]:
            del self._listeners[event_name]
        return self

    def dispatch(self, event: E) -> E:
        """Deliver ``event``; returns it so callers can read listener changes"""
        for registration in self._ordered(event.name):
            if event.propagation_stopped:
                logger.debug("Event propagation stopped", event_name=event.name)
                break
            registration.callback(event)
        return event

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name)) or bool(self._listeners.get(WILDCARD_EVENT))

    def listeners(self, event_name: str) -> List[Listener]:
        return [registration.original for registration in self._ordered(event_name)]

    def event_names(self) -> List[str]:
        return [name for name in self._listeners if name != WILDCARD_EVENT]

    def clear(self) -> "EventDispatcher":
        self._listeners.clear()
        return self

    def _add(self, event_name: str, registration: _Registration) -> None:
        registrations = self._listeners.setdefault(event_name, [])
        registrations.append(registration)
        # Stable sort keeps registration order for equal priorities
        registrations.sort(key=lambda r: -r.priority)

    def _remove(self, event_name: str, registration: _Registration) -> None:
        registrations = self._listeners.get(event_name)
        if registrations and registration in registrations:
            registrations.remove(registration)
            if not registrations:
                del self._listeners[event_name]

    def _ordered(self, event_name: str) -> List[_Registration]:
        wildcard = list(self._listeners.get(WILDCARD_EVENT, []))
        if event_name == WILDCARD_EVENT:
            return wildcard
        return wildcard + list(self._listeners.get(event_name, []))
