"""
Client-side script blocker
Mirror of the server gate for scripts that appear after the page is served
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional
import structlog

from ..constants import ClientEventTypes, ScriptMarkers
from ..events.dispatcher import EventDispatcher
from ..events.models import ClientEvent
from .page import PageDocument, ScriptElement

logger = structlog.get_logger(__name__)

ConsentLookup = Callable[[str], bool]
Executor = Callable[[ScriptElement], None]


@dataclass
class BlockedScript:
    element: ScriptElement
    category: str


class ClientScriptBlocker:
    """
    Keeps unconsented scripts inert on a PageDocument.

    ``patterns`` uses the shape of ScriptGate.client_config()["patterns"].
    ``executor`` is called once for every element activated after consent.
    """

    def __init__(
        self,
        patterns: List[Dict[str, Any]],
        consent_lookup: ConsentLookup,
        events: Optional[EventDispatcher] = None,
        executor: Optional[Executor] = None,
        enabled: bool = True,
    ):
        self.patterns = [dict(pattern) for pattern in patterns]
        self.consent_lookup = consent_lookup
        self.events = events or EventDispatcher()
        self.executor = executor
        self.enabled = enabled

        self.document: Optional[PageDocument] = None
        self.blocked: List[BlockedScript] = []
        self.loaded: List[ScriptElement] = []

    @classmethod
    def from_config(cls, client_config: Dict[str, Any], consent_lookup: ConsentLookup, **kwargs: Any) -> "ClientScriptBlocker":
        return cls(
            client_config.get("patterns", []),
            consent_lookup,
            enabled=client_config.get("enabled", True),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach(self, document: PageDocument) -> None:
        """Process scripts already on the page, then watch for new ones"""
        if not self.enabled:
            return
        self.document = document
        for element in document:
            self.process_script(element)
        document.observe(self.process_script)
        document.intercept_src(self._intercept_src)

    def detach(self) -> None:
        if self.document is not None:
            self.document.disconnect(self.process_script)
            self.document.release_src(self._intercept_src)
            self.document = None

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    def detect_category(self, src: str) -> Optional[str]:
        lowered = src.lower()
        for pattern in self.patterns:
            if pattern["pattern"].lower() in lowered:
                return pattern["category"]
        return None

    def process_script(self, element: ScriptElement) -> None:
        """Gate one element; repeated calls for the same element do nothing"""
        if element.has_attribute(ScriptMarkers.PROCESSED):
            return
        element.attributes[ScriptMarkers.PROCESSED] = "true"

        category = element.category
        if category is not None:
            if self.consent_lookup(category):
                if element.is_inert:
                    self.activate_script(element)
            elif element.is_inert:
                self._track(element, category, element.get_attribute(ScriptMarkers.ORIGINAL_SRC))
            else:
                self.block_script(element, category)
            return

        if element.src:
            category = self.detect_category(element.src)
            if category and not self.consent_lookup(category):
                self.block_script(element, category)

    def block_script(self, element: ScriptElement, category: str) -> None:
        attributes = element.attributes
        original_type = attributes.get("type") or ScriptMarkers.DEFAULT_TYPE
        original_src = attributes.get("src")

        attributes["type"] = ScriptMarkers.INERT_TYPE
        attributes[ScriptMarkers.CATEGORY] = category
        attributes[ScriptMarkers.ORIGINAL_TYPE] = original_type
        if original_src is not None:
            attributes[ScriptMarkers.ORIGINAL_SRC] = original_src
            element.remove_attribute("src")

        self._track(element, category, original_src)

    def _intercept_src(self, element: ScriptElement, value: str) -> bool:
        category = self.detect_category(value)
        if not category or self.consent_lookup(category):
            return False

        attributes = element.attributes
        attributes[ScriptMarkers.ORIGINAL_TYPE] = attributes.get("type") or ScriptMarkers.DEFAULT_TYPE
        attributes["type"] = ScriptMarkers.INERT_TYPE
        attributes[ScriptMarkers.CATEGORY] = category
        attributes[ScriptMarkers.ORIGINAL_SRC] = value
        attributes[ScriptMarkers.PROCESSED] = "true"

        self._track(element, category, value)
        return True

    def _track(self, element: ScriptElement, category: str, src: Optional[str]) -> None:
        if any(blocked.element is element for blocked in self.blocked):
            return
        self.blocked.append(BlockedScript(element, category))
        logger.debug("Script blocked", category=category, src=src)
        self.events.dispatch(ClientEvent(ClientEventTypes.SCRIPT_BLOCKED, payload={
            "category": category,
            "src": src,
            "script_id": element.get_attribute(ScriptMarkers.SCRIPT_ID),
        }))

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate_consented(self, accepted: Iterable[str]) -> int:
        """Activate every blocked or inert script whose category is now accepted"""
        accepted = set(accepted)
        activated = 0

        still_blocked = []
        for blocked in self.blocked:
            if blocked.category in accepted:
                self.activate_script(blocked.element)
                activated += 1
            else:
                still_blocked.append(blocked)
        self.blocked = still_blocked

        if self.document is not None:
            placeholders = self.document.query(
                lambda el: el.is_inert and el.category in accepted
            )
            for element in placeholders:
                self.activate_script(element)
                activated += 1

        return activated

    def activate_script(self, element: ScriptElement) -> ScriptElement:
        """Replace a placeholder with a fresh executable element"""
        category = element.category
        attributes: Dict[str, Optional[str]] = {
            "type": element.get_attribute(ScriptMarkers.ORIGINAL_TYPE) or ScriptMarkers.DEFAULT_TYPE,
        }
        for name, value in element.attributes.items():
            if name == "type" or name.startswith(ScriptMarkers.PREFIX):
                continue
            attributes[name] = value

        original_src = element.get_attribute(ScriptMarkers.ORIGINAL_SRC)
        if original_src is not None:
            attributes["src"] = original_src
        fresh = ScriptElement(attributes, "" if attributes.get("src") else element.text)

        self.blocked = [blocked for blocked in self.blocked if blocked.element is not element]
        if element.document is not None:
            element.document.replace(element, fresh)

        self.loaded.append(fresh)
        if self.executor is not None:
            self.executor(fresh)

        logger.debug("Script activated", category=category, src=attributes.get("src"))
        self.events.dispatch(ClientEvent(ClientEventTypes.SCRIPT_LOADED, payload={
            "category": category,
            "src": attributes.get("src"),
        }))
        return fresh
