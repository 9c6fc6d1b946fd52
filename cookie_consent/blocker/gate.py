"""
Server-side script gate
Decides per script whether it renders executable or as an inert placeholder
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import structlog

from ..config import BannerConfig
from ..constants import DEFAULT_PROVIDERS, ScriptEventTypes
from ..consent.manager import ConsentStateManager
from ..events.dispatcher import EventDispatcher
from ..events.models import ScriptEvent
from ..utils.validators import validate_known_category
from .markup import KIND_RAW, block_script, detect_kind, wrap_raw

logger = structlog.get_logger(__name__)


@dataclass
class Provider:
    """Known third-party script source"""
    name: str
    category: str
    patterns: List[str] = field(default_factory=list)
    enabled: bool = True

    def matches(self, url: str) -> bool:
        lowered = url.lower()
        return any(pattern.lower() in lowered for pattern in self.patterns)


@dataclass
class RegisteredScript:
    id: str
    category: str
    content: str
    provider: Optional[str] = None
    attributes: Dict[str, Optional[str]] = field(default_factory=dict)
    kind: str = KIND_RAW


class ScriptGate:
    """Consent-aware rendering of registered and provider-matched scripts"""

    def __init__(self, config: BannerConfig, manager: ConsentStateManager, events: EventDispatcher):
        self.config = config
        self.manager = manager
        self.events = events
        self._providers: Dict[str, Provider] = {}
        self._scripts: Dict[str, RegisteredScript] = {}

        known = config.category_keys()
        for name, definition in DEFAULT_PROVIDERS.items():
            if definition["category"] not in known:
                logger.debug("Skipping provider for unconfigured category",
                             provider=name, category=definition["category"])
                continue
            self._providers[name] = Provider(name, definition["category"], list(definition["patterns"]))

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def register_provider(self, name: str, category: str, patterns: List[str], enabled: bool = True) -> "ScriptGate":
        validate_known_category(category, self.config.category_keys())
        self._providers[name] = Provider(name, category, list(patterns), enabled)
        return self

    def unregister_provider(self, name: str) -> "ScriptGate":
        self._providers.pop(name, None)
        return self

    @property
    def providers(self) -> Dict[str, Provider]:
        return dict(self._providers)

    def provider(self, name: str) -> Optional[Provider]:
        return self._providers.get(name)

    def _match(self, url: str, enabled_only: bool) -> Optional[Provider]:
        for provider in self._providers.values():
            if enabled_only and not provider.enabled:
                continue
            if provider.matches(url):
                return provider
        return None

    def should_block(self, url: str) -> bool:
        if not self.config.auto_block:
            return False
        provider = self._match(url, enabled_only=True)
        if provider is None:
            return False
        return not self.manager.has_consent_for(provider.category)

    def category_for_url(self, url: str) -> Optional[str]:
        provider = self._match(url, enabled_only=False)
        return provider.category if provider else None

    # ------------------------------------------------------------------
    # Registered scripts
    # ------------------------------------------------------------------

    def register_script(
        self,
        script_id: str,
        category: str,
        content: str,
        provider: Optional[str] = None,
        attributes: Optional[Dict[str, Optional[str]]] = None,
    ) -> "ScriptGate":
        """
        Register a script under a category.

        ``content`` is either full <script> markup or bare JavaScript; bare
        code is wrapped in a script element carrying ``attributes``.

        Raises:
            InvalidCategoryError: If the category is not configured
        """
        validate_known_category(category, self.config.category_keys())
        kind = detect_kind(content)
        if kind == KIND_RAW:
            content = wrap_raw(content, attributes)

        self._scripts[script_id] = RegisteredScript(
            id=script_id,
            category=category,
            content=content,
            provider=provider,
            attributes=dict(attributes or {}),
            kind=kind,
        )
        return self

    def unregister_script(self, script_id: str) -> "ScriptGate":
        self._scripts.pop(script_id, None)
        return self

    @property
    def registered_scripts(self) -> Dict[str, RegisteredScript]:
        return dict(self._scripts)

    def render_script(self, script_id: str) -> str:
        script = self._scripts.get(script_id)
        if script is None:
            return ""

        metadata = {"kind": script.kind}
        if self.manager.has_consent_for(script.category):
            self.events.dispatch(ScriptEvent(
                ScriptEventTypes.LOADED,
                script_id=script.id,
                category=script.category,
                provider=script.provider or "",
                metadata=metadata,
            ))
            return script.content

        self.events.dispatch(ScriptEvent(
            ScriptEventTypes.BLOCKED,
            script_id=script.id,
            category=script.category,
            provider=script.provider or "",
            metadata=metadata,
        ))
        return block_script(script.content, script.category, script.id)

    def render_all(self) -> str:
        return "".join(self.render_script(script_id) for script_id in list(self._scripts))

    def render_category(self, category: str) -> str:
        return "".join(
            self.render_script(script_id)
            for script_id, script in list(self._scripts.items())
            if script.category == category
        )

    def client_config(self) -> Dict[str, Any]:
        """Blocker configuration handed to the client-side mirror"""
        patterns = [
            {"pattern": pattern, "category": provider.category, "provider": name}
            for name, provider in self._providers.items()
            if provider.enabled
            for pattern in provider.patterns
        ]
        return {
            "enabled": self.config.auto_block,
            "patterns": patterns,
            "registeredScripts": [
                {"id": script.id, "category": script.category, "provider": script.provider}
                for script in self._scripts.values()
            ],
        }
