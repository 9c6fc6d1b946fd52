"""
Cookie banner facade
Wires configuration, storage, consent state, script gating and events
"""

from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Protocol, runtime_checkable
import structlog

from .config import BannerConfig, CategoryDefinition, get_banner_config
from .constants import BannerEventTypes
from .exceptions import ConfigurationError
from .consent.api import ConsentApiHandler
from .consent.manager import ConsentStateManager
from .consent.models import ConsentMethod, ConsentRecord, RequestContext
from .events.dispatcher import EventDispatcher, Listener
from .events.models import BannerEvent
from .storage.base import ConsentStorage
from .storage.factory import build_storage
from .blocker.gate import ScriptGate

logger = structlog.get_logger(__name__)


@runtime_checkable
class BannerRenderer(Protocol):
    """Produces banner markup; templates live outside this package"""

    def render(
        self,
        categories: Dict[str, CategoryDefinition],
        translations: Dict[str, str],
        consent_summary: Dict[str, Any],
    ) -> str: ...


@runtime_checkable
class Translator(Protocol):
    def translate(self, key: str, fallback: str = "") -> str: ...

    def all(self) -> Dict[str, str]: ...


class DictTranslator:
    """Translator backed by a plain mapping"""

    def __init__(self, translations: Optional[Mapping[str, str]] = None):
        self._translations = dict(translations or {})

    def translate(self, key: str, fallback: str = "") -> str:
        return self._translations.get(key, fallback or key)

    def all(self) -> Dict[str, str]:
        return dict(self._translations)


class CookieBanner:
    """Per-request entry point for a host application"""

    def __init__(
        self,
        config: Optional[BannerConfig] = None,
        storage: Optional[ConsentStorage] = None,
        context: Optional[RequestContext] = None,
        renderer: Optional[BannerRenderer] = None,
        translator: Optional[Translator] = None,
        events: Optional[EventDispatcher] = None,
        user_identifier: Optional[str] = None,
        session: Optional[MutableMapping[str, Any]] = None,
        callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
    ):
        config = config or get_banner_config()
        if config.blocking_mode and "template" not in config.model_fields_set:
            config = config.model_copy(update={"template": "blocking"})

        self.config = config
        self.context = context or RequestContext()
        self.events = events or EventDispatcher()
        self.storage = storage or build_storage(config, session, callbacks, self.context.server_name)
        self.renderer = renderer
        self.translator = translator or DictTranslator()

        self.manager = ConsentStateManager(config, self.storage, self.events, self.context, user_identifier)
        self.gate = ScriptGate(config, self.manager, self.events)
        self.api = ConsentApiHandler(self.manager)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_name: str, callback: Listener, priority: int = 0) -> "CookieBanner":
        self.events.on(event_name, callback, priority)
        return self

    def off(self, event_name: str, callback: Optional[Listener] = None) -> "CookieBanner":
        self.events.off(event_name, callback)
        return self

    def once(self, event_name: str, callback: Listener, priority: int = 0) -> "CookieBanner":
        self.events.once(event_name, callback, priority)
        return self

    # ------------------------------------------------------------------
    # Consent shortcuts
    # ------------------------------------------------------------------

    @property
    def consent(self) -> Optional[ConsentRecord]:
        return self.manager.record

    @property
    def user_identifier(self) -> Optional[str]:
        return self.manager.user_identifier

    @user_identifier.setter
    def user_identifier(self, value: Optional[str]) -> None:
        self.manager.user_identifier = value

    def has_consent(self) -> bool:
        return self.manager.has_consent()

    def has_consent_for(self, category: str) -> bool:
        return self.manager.has_consent_for(category)

    def grant(self, categories: List[str], method: str = ConsentMethod.API) -> ConsentRecord:
        return self.manager.grant(categories, method)

    def accept_all(self, method: str = ConsentMethod.API) -> ConsentRecord:
        return self.manager.accept_all(method)

    def reject_all(self, method: str = ConsentMethod.API) -> ConsentRecord:
        return self.manager.reject_all(method)

    def withdraw(self, metadata: Optional[Dict[str, Any]] = None) -> Optional[ConsentRecord]:
        return self.manager.withdraw(metadata)

    def should_show_banner(self) -> bool:
        return self.manager.should_show_banner()

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def register_script(
        self,
        script_id: str,
        category: str,
        content: str,
        provider: Optional[str] = None,
        attributes: Optional[Dict[str, Optional[str]]] = None,
    ) -> "CookieBanner":
        self.gate.register_script(script_id, category, content, provider, attributes)
        return self

    def register_provider(self, name: str, category: str, patterns: List[str]) -> "CookieBanner":
        self.gate.register_provider(name, category, patterns)
        return self

    def render_script(self, script_id: str) -> str:
        return self.gate.render_script(script_id)

    def render_all_scripts(self) -> str:
        return self.gate.render_all()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> str:
        """
        Render the banner through the configured renderer.

        ``banner.after_render`` listeners may replace the produced html.
        """
        if self.renderer is None:
            raise ConfigurationError("No banner renderer configured", setting="renderer")

        translations = self.translator.all()
        summary = self.manager.summary()
        self.events.dispatch(BannerEvent(BannerEventTypes.BEFORE_RENDER, data={
            **self.presentation(),
            "translations": translations,
            "consent": summary,
        }))

        html = self.renderer.render(self.config.categories, translations, summary)

        after = self.events.dispatch(BannerEvent(BannerEventTypes.AFTER_RENDER, html=html))
        return after.html if after.html is not None else html

    def presentation(self) -> Dict[str, Any]:
        """Display settings handed to renderers and the client agent"""
        config = self.config
        return {
            "template": config.template,
            "position": config.position,
            "language": config.language,
            "privacyPolicyUrl": config.privacy_policy_url,
            "cookiePolicyUrl": config.cookie_policy_url,
            "showPreferencesButton": config.show_preferences_button,
            "blockingMessage": config.blocking_message,
        }

    def javascript_config(self) -> Dict[str, Any]:
        """Settings for the visitor-side agent (see client.ClientSettings)"""
        config = self.config
        record = self.manager.record
        return {
            "cookieName": config.cookie_name,
            "cookieExpiry": config.cookie_expiry_days,
            "cookiePath": config.cookie_path,
            "cookieDomain": config.cookie_domain,
            "cookieSecure": config.cookie_secure,
            "cookieSameSite": config.cookie_samesite,
            "autoBlock": config.auto_block,
            "blockingMode": config.blocking_mode,
            "categories": {
                key: definition.model_dump(exclude={"key"})
                for key, definition in config.categories.items()
            },
            "blockerPatterns": self.gate.client_config()["patterns"],
            "consent": self.manager.summary(),
            "showBanner": self.should_show_banner(),
            "apiUrl": config.api_url,
            "storageMode": "server" if config.api_url else "local",
            "initialConsent": record.to_dict() if record else None,
            "historyDepth": config.history_depth,
            **self.presentation(),
        }

    def handle_api_request(self, payload: Any) -> Dict[str, Any]:
        return self.api.handle(payload)
