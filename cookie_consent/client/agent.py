"""
Browser-side consent agent
Client half of the consent exchange: cookie jar, local records and API calls
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional
import httpx
import structlog
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from ..config import CookieSettings
from ..constants import ApiActions, ClientEventTypes, CookieDefaults, StorageDefaults
from ..exceptions import ConfigurationError
from ..consent.models import ConsentMethod, ConsentRecord, trim_history
from ..events.dispatcher import EventDispatcher
from ..events.models import ClientEvent
from ..storage.base import ConsentStorage
from ..storage.legacy import LegacyStorage
from ..blocker.client import ClientScriptBlocker, Executor
from ..blocker.page import PageDocument
from ..utils.ids import generate_consent_id

logger = structlog.get_logger(__name__)


class ClientSettings(BaseModel):
    """Client configuration as published by CookieBanner.javascript_config()"""
    cookie_name: str = CookieDefaults.NAME
    cookie_expiry: int = CookieDefaults.EXPIRY_DAYS
    cookie_path: str = CookieDefaults.PATH
    cookie_domain: str = ""
    cookie_secure: bool = True
    cookie_same_site: str = CookieDefaults.SAMESITE
    auto_block: bool = True
    blocking_mode: bool = False
    categories: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    blocker_patterns: List[Dict[str, Any]] = Field(default_factory=list)
    api_url: Optional[str] = None
    storage_mode: Literal["server", "local"] = "server"
    initial_consent: Optional[Dict[str, Any]] = None
    history_depth: int = StorageDefaults.HISTORY_DEPTH

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "extra": "ignore"}

    def cookie_settings(self) -> CookieSettings:
        return CookieSettings(
            name=self.cookie_name,
            expiry=self.cookie_expiry,
            path=self.cookie_path,
            domain=self.cookie_domain,
            secure=self.cookie_secure,
            samesite=self.cookie_same_site,
        )

    def category_keys(self) -> List[str]:
        return list(self.categories)

    def required_categories(self) -> List[str]:
        return [key for key, category in self.categories.items() if category.get("required")]


@dataclass
class ClientCookie:
    value: str
    expires_at: float
    path: str
    domain: str
    secure: bool
    samesite: str


class CookieJar:
    """Cookies as the browser holds them, with their write attributes"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._cookies: Dict[str, ClientCookie] = {}

    def set(self, value: str, settings: CookieSettings) -> None:
        self._cookies[settings.name] = ClientCookie(
            value=value,
            expires_at=self.clock() + settings.max_age_seconds,
            path=settings.path,
            domain=settings.domain,
            secure=settings.secure,
            samesite=settings.samesite,
        )

    def get(self, name: str) -> Optional[str]:
        cookie = self._cookies.get(name)
        if cookie is None:
            return None
        if cookie.expires_at <= self.clock():
            del self._cookies[name]
            return None
        return cookie.value

    def attributes(self, name: str) -> Optional[ClientCookie]:
        return self._cookies.get(name) if self.get(name) is not None else None

    def delete(self, name: str) -> None:
        self._cookies.pop(name, None)

    def header(self) -> str:
        names = [name for name in list(self._cookies) if self.get(name) is not None]
        return "; ".join(f"{name}={self._cookies[name].value}" for name in names)


class ConsentClient:
    """
    Visitor-side consent agent.

    In ``server`` mode every decision goes through the consent API and the
    returned record and token are adopted. In ``local`` mode the agent mints
    and stores its own record, then notifies the API when one is configured.
    """

    def __init__(
        self,
        settings: ClientSettings | Dict[str, Any],
        http: Optional[httpx.Client] = None,
        cookies: Optional[CookieJar] = None,
        local_storage: Optional[ConsentStorage] = None,
        document: Optional[PageDocument] = None,
        executor: Optional[Executor] = None,
        user_agent: str = "",
        page_url: str = "",
        referrer: str = "",
    ):
        if not isinstance(settings, ClientSettings):
            settings = ClientSettings.model_validate(settings)
        if settings.storage_mode == "server" and not settings.api_url:
            raise ConfigurationError("Server storage mode requires an API URL", setting="api_url")

        self.settings = settings
        self.http = http or httpx.Client()
        self.cookies = cookies or CookieJar()
        self.local_storage = local_storage or LegacyStorage()
        self.document = document
        self.user_agent = user_agent
        self.page_url = page_url
        self.referrer = referrer

        self.events = EventDispatcher()
        self.consent: Optional[Dict[str, Any]] = None
        self.token: Optional[str] = None
        self.banner_visible = False
        self.preferences_open = False
        self.initialized = False

        self.blocker: Optional[ClientScriptBlocker] = None
        if document is not None and settings.auto_block:
            self.blocker = ClientScriptBlocker(
                settings.blocker_patterns,
                self.has_consent_for,
                events=self.events,
                executor=executor,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> "ConsentClient":
        if self.initialized:
            return self

        self._load_consent()
        if self.blocker is not None:
            self.blocker.attach(self.document)

        self.initialized = True
        self._dispatch(ClientEventTypes.INIT, {"consent": self.consent})

        if self.has_consent():
            self._activate_consented()
        else:
            self.show_banner()
        return self

    def destroy(self) -> None:
        if self.blocker is not None:
            self.blocker.detach()
        self.initialized = False

    def _load_consent(self) -> None:
        cookie = self.cookies.get(self.settings.cookie_name)

        if self.settings.initial_consent:
            self.consent = dict(self.settings.initial_consent)
            self.token = cookie
            return

        if not cookie:
            self.consent = None
            self.token = None
            return

        self.token = cookie
        if self.settings.storage_mode == "server":
            self._fetch_consent()
            return

        record = self.local_storage.retrieve(cookie)
        if record is None:
            self.consent = None
            self.token = None
            return
        self.consent = record.to_dict()

    def _fetch_consent(self) -> None:
        result = self._send(ApiActions.GET_CONSENT, {})
        if not result or not result.get("success"):
            self.consent = None
            return
        summary = result.get("data") or {}
        if not summary.get("hasConsent"):
            self.consent = None
            return
        self.consent = {
            "consent_id": summary.get("consentId"),
            "accepted_categories": summary.get("accepted", []),
            "rejected_categories": summary.get("rejected", []),
            "timestamp": summary.get("timestamp"),
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_consent(self) -> bool:
        return self.consent is not None

    def has_consent_for(self, category: str) -> bool:
        if self.consent is None:
            return bool(self.settings.categories.get(category, {}).get("required", False))
        return category in self.consent.get("accepted_categories", [])

    def accepted_categories(self) -> List[str]:
        if self.consent is None:
            return self.settings.required_categories()
        return list(self.consent.get("accepted_categories", []))

    def rejected_categories(self) -> List[str]:
        if self.consent is None:
            return [key for key in self.settings.category_keys() if key not in self.settings.required_categories()]
        return list(self.consent.get("rejected_categories", []))

    def consent_proof(self) -> Optional[str]:
        if self.consent is None:
            return None
        return self.consent.get("consent_proof")

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def accept_all(self) -> Optional[Dict[str, Any]]:
        return self.grant(self.settings.category_keys(), ConsentMethod.ACCEPT_ALL.value)

    def reject_all(self) -> Optional[Dict[str, Any]]:
        return self.grant(self.settings.required_categories(), ConsentMethod.REJECT_ALL.value)

    def save_preferences(self, selected: List[str]) -> Optional[Dict[str, Any]]:
        return self.grant(selected, ConsentMethod.PREFERENCES.value)

    def grant(self, categories: List[str], method: str = ConsentMethod.BANNER.value) -> Optional[Dict[str, Any]]:
        """
        Record a decision.

        Returns the adopted consent snapshot, or None when the API rejected
        the call (state is then left as it was).
        """
        known = self.settings.category_keys()
        requested = set(categories) | set(self.settings.required_categories())
        accepted = [key for key in known if key in requested]
        rejected = [key for key in known if key not in requested]

        previous = self.consent
        is_first = previous is None
        request = {
            "categories": accepted,
            "method": method,
            "previous_consent": previous,
            "metadata": {
                "user_agent": self.user_agent,
                "page_url": self.page_url,
                "referrer": self.referrer,
                "is_update": not is_first,
            },
        }

        if self.settings.storage_mode == "server":
            result = self._send(ApiActions.GIVE_CONSENT, request)
            if not result or not result.get("success"):
                logger.warning("Consent API rejected decision, keeping previous state",
                               method=method)
                return None
            token = result.get("cookie")
            if token:
                self._save_cookie(token, CookieSettings.model_validate(result["cookieSettings"]))
            self.consent = result.get("data")
        else:
            record = ConsentRecord(
                consent_id=generate_consent_id(user_agent=self.user_agent),
                accepted_categories=accepted,
                rejected_categories=rejected,
                user_agent=self.user_agent,
                page_url=self.page_url,
                referrer=self.referrer,
                consent_method=method,
                previous_consent=trim_history(previous, self.settings.history_depth) if previous else None,
            )
            self._save_cookie(self.local_storage.store(record), self.settings.cookie_settings())
            self.consent = record.to_dict()
            if self.settings.api_url:
                self._send(ApiActions.GIVE_CONSENT, request)

        event_name = ClientEventTypes.CONSENT_GIVEN if is_first else ClientEventTypes.CONSENT_UPDATED
        self._dispatch(event_name, {
            "consent": self.consent,
            "acceptedCategories": accepted,
            "rejectedCategories": rejected,
            "method": method,
            "isFirstConsent": is_first,
        })
        for category in accepted:
            self._dispatch(ClientEventTypes.CATEGORY_ENABLED, {"category": category})
        for category in rejected:
            self._dispatch(ClientEventTypes.CATEGORY_DISABLED, {"category": category})

        self._activate_consented()
        self.hide_banner()
        self.close_preferences()
        return self.consent

    def withdraw(self) -> Optional[Dict[str, Any]]:
        """Withdraw consent; the API sees the old cookie and snapshot before they are cleared"""
        previous = self.consent
        if self.settings.api_url:
            self._send(ApiActions.WITHDRAW_CONSENT, {
                "previous_consent": previous,
                "metadata": {"previous_consent_id": (previous or {}).get("consent_id")},
            })

        self.consent = None
        self.token = None
        self.cookies.delete(self.settings.cookie_name)

        self._dispatch(ClientEventTypes.CONSENT_WITHDRAWN, {"previousConsent": previous})
        self.show_banner()
        return previous

    # ------------------------------------------------------------------
    # Banner state
    # ------------------------------------------------------------------

    def show_banner(self) -> None:
        self.banner_visible = True
        self._dispatch(ClientEventTypes.BANNER_SHOWN, {})

    def hide_banner(self) -> None:
        if self.banner_visible:
            self.banner_visible = False
            self._dispatch(ClientEventTypes.BANNER_HIDDEN, {})

    def open_preferences(self) -> None:
        self.preferences_open = True
        self._dispatch(ClientEventTypes.PREFERENCES_OPENED, {"accepted": self.accepted_categories()})

    def close_preferences(self) -> None:
        if self.preferences_open:
            self.preferences_open = False
            self._dispatch(ClientEventTypes.PREFERENCES_CLOSED, {})

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_name: str, callback: Callable[[ClientEvent], None], priority: int = 0) -> "ConsentClient":
        self.events.on(event_name, callback, priority)
        return self

    def off(self, event_name: str, callback: Optional[Callable[[ClientEvent], None]] = None) -> "ConsentClient":
        self.events.off(event_name, callback)
        return self

    def _dispatch(self, event_name: str, payload: Dict[str, Any]) -> ClientEvent:
        return self.events.dispatch(ClientEvent(event_name, payload=payload))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _activate_consented(self) -> None:
        if self.blocker is not None:
            self.blocker.activate_consented(self.accepted_categories())

    def _save_cookie(self, token: str, settings: CookieSettings) -> None:
        self.token = token
        self.cookies.set(token, settings)

    def _send(self, action: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        headers = {"Content-Type": "application/json"}
        cookie_header = self.cookies.header()
        if cookie_header:
            headers["Cookie"] = cookie_header
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        if self.page_url:
            headers["Referer"] = self.page_url

        try:
            response = self.http.post(self.settings.api_url, json={"action": action, **data}, headers=headers)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            logger.warning("Consent API request failed", action=action, error=str(e))
            self._dispatch(ClientEventTypes.API_ERROR, {"action": action, "error": str(e)})
            return None
        except (ValueError, RecursionError) as e:
            logger.warning("Consent API returned invalid JSON", action=action)
            self._dispatch(ClientEventTypes.API_ERROR, {"action": action, "error": str(e)})
            return None

        if result.get("success"):
            self._dispatch(ClientEventTypes.API_SUCCESS, {"action": action, "result": result})
        else:
            self._dispatch(ClientEventTypes.API_ERROR, {"action": action, "error": result.get("error")})
        return result
