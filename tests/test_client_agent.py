"""Tests for the visitor-side consent agent talking to the consent API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from cookie_consent.blocker import PageDocument, ScriptElement
from cookie_consent.client import ClientSettings, ConsentClient, CookieJar
from cookie_consent.config import load_banner_config
from cookie_consent.constants import ClientEventTypes, ConsentEventTypes
from cookie_consent.consent.models import ConsentRecord
from cookie_consent.events import ClientEvent, ConsentAuditLog, EventDispatcher
from cookie_consent.exceptions import ConfigurationError, StorageBackendError
from cookie_consent.main import app
from cookie_consent.storage import LegacyStorage, NullStorage
import cookie_consent.main as main_mod


client = TestClient(app)
failing_client = TestClient(app, raise_server_exceptions=False)

SECRET = "agent-secret"
API_URL = "http://testserver/consent"
GA_SRC = "https://www.google-analytics.com/analytics.js"


class OfflineStorage:
    self_contained = False

    def store(self, record: ConsentRecord) -> str:
        raise StorageBackendError("store", "test", reason="offline")

    def retrieve(self, token: str) -> Optional[ConsentRecord]:
        return None

    def delete(self, token: str) -> bool:
        return False

    def exists(self, token: str) -> bool:
        return False

    def update(self, token: str, record: ConsentRecord) -> bool:
        return False

    def generate_token(self) -> str:
        return ""


class AgentTestBase:
    storage_mode = "server"

    def setup_method(self) -> None:
        self.saved = (main_mod.banner_config, main_mod.consent_storage, main_mod.event_dispatcher, main_mod.audit_log)
        main_mod.banner_config = load_banner_config(storage_secret=SECRET, api_url=API_URL)
        main_mod.consent_storage = NullStorage(SECRET)
        main_mod.event_dispatcher = EventDispatcher()
        main_mod.audit_log = ConsentAuditLog().attach(main_mod.event_dispatcher)

        self.config = client.get("/consent/config").json()
        self.client_events: List[ClientEvent] = []

    def teardown_method(self) -> None:
        main_mod.banner_config, main_mod.consent_storage, main_mod.event_dispatcher, main_mod.audit_log = self.saved

    def _agent(self, cookies: Optional[CookieJar] = None, http: Any = None, **overrides: Any) -> ConsentClient:
        settings: Dict[str, Any] = {**self.config, "storageMode": self.storage_mode, **overrides}
        agent = ConsentClient(
            settings,
            http=http or client,
            cookies=cookies or CookieJar(),
            user_agent="agent-test",
            page_url="http://testserver/shop",
        )
        agent.on("*", self.client_events.append)
        return agent

    def _event_names(self) -> List[str]:
        return [event.name for event in self.client_events]

    def _audit_types(self) -> List[str]:
        return [entry.event_type for entry in main_mod.audit_log.entries]


class TestServerModeAgent(AgentTestBase):
    def test_server_mode_requires_api_url(self) -> None:
        with pytest.raises(ConfigurationError):
            ConsentClient({"storageMode": "server"})

    def test_reject_all(self) -> None:
        agent = self._agent().init()
        assert agent.banner_visible

        consent = agent.reject_all()

        assert consent is not None
        assert consent["accepted_categories"] == ["necessary"]
        assert consent["consent_method"] == "reject_all"
        assert agent.cookies.get("cc_consent") == agent.token
        assert not agent.banner_visible
        assert not agent.has_consent_for("analytics")
        assert ClientEventTypes.CONSENT_GIVEN in self._event_names()
        assert self._event_names().count(ClientEventTypes.CATEGORY_DISABLED) == 4

        entries = main_mod.audit_log.entries
        assert self._audit_types() == [ConsentEventTypes.GIVEN]
        assert entries[0].data["consent_id"] == consent["consent_id"]

    def test_consent_is_restored_from_cookie(self) -> None:
        cookies = CookieJar()
        first = self._agent(cookies=cookies).init()
        consent = first.save_preferences(["analytics"])

        second = self._agent(cookies=cookies).init()

        assert second.has_consent()
        assert second.consent["consent_id"] == consent["consent_id"]
        assert second.has_consent_for("analytics")
        assert not second.banner_visible

    def test_update_links_previous_consent(self) -> None:
        agent = self._agent().init()
        first = agent.accept_all()

        second = agent.save_preferences(["analytics"])

        assert second["previous_consent"]["consent_id"] == first["consent_id"]
        assert ClientEventTypes.CONSENT_UPDATED in self._event_names()
        assert self._audit_types() == [ConsentEventTypes.GIVEN, ConsentEventTypes.UPDATED]

    def test_accept_all_then_withdraw(self) -> None:
        agent = self._agent().init()
        consent = agent.accept_all()

        previous = agent.withdraw()

        assert previous["consent_id"] == consent["consent_id"]
        assert not agent.has_consent()
        assert agent.cookies.get("cc_consent") is None
        assert agent.banner_visible
        assert self._event_names()[-2:] == [ClientEventTypes.CONSENT_WITHDRAWN, ClientEventTypes.BANNER_SHOWN]

        entries = main_mod.audit_log.entries
        assert self._audit_types() == [ConsentEventTypes.GIVEN, ConsentEventTypes.WITHDRAWN]
        assert entries[1].data["consent_id"] == consent["consent_id"]

    def test_initial_consent_skips_fetch(self) -> None:
        cookies = CookieJar()
        self._agent(cookies=cookies).init().accept_all()
        config = client.get(
            "/consent/config",
            headers={"Cookie": f"cc_consent={cookies.get('cc_consent')}"},
        ).json()

        agent = ConsentClient(config, http=client, cookies=cookies).init()

        assert agent.consent == config["initialConsent"]
        assert agent.consent_proof() == config["initialConsent"]["consent_proof"]

    def test_api_failure_keeps_previous_state(self) -> None:
        main_mod.consent_storage = OfflineStorage()
        agent = self._agent(http=failing_client).init()

        assert agent.accept_all() is None

        assert not agent.has_consent()
        assert agent.cookies.get("cc_consent") is None
        assert self._event_names()[-1] == ClientEventTypes.API_ERROR
        assert ClientEventTypes.CONSENT_GIVEN not in self._event_names()

    def test_scripts_activate_after_consent(self) -> None:
        document = PageDocument.from_html(f'<script src="{GA_SRC}"></script>')
        executed: List[ScriptElement] = []
        settings = ClientSettings.model_validate(self.config)
        agent = ConsentClient(
            settings,
            http=client,
            document=document,
            executor=executed.append,
        ).init()

        assert list(document)[0].is_inert

        agent.save_preferences(["analytics"])

        assert len(executed) == 1
        assert executed[0].src == GA_SRC


class TestLocalModeAgent(AgentTestBase):
    storage_mode = "local"

    def test_local_record_is_kept_in_cookie(self) -> None:
        agent = self._agent().init()

        consent = agent.accept_all()

        stored = LegacyStorage().retrieve(agent.cookies.get("cc_consent"))
        assert stored is not None
        assert stored.consent_id == consent["consent_id"]
        assert stored.user_agent == "agent-test"

    def test_local_decision_notifies_api(self) -> None:
        agent = self._agent().init()

        consent = agent.reject_all()

        entries = main_mod.audit_log.entries
        assert self._audit_types() == [ConsentEventTypes.GIVEN]
        assert entries[0].data["accepted_categories"] == consent["accepted_categories"]
        # Each writer mints its own identifier
        assert entries[0].data["consent_id"] != consent["consent_id"]
        assert ClientEventTypes.API_SUCCESS in self._event_names()

    def test_local_mode_without_api(self) -> None:
        agent = self._agent(apiUrl=None).init()

        agent.accept_all()

        assert agent.has_consent()
        assert main_mod.audit_log.entries == []
        assert ClientEventTypes.API_SUCCESS not in self._event_names()

    def test_local_consent_is_reloaded(self) -> None:
        cookies = CookieJar()
        consent = self._agent(cookies=cookies, apiUrl=None).init().save_preferences(["marketing"])

        agent = self._agent(cookies=cookies, apiUrl=None).init()

        assert agent.consent["consent_id"] == consent["consent_id"]
        assert agent.has_consent_for("marketing")

    def test_withdraw_sends_client_snapshot(self) -> None:
        agent = self._agent().init()
        consent = agent.accept_all()

        agent.withdraw()

        withdrawn = main_mod.audit_log.entries[-1]
        assert withdrawn.event_type == ConsentEventTypes.WITHDRAWN
        assert withdrawn.data["consent_id"] == consent["consent_id"]
        assert agent.cookies.get("cc_consent") is None

    def test_history_is_trimmed(self) -> None:
        agent = self._agent(apiUrl=None, historyDepth=1).init()
        agent.accept_all()
        agent.reject_all()

        consent = agent.save_preferences(["analytics"])

        assert consent["previous_consent"] is not None
        assert consent["previous_consent"]["previous_consent"] is None

    def test_banner_and_preferences_events(self) -> None:
        agent = self._agent(apiUrl=None).init()
        assert ClientEventTypes.BANNER_SHOWN in self._event_names()

        agent.open_preferences()
        agent.close_preferences()
        agent.close_preferences()
        agent.hide_banner()

        names = self._event_names()
        assert names.count(ClientEventTypes.PREFERENCES_OPENED) == 1
        assert names.count(ClientEventTypes.PREFERENCES_CLOSED) == 1
        assert names[-1] == ClientEventTypes.BANNER_HIDDEN
        assert not agent.banner_visible


class TestCookieJar:
    def test_cookie_expires(self) -> None:
        now = [1000.0]
        jar = CookieJar(clock=lambda: now[0])
        settings = ClientSettings(cookie_expiry=1).cookie_settings()

        jar.set("token", settings)
        assert jar.get("cc_consent") == "token"
        assert jar.header() == "cc_consent=token"

        now[0] += 86401
        assert jar.get("cc_consent") is None
        assert jar.header() == ""
