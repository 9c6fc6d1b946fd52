"""Tests for the page model and the client-side script blocker."""

from __future__ import annotations

from typing import List, Set

from cookie_consent.blocker import ClientScriptBlocker, PageDocument, ScriptElement, block_script
from cookie_consent.constants import ClientEventTypes, ScriptMarkers
from cookie_consent.events import ClientEvent, EventDispatcher


PATTERNS = [
    {"pattern": "google-analytics.com/analytics.js", "category": "analytics", "provider": "google_analytics"},
    {"pattern": "connect.facebook.net", "category": "advertising", "provider": "facebook_pixel"},
]

GA_SRC = "https://www.google-analytics.com/analytics.js"
FB_SRC = "https://connect.facebook.net/en_US/fbevents.js"


class TestClientScriptBlocker:
    def setup_method(self) -> None:
        self.accepted: Set[str] = {"necessary"}
        self.executed: List[ScriptElement] = []
        self.events = EventDispatcher()
        self.client_events: List[ClientEvent] = []
        self.events.on("*", self.client_events.append)
        self.blocker = ClientScriptBlocker(
            PATTERNS,
            lambda category: category in self.accepted,
            events=self.events,
            executor=self.executed.append,
        )

    def _event_names(self) -> List[str]:
        return [event.name for event in self.client_events]

    def test_existing_scripts_are_blocked_on_attach(self) -> None:
        document = PageDocument.from_html(
            f'<script src="{GA_SRC}"></script><script src="https://cdn.example.com/app.js"></script>'
        )

        self.blocker.attach(document)

        tracker, app = list(document)
        assert tracker.is_inert
        assert tracker.src is None
        assert tracker.get_attribute(ScriptMarkers.ORIGINAL_SRC) == GA_SRC
        assert tracker.category == "analytics"
        assert not app.is_inert
        assert self._event_names() == [ClientEventTypes.SCRIPT_BLOCKED]

    def test_inserted_scripts_are_blocked(self) -> None:
        document = PageDocument()
        self.blocker.attach(document)

        element = document.append(ScriptElement({"src": FB_SRC}))

        assert element.is_inert
        assert element.category == "advertising"
        assert len(self.blocker.blocked) == 1

    def test_src_assignment_is_intercepted(self) -> None:
        document = PageDocument()
        self.blocker.attach(document)
        element = document.append(ScriptElement())

        element.src = GA_SRC

        assert element.src is None
        assert element.is_inert
        assert element.get_attribute(ScriptMarkers.ORIGINAL_SRC) == GA_SRC
        assert element.get_attribute(ScriptMarkers.ORIGINAL_TYPE) == ScriptMarkers.DEFAULT_TYPE

    def test_consented_src_assignment_passes_through(self) -> None:
        self.accepted.add("analytics")
        document = PageDocument()
        self.blocker.attach(document)
        element = document.append(ScriptElement())

        element.src = GA_SRC

        assert element.src == GA_SRC
        assert not element.is_inert

    def test_processing_is_idempotent(self) -> None:
        document = PageDocument()
        self.blocker.attach(document)
        element = document.append(ScriptElement({"src": GA_SRC}))

        self.blocker.process_script(element)
        self.blocker.process_script(element)

        assert len(self.blocker.blocked) == 1
        assert self._event_names().count(ClientEventTypes.SCRIPT_BLOCKED) == 1

    def test_activation_after_consent(self) -> None:
        document = PageDocument.from_html(f'<script src="{GA_SRC}" async></script><script src="{FB_SRC}"></script>')
        self.blocker.attach(document)

        self.accepted.add("analytics")
        activated = self.blocker.activate_consented(self.accepted)

        assert activated == 1
        assert len(self.executed) == 1
        fresh = self.executed[0]
        assert fresh.src == GA_SRC
        assert fresh.type == ScriptMarkers.DEFAULT_TYPE
        assert fresh.has_attribute("async")
        assert not any(name.startswith(ScriptMarkers.PREFIX) and name != ScriptMarkers.PROCESSED
                       for name in fresh.attributes)
        assert list(document)[0] is fresh
        assert list(document)[1].is_inert
        assert ClientEventTypes.SCRIPT_LOADED in self._event_names()

    def test_activation_runs_each_script_once(self) -> None:
        document = PageDocument.from_html(f'<script src="{GA_SRC}"></script>')
        self.blocker.attach(document)
        self.accepted.add("analytics")

        self.blocker.activate_consented(self.accepted)
        self.blocker.activate_consented(self.accepted)

        assert len(self.executed) == 1

    def test_server_placeholders_follow_consent(self) -> None:
        markup = block_script("<script>window.chat = true;</script>", "functional", "chat")
        document = PageDocument.from_html(markup)
        self.blocker.attach(document)

        assert list(document)[0].is_inert
        assert self.executed == []

        self.accepted.add("functional")
        self.blocker.activate_consented(self.accepted)

        assert len(self.executed) == 1
        assert self.executed[0].text == "window.chat = true;"
        assert self.executed[0].type == ScriptMarkers.DEFAULT_TYPE

    def test_consented_placeholder_activates_on_attach(self) -> None:
        self.accepted.add("functional")
        document = PageDocument.from_html(block_script("<script>window.chat = true;</script>", "functional"))

        self.blocker.attach(document)

        assert len(self.executed) == 1
        assert not list(document)[0].is_inert

    def test_detach_stops_watching(self) -> None:
        document = PageDocument()
        self.blocker.attach(document)
        self.blocker.detach()

        element = document.append(ScriptElement({"src": GA_SRC}))

        assert not element.is_inert

    def test_disabled_blocker_does_nothing(self) -> None:
        blocker = ClientScriptBlocker.from_config({"enabled": False, "patterns": PATTERNS}, lambda category: False)
        document = PageDocument.from_html(f'<script src="{GA_SRC}"></script>')

        blocker.attach(document)

        assert not list(document)[0].is_inert

    def test_detect_category_is_case_insensitive(self) -> None:
        assert self.blocker.detect_category(GA_SRC.upper()) == "analytics"
        assert self.blocker.detect_category("https://cdn.example.com/app.js") is None
