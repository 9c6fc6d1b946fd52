"""Tests for the CookieBanner facade."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from cookie_consent.banner import BannerRenderer, CookieBanner, DictTranslator
from cookie_consent.config import CategoryDefinition, load_banner_config
from cookie_consent.constants import BannerEventTypes, ConsentEventTypes
from cookie_consent.consent.models import RequestContext
from cookie_consent.events import BannerEvent, Event
from cookie_consent.exceptions import ConfigurationError
from cookie_consent.storage import LegacyStorage, SessionStorage


SECRET = "banner-secret"


class ListRenderer:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def render(
        self,
        categories: Dict[str, CategoryDefinition],
        translations: Dict[str, str],
        consent_summary: Dict[str, Any],
    ) -> str:
        self.calls.append({"categories": categories, "translations": translations, "consent": consent_summary})
        return "<div class=\"cc-banner\">" + ",".join(categories) + "</div>"


class TestCookieBanner:
    def setup_method(self) -> None:
        self.config = load_banner_config(storage_secret=SECRET, storage_mode="legacy")
        self.renderer = ListRenderer()
        self.banner = CookieBanner(
            config=self.config,
            renderer=self.renderer,
            translator=DictTranslator({"title": "We use cookies"}),
            context=RequestContext(ip_address="198.51.100.4"),
        )

    def test_default_storage_follows_mode(self) -> None:
        assert isinstance(self.banner.storage, LegacyStorage)

        session: Dict[str, Any] = {}
        banner = CookieBanner(
            config=load_banner_config(storage_mode="session", storage_secret=SECRET),
            session=session,
        )
        assert isinstance(banner.storage, SessionStorage)

    def test_session_mode_without_session_fails(self) -> None:
        with pytest.raises(ConfigurationError):
            CookieBanner(config=load_banner_config(storage_mode="session", storage_secret=SECRET))

    def test_consent_shortcuts(self) -> None:
        given: List[str] = []
        self.banner.on(ConsentEventTypes.GIVEN, lambda event: given.append(event.consent_id))

        record = self.banner.grant(["analytics"])

        assert self.banner.has_consent()
        assert self.banner.has_consent_for("analytics")
        assert not self.banner.should_show_banner()
        assert self.banner.consent is record
        assert record.consent_method == "api"
        assert given == [record.consent_id]

        assert self.banner.withdraw() is not None
        assert not self.banner.has_consent()

    def test_once_and_off(self) -> None:
        calls: List[str] = []

        def listener(event: Event) -> None:
            calls.append(event.name)

        self.banner.once(ConsentEventTypes.GIVEN, listener)
        self.banner.on(ConsentEventTypes.UPDATED, listener)
        self.banner.accept_all()
        self.banner.off(ConsentEventTypes.UPDATED, listener)
        self.banner.reject_all()

        assert calls == [ConsentEventTypes.GIVEN]

    def test_render(self) -> None:
        before: List[BannerEvent] = []
        self.banner.on(BannerEventTypes.BEFORE_RENDER, before.append)

        html = self.banner.render()

        assert html == '<div class="cc-banner">necessary,functional,analytics,marketing,advertising</div>'
        assert self.renderer.calls[0]["translations"] == {"title": "We use cookies"}
        assert self.renderer.calls[0]["consent"]["hasConsent"] is False
        assert before[0].data["template"] == "modern"

    def test_after_render_can_replace_html(self) -> None:
        def override(event: BannerEvent) -> None:
            event.html = event.html.replace("cc-banner", "cc-banner cc-dark")

        self.banner.on(BannerEventTypes.AFTER_RENDER, override)

        assert 'class="cc-banner cc-dark"' in self.banner.render()

    def test_render_requires_renderer(self) -> None:
        banner = CookieBanner(config=self.config)

        with pytest.raises(ConfigurationError):
            banner.render()

    def test_renderer_protocol(self) -> None:
        assert isinstance(self.renderer, BannerRenderer)

    def test_blocking_mode_switches_template(self) -> None:
        banner = CookieBanner(config=load_banner_config(storage_mode="legacy", blocking_mode=True))
        explicit = CookieBanner(config=load_banner_config(storage_mode="legacy", blocking_mode=True, template="minimal"))

        assert banner.config.template == "blocking"
        assert explicit.config.template == "minimal"

    def test_scripts(self) -> None:
        self.banner.register_provider("tracker", "marketing", ["tracker.example"])
        self.banner.register_script("pixel", "marketing", '<script src="https://tracker.example/p.js"></script>')

        assert "text/plain" in self.banner.render_script("pixel")
        assert self.banner.gate.should_block("https://tracker.example/other.js")

        self.banner.accept_all()
        assert self.banner.render_all_scripts() == '<script src="https://tracker.example/p.js"></script>'

    def test_javascript_config(self) -> None:
        config = self.banner.javascript_config()

        assert config["cookieName"] == "cc_consent"
        assert config["cookieSameSite"] == "Lax"
        assert config["storageMode"] == "local"
        assert config["apiUrl"] is None
        assert config["historyDepth"] == 3
        assert set(config["categories"]) == set(self.config.category_keys())
        assert "key" not in config["categories"]["necessary"]

    def test_handle_api_request(self) -> None:
        result = self.banner.handle_api_request({"action": "give_consent", "categories": ["functional"]})

        assert result["success"] is True
        assert LegacyStorage().retrieve(result["cookie"]).consent_id == result["data"]["consent_id"]

    def test_translator_fallbacks(self) -> None:
        translator = DictTranslator({"accept": "Accept"})

        assert translator.translate("accept") == "Accept"
        assert translator.translate("reject", "Reject") == "Reject"
        assert translator.translate("settings") == "settings"

    def test_presentation_settings_reach_renderer_and_client(self) -> None:
        banner = CookieBanner(
            config=load_banner_config(
                storage_mode="legacy",
                language="de",
                position="top",
                privacy_policy_url="https://example.com/privacy",
                cookie_policy_url="https://example.com/cookies",
                show_preferences_button=False,
                blocking_message="Please choose",
            ),
            renderer=self.renderer,
        )
        before: List[BannerEvent] = []
        banner.on(BannerEventTypes.BEFORE_RENDER, before.append)

        banner.render()
        config = banner.javascript_config()

        for settings in (before[0].data, config):
            assert settings["language"] == "de"
            assert settings["position"] == "top"
            assert settings["privacyPolicyUrl"] == "https://example.com/privacy"
            assert settings["cookiePolicyUrl"] == "https://example.com/cookies"
            assert settings["showPreferencesButton"] is False
            assert settings["blockingMessage"] == "Please choose"
