"""Tests for banner configuration and validators."""

from __future__ import annotations

import pytest

import cookie_consent.config as config_mod
from cookie_consent.config import (
    BannerConfig,
    StorageMode,
    get_banner_config,
    load_banner_config,
    update_banner_config,
)
from cookie_consent.exceptions import ConfigurationError, InvalidCategoryError, ValidationError
from cookie_consent.utils.validators import (
    validate_category_key,
    validate_expiry_days,
    validate_known_category,
    validate_samesite,
)


class TestBannerConfig:
    def setup_method(self) -> None:
        config_mod.banner_config = None

    def teardown_method(self) -> None:
        config_mod.banner_config = None

    def test_defaults(self) -> None:
        config = load_banner_config()

        assert config.cookie_name == "cc_consent"
        assert config.cookie_expiry_days == 365
        assert config.storage_mode is StorageMode.NULL
        assert config.category_keys() == ["necessary", "functional", "analytics", "marketing", "advertising"]
        assert config.required_categories() == ["necessary"]
        assert config.categories["necessary"].default_accepted

    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("COOKIE_CONSENT_COOKIE_NAME", "site_consent")
        monkeypatch.setenv("COOKIE_CONSENT_STORAGE_MODE", "sql")

        config = load_banner_config()

        assert config.cookie_name == "site_consent"
        assert config.storage_mode is StorageMode.SQL

    def test_secret_is_not_rendered(self) -> None:
        config = load_banner_config(storage_secret="hunter2")

        assert "hunter2" not in repr(config)
        assert config.secret_value() == "hunter2"

    def test_unknown_setting_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_banner_config(cookie_colour="blue")

        assert exc_info.value.details["setting"] == "cookie_colour"

    @pytest.mark.parametrize("overrides", [
        {"cookie_samesite": "Sometimes"},
        {"cookie_samesite": "None", "cookie_secure": False},
        {"cookie_expiry_days": 0},
        {"position": "sideways"},
        {"template": "neon"},
        {"cookie_name": "has space"},
        {"history_depth": 0},
        {"categories": {"analytics": {"title": "Analytics"}}},
        {"categories": {"Bad Key": {"required": True}}},
    ])
    def test_invalid_values_are_rejected(self, overrides) -> None:
        with pytest.raises(ConfigurationError):
            load_banner_config(**overrides)

    def test_samesite_is_normalised(self) -> None:
        assert load_banner_config(cookie_samesite="strict").cookie_samesite == "Strict"

    def test_custom_categories(self) -> None:
        config = load_banner_config(categories={
            "essential": {"required": True},
            "stats": {"title": "Statistics"},
        })

        assert config.category_keys() == ["essential", "stats"]
        assert config.categories["essential"].title == "Essential"
        assert config.categories["stats"].key == "stats"
        assert config.optional_categories() == ["stats"]

    def test_with_and_without_category(self) -> None:
        config = load_banner_config(storage_secret="keep-me")

        extended = config.with_category("social", title="Social media")
        assert extended.category_keys()[-1] == "social"
        assert extended.secret_value() == "keep-me"
        assert "social" not in config.category_keys()

        reduced = extended.without_category("advertising")
        assert "advertising" not in reduced.category_keys()

    def test_required_category_cannot_be_removed(self) -> None:
        with pytest.raises(ConfigurationError):
            load_banner_config().without_category("necessary")
        with pytest.raises(InvalidCategoryError):
            load_banner_config().without_category("unknown")

    def test_cookie_settings(self) -> None:
        settings = load_banner_config(cookie_domain=".example.com", cookie_expiry_days=30).cookie_settings()

        assert settings.domain == ".example.com"
        assert settings.max_age_seconds == 30 * 86400

    def test_global_config_updates(self) -> None:
        assert get_banner_config() is get_banner_config()

        updated = update_banner_config(cookie_name="updated_consent")

        assert updated.cookie_name == "updated_consent"
        assert get_banner_config() is updated

        with pytest.raises(ConfigurationError):
            update_banner_config(cookie_colour="blue")

    def test_config_is_settings_model(self) -> None:
        assert BannerConfig.model_config["env_prefix"] == "COOKIE_CONSENT_"


class TestValidators:
    def test_category_key(self) -> None:
        assert validate_category_key(" analytics ") == "analytics"
        with pytest.raises(ValidationError):
            validate_category_key("Analytics!")
        with pytest.raises(ValidationError):
            validate_category_key("")

    def test_known_category(self) -> None:
        assert validate_known_category("analytics", ["necessary", "analytics"]) == "analytics"
        with pytest.raises(InvalidCategoryError) as exc_info:
            validate_known_category("telemetry", ["necessary"])
        assert exc_info.value.details["valid_categories"] == ["necessary"]

    def test_samesite(self) -> None:
        assert validate_samesite("none", secure=True) == "None"
        with pytest.raises(ValidationError):
            validate_samesite("none", secure=False)

    def test_expiry_days(self) -> None:
        assert validate_expiry_days("30") == 30
        with pytest.raises(ValidationError):
            validate_expiry_days("soon")
        with pytest.raises(ValidationError):
            validate_expiry_days(4000)
