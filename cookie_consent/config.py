"""
Configuration management for the Cookie Consent module
Cookie attributes, category universe, storage backend and banner toggles
"""

from enum import Enum
from typing import Dict, List, Optional, Any
from pydantic_settings import BaseSettings
from pydantic import BaseModel, Field, SecretStr, ValidationError as PydanticValidationError
from pydantic import field_validator, model_validator

from .constants import (
    CookieDefaults,
    StorageDefaults,
    DEFAULT_CATEGORIES,
)
from .exceptions import ConfigurationError, InvalidCategoryError, ValidationError
from .utils.validators import (
    validate_category_key,
    validate_cookie_name,
    validate_expiry_days,
    validate_position,
    validate_samesite,
    validate_template,
)


class StorageMode(str, Enum):
    """Supported consent storage backends"""
    LEGACY = "legacy"        # base64 JSON in the cookie
    NULL = "null"            # AES-GCM sealed record in the cookie
    SESSION = "session"      # host session mapping keyed by signed token
    CALLBACK = "callback"    # caller-supplied functions
    SQL = "sql"              # SQLAlchemy database keyed by signed token


class CategoryDefinition(BaseModel):
    """Operator-configured cookie category"""
    key: str = ""
    required: bool = False
    default_accepted: bool = False
    enabled: bool = True
    title: str = ""
    description: str = ""

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _required_implies_default(self) -> "CategoryDefinition":
        if self.required:
            self.default_accepted = True
        return self


class CookieSettings(BaseModel):
    """Attributes the caller must re-apply on every write of the consent cookie"""
    name: str
    expiry: int
    path: str
    domain: str
    secure: bool
    samesite: str

    @property
    def max_age_seconds(self) -> int:
        return self.expiry * 86400


def _default_categories() -> Dict[str, CategoryDefinition]:
    return {
        key: CategoryDefinition(key=key, **definition)
        for key, definition in DEFAULT_CATEGORIES.items()
    }


class BannerConfig(BaseSettings):
    """Cookie consent configuration settings"""

    # Persisted cookie
    cookie_name: str = Field(default=CookieDefaults.NAME)
    cookie_expiry_days: int = Field(default=CookieDefaults.EXPIRY_DAYS, description="Cookie lifetime and consent validity")
    cookie_path: str = Field(default=CookieDefaults.PATH)
    cookie_domain: str = Field(default="")
    cookie_secure: bool = Field(default=True)
    cookie_samesite: str = Field(default=CookieDefaults.SAMESITE)

    # Category universe
    categories: Dict[str, CategoryDefinition] = Field(default_factory=_default_categories)

    # Behaviour
    auto_block: bool = Field(default=True, description="Block known third-party scripts without consent")
    respect_do_not_track: bool = Field(default=False)
    show_only_once: bool = Field(default=False)
    blocking_mode: bool = Field(default=False)
    blocking_message: Optional[str] = Field(default=None)

    # Presentation (consumed by the rendering collaborator)
    template: str = Field(default="modern")
    position: str = Field(default="bottom")
    language: str = Field(default="en")
    privacy_policy_url: Optional[str] = Field(default=None)
    cookie_policy_url: Optional[str] = Field(default=None)
    show_preferences_button: bool = Field(default=True)
    api_url: Optional[str] = Field(default=None, description="Consent API endpoint used by the client agent")

    # Storage
    storage_mode: StorageMode = Field(default=StorageMode.NULL)
    storage_secret: Optional[SecretStr] = Field(default=None, description="Operator secret for token signing and sealing")
    database_url: str = Field(default=StorageDefaults.DATABASE_URL)
    token_length: int = Field(default=StorageDefaults.TOKEN_LENGTH_BYTES, ge=16, le=64)
    history_depth: int = Field(default=StorageDefaults.HISTORY_DEPTH, ge=1, description="Nested previous_consent levels kept")
    audit_max_entries: int = Field(default=StorageDefaults.AUDIT_MAX_ENTRIES, ge=1, description="In-memory audit entries retained")

    # Environment-specific overrides
    debug_mode: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    model_config = {"env_prefix": "COOKIE_CONSENT_", "case_sensitive": False, "extra": "forbid"}

    @field_validator("cookie_name")
    @classmethod
    def _check_cookie_name(cls, value: str) -> str:
        try:
            return validate_cookie_name(value)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("cookie_expiry_days")
    @classmethod
    def _check_expiry(cls, value: int) -> int:
        try:
            return validate_expiry_days(value)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("position")
    @classmethod
    def _check_position(cls, value: str) -> str:
        try:
            return validate_position(value)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("template")
    @classmethod
    def _check_template(cls, value: str) -> str:
        try:
            return validate_template(value)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("categories")
    @classmethod
    def _check_categories(cls, value: Dict[str, CategoryDefinition]) -> Dict[str, CategoryDefinition]:
        checked: Dict[str, CategoryDefinition] = {}
        for key, definition in value.items():
            try:
                key = validate_category_key(key)
            except ValidationError as exc:
                raise ValueError(exc.message) from exc
            if definition.key and definition.key != key:
                raise ValueError(f"Category key mismatch: '{definition.key}' declared under '{key}'")
            if not definition.title:
                definition = definition.model_copy(update={"title": key.capitalize()})
            checked[key] = definition.model_copy(update={"key": key})

        if not any(definition.required for definition in checked.values()):
            raise ValueError("At least one required category must be configured")
        return checked

    @model_validator(mode="after")
    def _check_cookie_attributes(self) -> "BannerConfig":
        try:
            self.cookie_samesite = validate_samesite(self.cookie_samesite, self.cookie_secure)
        except ValidationError as exc:
            raise ValueError(exc.message) from exc
        return self

    # ------------------------------------------------------------------
    # Category helpers
    # ------------------------------------------------------------------

    def category_keys(self) -> List[str]:
        """All configured category keys, in configuration order"""
        return list(self.categories)

    def required_categories(self) -> List[str]:
        return [key for key, definition in self.categories.items() if definition.required]

    def optional_categories(self) -> List[str]:
        return [key for key, definition in self.categories.items() if not definition.required]

    def get_category(self, key: str) -> Optional[CategoryDefinition]:
        return self.categories.get(key)

    def is_required(self, key: str) -> bool:
        definition = self.categories.get(key)
        return definition is not None and definition.required

    def with_category(self, key: str, **definition: Any) -> "BannerConfig":
        """Return a new configuration with a category added or replaced"""
        categories = {k: v.model_dump() for k, v in self.categories.items()}
        categories[key] = {**categories.get(key, {}), **definition, "key": key}
        return _revalidate(self, categories=categories)

    def without_category(self, key: str) -> "BannerConfig":
        """Return a new configuration without an optional category"""
        if key not in self.categories:
            raise InvalidCategoryError(key, self.category_keys())
        if self.categories[key].required:
            raise ConfigurationError(f"Required category cannot be removed: {key}", setting="categories")
        categories = {k: v.model_dump() for k, v in self.categories.items() if k != key}
        return _revalidate(self, categories=categories)

    # ------------------------------------------------------------------
    # Cookie helpers
    # ------------------------------------------------------------------

    def cookie_settings(self) -> CookieSettings:
        return CookieSettings(
            name=self.cookie_name,
            expiry=self.cookie_expiry_days,
            path=self.cookie_path,
            domain=self.cookie_domain,
            secure=self.cookie_secure,
            samesite=self.cookie_samesite,
        )

    def secret_value(self) -> Optional[str]:
        return self.storage_secret.get_secret_value() if self.storage_secret else None


def _revalidate(config: BannerConfig, **overrides: Any) -> BannerConfig:
    values = config.model_dump()
    if config.storage_secret is not None:
        values["storage_secret"] = config.storage_secret.get_secret_value()
    values.update(overrides)
    return load_banner_config(**values)


def load_banner_config(**overrides: Any) -> BannerConfig:
    """
    Build a validated configuration.

    Raises:
        ConfigurationError: On unknown keys or invalid values
    """
    try:
        return BannerConfig(**overrides)
    except PydanticValidationError as exc:
        errors = [
            {"setting": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        setting = errors[0]["setting"] if errors else None
        raise ConfigurationError(
            f"Invalid cookie consent configuration: {errors[0]['message'] if errors else exc}",
            setting=setting,
            details={"errors": errors},
        ) from exc


# Global configuration instance
banner_config: Optional[BannerConfig] = None


def get_banner_config() -> BannerConfig:
    """Get the global banner configuration instance"""
    global banner_config
    if banner_config is None:
        banner_config = load_banner_config()
    return banner_config


def update_banner_config(**kwargs: Any) -> BannerConfig:
    """Update the global configuration; unknown keys are rejected"""
    global banner_config
    current = get_banner_config()
    unknown = [key for key in kwargs if key not in BannerConfig.model_fields]
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            details={"unknown": sorted(unknown)},
        )
    banner_config = _revalidate(current, **kwargs)
    return banner_config
