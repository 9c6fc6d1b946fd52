"""
Cookie Consent
Consent state, storage adapters, script gating and events for cookie banners
"""

__version__ = "0.1.0"

# Core exports
from .config import BannerConfig, CategoryDefinition, CookieSettings, StorageMode, get_banner_config, load_banner_config

# Consent management
from .consent import ConsentRecord, ConsentMethod, ConsentSummary, RequestContext, parse_record
from .consent.manager import ConsentStateManager
from .consent.api import ConsentApiHandler

# Storage
from .storage import (
    ConsentStorage, LegacyStorage, NullStorage, SessionStorage,
    CallbackStorage, SqlConsentStorage, build_storage
)

# Events
from .events import EventDispatcher, ConsentEvent, ScriptEvent, BannerEvent, ClientEvent, ConsentAuditLog

# Script gating
from .blocker import ScriptGate, ClientScriptBlocker, PageDocument, ScriptElement, block_script, restore_script

# Facade and client
from .banner import CookieBanner, BannerRenderer, Translator, DictTranslator
from .client import ConsentClient, ClientSettings, CookieJar

from .exceptions import (
    ConsentKitError, ConfigurationError, InvalidCategoryError,
    StorageError, StorageBackendError, ValidationError
)

__all__ = [
    # Config
    "BannerConfig",
    "CategoryDefinition",
    "CookieSettings",
    "StorageMode",
    "get_banner_config",
    "load_banner_config",

    # Consent
    "ConsentRecord",
    "ConsentMethod",
    "ConsentSummary",
    "RequestContext",
    "parse_record",
    "ConsentStateManager",
    "ConsentApiHandler",

    # Storage
    "ConsentStorage",
    "LegacyStorage",
    "NullStorage",
    "SessionStorage",
    "CallbackStorage",
    "SqlConsentStorage",
    "build_storage",

    # Events
    "EventDispatcher",
    "ConsentEvent",
    "ScriptEvent",
    "BannerEvent",
    "ClientEvent",
    "ConsentAuditLog",

    # Scripts
    "ScriptGate",
    "ClientScriptBlocker",
    "PageDocument",
    "ScriptElement",
    "block_script",
    "restore_script",

    # Facade
    "CookieBanner",
    "BannerRenderer",
    "Translator",
    "DictTranslator",
    "ConsentClient",
    "ClientSettings",
    "CookieJar",

    # Errors
    "ConsentKitError",
    "ConfigurationError",
    "InvalidCategoryError",
    "StorageError",
    "StorageBackendError",
    "ValidationError",
]
