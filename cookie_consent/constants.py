"""
Constants for the Cookie Consent module

Centralized defaults for cookie categories, third-party providers,
event names and the inert-script marker convention.
"""

from typing import Final, Tuple, Dict, Any

# =============================================================================
# SERVICE IDENTIFICATION
# =============================================================================

SERVICE_NAME: Final[str] = "cookie-consent-core"
SERVICE_VERSION: Final[str] = "0.1.0"

# =============================================================================
# COOKIE CATEGORIES
# =============================================================================

class CookieCategories:
    """Built-in cookie category keys"""
    NECESSARY: Final[str] = "necessary"
    FUNCTIONAL: Final[str] = "functional"
    ANALYTICS: Final[str] = "analytics"
    MARKETING: Final[str] = "marketing"
    ADVERTISING: Final[str] = "advertising"

    ALL: Final[Tuple[str, ...]] = (
        NECESSARY, FUNCTIONAL, ANALYTICS, MARKETING, ADVERTISING
    )


DEFAULT_CATEGORIES: Final[Dict[str, Dict[str, Any]]] = {
    CookieCategories.NECESSARY: {
        "required": True,
        "default_accepted": True,
        "title": "Necessary",
        "description": "Essential cookies required for the website to function properly.",
    },
    CookieCategories.FUNCTIONAL: {
        "title": "Functional",
        "description": "Cookies that enhance website functionality and personalization.",
    },
    CookieCategories.ANALYTICS: {
        "title": "Analytics",
        "description": "Cookies used to analyze website traffic and user behavior.",
    },
    CookieCategories.MARKETING: {
        "title": "Marketing",
        "description": "Cookies used for marketing and email campaigns.",
    },
    CookieCategories.ADVERTISING: {
        "title": "Advertising",
        "description": "Cookies used to display personalized advertisements.",
    },
}


# =============================================================================
# COOKIE DEFAULTS
# =============================================================================

class CookieDefaults:
    """Defaults for the persisted consent cookie"""
    NAME: Final[str] = "cc_consent"
    EXPIRY_DAYS: Final[int] = 365
    PATH: Final[str] = "/"
    SAMESITE: Final[str] = "Lax"

    SAMESITE_VALUES: Final[Tuple[str, ...]] = ("Strict", "Lax", "None")


class BannerDefaults:
    """Presentation settings validated at configuration time"""
    TEMPLATES: Final[Tuple[str, ...]] = (
        "modern", "classic", "minimal", "floating", "blocking"
    )
    POSITIONS: Final[Tuple[str, ...]] = (
        "top", "bottom", "top-left", "top-right",
        "bottom-left", "bottom-right", "center"
    )


# =============================================================================
# STORAGE
# =============================================================================

class StorageDefaults:
    """Storage adapter defaults"""
    TOKEN_LENGTH_BYTES: Final[int] = 32
    SESSION_KEY: Final[str] = "cc_consent_storage"
    SQL_TABLE: Final[str] = "cookie_consents"
    DATABASE_URL: Final[str] = "sqlite:///consent.db"
    SESSION_MAX_AGE_SECONDS: Final[int] = 31536000  # 1 year
    HISTORY_DEPTH: Final[int] = 3
    KEY_INFO: Final[bytes] = b"cookie-consent-token"
    AUDIT_MAX_ENTRIES: Final[int] = 10000


# =============================================================================
# THIRD-PARTY PROVIDERS
# =============================================================================

DEFAULT_PROVIDERS: Final[Dict[str, Dict[str, Any]]] = {
    "google_analytics": {
        "category": CookieCategories.ANALYTICS,
        "patterns": [
            "google-analytics.com/analytics.js",
            "googletagmanager.com/gtag/js",
            "ga.js",
        ],
    },
    "google_tag_manager": {
        "category": CookieCategories.ANALYTICS,
        "patterns": ["googletagmanager.com/gtm.js"],
    },
    "google_ads": {
        "category": CookieCategories.ADVERTISING,
        "patterns": [
            "googleadservices.com",
            "googlesyndication.com",
            "googleads.g.doubleclick.net",
            "pagead2.googlesyndication.com",
        ],
    },
    "facebook_pixel": {
        "category": CookieCategories.ADVERTISING,
        "patterns": ["connect.facebook.net", "facebook.com/tr"],
    },
    "hotjar": {
        "category": CookieCategories.ANALYTICS,
        "patterns": ["static.hotjar.com", "script.hotjar.com"],
    },
    "linkedin_insight": {
        "category": CookieCategories.MARKETING,
        "patterns": ["snap.licdn.com/li.lms-analytics"],
    },
    "twitter_pixel": {
        "category": CookieCategories.ADVERTISING,
        "patterns": ["static.ads-twitter.com", "analytics.twitter.com"],
    },
    "tiktok_pixel": {
        "category": CookieCategories.ADVERTISING,
        "patterns": ["analytics.tiktok.com"],
    },
    "intercom": {
        "category": CookieCategories.FUNCTIONAL,
        "patterns": ["widget.intercom.io", "js.intercomcdn.com"],
    },
    "crisp": {
        "category": CookieCategories.FUNCTIONAL,
        "patterns": ["client.crisp.chat"],
    },
    "hubspot": {
        "category": CookieCategories.MARKETING,
        "patterns": ["js.hs-scripts.com", "js.hsforms.net"],
    },
    "matomo": {
        "category": CookieCategories.ANALYTICS,
        "patterns": ["matomo.js", "piwik.js"],
    },
    "youtube": {
        "category": CookieCategories.FUNCTIONAL,
        "patterns": ["youtube.com/iframe_api", "youtube.com/embed"],
    },
    "vimeo": {
        "category": CookieCategories.FUNCTIONAL,
        "patterns": ["player.vimeo.com"],
    },
}


# =============================================================================
# INERT SCRIPT MARKERS
# =============================================================================

class ScriptMarkers:
    """Attribute names used to mark blocked script placeholders"""
    PREFIX: Final[str] = "data-cc-"
    INERT_TYPE: Final[str] = "text/plain"
    DEFAULT_TYPE: Final[str] = "text/javascript"

    CATEGORY: Final[str] = "data-cc-category"
    SCRIPT_ID: Final[str] = "data-cc-script-id"
    ORIGINAL_TYPE: Final[str] = "data-cc-original-type"
    ORIGINAL_SRC: Final[str] = "data-cc-original-src"
    PROCESSED: Final[str] = "data-cc-processed"


# =============================================================================
# EVENT NAMES
# =============================================================================

class ConsentEventTypes:
    """Server-side consent lifecycle events"""
    GIVEN: Final[str] = "consent.given"
    UPDATED: Final[str] = "consent.updated"
    WITHDRAWN: Final[str] = "consent.withdrawn"
    EXPIRED: Final[str] = "consent.expired"


class ScriptEventTypes:
    """Server-side script gate events"""
    LOADED: Final[str] = "script.loaded"
    BLOCKED: Final[str] = "script.blocked"


class BannerEventTypes:
    """Server-side banner rendering events"""
    BEFORE_RENDER: Final[str] = "banner.before_render"
    AFTER_RENDER: Final[str] = "banner.after_render"


class ClientEventTypes:
    """Events dispatched by the browser-side agent"""
    INIT: Final[str] = "init"
    CONSENT_GIVEN: Final[str] = "consent-given"
    CONSENT_UPDATED: Final[str] = "consent-updated"
    CONSENT_WITHDRAWN: Final[str] = "consent-withdrawn"
    BANNER_SHOWN: Final[str] = "banner-shown"
    BANNER_HIDDEN: Final[str] = "banner-hidden"
    PREFERENCES_OPENED: Final[str] = "preferences-opened"
    PREFERENCES_CLOSED: Final[str] = "preferences-closed"
    SCRIPT_LOADED: Final[str] = "script-loaded"
    SCRIPT_BLOCKED: Final[str] = "script-blocked"
    CATEGORY_ENABLED: Final[str] = "category-enabled"
    CATEGORY_DISABLED: Final[str] = "category-disabled"
    API_SUCCESS: Final[str] = "api-success"
    API_ERROR: Final[str] = "api-error"


WILDCARD_EVENT: Final[str] = "*"


# =============================================================================
# API
# =============================================================================

class ApiActions:
    """Actions recognised by the consent API endpoint"""
    GET_CONSENT: Final[str] = "get_consent"
    GIVE_CONSENT: Final[str] = "give_consent"
    ACCEPT_ALL: Final[str] = "accept_all"
    REJECT_ALL: Final[str] = "reject_all"
    WITHDRAW_CONSENT: Final[str] = "withdraw_consent"


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCodes:
    """Standardized error codes for the consent module"""
    UNKNOWN_ACTION: Final[str] = "Unknown action"
    INVALID_REQUEST: Final[str] = "Invalid request"
    NO_CATEGORIES: Final[str] = "No categories provided"
