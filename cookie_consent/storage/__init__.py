"""
Consent storage adapters
"""

from .base import ConsentStorage, TokenSigner, default_secret
from .legacy import LegacyStorage
from .encrypted import NullStorage
from .session import SessionStorage
from .callback import CallbackStorage
from .sql import SqlConsentStorage
from .factory import build_storage

__all__ = [
    "ConsentStorage",
    "TokenSigner",
    "default_secret",
    "LegacyStorage",
    "NullStorage",
    "SessionStorage",
    "CallbackStorage",
    "SqlConsentStorage",
    "build_storage",
]
