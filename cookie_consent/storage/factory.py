"""
Storage adapter construction from configuration
"""

from typing import Any, Callable, Mapping, MutableMapping, Optional
import structlog

from ..config import BannerConfig, StorageMode
from ..exceptions import ConfigurationError
from .base import ConsentStorage, default_secret
from .callback import CallbackStorage
from .encrypted import NullStorage
from .legacy import LegacyStorage
from .session import SessionStorage
from .sql import SqlConsentStorage

logger = structlog.get_logger(__name__)


def build_storage(
    config: BannerConfig,
    session: Optional[MutableMapping[str, Any]] = None,
    callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
    server_name: str = "localhost",
) -> ConsentStorage:
    """
    Create the adapter selected by ``config.storage_mode``.

    Raises:
        ConfigurationError: When the mode needs a collaborator that was not supplied
    """
    mode = config.storage_mode
    secret = config.secret_value()
    if secret is None and mode is not StorageMode.LEGACY:
        logger.warning("No storage secret configured, deriving a host-bound default",
                       storage_mode=mode.value)
        secret = default_secret(server_name)

    if mode is StorageMode.LEGACY:
        storage: ConsentStorage = LegacyStorage()
    elif mode is StorageMode.NULL:
        storage = NullStorage(secret)
    elif mode is StorageMode.SESSION:
        if session is None:
            raise ConfigurationError("Session storage requires a session mapping", setting="storage_mode")
        storage = SessionStorage(session, secret, config.token_length)
    elif mode is StorageMode.CALLBACK:
        if callbacks is None:
            raise ConfigurationError("Callback storage requires callbacks", setting="storage_mode")
        storage = CallbackStorage.from_mapping(callbacks, secret)
    elif mode is StorageMode.SQL:
        storage = SqlConsentStorage(config.database_url, secret, config.token_length)
    else:
        raise ConfigurationError(f"Unsupported storage mode: {mode}", setting="storage_mode")

    logger.info("Consent storage ready", storage_mode=mode.value)
    return storage
