"""
Callback-backed consent storage
Delegates persistence to caller-supplied functions
"""

from typing import Any, Callable, Dict, Mapping, Optional
import structlog

from ..constants import StorageDefaults
from ..consent.models import ConsentRecord, parse_record
from ..exceptions import ConfigurationError
from .base import TokenSigner

logger = structlog.get_logger(__name__)

StoreCallback = Callable[[ConsentRecord, str], Optional[str]]
RetrieveCallback = Callable[[str], Optional[Dict[str, Any]]]
DeleteCallback = Callable[[str], bool]
ExistsCallback = Callable[[str], bool]
UpdateCallback = Callable[[str, ConsentRecord], bool]

REQUIRED_CALLBACKS = ("store", "retrieve", "delete")


class CallbackStorage:
    """
    Storage adapter built from plain functions.

    ``store`` receives the record and a freshly signed token and may return
    a replacement token. ``retrieve`` returns the record dict or None.
    Exceptions raised by callbacks propagate to the caller.
    """

    self_contained = False
    backend_name = "callback"

    def __init__(
        self,
        store: StoreCallback,
        retrieve: RetrieveCallback,
        delete: DeleteCallback,
        exists: Optional[ExistsCallback] = None,
        update: Optional[UpdateCallback] = None,
        secret: Optional[str] = None,
        token_length: int = StorageDefaults.TOKEN_LENGTH_BYTES,
    ):
        self._store = store
        self._retrieve = retrieve
        self._delete = delete
        self._exists = exists
        self._update = update
        self.signer = TokenSigner(secret, token_length)

    def store(self, record: ConsentRecord) -> str:
        token = self.generate_token()
        result = self._store(record, token)
        if isinstance(result, str) and result:
            return result
        return token

    def retrieve(self, token: str) -> Optional[ConsentRecord]:
        data = self._retrieve(token)
        if data is None:
            return None
        return parse_record(data)

    def delete(self, token: str) -> bool:
        return bool(self._delete(token))

    def exists(self, token: str) -> bool:
        if self._exists is not None:
            return bool(self._exists(token))
        return self.retrieve(token) is not None

    def update(self, token: str, record: ConsentRecord) -> bool:
        if self._update is not None:
            return bool(self._update(token, record))
        if not self.exists(token):
            return False
        # Replace in place under the same token
        self._delete(token)
        self._store(record, token)
        return True

    def generate_token(self) -> str:
        return self.signer.generate()

    @classmethod
    def from_mapping(cls, callbacks: Mapping[str, Callable[..., Any]], secret: Optional[str] = None) -> "CallbackStorage":
        """Build from a ``{"store": ..., "retrieve": ..., "delete": ...}`` mapping"""
        missing = [name for name in REQUIRED_CALLBACKS if not callable(callbacks.get(name))]
        if missing:
            raise ConfigurationError(
                "Callbacks mapping must contain: store, retrieve, delete",
                setting="callbacks",
                details={"missing": missing},
            )
        unknown = [name for name in callbacks if name not in REQUIRED_CALLBACKS + ("exists", "update")]
        if unknown:
            raise ConfigurationError(
                f"Unknown storage callbacks: {', '.join(sorted(unknown))}",
                setting="callbacks",
            )
        return cls(
            store=callbacks["store"],
            retrieve=callbacks["retrieve"],
            delete=callbacks["delete"],
            exists=callbacks.get("exists"),
            update=callbacks.get("update"),
            secret=secret,
        )
