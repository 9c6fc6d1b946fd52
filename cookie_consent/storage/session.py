"""
Session-backed consent storage
Records live in a host-supplied session mapping keyed by a signed token
"""

import time
from typing import Any, Dict, MutableMapping, Optional
import structlog

from ..constants import StorageDefaults
from ..crypto.hash import constant_time_equals
from ..consent.models import ConsentRecord, parse_record
from .base import TokenSigner

logger = structlog.get_logger(__name__)


class SessionStorage:
    """
    Stores consent snapshots inside the host's session.

    The session object is any mutable mapping the host framework persists
    between requests (e.g. Starlette's ``request.session``).
    """

    self_contained = False
    backend_name = "session"

    def __init__(
        self,
        session: MutableMapping[str, Any],
        secret: Optional[str] = None,
        token_length: int = StorageDefaults.TOKEN_LENGTH_BYTES,
    ):
        self.session = session
        self.signer = TokenSigner(secret, token_length)

    @property
    def _entries(self) -> Dict[str, Dict[str, Any]]:
        entries = self.session.get(StorageDefaults.SESSION_KEY)
        if not isinstance(entries, dict):
            entries = {}
            self.session[StorageDefaults.SESSION_KEY] = entries
        return entries

    def store(self, record: ConsentRecord) -> str:
        token = self.generate_token()
        now = int(time.time())
        self._entries[token] = {
            "consent": record.to_dict(),
            "created_at": now,
            "updated_at": now,
            "token_hash": self.signer.hash_token(token),
        }
        logger.debug("Stored consent in session", consent_id=record.consent_id)
        return token

    def retrieve(self, token: str) -> Optional[ConsentRecord]:
        if not self.signer.verify(token):
            return None
        entry = self._entries.get(token)
        if not isinstance(entry, dict) or "consent" not in entry:
            return None
        if not constant_time_equals(str(entry.get("token_hash", "")), self.signer.hash_token(token)):
            logger.warning("Session consent entry failed token hash check")
            return None
        return parse_record(entry["consent"])

    def delete(self, token: str) -> bool:
        if not self.exists(token):
            return False
        del self._entries[token]
        return True

    def exists(self, token: str) -> bool:
        return token in self._entries

    def update(self, token: str, record: ConsentRecord) -> bool:
        if not self.exists(token):
            return False
        entry = self._entries[token]
        entry["consent"] = record.to_dict()
        entry["updated_at"] = int(time.time())
        return True

    def generate_token(self) -> str:
        return self.signer.generate()

    def cleanup(self, max_age_seconds: int = StorageDefaults.SESSION_MAX_AGE_SECONDS) -> int:
        """Drop entries created more than ``max_age_seconds`` ago"""
        now = int(time.time())
        entries = self._entries
        stale = [token for token, entry in entries.items()
                 if now - int(entry.get("created_at", 0)) > max_age_seconds]
        for token in stale:
            del entries[token]

        if stale:
            logger.info("Cleaned up session consent entries", removed=len(stale))
        return len(stale)
