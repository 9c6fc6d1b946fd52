"""
Encrypted cookie storage ("null" storage: nothing is kept server side)
The record is sealed with AES-256-GCM and carried in the cookie
"""

import base64
import binascii
import json
import secrets
from typing import Optional
import structlog

from ..constants import StorageDefaults
from ..crypto.encrypt import encrypt_bytes, decrypt_bytes, derive_key
from ..consent.models import ConsentRecord, parse_record
from ..exceptions import DecryptionError
from .base import default_secret

logger = structlog.get_logger(__name__)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode('ascii')


def _b64url_decode(token: str) -> bytes:
    """Strict inverse of _b64url_encode; non-canonical input raises ValueError"""
    padded = token + "=" * (-len(token) % 4)
    data = base64.b64decode(padded, altchars=b"-_", validate=True)
    if _b64url_encode(data) != token:
        raise ValueError("non-canonical base64url token")
    return data


class NullStorage:
    """Self-contained storage with authenticated encryption"""

    self_contained = True
    backend_name = "null"

    def __init__(self, secret: Optional[str] = None):
        secret = secret or default_secret()
        self._key = derive_key(secret.encode('utf-8'), StorageDefaults.KEY_INFO)

    def store(self, record: ConsentRecord) -> str:
        payload = json.dumps(record.to_dict(), separators=(',', ':')).encode('utf-8')
        return _b64url_encode(encrypt_bytes(self._key, payload))

    def retrieve(self, token: str) -> Optional[ConsentRecord]:
        if not token:
            return None
        try:
            sealed = _b64url_decode(token)
            data = json.loads(decrypt_bytes(self._key, sealed).decode('utf-8'))
        except DecryptionError as exc:
            logger.warning("Rejected sealed consent token", reason=exc.details.get("reason"))
            return None
        except (binascii.Error, ValueError, RecursionError):
            logger.debug("Sealed consent token is malformed")
            return None
        return parse_record(data)

    def delete(self, token: str) -> bool:
        return True

    def exists(self, token: str) -> bool:
        return self.retrieve(token) is not None

    def update(self, token: str, record: ConsentRecord) -> bool:
        return True

    def generate_token(self) -> str:
        return secrets.token_hex(StorageDefaults.TOKEN_LENGTH_BYTES)
