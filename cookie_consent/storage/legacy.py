"""
Legacy cookie storage
The token is the record itself: base64(JSON(record))
"""

import base64
import binascii
import json
from typing import Optional
import structlog

from ..consent.models import ConsentRecord, parse_record

logger = structlog.get_logger(__name__)


class LegacyStorage:
    """Unsigned, unencrypted record carried in the cookie"""

    self_contained = True
    backend_name = "legacy"

    def store(self, record: ConsentRecord) -> str:
        payload = json.dumps(record.to_dict(), separators=(',', ':'))
        return base64.b64encode(payload.encode('utf-8')).decode('ascii')

    def retrieve(self, token: str) -> Optional[ConsentRecord]:
        if not token:
            return None
        try:
            decoded = base64.b64decode(token, validate=True)
            data = json.loads(decoded.decode('utf-8'))
        except (binascii.Error, ValueError, RecursionError):
            # Nesting too deep for the decoder counts as malformed
            logger.debug("Legacy consent token is not valid base64 JSON")
            return None
        return parse_record(data)

    def delete(self, token: str) -> bool:
        # Nothing held server side
        return True

    def exists(self, token: str) -> bool:
        return self.retrieve(token) is not None

    def update(self, token: str, record: ConsentRecord) -> bool:
        return True

    def generate_token(self) -> str:
        return ""
