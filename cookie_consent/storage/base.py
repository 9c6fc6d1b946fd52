"""
Storage contract for consent records
Adapters map opaque cookie tokens to consent records
"""

import os
import re
import secrets
from typing import Optional, Protocol, runtime_checkable

from ..constants import StorageDefaults
from ..crypto.hash import constant_time_equals, hmac_digest, hmac_hash, hash_string
from ..consent.models import ConsentRecord

TOKEN_PATTERN = re.compile(r"^[0-9a-f]+\.[0-9a-f]{64}$")


@runtime_checkable
class ConsentStorage(Protocol):
    """
    Token-keyed consent persistence.

    ``self_contained`` adapters embed the whole record in the token, so
    update/delete have nothing to act on and every write is a fresh store.
    """

    self_contained: bool

    def store(self, record: ConsentRecord) -> str: ...

    def retrieve(self, token: str) -> Optional[ConsentRecord]: ...

    def delete(self, token: str) -> bool: ...

    def exists(self, token: str) -> bool: ...

    def update(self, token: str, record: ConsentRecord) -> bool: ...

    def generate_token(self) -> str: ...


def default_secret(server_name: str = "localhost") -> str:
    """Fallback secret bound to the install location and host name"""
    return hash_string(os.path.abspath(__file__) + server_name)


class TokenSigner:
    """Mints and verifies ``hex(random).hex(hmac)`` opaque tokens"""

    def __init__(self, secret: Optional[str] = None, token_length: int = StorageDefaults.TOKEN_LENGTH_BYTES):
        self.secret = (secret or default_secret()).encode('utf-8')
        self.token_length = token_length

    def generate(self) -> str:
        random_bytes = secrets.token_bytes(self.token_length)
        return random_bytes.hex() + "." + hmac_digest(self.secret, random_bytes).hex()

    def verify(self, token: str) -> bool:
        """True when the token was minted with this secret"""
        if not isinstance(token, str) or not TOKEN_PATTERN.match(token):
            return False
        random_hex, mac_hex = token.split(".", 1)
        if len(random_hex) % 2:
            return False
        expected = hmac_hash(self.secret, bytes.fromhex(random_hex))
        return constant_time_equals(expected, mac_hex)

    def hash_token(self, token: str) -> str:
        """Digest stored next to records so a lookup can be re-checked"""
        return hmac_hash(self.secret, token.encode('utf-8'))
