"""
Reaction Key Derivation
HKDF-SHA256 keys derived from a feed's 32-byte symmetric key

Identifiers are salted with UUID.bytes_le, the byte order the network uses
when serializing feed and message ids.
"""

import logging
import uuid
from typing import Union

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .models import KeyDerivationError

logger = logging.getLogger(__name__)

FEED_KEY_SIZE = 32
DERIVED_KEY_SIZE = 32

REACTION_KEY_INFO = b"protocol_omega/group_reaction/v1"
FEED_SECRET_INFO = b"protocol_omega/feed_pk/v1"


def _as_uuid(identifier: Union[uuid.UUID, str]) -> uuid.UUID:
    return identifier if isinstance(identifier, uuid.UUID) else uuid.UUID(str(identifier))


class ReactionKeyDerivationService:
    """Domain-separated per-message and per-feed key derivation"""

    def _derive(self, feed_key: bytes, salt: bytes, info: bytes) -> bytes:
        if feed_key is None or len(feed_key) != FEED_KEY_SIZE:
            length = None if feed_key is None else len(feed_key)
            raise KeyDerivationError(
                f"Feed key must be {FEED_KEY_SIZE} bytes, got {length}")

        return HKDF(
            algorithm=hashes.SHA256(),
            length=DERIVED_KEY_SIZE,
            salt=salt,
            info=info,
            backend=default_backend()
        ).derive(bytes(feed_key))

    def derive_reaction_key(self, feed_key: bytes, message_id: Union[uuid.UUID, str]) -> bytes:
        """Per-message reaction key"""
        return self._derive(feed_key, _as_uuid(message_id).bytes_le, REACTION_KEY_INFO)

    def derive_feed_secret(self, feed_key: bytes, feed_id: Union[uuid.UUID, str]) -> bytes:
        """Per-feed secret from which the feed's public key is derived"""
        return self._derive(feed_key, _as_uuid(feed_id).bytes_le, FEED_SECRET_INFO)
