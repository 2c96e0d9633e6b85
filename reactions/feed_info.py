"""
Feed Info Providers
Feed public keys and message author commitments needed to check reaction proofs
"""

import logging
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Optional

from primitives.babyjubjub import BabyJubJub, ECPoint
from primitives.poseidon import PoseidonHash

from .events import FeedCreatedEvent, MessagePostedEvent
from .key_derivation import ReactionKeyDerivationService

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 100_000


class FeedInfoProvider(ABC):
    """Source of the public values a reaction proof is bound to"""

    @abstractmethod
    async def get_feed_public_key(self, feed_id: uuid.UUID) -> Optional[ECPoint]:
        ...

    @abstractmethod
    async def get_author_commitment(self, message_id: uuid.UUID) -> Optional[int]:
        ...


class GroupFeedInfoProvider(FeedInfoProvider):
    """
    Feed keys for group feeds.

    A feed registered with its 32-byte group key gets its secret scalar from
    the HKDF feed secret. Without a key the scalar falls back to
    Poseidon(feed id) so every node derives the same public key.

    Feeds and message authors live in memory only, standing in for the feed
    storage owned by the messaging layer. After a restart they are rebuilt
    by replaying FeedCreated and MessagePosted events. Author commitments
    are capped at max_messages and the least recently used entry is dropped
    first; reactions to an evicted message fail admission until its
    MessagePosted event is replayed.
    """

    def __init__(self, curve: Optional[BabyJubJub] = None,
                 poseidon: Optional[PoseidonHash] = None,
                 key_derivation: Optional[ReactionKeyDerivationService] = None,
                 max_messages: int = DEFAULT_MAX_MESSAGES):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.curve = curve or BabyJubJub()
        self.poseidon = poseidon or PoseidonHash()
        self.key_derivation = key_derivation or ReactionKeyDerivationService()

        self._feed_keys: Dict[uuid.UUID, Optional[bytes]] = {}
        self._public_keys: Dict[uuid.UUID, ECPoint] = {}
        self.max_messages = max_messages
        self._author_commitments: "OrderedDict[uuid.UUID, int]" = OrderedDict()

    def register_feed(self, feed_id: uuid.UUID, feed_key: Optional[bytes] = None):
        if feed_key is not None:
            # validates the key length up front
            self.key_derivation.derive_feed_secret(feed_key, feed_id)
        self._feed_keys[feed_id] = bytes(feed_key) if feed_key is not None else None
        self._public_keys.pop(feed_id, None)
        logger.debug(f"Registered feed {feed_id}")

    def register_message(self, message_id: uuid.UUID, author_commitment: int):
        self._author_commitments[message_id] = author_commitment
        self._author_commitments.move_to_end(message_id)
        while len(self._author_commitments) > self.max_messages:
            evicted, _ = self._author_commitments.popitem(last=False)
            logger.debug(f"Evicted author commitment of message {evicted}")

    def is_feed_known(self, feed_id: uuid.UUID) -> bool:
        return feed_id in self._feed_keys

    def feed_secret_scalar(self, feed_id: uuid.UUID) -> Optional[int]:
        """Secret scalar of a known feed, reduced into the subgroup order"""
        if feed_id not in self._feed_keys:
            return None

        feed_key = self._feed_keys[feed_id]
        if feed_key is not None:
            secret = self.key_derivation.derive_feed_secret(feed_key, feed_id)
            scalar = int.from_bytes(secret, 'big') % self.curve.order
        else:
            feed_scalar = int.from_bytes(feed_id.bytes_le, 'big') % self.poseidon.prime
            scalar = self.poseidon.hash([feed_scalar]) % self.curve.order
        return scalar or 1

    async def get_feed_public_key(self, feed_id: uuid.UUID) -> Optional[ECPoint]:
        cached = self._public_keys.get(feed_id)
        if cached is not None:
            return cached

        scalar = self.feed_secret_scalar(feed_id)
        if scalar is None:
            logger.debug(f"Feed {feed_id} is not known")
            return None

        public_key = self.curve.base_mul(scalar)
        self._public_keys[feed_id] = public_key
        return public_key

    async def get_author_commitment(self, message_id: uuid.UUID) -> Optional[int]:
        author_commitment = self._author_commitments.get(message_id)
        if author_commitment is not None:
            self._author_commitments.move_to_end(message_id)
        return author_commitment

    # --- event handlers ----------------------------------------------------

    async def on_feed_created(self, event: FeedCreatedEvent):
        if not self.is_feed_known(event.feed_id):
            self.register_feed(event.feed_id)

    async def on_message_posted(self, event: MessagePostedEvent):
        self.register_message(event.message_id, event.author_commitment)

    def register(self, bus):
        bus.subscribe(FeedCreatedEvent, self.on_feed_created)
        bus.subscribe(MessagePostedEvent, self.on_message_posted)
