"""
Shared fixtures for the reaction subsystem test suite
"""

import uuid
from typing import Dict, Optional

import pytest

from config.config import MembershipConfig, ProcessorConfig, StorageConfig
from primitives.babyjubjub import BabyJubJub, ECPoint
from primitives.field import to_bytes32
from primitives.poseidon import PoseidonHash
from reactions.elgamal import encrypt_reaction
from reactions.feed_info import FeedInfoProvider
from reactions.models import NewReactionPayload, ValidatedReactionTransaction
from storage.database import create_database_engine, create_schema
from storage.unit_of_work import UnitOfWorkProvider

# Small feed secrets keep BabyJubJub scalar multiplication fast in tests
FEED_SECRET = 7919
TEST_PROOF = bytes(256)


@pytest.fixture(scope="session")
def curve() -> BabyJubJub:
    return BabyJubJub()


@pytest.fixture(scope="session")
def poseidon() -> PoseidonHash:
    return PoseidonHash()


@pytest.fixture(scope="session")
def feed_pk(curve) -> ECPoint:
    return curve.base_mul(FEED_SECRET)


@pytest.fixture
def storage_config(tmp_path) -> StorageConfig:
    return StorageConfig(
        database_url=f"sqlite:///{tmp_path / 'reactions.db'}",
        worker_threads=4,
        busy_timeout_seconds=30,
    )


@pytest.fixture
def uow_provider(storage_config):
    engine = create_database_engine(storage_config)
    create_schema(engine)
    provider = UnitOfWorkProvider(engine, storage_config)
    yield provider
    provider.shutdown()


@pytest.fixture
def membership_config() -> MembershipConfig:
    return MembershipConfig(tree_depth=20, root_grace_period=3)


@pytest.fixture
def processor_config() -> ProcessorConfig:
    return ProcessorConfig(max_retries=3, retry_backoff_ms=1)


class StaticFeedInfoProvider(FeedInfoProvider):
    """Feed keys fixed up front"""

    def __init__(self, public_keys: Optional[Dict[uuid.UUID, ECPoint]] = None,
                 author_commitments: Optional[Dict[uuid.UUID, int]] = None):
        self.public_keys = public_keys or {}
        self.author_commitments = author_commitments or {}

    async def get_feed_public_key(self, feed_id):
        return self.public_keys.get(feed_id)

    async def get_author_commitment(self, message_id):
        return self.author_commitments.get(message_id)


def commitment_for(poseidon: PoseidonHash, secret: int) -> bytes:
    return to_bytes32(poseidon.hash([secret]))


def make_nullifier(seed: int) -> bytes:
    return to_bytes32(seed)


def make_payload(curve, feed_pk, feed_id, message_id, nullifier, emoji_index,
                 randomness=11, circuit_version="omega-v1.0.0",
                 backup: Optional[bytes] = None) -> NewReactionPayload:
    vote = encrypt_reaction(curve, feed_pk, emoji_index, randomness)
    return NewReactionPayload.from_vote(
        feed_id=feed_id,
        message_id=message_id,
        nullifier=nullifier,
        vote=vote,
        zk_proof=TEST_PROOF,
        circuit_version=circuit_version,
        encrypted_emoji_backup=backup,
    )


def make_transaction(payload: NewReactionPayload, block_height: int = 10,
                     sender: str = "sender") -> ValidatedReactionTransaction:
    return ValidatedReactionTransaction(
        transaction_id=str(uuid.uuid4()),
        block_height=block_height,
        payload=payload,
        sender_address=sender,
    )
