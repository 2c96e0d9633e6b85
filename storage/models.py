"""
Persistent Records for Anonymous Reactions
Immutable value types; updates build new instances with dataclasses.replace
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from primitives.babyjubjub import ECPoint, IDENTITY, POINT_BYTES

EMOJI_SLOTS = 6
PACKED_POINTS_SIZE = EMOJI_SLOTS * POINT_BYTES


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pack_points(points: Sequence[ECPoint]) -> bytes:
    return b"".join(point.to_bytes() for point in points)


def unpack_points(data: bytes) -> Tuple[ECPoint, ...]:
    if len(data) != PACKED_POINTS_SIZE:
        raise ValueError(
            f"Packed ciphertext must be {PACKED_POINTS_SIZE} bytes, got {len(data)}")
    return tuple(ECPoint.from_bytes(data[i:i + POINT_BYTES])
                 for i in range(0, PACKED_POINTS_SIZE, POINT_BYTES))


@dataclass(frozen=True)
class VoteCiphertext:
    """Six ElGamal ciphertexts (C1, C2), one per emoji slot"""
    c1: Tuple[ECPoint, ...]
    c2: Tuple[ECPoint, ...]

    def __post_init__(self):
        if len(self.c1) != EMOJI_SLOTS or len(self.c2) != EMOJI_SLOTS:
            raise ValueError(
                f"A vote has exactly {EMOJI_SLOTS} C1 and C2 points")
        object.__setattr__(self, 'c1', tuple(self.c1))
        object.__setattr__(self, 'c2', tuple(self.c2))

    @classmethod
    def identity(cls) -> 'VoteCiphertext':
        return cls((IDENTITY,) * EMOJI_SLOTS, (IDENTITY,) * EMOJI_SLOTS)

    @classmethod
    def from_coordinates(cls, c1_x: Sequence[bytes], c1_y: Sequence[bytes],
                         c2_x: Sequence[bytes], c2_y: Sequence[bytes]) -> 'VoteCiphertext':
        """Build from per-coordinate 32-byte arrays as carried in reaction payloads"""
        for name, coords in (("C1.x", c1_x), ("C1.y", c1_y), ("C2.x", c2_x), ("C2.y", c2_y)):
            if len(coords) != EMOJI_SLOTS:
                raise ValueError(
                    f"{name} must have {EMOJI_SLOTS} entries, got {len(coords)}")
        c1 = tuple(ECPoint.from_coordinates(x, y) for x, y in zip(c1_x, c1_y))
        c2 = tuple(ECPoint.from_coordinates(x, y) for x, y in zip(c2_x, c2_y))
        return cls(c1, c2)

    def pack(self) -> Tuple[bytes, bytes]:
        return pack_points(self.c1), pack_points(self.c2)

    @classmethod
    def unpack(cls, c1_data: bytes, c2_data: bytes) -> 'VoteCiphertext':
        return cls(unpack_points(c1_data), unpack_points(c2_data))


@dataclass(frozen=True)
class MemberCommitment:
    feed_id: uuid.UUID
    commitment: bytes
    registered_at: datetime


@dataclass(frozen=True)
class MerkleRootRecord:
    feed_id: uuid.UUID
    merkle_root: bytes
    block_height: int
    created_at: datetime


@dataclass(frozen=True)
class MessageReactionTally:
    """Running homomorphic sum of all current votes on one message"""
    message_id: uuid.UUID
    feed_id: uuid.UUID
    tally: VoteCiphertext
    total_count: int
    version: int
    last_updated: datetime

    @property
    def tally_c1(self) -> Tuple[ECPoint, ...]:
        return self.tally.c1

    @property
    def tally_c2(self) -> Tuple[ECPoint, ...]:
        return self.tally.c2


@dataclass(frozen=True)
class ReactionNullifier:
    """One anonymous member's current vote on a message"""
    nullifier: bytes
    message_id: uuid.UUID
    vote: VoteCiphertext
    encrypted_emoji_backup: Optional[bytes]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ReactionTransaction:
    """Audit record of a processed reaction"""
    id: str
    block_height: int
    feed_id: uuid.UUID
    message_id: uuid.UUID
    nullifier: bytes
    ciphertext: VoteCiphertext
    zk_proof: bytes
    circuit_version: str
    created_at: datetime


@dataclass(frozen=True)
class MemberStatus:
    feed_id: uuid.UUID
    member_address: str
    commitment: bytes
    key_generation: int
    registered_at_block: int
    revoked_at_block: Optional[int] = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at_block is not None
