"""
Reaction Domain Types
Payloads consumed from the transaction layer and typed operation results
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from storage.models import EMOJI_SLOTS, VoteCiphertext
from zk.verifier import VerifyErrorCode

NULLIFIER_SIZE = 32
COORDINATE_SIZE = 32

# ============================================================================
# EXCEPTIONS
# ============================================================================


class ReactionError(Exception):
    """Base exception for reaction processing"""
    pass


class InvalidCiphertextError(ReactionError):
    """Vote ciphertext is malformed or contains off-curve points"""
    pass


class KeyDerivationError(ReactionError, ValueError):
    """Key material violates the derivation contract"""
    pass


class NullifierMessageMismatchError(ReactionError):
    """Nullifier is already recorded against a different message"""
    pass


# ============================================================================
# PAYLOADS
# ============================================================================


@dataclass(frozen=True)
class NewReactionPayload:
    """Reaction as carried in a signed transaction"""
    feed_id: uuid.UUID
    message_id: uuid.UUID
    nullifier: bytes
    ciphertext_c1_x: List[bytes]
    ciphertext_c1_y: List[bytes]
    ciphertext_c2_x: List[bytes]
    ciphertext_c2_y: List[bytes]
    zk_proof: bytes
    circuit_version: str
    encrypted_emoji_backup: Optional[bytes] = None

    @classmethod
    def from_vote(cls, feed_id: uuid.UUID, message_id: uuid.UUID, nullifier: bytes,
                  vote: VoteCiphertext, zk_proof: bytes, circuit_version: str,
                  encrypted_emoji_backup: Optional[bytes] = None) -> 'NewReactionPayload':
        return cls(
            feed_id=feed_id,
            message_id=message_id,
            nullifier=nullifier,
            ciphertext_c1_x=[p.x_bytes for p in vote.c1],
            ciphertext_c1_y=[p.y_bytes for p in vote.c1],
            ciphertext_c2_x=[p.x_bytes for p in vote.c2],
            ciphertext_c2_y=[p.y_bytes for p in vote.c2],
            zk_proof=zk_proof,
            circuit_version=circuit_version,
            encrypted_emoji_backup=encrypted_emoji_backup,
        )

    def shape_errors(self) -> List[str]:
        """Structural problems, empty when the payload is well formed"""
        errors = []
        if len(self.nullifier) != NULLIFIER_SIZE:
            errors.append(f"Nullifier must be {NULLIFIER_SIZE} bytes")
        for name in ('ciphertext_c1_x', 'ciphertext_c1_y', 'ciphertext_c2_x', 'ciphertext_c2_y'):
            coords = getattr(self, name)
            if len(coords) != EMOJI_SLOTS:
                errors.append(f"{name} must have {EMOJI_SLOTS} entries")
            elif any(len(c) != COORDINATE_SIZE for c in coords):
                errors.append(f"{name} entries must be {COORDINATE_SIZE} bytes")
        return errors

    def to_vote(self) -> VoteCiphertext:
        try:
            return VoteCiphertext.from_coordinates(
                self.ciphertext_c1_x, self.ciphertext_c1_y,
                self.ciphertext_c2_x, self.ciphertext_c2_y)
        except ValueError as e:
            raise InvalidCiphertextError(str(e)) from e


@dataclass(frozen=True)
class ValidatedReactionTransaction:
    """Signature-verified reaction delivered by the block indexer"""
    transaction_id: str
    block_height: int
    payload: NewReactionPayload
    sender_address: str


# ============================================================================
# RESULTS
# ============================================================================


@dataclass(frozen=True)
class ProcessedReaction:
    message_id: uuid.UUID
    is_update: bool
    total_count: int
    version: int


class RegistrationStatus(Enum):
    OK = "ok"
    ALREADY_REGISTERED = "already_registered"
    ERROR = "error"


@dataclass(frozen=True)
class RegisterCommitmentResult:
    status: RegistrationStatus
    new_root: Optional[bytes] = None
    leaf_index: Optional[int] = None
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        """Already-registered is a success outcome"""
        return self.status != RegistrationStatus.ERROR

    @classmethod
    def ok(cls, new_root: bytes, leaf_index: int) -> 'RegisterCommitmentResult':
        return cls(RegistrationStatus.OK, new_root=new_root, leaf_index=leaf_index)

    @classmethod
    def already_registered(cls) -> 'RegisterCommitmentResult':
        return cls(RegistrationStatus.ALREADY_REGISTERED,
                   message="Commitment already registered")

    @classmethod
    def error(cls, message: str) -> 'RegisterCommitmentResult':
        return cls(RegistrationStatus.ERROR, message=message)


@dataclass(frozen=True)
class MembershipProofResult:
    is_member: bool
    root: Optional[bytes] = None
    path_elements: List[bytes] = field(default_factory=list)
    path_indices: List[int] = field(default_factory=list)
    tree_depth: int = 0
    block_height: int = 0

    @classmethod
    def not_member(cls) -> 'MembershipProofResult':
        return cls(is_member=False)


@dataclass(frozen=True)
class AdmissionResult:
    accepted: bool
    error_code: Optional[VerifyErrorCode] = None
    message: Optional[str] = None
    warning: Optional[str] = None

    @classmethod
    def accept(cls, warning: Optional[str] = None) -> 'AdmissionResult':
        return cls(accepted=True, warning=warning)

    @classmethod
    def reject(cls, message: str,
               error_code: Optional[VerifyErrorCode] = None) -> 'AdmissionResult':
        return cls(accepted=False, error_code=error_code, message=message)
