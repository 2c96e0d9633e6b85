"""
Anonymous Reactions
Membership trees, homomorphic tallies, the nullifier ledger and reaction processing
"""

from .models import (
    NewReactionPayload,
    ValidatedReactionTransaction,
    ProcessedReaction,
    RegistrationStatus,
    RegisterCommitmentResult,
    MembershipProofResult,
    AdmissionResult,

    # Exceptions
    ReactionError,
    InvalidCiphertextError,
    KeyDerivationError,
    NullifierMessageMismatchError,
)
from .key_derivation import ReactionKeyDerivationService
from .commitments import UserCommitmentService
from .membership_service import MembershipService
from .tally import HomomorphicTallyEngine
from .reaction_processor import ReactionTransactionProcessor
from .reaction_service import ReactionQueryService
from .feed_info import FeedInfoProvider, GroupFeedInfoProvider
from .events import (
    EventBus,
    MemberJoinedEvent,
    MemberLeftEvent,
    MemberBannedEvent,
    MemberUnbannedEvent,
    FeedCreatedEvent,
    MessagePostedEvent,
)
from .membership_handlers import GroupMembershipMerkleHandler, FeedCreatedCommitmentHandler
from .reaction_validator import ReactionAdmissionValidator

__version__ = "1.0.0"

__all__ = [
    'NewReactionPayload',
    'ValidatedReactionTransaction',
    'ProcessedReaction',
    'RegistrationStatus',
    'RegisterCommitmentResult',
    'MembershipProofResult',
    'AdmissionResult',
    'ReactionKeyDerivationService',
    'UserCommitmentService',
    'MembershipService',
    'HomomorphicTallyEngine',
    'ReactionTransactionProcessor',
    'ReactionQueryService',
    'FeedInfoProvider',
    'GroupFeedInfoProvider',
    'EventBus',
    'MemberJoinedEvent',
    'MemberLeftEvent',
    'MemberBannedEvent',
    'MemberUnbannedEvent',
    'FeedCreatedEvent',
    'MessagePostedEvent',
    'GroupMembershipMerkleHandler',
    'FeedCreatedCommitmentHandler',
    'ReactionAdmissionValidator',

    # Exceptions
    'ReactionError',
    'InvalidCiphertextError',
    'KeyDerivationError',
    'NullifierMessageMismatchError',
]
