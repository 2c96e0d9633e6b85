"""
Persistence Layer for Anonymous Reactions
SQLAlchemy Core tables, repositories and transaction scopes
"""

from .database import (
    create_database_engine,
    create_schema,
    is_serialization_failure,
    uses_single_connection,
    metadata,

    # Exceptions
    StorageError,
    SerializationConflictError,
)
from .models import (
    EMOJI_SLOTS,
    VoteCiphertext,
    MemberCommitment,
    MerkleRootRecord,
    MessageReactionTally,
    ReactionNullifier,
    ReactionTransaction,
    MemberStatus,
    utcnow,
)
from .repositories import (
    CommitmentRepository,
    MerkleTreeRepository,
    ReactionsRepository,
    MemberStatusRepository,
)
from .unit_of_work import UnitOfWork, UnitOfWorkProvider

__version__ = "1.0.0"

__all__ = [
    'create_database_engine',
    'create_schema',
    'is_serialization_failure',
    'uses_single_connection',
    'metadata',
    'StorageError',
    'SerializationConflictError',
    'EMOJI_SLOTS',
    'VoteCiphertext',
    'MemberCommitment',
    'MerkleRootRecord',
    'MessageReactionTally',
    'ReactionNullifier',
    'ReactionTransaction',
    'MemberStatus',
    'utcnow',
    'CommitmentRepository',
    'MerkleTreeRepository',
    'ReactionsRepository',
    'MemberStatusRepository',
    'UnitOfWork',
    'UnitOfWorkProvider',
]
