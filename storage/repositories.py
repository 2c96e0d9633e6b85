"""
Repositories over SQLAlchemy Core
Each repository is bound to the connection of one unit of work
"""

import logging
import uuid
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Connection

from . import schemas
from .models import (
    MemberCommitment,
    MemberStatus,
    MerkleRootRecord,
    MessageReactionTally,
    ReactionNullifier,
    ReactionTransaction,
    VoteCiphertext,
)

logger = logging.getLogger(__name__)

MAX_TALLY_PAGE = 1000


class Repository:
    """Base repository holding the unit-of-work connection"""

    def __init__(self, connection: Connection):
        self.connection = connection


# ============================================================================
# COMMITMENTS
# ============================================================================


class CommitmentRepository(Repository):

    def commitment_exists(self, feed_id: uuid.UUID, commitment: bytes) -> bool:
        table = schemas.feed_member_commitments
        row = self.connection.execute(
            select(table.c.id)
            .where(table.c.feed_id == str(feed_id))
            .where(table.c.commitment == commitment)
        ).first()
        return row is not None

    def get_commitment_count(self, feed_id: uuid.UUID) -> int:
        table = schemas.feed_member_commitments
        return self.connection.scalar(
            select(func.count()).select_from(table)
            .where(table.c.feed_id == str(feed_id))
        ) or 0

    def get_commitments(self, feed_id: uuid.UUID) -> List[bytes]:
        """All commitments for a feed in registration (leaf) order"""
        table = schemas.feed_member_commitments
        rows = self.connection.execute(
            select(table.c.commitment)
            .where(table.c.feed_id == str(feed_id))
            .order_by(table.c.id)
        ).fetchall()
        return [bytes(row.commitment) for row in rows]

    def add_commitment(self, record: MemberCommitment):
        self.connection.execute(insert(schemas.feed_member_commitments).values(
            feed_id=str(record.feed_id),
            commitment=record.commitment,
            registered_at=record.registered_at,
        ))


# ============================================================================
# MERKLE ROOT HISTORY
# ============================================================================


class MerkleTreeRepository(Repository):

    def _to_record(self, row) -> MerkleRootRecord:
        return MerkleRootRecord(
            feed_id=uuid.UUID(row.feed_id),
            merkle_root=bytes(row.merkle_root),
            block_height=row.block_height,
            created_at=row.created_at,
        )

    def save_root(self, record: MerkleRootRecord):
        self.connection.execute(insert(schemas.merkle_root_history).values(
            feed_id=str(record.feed_id),
            merkle_root=record.merkle_root,
            block_height=record.block_height,
            created_at=record.created_at,
        ))

    def get_recent_roots(self, feed_id: uuid.UUID, count: int) -> List[MerkleRootRecord]:
        """Most recent first"""
        table = schemas.merkle_root_history
        rows = self.connection.execute(
            select(table)
            .where(table.c.feed_id == str(feed_id))
            .order_by(table.c.id.desc())
            .limit(count)
        ).fetchall()
        return [self._to_record(row) for row in rows]

    def get_latest_root(self, feed_id: uuid.UUID) -> Optional[MerkleRootRecord]:
        roots = self.get_recent_roots(feed_id, 1)
        return roots[0] if roots else None


# ============================================================================
# REACTIONS (TALLIES, NULLIFIERS, TRANSACTIONS)
# ============================================================================


class ReactionsRepository(Repository):

    @staticmethod
    def _tally_from_row(row) -> MessageReactionTally:
        return MessageReactionTally(
            message_id=uuid.UUID(row.message_id),
            feed_id=uuid.UUID(row.feed_id),
            tally=VoteCiphertext.unpack(bytes(row.tally_c1), bytes(row.tally_c2)),
            total_count=row.total_count,
            version=row.version,
            last_updated=row.last_updated,
        )

    @staticmethod
    def _nullifier_from_row(row) -> ReactionNullifier:
        backup = row.encrypted_emoji_backup
        return ReactionNullifier(
            nullifier=bytes(row.nullifier),
            message_id=uuid.UUID(row.message_id),
            vote=VoteCiphertext.unpack(bytes(row.vote_c1), bytes(row.vote_c2)),
            encrypted_emoji_backup=bytes(backup) if backup is not None else None,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _transaction_from_row(row) -> ReactionTransaction:
        return ReactionTransaction(
            id=row.id,
            block_height=row.block_height,
            feed_id=uuid.UUID(row.feed_id),
            message_id=uuid.UUID(row.message_id),
            nullifier=bytes(row.nullifier),
            ciphertext=VoteCiphertext.unpack(
                bytes(row.ciphertext_c1), bytes(row.ciphertext_c2)),
            zk_proof=bytes(row.zk_proof),
            circuit_version=row.circuit_version,
            created_at=row.created_at,
        )

    # --- tallies -----------------------------------------------------------

    def get_tally(self, message_id: uuid.UUID) -> Optional[MessageReactionTally]:
        table = schemas.message_reaction_tallies
        row = self.connection.execute(
            select(table).where(table.c.message_id == str(message_id))
        ).first()
        return self._tally_from_row(row) if row is not None else None

    def get_tally_for_update(self, message_id: uuid.UUID) -> Optional[MessageReactionTally]:
        """Row-locked read; FOR UPDATE is dropped on dialects without it"""
        table = schemas.message_reaction_tallies
        row = self.connection.execute(
            select(table)
            .where(table.c.message_id == str(message_id))
            .with_for_update()
        ).first()
        return self._tally_from_row(row) if row is not None else None

    def get_tallies(self, message_ids: Iterable[uuid.UUID]) -> List[MessageReactionTally]:
        ids = [str(message_id) for message_id in message_ids]
        if not ids:
            return []
        table = schemas.message_reaction_tallies
        rows = self.connection.execute(
            select(table).where(table.c.message_id.in_(ids))
        ).fetchall()
        return [self._tally_from_row(row) for row in rows]

    def get_tallies_for_feeds(self, feed_ids: Sequence[uuid.UUID],
                              since_version: int) -> List[MessageReactionTally]:
        ids = [str(feed_id) for feed_id in feed_ids]
        if not ids:
            return []
        table = schemas.message_reaction_tallies
        rows = self.connection.execute(
            select(table)
            .where(table.c.feed_id.in_(ids))
            .where(table.c.version > since_version)
            .where(table.c.total_count > 0)
            .order_by(table.c.version)
            .limit(MAX_TALLY_PAGE)
        ).fetchall()
        return [self._tally_from_row(row) for row in rows]

    def save_tally(self, tally: MessageReactionTally, is_new: bool):
        table = schemas.message_reaction_tallies
        tally_c1, tally_c2 = tally.tally.pack()
        values = dict(
            feed_id=str(tally.feed_id),
            tally_c1=tally_c1,
            tally_c2=tally_c2,
            total_count=tally.total_count,
            version=tally.version,
            last_updated=tally.last_updated,
        )
        if is_new:
            self.connection.execute(
                insert(table).values(message_id=str(tally.message_id), **values))
        else:
            self.connection.execute(
                update(table)
                .where(table.c.message_id == str(tally.message_id))
                .values(**values))

    # --- nullifiers --------------------------------------------------------

    def nullifier_exists(self, nullifier: bytes) -> bool:
        table = schemas.reaction_nullifiers
        row = self.connection.execute(
            select(table.c.nullifier).where(table.c.nullifier == nullifier)
        ).first()
        return row is not None

    def get_nullifier(self, nullifier: bytes) -> Optional[ReactionNullifier]:
        table = schemas.reaction_nullifiers
        row = self.connection.execute(
            select(table).where(table.c.nullifier == nullifier)
        ).first()
        return self._nullifier_from_row(row) if row is not None else None

    def save_nullifier(self, record: ReactionNullifier, is_new: bool):
        table = schemas.reaction_nullifiers
        vote_c1, vote_c2 = record.vote.pack()
        if is_new:
            self.connection.execute(insert(table).values(
                nullifier=record.nullifier,
                message_id=str(record.message_id),
                vote_c1=vote_c1,
                vote_c2=vote_c2,
                encrypted_emoji_backup=record.encrypted_emoji_backup,
                created_at=record.created_at,
                updated_at=record.updated_at,
            ))
        else:
            # the nullifier and its creation time never change
            self.connection.execute(
                update(table)
                .where(table.c.nullifier == record.nullifier)
                .values(
                    vote_c1=vote_c1,
                    vote_c2=vote_c2,
                    encrypted_emoji_backup=record.encrypted_emoji_backup,
                    updated_at=record.updated_at,
                ))

    # --- transactions ------------------------------------------------------

    def save_transaction(self, record: ReactionTransaction):
        ciphertext_c1, ciphertext_c2 = record.ciphertext.pack()
        self.connection.execute(insert(schemas.reaction_transactions).values(
            id=record.id,
            block_height=record.block_height,
            feed_id=str(record.feed_id),
            message_id=str(record.message_id),
            nullifier=record.nullifier,
            ciphertext_c1=ciphertext_c1,
            ciphertext_c2=ciphertext_c2,
            zk_proof=record.zk_proof,
            circuit_version=record.circuit_version,
            created_at=record.created_at,
        ))

    def get_transactions_from_block(self, block_height: int) -> List[ReactionTransaction]:
        table = schemas.reaction_transactions
        rows = self.connection.execute(
            select(table)
            .where(table.c.block_height >= block_height)
            .order_by(table.c.block_height, table.c.created_at)
        ).fetchall()
        return [self._transaction_from_row(row) for row in rows]


# ============================================================================
# MEMBER STATUS
# ============================================================================


class MemberStatusRepository(Repository):

    @staticmethod
    def _to_record(row) -> MemberStatus:
        return MemberStatus(
            feed_id=uuid.UUID(row.feed_id),
            member_address=row.member_address,
            commitment=bytes(row.commitment),
            key_generation=row.key_generation,
            registered_at_block=row.registered_at_block,
            revoked_at_block=row.revoked_at_block,
        )

    def get_status(self, feed_id: uuid.UUID, member_address: str) -> Optional[MemberStatus]:
        table = schemas.member_commitment_status
        row = self.connection.execute(
            select(table)
            .where(table.c.feed_id == str(feed_id))
            .where(table.c.member_address == member_address)
        ).first()
        return self._to_record(row) if row is not None else None

    def save_status(self, status: MemberStatus):
        table = schemas.member_commitment_status
        values = dict(
            commitment=status.commitment,
            key_generation=status.key_generation,
            registered_at_block=status.registered_at_block,
            revoked_at_block=status.revoked_at_block,
        )
        existing = self.get_status(status.feed_id, status.member_address)
        if existing is None:
            self.connection.execute(insert(table).values(
                feed_id=str(status.feed_id),
                member_address=status.member_address,
                **values))
        else:
            self.connection.execute(
                update(table)
                .where(table.c.feed_id == str(status.feed_id))
                .where(table.c.member_address == status.member_address)
                .values(**values))
