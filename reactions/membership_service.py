"""
Membership Merkle Service
Per-feed sparse Merkle trees over member commitments, root history and proofs
"""

import logging
import uuid
from typing import List, Optional

from config.config import MembershipConfig
from primitives.field import from_bytes32, to_bytes32
from primitives.poseidon import PoseidonHash
from storage.models import MemberCommitment, MerkleRootRecord, utcnow
from storage.repositories import CommitmentRepository, MerkleTreeRepository
from storage.unit_of_work import UnitOfWork, UnitOfWorkProvider
from utils.utils import PerformanceMonitor
from zk.merkle_tree import SparseMerkleTree

from .models import MembershipProofResult, RegisterCommitmentResult

logger = logging.getLogger(__name__)


class MembershipService:
    """Maintains the member commitment tree of every feed"""

    def __init__(self, uow_provider: UnitOfWorkProvider,
                 poseidon: Optional[PoseidonHash] = None,
                 config: Optional[MembershipConfig] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        self.uow_provider = uow_provider
        self.config = config or MembershipConfig()
        self.poseidon = poseidon or PoseidonHash()
        self.monitor = monitor or PerformanceMonitor()
        self.tree = SparseMerkleTree(
            depth=self.config.tree_depth, hasher=self.poseidon.hash2)

    # ------------------------------------------------------------------
    # Tree computation
    # ------------------------------------------------------------------

    def compute_root(self, commitments: List[bytes]) -> bytes:
        with self.monitor.start_operation("merkle_root_recompute"):
            leaves = [from_bytes32(c) for c in commitments]
            return to_bytes32(self.tree.compute_root(leaves))

    def _persist_root(self, uow: UnitOfWork, feed_id: uuid.UUID, block_height: int) -> bytes:
        commitments = uow.get_repository(CommitmentRepository).get_commitments(feed_id)
        root = self.compute_root(commitments)
        uow.get_repository(MerkleTreeRepository).save_root(MerkleRootRecord(
            feed_id=feed_id,
            merkle_root=root,
            block_height=block_height,
            created_at=utcnow(),
        ))
        return root

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _register_commitment(self, feed_id: uuid.UUID, commitment: bytes,
                             block_height: int) -> RegisterCommitmentResult:
        with self.uow_provider.create_writable() as uow:
            commitments = uow.get_repository(CommitmentRepository)
            if commitments.commitment_exists(feed_id, commitment):
                return RegisterCommitmentResult.already_registered()

            leaf_index = commitments.get_commitment_count(feed_id)
            if leaf_index >= self.tree.capacity:
                return RegisterCommitmentResult.error(
                    f"Feed {feed_id} membership tree is full")

            commitments.add_commitment(MemberCommitment(
                feed_id=feed_id,
                commitment=commitment,
                registered_at=utcnow(),
            ))
            new_root = self._persist_root(uow, feed_id, block_height)
            uow.commit()

        logger.info(
            f"Registered commitment for feed {feed_id}, leaf index: {leaf_index}")
        return RegisterCommitmentResult.ok(new_root, leaf_index)

    async def register_commitment(self, feed_id: uuid.UUID, commitment: bytes,
                                  block_height: int = 0) -> RegisterCommitmentResult:
        """Append a commitment as the next leaf; idempotent per (feed, commitment)"""
        if len(commitment) != 32:
            return RegisterCommitmentResult.error(
                f"Commitment must be 32 bytes, got {len(commitment)}")
        if from_bytes32(commitment) >= self.poseidon.prime:
            return RegisterCommitmentResult.error(
                "Commitment is not a field element")

        try:
            return await self.uow_provider.run(
                self._register_commitment, feed_id, bytes(commitment), block_height)
        except Exception as e:
            logger.error(
                f"Failed to register commitment for feed {feed_id}: {e}", exc_info=True)
            return RegisterCommitmentResult.error(f"Registration failed: {e}")

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    def _get_membership_proof(self, feed_id: uuid.UUID, commitment: bytes) -> MembershipProofResult:
        with self.uow_provider.create_read_only() as uow:
            commitments = uow.get_repository(CommitmentRepository)
            if not commitments.commitment_exists(feed_id, commitment):
                return MembershipProofResult.not_member()

            all_commitments = commitments.get_commitments(feed_id)
            latest = uow.get_repository(MerkleTreeRepository).get_latest_root(feed_id)

        try:
            leaf_index = all_commitments.index(commitment)
        except ValueError:
            return MembershipProofResult.not_member()

        leaves = [from_bytes32(c) for c in all_commitments]
        with self.monitor.start_operation("merkle_proof_build"):
            proof = self.tree.build_proof(leaves, leaf_index)

        return MembershipProofResult(
            is_member=True,
            root=to_bytes32(proof.root),
            path_elements=[to_bytes32(e) for e in proof.path_elements],
            path_indices=list(proof.path_indices),
            tree_depth=self.tree.depth,
            block_height=latest.block_height if latest is not None else 0,
        )

    async def get_membership_proof(self, feed_id: uuid.UUID, commitment: bytes) -> MembershipProofResult:
        return await self.uow_provider.run(
            self._get_membership_proof, feed_id, bytes(commitment))

    # ------------------------------------------------------------------
    # Roots
    # ------------------------------------------------------------------

    def _update_merkle_root(self, feed_id: uuid.UUID, block_height: int) -> bytes:
        with self.uow_provider.create_writable() as uow:
            root = self._persist_root(uow, feed_id, block_height)
            uow.commit()
        logger.info(
            f"Updated Merkle root for feed {feed_id} at block {block_height}")
        return root

    async def update_merkle_root(self, feed_id: uuid.UUID, block_height: int) -> bytes:
        """Recompute the root from all commitments and append it to the history"""
        return await self.uow_provider.run(self._update_merkle_root, feed_id, block_height)

    def _read_recent_roots(self, feed_id: uuid.UUID, count: int):
        with self.uow_provider.create_read_only() as uow:
            roots = uow.get_repository(MerkleTreeRepository).get_recent_roots(feed_id, count)
            commitment_count = 0
            if not roots:
                commitment_count = uow.get_repository(
                    CommitmentRepository).get_commitment_count(feed_id)
        return roots, commitment_count

    async def get_recent_roots(self, feed_id: uuid.UUID, count: int) -> List[MerkleRootRecord]:
        """Most recent roots first; computes one lazily if none was persisted"""
        if count <= 0:
            return []

        roots, commitment_count = await self.uow_provider.run(
            self._read_recent_roots, feed_id, count)
        if roots or commitment_count == 0:
            return roots

        logger.info(
            f"No Merkle roots found but {commitment_count} commitments exist "
            f"for feed {feed_id}. Computing root...")
        await self.update_merkle_root(feed_id, 0)
        roots, _ = await self.uow_provider.run(self._read_recent_roots, feed_id, count)
        return roots

    def _is_commitment_registered(self, feed_id: uuid.UUID, commitment: bytes) -> bool:
        with self.uow_provider.create_read_only() as uow:
            return uow.get_repository(CommitmentRepository).commitment_exists(feed_id, commitment)

    async def is_commitment_registered(self, feed_id: uuid.UUID, commitment: bytes) -> bool:
        return await self.uow_provider.run(
            self._is_commitment_registered, feed_id, bytes(commitment))

    async def is_root_valid(self, feed_id: uuid.UUID, root: bytes,
                            grace_period: Optional[int] = None) -> bool:
        """Whether root is among the feed's most recent roots"""
        if grace_period is None:
            grace_period = self.config.root_grace_period
        recent = await self.get_recent_roots(feed_id, grace_period)
        return any(record.merkle_root == bytes(root) for record in recent)
