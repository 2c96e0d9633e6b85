#!/usr/bin/env python3
"""
Integrated Anonymous Reaction System
====================================
Wires membership trees, proof verification, homomorphic tallies and the
nullifier ledger into one node-side service.

Reactions flow through two stages:
1. Admission: payload shape, feed context and ZK proof against recent roots
2. Indexing: atomic tally and nullifier update for the block's transaction
"""

import logging
from typing import Any, Dict, Optional

from config.config import SystemConfig
from primitives.babyjubjub import BabyJubJub
from primitives.poseidon import PoseidonHash
from storage.database import create_database_engine, create_schema
from storage.unit_of_work import UnitOfWorkProvider
from utils.utils import PerformanceMonitor
from zk.verifier import ZKVerifier, create_verifier

from reactions.commitments import UserCommitmentService
from reactions.events import EventBus
from reactions.feed_info import FeedInfoProvider, GroupFeedInfoProvider
from reactions.key_derivation import ReactionKeyDerivationService
from reactions.membership_handlers import FeedCreatedCommitmentHandler, GroupMembershipMerkleHandler
from reactions.membership_service import MembershipService
from reactions.models import (
    AdmissionResult,
    NewReactionPayload,
    ProcessedReaction,
    ValidatedReactionTransaction,
)
from reactions.reaction_processor import ReactionTransactionProcessor
from reactions.reaction_service import ReactionQueryService
from reactions.reaction_validator import ReactionAdmissionValidator
from reactions.tally import HomomorphicTallyEngine

logger = logging.getLogger(__name__)


class IntegratedReactionSystem:
    """
    Composition root for the reaction subsystem.

    Every collaborator is constructed here and handed to the services that
    use it; event handlers are subscribed to the system's own event bus.
    """

    def __init__(self, config: Optional[SystemConfig] = None,
                 verifier: Optional[ZKVerifier] = None,
                 feed_info: Optional[FeedInfoProvider] = None):
        self.config = config or SystemConfig()

        logger.info("Initializing Integrated Reaction System...")
        self.monitor = PerformanceMonitor(self.config.metrics_history)

        # Persistence
        self.engine = create_database_engine(self.config.storage_config)
        self.uow_provider = UnitOfWorkProvider(self.engine, self.config.storage_config)

        # Primitives
        self.curve = BabyJubJub()
        self.poseidon = PoseidonHash()

        # Services
        self.key_derivation = ReactionKeyDerivationService()
        self.commitments = UserCommitmentService(self.poseidon)
        self.membership = MembershipService(
            self.uow_provider, self.poseidon,
            self.config.membership_config, self.monitor)
        self.tally_engine = HomomorphicTallyEngine(self.curve)
        self.processor = ReactionTransactionProcessor(
            self.uow_provider, self.tally_engine,
            self.config.processor_config, self.monitor)
        self.queries = ReactionQueryService(self.uow_provider)

        # Admission
        self.verifier = verifier or create_verifier(self.config.zk_config)
        self.feed_info = feed_info or GroupFeedInfoProvider(
            self.curve, self.poseidon, self.key_derivation)
        self.validator = ReactionAdmissionValidator(
            self.verifier, self.membership, self.feed_info,
            self.config.membership_config, self.tally_engine)

        # Events
        self.event_bus = EventBus()
        self.membership_handler = GroupMembershipMerkleHandler(
            self.membership, self.commitments, self.uow_provider)
        self.membership_handler.register(self.event_bus)
        self.feed_created_handler = FeedCreatedCommitmentHandler(
            self.membership, self.commitments, self.config.local_user_address)
        self.feed_created_handler.register(self.event_bus)
        if isinstance(self.feed_info, GroupFeedInfoProvider):
            self.feed_info.register(self.event_bus)

        self._initialized = False

    async def initialize(self):
        """Create missing tables"""
        await self.uow_provider.run(create_schema, self.engine)
        self._initialized = True
        logger.info("Integrated Reaction System ready")

    def initialize_local_user(self, private_key_hex: str) -> bytes:
        return self.commitments.initialize_local(private_key_hex)

    async def admit_reaction(self, payload: NewReactionPayload) -> AdmissionResult:
        """Mempool admission check for a submitted reaction"""
        with self.monitor.start_operation("admit_reaction"):
            return await self.validator.validate(payload)

    async def index_reaction(self, transaction: ValidatedReactionTransaction) -> ProcessedReaction:
        """Apply a reaction included in a block"""
        if not self._initialized:
            raise RuntimeError("System not initialized")
        return await self.processor.handle_reaction_transaction(transaction)

    async def publish(self, event) -> int:
        return await self.event_bus.publish(event)

    def get_system_metrics(self) -> Dict[str, Any]:
        return {
            'database': self.engine.dialect.name,
            'circuit_version': self.verifier.get_current_version(),
            'tree_depth': self.config.membership_config.tree_depth,
            'root_grace_period': self.config.membership_config.root_grace_period,
            'performance': self.monitor.get_summary(),
        }

    def shutdown(self):
        self.uow_provider.shutdown()
        logger.info("Integrated Reaction System shut down")
