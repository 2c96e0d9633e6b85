"""
Reaction Transaction Processor
Applies one indexed reaction to the tally and nullifier ledger atomically
"""

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from config.config import ProcessorConfig
from storage.database import is_serialization_failure
from storage.models import ReactionNullifier, ReactionTransaction, utcnow
from storage.repositories import ReactionsRepository
from storage.unit_of_work import UnitOfWorkProvider
from utils.utils import PerformanceMonitor

from .models import NullifierMessageMismatchError, ProcessedReaction, ValidatedReactionTransaction
from .tally import HomomorphicTallyEngine

logger = logging.getLogger(__name__)


class ReactionTransactionProcessor:
    """Routes a reaction to the new-vote or update path inside one serializable scope"""

    def __init__(self, uow_provider: UnitOfWorkProvider,
                 tally_engine: Optional[HomomorphicTallyEngine] = None,
                 config: Optional[ProcessorConfig] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        self.uow_provider = uow_provider
        self.tally_engine = tally_engine or HomomorphicTallyEngine()
        self.config = config or ProcessorConfig()
        self.monitor = monitor or PerformanceMonitor()

    async def handle_reaction_transaction(self, transaction: ValidatedReactionTransaction) -> ProcessedReaction:
        """Apply the transaction, retrying on serialization conflicts"""
        payload = transaction.payload
        attempt = 0

        while True:
            attempt += 1
            try:
                result = await self.uow_provider.run(self._apply_transaction, transaction)
            except Exception as e:
                if is_serialization_failure(e):
                    if attempt < self.config.max_retries:
                        logger.warning(
                            f"Serialization conflict on message {payload.message_id}, "
                            f"attempt {attempt}/{self.config.max_retries}; retrying")
                        await asyncio.sleep(self.config.retry_backoff_ms * attempt / 1000)
                        continue
                    logger.error(
                        f"Giving up on reaction {transaction.transaction_id} after "
                        f"{attempt} conflicting attempts")
                    raise

                logger.error(
                    f"Failed to process reaction {transaction.transaction_id} "
                    f"for message {payload.message_id}: {e}", exc_info=True)
                raise

            logger.info(
                f"Processed {'updated' if result.is_update else 'new'} reaction on message "
                f"{result.message_id}: total={result.total_count}, version={result.version}")
            return result

    def _apply_transaction(self, transaction: ValidatedReactionTransaction) -> ProcessedReaction:
        payload = transaction.payload
        vote = payload.to_vote()
        now = utcnow()

        with self.monitor.start_operation("reaction_transaction"):
            with self.uow_provider.create_writable() as uow:
                reactions = uow.get_repository(ReactionsRepository)

                tally = reactions.get_tally_for_update(payload.message_id)
                is_new_tally = tally is None
                if is_new_tally:
                    tally = self.tally_engine.new_tally(
                        payload.feed_id, payload.message_id, now)

                existing = reactions.get_nullifier(payload.nullifier)
                if existing is not None and existing.message_id != payload.message_id:
                    # the stored vote belongs to another message's tally
                    raise NullifierMessageMismatchError(
                        f"Nullifier {payload.nullifier.hex()[:16]}... is recorded for message "
                        f"{existing.message_id}, not {payload.message_id}")

                if existing is None:
                    tally = self.tally_engine.add_vote(tally, vote)
                    nullifier = ReactionNullifier(
                        nullifier=payload.nullifier,
                        message_id=payload.message_id,
                        vote=vote,
                        encrypted_emoji_backup=payload.encrypted_emoji_backup,
                        created_at=now,
                        updated_at=now,
                    )
                else:
                    tally = self.tally_engine.replace_vote(tally, existing.vote, vote)
                    nullifier = replace(
                        existing,
                        vote=vote,
                        encrypted_emoji_backup=payload.encrypted_emoji_backup,
                        updated_at=now,
                    )

                tally = replace(tally, version=tally.version + 1, last_updated=now)

                reactions.save_nullifier(nullifier, is_new=existing is None)
                reactions.save_tally(tally, is_new=is_new_tally)
                reactions.save_transaction(ReactionTransaction(
                    id=transaction.transaction_id,
                    block_height=transaction.block_height,
                    feed_id=payload.feed_id,
                    message_id=payload.message_id,
                    nullifier=payload.nullifier,
                    ciphertext=vote,
                    zk_proof=payload.zk_proof,
                    circuit_version=payload.circuit_version,
                    created_at=now,
                ))
                uow.commit()

        return ProcessedReaction(
            message_id=payload.message_id,
            is_update=existing is not None,
            total_count=tally.total_count,
            version=tally.version,
        )
