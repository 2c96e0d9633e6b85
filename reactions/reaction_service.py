"""
Reaction Query Service
Read-side surface for clients: tallies, nullifier lookups, vote backups and audit rows
"""

import logging
import uuid
from typing import Dict, List, Optional, Sequence

from storage.models import MessageReactionTally, ReactionTransaction
from storage.repositories import ReactionsRepository
from storage.unit_of_work import UnitOfWorkProvider

logger = logging.getLogger(__name__)


class ReactionQueryService:
    """Read-only queries over tallies and the nullifier ledger"""

    def __init__(self, uow_provider: UnitOfWorkProvider):
        self.uow_provider = uow_provider

    def _read(self, method_name: str, *args):
        with self.uow_provider.create_read_only() as uow:
            return getattr(uow.get_repository(ReactionsRepository), method_name)(*args)

    async def get_tallies(self, feed_id: uuid.UUID,
                          message_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, MessageReactionTally]:
        """Tallies of the given messages in one feed; messages without votes are absent"""
        tallies = await self.uow_provider.run(self._read, 'get_tallies', list(message_ids))
        return {tally.message_id: tally for tally in tallies if tally.feed_id == feed_id}

    async def nullifier_exists(self, nullifier: bytes) -> bool:
        return await self.uow_provider.run(self._read, 'nullifier_exists', bytes(nullifier))

    async def get_reaction_backup(self, nullifier: bytes) -> Optional[bytes]:
        """Encrypted emoji backup a member stored with their vote, if any"""
        record = await self.uow_provider.run(self._read, 'get_nullifier', bytes(nullifier))
        if record is None:
            return None
        return record.encrypted_emoji_backup

    async def get_tallies_for_feeds(self, feed_ids: Sequence[uuid.UUID],
                                    since_version: int = 0) -> List[MessageReactionTally]:
        """Non-empty tallies changed after since_version, oldest change first"""
        return await self.uow_provider.run(
            self._read, 'get_tallies_for_feeds', list(feed_ids), since_version)

    async def get_transactions_from_block(self, block_height: int) -> List[ReactionTransaction]:
        return await self.uow_provider.run(
            self._read, 'get_transactions_from_block', block_height)
