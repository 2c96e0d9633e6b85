"""
Membership Event Handlers
Keep commitment trees in step with group membership changes
"""

import logging
import uuid
from dataclasses import replace
from typing import Optional

from storage.models import MemberStatus
from storage.repositories import MemberStatusRepository
from storage.unit_of_work import UnitOfWorkProvider

from .commitments import UserCommitmentService
from .events import (
    FeedCreatedEvent,
    MemberBannedEvent,
    MemberJoinedEvent,
    MemberLeftEvent,
    MemberUnbannedEvent,
    MembershipEvent,
)
from .membership_service import MembershipService

logger = logging.getLogger(__name__)


class GroupMembershipMerkleHandler:
    """Registers commitments on join/unban and rolls the root on leave/ban"""

    def __init__(self, membership_service: MembershipService,
                 commitment_service: UserCommitmentService,
                 uow_provider: UnitOfWorkProvider):
        self.membership_service = membership_service
        self.commitment_service = commitment_service
        self.uow_provider = uow_provider

    # --- member status -----------------------------------------------------

    def _activate_member(self, event: MembershipEvent, commitment: bytes):
        with self.uow_provider.create_writable() as uow:
            uow.get_repository(MemberStatusRepository).save_status(MemberStatus(
                feed_id=event.feed_id,
                member_address=event.member_address,
                commitment=commitment,
                key_generation=event.key_generation,
                registered_at_block=event.block_height,
                revoked_at_block=None,
            ))
            uow.commit()

    def _revoke_member(self, event: MembershipEvent) -> bool:
        with self.uow_provider.create_writable() as uow:
            statuses = uow.get_repository(MemberStatusRepository)
            status = statuses.get_status(event.feed_id, event.member_address)
            if status is None:
                return False
            statuses.save_status(replace(
                status,
                key_generation=event.key_generation,
                revoked_at_block=event.block_height,
            ))
            uow.commit()
        return True

    def get_member_status(self, feed_id: uuid.UUID, member_address: str) -> Optional[MemberStatus]:
        with self.uow_provider.create_read_only() as uow:
            return uow.get_repository(MemberStatusRepository).get_status(feed_id, member_address)

    # --- handlers ----------------------------------------------------------

    async def _add_member(self, event: MembershipEvent, reason: str):
        try:
            commitment = self.commitment_service.derive_commitment_from_address(
                event.member_address)
            await self.uow_provider.run(self._activate_member, event, commitment)

            result = await self.membership_service.register_commitment(
                event.feed_id, commitment, event.block_height)
            if result.success:
                logger.info(
                    f"[{reason}] Commitment for {event.member_address[:10]}... in feed "
                    f"{event.feed_id}: {result.status.value}")
            else:
                logger.warning(
                    f"[{reason}] Failed to register commitment for {event.member_address[:10]}... "
                    f"in feed {event.feed_id}: {result.message}")
        except Exception as e:
            logger.error(
                f"[{reason}] Error handling member {event.member_address[:10]}... "
                f"for feed {event.feed_id}: {e}", exc_info=True)

    async def _remove_member(self, event: MembershipEvent, reason: str):
        try:
            known = await self.uow_provider.run(self._revoke_member, event)
            if not known:
                logger.warning(
                    f"[{reason}] No commitment status for {event.member_address[:10]}... "
                    f"in feed {event.feed_id}")

            await self.membership_service.update_merkle_root(event.feed_id, event.block_height)
            logger.info(
                f"[{reason}] Revoked {event.member_address[:10]}... in feed {event.feed_id} "
                f"at block {event.block_height}")
        except Exception as e:
            logger.error(
                f"[{reason}] Error revoking member {event.member_address[:10]}... "
                f"for feed {event.feed_id}: {e}", exc_info=True)

    async def on_member_joined(self, event: MemberJoinedEvent):
        await self._add_member(event, "MemberJoined")

    async def on_member_unbanned(self, event: MemberUnbannedEvent):
        await self._add_member(event, "MemberUnbanned")

    async def on_member_left(self, event: MemberLeftEvent):
        await self._remove_member(event, "MemberLeft")

    async def on_member_banned(self, event: MemberBannedEvent):
        await self._remove_member(event, "MemberBanned")

    def register(self, bus):
        bus.subscribe(MemberJoinedEvent, self.on_member_joined)
        bus.subscribe(MemberUnbannedEvent, self.on_member_unbanned)
        bus.subscribe(MemberLeftEvent, self.on_member_left)
        bus.subscribe(MemberBannedEvent, self.on_member_banned)


class FeedCreatedCommitmentHandler:
    """Registers the local user's commitment in feeds they take part in"""

    def __init__(self, membership_service: MembershipService,
                 commitment_service: UserCommitmentService,
                 local_address: Optional[str] = None):
        self.membership_service = membership_service
        self.commitment_service = commitment_service
        self.local_address = local_address

    async def on_feed_created(self, event: FeedCreatedEvent):
        if not self.local_address or self.local_address not in event.participant_addresses:
            return

        commitment = self.commitment_service.get_local_commitment()
        if commitment is None:
            logger.warning(
                f"Local commitment not initialized; skipping registration for feed {event.feed_id}")
            return

        try:
            result = await self.membership_service.register_commitment(
                event.feed_id, commitment, event.block_height)
            if result.success:
                logger.info(
                    f"Registered local commitment for feed {event.feed_id}: {result.status.value}")
            else:
                logger.warning(
                    f"Failed to register local commitment for feed {event.feed_id}: {result.message}")
        except Exception as e:
            logger.error(
                f"Error registering local commitment for feed {event.feed_id}: {e}", exc_info=True)

    def register(self, bus):
        bus.subscribe(FeedCreatedEvent, self.on_feed_created)
