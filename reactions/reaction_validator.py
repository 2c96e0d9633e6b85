"""
Reaction Admission Validator
Mempool-time checks that gate a reaction before it is signed into a block
"""

import logging
from typing import Optional

from config.config import MembershipConfig
from zk.verifier import PublicInputs, VerifyErrorCode, ZKVerifier

from .feed_info import FeedInfoProvider
from .membership_service import MembershipService
from .models import AdmissionResult, InvalidCiphertextError, NewReactionPayload
from .tally import HomomorphicTallyEngine

logger = logging.getLogger(__name__)


class ReactionAdmissionValidator:
    """Checks payload shape, feed context and the membership proof"""

    def __init__(self, verifier: ZKVerifier, membership_service: MembershipService,
                 feed_info: FeedInfoProvider,
                 config: Optional[MembershipConfig] = None,
                 tally_engine: Optional[HomomorphicTallyEngine] = None):
        self.verifier = verifier
        self.membership_service = membership_service
        self.feed_info = feed_info
        self.config = config or MembershipConfig()
        self.tally_engine = tally_engine or HomomorphicTallyEngine()

    async def validate(self, payload: NewReactionPayload) -> AdmissionResult:
        shape_errors = payload.shape_errors()
        if shape_errors:
            logger.warning(
                f"Malformed reaction for message {payload.message_id}: {'; '.join(shape_errors)}")
            return AdmissionResult.reject(
                "; ".join(shape_errors), VerifyErrorCode.INVALID_PROOF_FORMAT)

        try:
            vote = payload.to_vote()
            self.tally_engine.validate_vote(vote)
        except InvalidCiphertextError as e:
            logger.warning(f"Invalid ciphertext for message {payload.message_id}: {e}")
            return AdmissionResult.reject(str(e), VerifyErrorCode.INVALID_PROOF_FORMAT)

        if self.verifier.is_vulnerable_version(payload.circuit_version):
            return AdmissionResult.reject(
                f"Circuit version '{payload.circuit_version}' has known vulnerabilities. "
                f"Use '{self.verifier.get_current_version()}'.",
                VerifyErrorCode.VULNERABLE_CIRCUIT_VERSION)

        feed_pk = await self.feed_info.get_feed_public_key(payload.feed_id)
        if feed_pk is None:
            logger.warning(f"Reaction for unknown feed {payload.feed_id}")
            return AdmissionResult.reject(f"Feed {payload.feed_id} not found")

        author_commitment = await self.feed_info.get_author_commitment(payload.message_id)
        if author_commitment is None:
            logger.debug(
                f"No author commitment for message {payload.message_id}; using 0")
            author_commitment = 0

        recent_roots = await self.membership_service.get_recent_roots(
            payload.feed_id, self.config.root_grace_period)
        if not recent_roots:
            logger.warning(f"No Merkle roots found for feed {payload.feed_id}")
            return AdmissionResult.reject(
                f"No membership roots for feed {payload.feed_id}")

        result = None
        for root in recent_roots:
            public_inputs = PublicInputs(
                nullifier=payload.nullifier,
                message_id=payload.message_id.bytes_le,
                members_root=root.merkle_root,
                author_commitment=author_commitment,
                feed_pk=feed_pk,
                ciphertext_c1=vote.c1,
                ciphertext_c2=vote.c2,
            )
            result = await self.verifier.verify(
                payload.zk_proof, public_inputs, payload.circuit_version)
            if result.valid:
                logger.info(
                    f"Admitted reaction for message {payload.message_id} "
                    f"against root at block {root.block_height}")
                return AdmissionResult.accept(result.warning)

            # version and format failures do not depend on the root
            if result.error_code != VerifyErrorCode.INVALID_PROOF:
                break

        logger.warning(
            f"Reaction proof rejected for message {payload.message_id}: {result.message}")
        return AdmissionResult.reject(result.message, result.error_code)
