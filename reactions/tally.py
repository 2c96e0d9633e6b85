"""
Homomorphic Tally Engine
Per-message ElGamal ciphertext sums over BabyJubJub, updated without decryption

Each of the six emoji slots holds a ciphertext (C1, C2). Adding two votes
adds their points slot by slot; replacing a vote subtracts the old ciphertext
before adding the new one, so the tally always equals the sum of every
member's current vote.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Optional, Tuple

from primitives.babyjubjub import BabyJubJub, ECPoint
from storage.models import EMOJI_SLOTS, MessageReactionTally, VoteCiphertext, utcnow

from .models import InvalidCiphertextError

logger = logging.getLogger(__name__)


class HomomorphicTallyEngine:
    """Pure curve bookkeeping for message tallies"""

    def __init__(self, curve: Optional[BabyJubJub] = None):
        self.curve = curve or BabyJubJub()

    def new_tally(self, feed_id: uuid.UUID, message_id: uuid.UUID,
                  now: Optional[datetime] = None) -> MessageReactionTally:
        """Empty tally: the identity point in every slot"""
        return MessageReactionTally(
            message_id=message_id,
            feed_id=feed_id,
            tally=VoteCiphertext.identity(),
            total_count=0,
            version=0,
            last_updated=now or utcnow(),
        )

    def validate_vote(self, vote: VoteCiphertext):
        for slot in range(EMOJI_SLOTS):
            for label, point in (("C1", vote.c1[slot]), ("C2", vote.c2[slot])):
                if not self.curve.is_on_curve(point):
                    raise InvalidCiphertextError(
                        f"{label}[{slot}] is not a point on BabyJubJub")

    def _combine(self, left: Tuple[ECPoint, ...], right: Tuple[ECPoint, ...],
                 subtract: bool = False) -> Tuple[ECPoint, ...]:
        op = self.curve.subtract if subtract else self.curve.add
        return tuple(op(a, b) for a, b in zip(left, right))

    def add_ciphertexts(self, left: VoteCiphertext, right: VoteCiphertext) -> VoteCiphertext:
        return VoteCiphertext(
            self._combine(left.c1, right.c1),
            self._combine(left.c2, right.c2))

    def subtract_ciphertexts(self, left: VoteCiphertext, right: VoteCiphertext) -> VoteCiphertext:
        return VoteCiphertext(
            self._combine(left.c1, right.c1, subtract=True),
            self._combine(left.c2, right.c2, subtract=True))

    def add_vote(self, tally: MessageReactionTally, vote: VoteCiphertext) -> MessageReactionTally:
        """Fresh vote: slot-wise sum and one more voter"""
        self.validate_vote(vote)
        return replace(
            tally,
            tally=self.add_ciphertexts(tally.tally, vote),
            total_count=tally.total_count + 1,
        )

    def replace_vote(self, tally: MessageReactionTally, old_vote: VoteCiphertext,
                     new_vote: VoteCiphertext) -> MessageReactionTally:
        """Changed vote: tally - old + new, voter count unchanged"""
        self.validate_vote(new_vote)
        without_old = self.subtract_ciphertexts(tally.tally, old_vote)
        return replace(tally, tally=self.add_ciphertexts(without_old, new_vote))
