"""
Homomorphic tally engine tests with known-plaintext ElGamal vectors
"""

import uuid
from dataclasses import FrozenInstanceError

import pytest

from primitives.babyjubjub import IDENTITY, ECPoint
from reactions.elgamal import decrypt_counts, decrypt_slot, encrypt_reaction, solve_small_discrete_log
from reactions.models import InvalidCiphertextError
from reactions.tally import HomomorphicTallyEngine
from storage.models import EMOJI_SLOTS, VoteCiphertext

from conftest import FEED_SECRET


@pytest.fixture(scope="module")
def engine(curve) -> HomomorphicTallyEngine:
    return HomomorphicTallyEngine(curve)


def _empty(engine):
    return engine.new_tally(uuid.uuid4(), uuid.uuid4())


class TestNewTally:

    def test_identity_everywhere(self, engine):
        tally = _empty(engine)
        assert tally.tally_c1 == (IDENTITY,) * EMOJI_SLOTS
        assert tally.tally_c2 == (IDENTITY,) * EMOJI_SLOTS
        assert tally.total_count == 0
        assert tally.version == 0

    def test_records_are_immutable(self, engine):
        tally = _empty(engine)
        with pytest.raises(FrozenInstanceError):
            tally.total_count = 5


class TestElGamalVectors:

    def test_encrypt_decrypt_single_slot(self, curve, feed_pk):
        vote = encrypt_reaction(curve, feed_pk, 3, randomness=21)
        counts = decrypt_counts(curve, FEED_SECRET, vote, bound=2)
        assert counts == [0, 0, 0, 1, 0, 0]

    def test_decrypt_slot_returns_message_point(self, curve, feed_pk):
        vote = encrypt_reaction(curve, feed_pk, 0, randomness=5)
        assert decrypt_slot(curve, FEED_SECRET, vote.c1[0], vote.c2[0]) == curve.generator
        assert decrypt_slot(curve, FEED_SECRET, vote.c1[1], vote.c2[1]) == IDENTITY

    def test_discrete_log_bound(self, curve):
        assert solve_small_discrete_log(curve, curve.base_mul(4), 10) == 4
        assert solve_small_discrete_log(curve, curve.base_mul(40), 10) is None

    def test_invalid_emoji_index(self, curve, feed_pk):
        with pytest.raises(ValueError):
            encrypt_reaction(curve, feed_pk, EMOJI_SLOTS, randomness=1)


class TestTallyUpdates:

    def test_first_vote_equals_itself(self, engine, curve, feed_pk):
        vote = encrypt_reaction(curve, feed_pk, 2, randomness=9)
        tally = engine.add_vote(_empty(engine), vote)
        assert tally.tally == vote
        assert tally.total_count == 1

    def test_three_votes_on_slot_zero(self, engine, curve, feed_pk):
        votes = [encrypt_reaction(curve, feed_pk, 0, randomness=r) for r in (3, 50, 700)]
        tally = _empty(engine)
        for vote in votes:
            tally = engine.add_vote(tally, vote)

        expected_c1 = votes[0].c1[0]
        for vote in votes[1:]:
            expected_c1 = curve.add(expected_c1, vote.c1[0])

        assert tally.total_count == 3
        assert tally.tally_c1[0] == expected_c1
        assert decrypt_counts(curve, FEED_SECRET, tally.tally, bound=5) == [3, 0, 0, 0, 0, 0]

    def test_replace_matches_original_vote(self, engine, curve, feed_pk):
        other = encrypt_reaction(curve, feed_pk, 1, randomness=13)
        first = encrypt_reaction(curve, feed_pk, 2, randomness=17)
        changed = encrypt_reaction(curve, feed_pk, 4, randomness=19)

        updated = engine.add_vote(engine.add_vote(_empty(engine), other), first)
        updated = engine.replace_vote(updated, first, changed)

        direct = engine.add_vote(engine.add_vote(_empty(engine), other), changed)

        assert updated.tally == direct.tally
        assert updated.total_count == 2
        assert decrypt_counts(curve, FEED_SECRET, updated.tally, bound=3) == [0, 1, 0, 0, 1, 0]

    def test_add_vote_does_not_touch_version(self, engine, curve, feed_pk):
        tally = engine.add_vote(_empty(engine), encrypt_reaction(curve, feed_pk, 0, randomness=2))
        assert tally.version == 0

    def test_off_curve_vote_rejected(self, engine, curve, feed_pk):
        vote = encrypt_reaction(curve, feed_pk, 0, randomness=2)
        bad = VoteCiphertext((ECPoint(1, 2),) + vote.c1[1:], vote.c2)
        with pytest.raises(InvalidCiphertextError):
            engine.validate_vote(bad)
        with pytest.raises(InvalidCiphertextError):
            engine.add_vote(_empty(engine), bad)


class TestPacking:

    def test_pack_is_fixed_width(self, curve, feed_pk):
        vote = encrypt_reaction(curve, feed_pk, 5, randomness=8)
        c1, c2 = vote.pack()
        assert len(c1) == len(c2) == 384
        assert VoteCiphertext.unpack(c1, c2) == vote

    def test_unpack_rejects_wrong_size(self):
        with pytest.raises(ValueError):
            VoteCiphertext.unpack(b"\x00" * 383, b"\x00" * 384)
