"""
Read-side query tests: feed sync, backups and audit rows
"""

import asyncio
import uuid

import pytest

from reactions.reaction_processor import ReactionTransactionProcessor
from reactions.reaction_service import ReactionQueryService
from reactions.tally import HomomorphicTallyEngine

from conftest import make_nullifier, make_payload, make_transaction


@pytest.fixture
def processor(uow_provider, curve, processor_config):
    return ReactionTransactionProcessor(
        uow_provider, HomomorphicTallyEngine(curve), processor_config)


@pytest.fixture
def queries(uow_provider):
    return ReactionQueryService(uow_provider)


def _vote(processor, curve, feed_pk, feed_id, message_id, seed, block_height=10, backup=None):
    payload = make_payload(curve, feed_pk, feed_id, message_id, make_nullifier(seed), seed % 6,
                           randomness=seed + 3, backup=backup)
    return asyncio.run(processor.handle_reaction_transaction(make_transaction(payload, block_height)))


class TestFeedSync:

    def test_since_version_filters_older_changes(self, processor, queries, curve, feed_pk):
        feed_id = uuid.uuid4()
        busy, quiet = uuid.uuid4(), uuid.uuid4()
        for seed in (1, 2, 3):
            _vote(processor, curve, feed_pk, feed_id, busy, seed)
        _vote(processor, curve, feed_pk, feed_id, quiet, 4)

        everything = asyncio.run(queries.get_tallies_for_feeds([feed_id]))
        assert [(t.message_id, t.version) for t in everything] == [(quiet, 1), (busy, 3)]

        changed = asyncio.run(queries.get_tallies_for_feeds([feed_id], since_version=2))
        assert [t.message_id for t in changed] == [busy]

    def test_other_feeds_are_excluded(self, processor, queries, curve, feed_pk):
        mine, theirs = uuid.uuid4(), uuid.uuid4()
        _vote(processor, curve, feed_pk, mine, uuid.uuid4(), 1)
        _vote(processor, curve, feed_pk, theirs, uuid.uuid4(), 2)

        tallies = asyncio.run(queries.get_tallies_for_feeds([mine]))
        assert [t.feed_id for t in tallies] == [mine]
        assert asyncio.run(queries.get_tallies_for_feeds([])) == []

    def test_get_tallies_ignores_foreign_feed(self, processor, queries, curve, feed_pk):
        feed_id, message_id = uuid.uuid4(), uuid.uuid4()
        _vote(processor, curve, feed_pk, feed_id, message_id, 1)

        assert asyncio.run(queries.get_tallies(uuid.uuid4(), [message_id])) == {}
        assert asyncio.run(queries.get_tallies(feed_id, [])) == {}


class TestNullifierLedger:

    def test_backup_lookup(self, processor, queries, curve, feed_pk):
        _vote(processor, curve, feed_pk, uuid.uuid4(), uuid.uuid4(), 5, backup=b"sealed")

        assert asyncio.run(queries.nullifier_exists(make_nullifier(5)))
        assert asyncio.run(queries.get_reaction_backup(make_nullifier(5))) == b"sealed"
        assert asyncio.run(queries.get_reaction_backup(make_nullifier(6))) is None

    def test_vote_without_backup(self, processor, queries, curve, feed_pk):
        _vote(processor, curve, feed_pk, uuid.uuid4(), uuid.uuid4(), 7)
        assert asyncio.run(queries.get_reaction_backup(make_nullifier(7))) is None

    def test_transactions_from_block(self, processor, queries, curve, feed_pk):
        feed_id = uuid.uuid4()
        for seed, height in ((1, 100), (2, 105), (3, 110)):
            _vote(processor, curve, feed_pk, feed_id, uuid.uuid4(), seed, block_height=height)

        rows = asyncio.run(queries.get_transactions_from_block(105))
        assert [r.block_height for r in rows] == [105, 110]
        assert all(r.feed_id == feed_id for r in rows)
