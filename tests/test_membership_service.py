"""
Membership Merkle service tests against a SQLite database
"""

import asyncio
import uuid

import pytest

from primitives.field import from_bytes32, to_bytes32
from reactions.membership_service import MembershipService
from reactions.models import RegistrationStatus
from zk.merkle_tree import SparseMerkleTree

from conftest import commitment_for


@pytest.fixture
def service(uow_provider, poseidon, membership_config):
    return MembershipService(uow_provider, poseidon, membership_config)


class TestRegistration:

    def test_first_registration_gets_index_zero(self, service, poseidon):
        feed_id = uuid.uuid4()
        c1 = commitment_for(poseidon, 1)

        result = asyncio.run(service.register_commitment(feed_id, c1, block_height=5))

        assert result.status == RegistrationStatus.OK
        assert result.leaf_index == 0
        expected = from_bytes32(c1)
        for level in range(20):
            expected = poseidon.hash2(expected, service.tree.zero_values[level])
        assert result.new_root == to_bytes32(expected)

    def test_duplicate_is_benign_and_keeps_root(self, service, poseidon):
        feed_id = uuid.uuid4()
        c1 = commitment_for(poseidon, 1)

        async def scenario():
            first = await service.register_commitment(feed_id, c1)
            second = await service.register_commitment(feed_id, c1)
            roots = await service.get_recent_roots(feed_id, 10)
            return first, second, roots

        first, second, roots = asyncio.run(scenario())

        assert second.status == RegistrationStatus.ALREADY_REGISTERED
        assert second.success, "already registered is a success outcome"
        assert len(roots) == 1
        assert roots[0].merkle_root == first.new_root

    def test_sequential_indices(self, service, poseidon):
        feed_id = uuid.uuid4()

        async def scenario():
            return [await service.register_commitment(feed_id, commitment_for(poseidon, s))
                    for s in (10, 20, 30)]

        results = asyncio.run(scenario())
        assert [r.leaf_index for r in results] == [0, 1, 2]

    def test_feeds_are_independent(self, service, poseidon):
        feed_a, feed_b = uuid.uuid4(), uuid.uuid4()
        c = commitment_for(poseidon, 99)

        async def scenario():
            a = await service.register_commitment(feed_a, c)
            b = await service.register_commitment(feed_b, c)
            return a, b

        a, b = asyncio.run(scenario())
        assert a.leaf_index == 0 and b.leaf_index == 0
        assert a.new_root == b.new_root

    def test_concurrent_registrations_get_distinct_indices(self, service, poseidon):
        feed_id = uuid.uuid4()
        commitments = [commitment_for(poseidon, s) for s in range(1, 7)]

        async def scenario():
            return await asyncio.gather(*[
                service.register_commitment(feed_id, c) for c in commitments])

        results = asyncio.run(scenario())

        assert all(r.status == RegistrationStatus.OK for r in results)
        assert sorted(r.leaf_index for r in results) == list(range(len(commitments)))

    def test_invalid_commitment_is_error_result(self, service):
        feed_id = uuid.uuid4()
        short = asyncio.run(service.register_commitment(feed_id, b"\x01" * 31))
        too_big = asyncio.run(service.register_commitment(feed_id, b"\xff" * 32))
        assert short.status == RegistrationStatus.ERROR
        assert too_big.status == RegistrationStatus.ERROR

    def test_persistence_failure_is_error_result(self, service, poseidon, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("disk gone")

        monkeypatch.setattr(service, "_register_commitment", broken)
        result = asyncio.run(service.register_commitment(uuid.uuid4(), commitment_for(poseidon, 1)))
        assert result.status == RegistrationStatus.ERROR
        assert "disk gone" in result.message

    def test_full_tree_rejected(self, uow_provider, poseidon):
        from config.config import MembershipConfig
        small = MembershipService(uow_provider, poseidon, MembershipConfig(tree_depth=1))
        feed_id = uuid.uuid4()

        async def scenario():
            return [await small.register_commitment(feed_id, commitment_for(poseidon, s))
                    for s in (1, 2, 3)]

        results = asyncio.run(scenario())
        assert [r.status for r in results] == [
            RegistrationStatus.OK, RegistrationStatus.OK, RegistrationStatus.ERROR]


class TestProofs:

    def test_proof_reconstructs_root(self, service, poseidon):
        feed_id = uuid.uuid4()
        commitments = [commitment_for(poseidon, s) for s in (3, 4, 5, 6, 7)]

        async def scenario():
            for height, c in enumerate(commitments, start=1):
                await service.register_commitment(feed_id, c, block_height=height)
            return await service.get_membership_proof(feed_id, commitments[3])

        proof = asyncio.run(scenario())

        assert proof.is_member
        assert proof.tree_depth == 20
        assert proof.block_height == 5
        assert len(proof.path_elements) == 20
        assert service.tree.verify_proof(
            from_bytes32(commitments[3]),
            [from_bytes32(e) for e in proof.path_elements],
            proof.path_indices,
            from_bytes32(proof.root))

    def test_non_member(self, service, poseidon):
        proof = asyncio.run(service.get_membership_proof(uuid.uuid4(), commitment_for(poseidon, 1)))
        assert not proof.is_member
        assert proof.root is None

    def test_is_commitment_registered(self, service, poseidon):
        feed_id = uuid.uuid4()
        c = commitment_for(poseidon, 8)

        async def scenario():
            before = await service.is_commitment_registered(feed_id, c)
            await service.register_commitment(feed_id, c)
            after = await service.is_commitment_registered(feed_id, c)
            return before, after

        assert asyncio.run(scenario()) == (False, True)


class TestRoots:

    def test_recent_roots_newest_first(self, service, poseidon):
        feed_id = uuid.uuid4()

        async def scenario():
            results = [await service.register_commitment(feed_id, commitment_for(poseidon, s), s)
                       for s in (1, 2, 3, 4)]
            return results, await service.get_recent_roots(feed_id, 3)

        results, roots = asyncio.run(scenario())
        assert [r.merkle_root for r in roots] == [r.new_root for r in reversed(results[1:])]
        assert [r.block_height for r in roots] == [4, 3, 2]

    def test_update_appends_history(self, service, poseidon):
        feed_id = uuid.uuid4()

        async def scenario():
            registered = await service.register_commitment(feed_id, commitment_for(poseidon, 1))
            updated = await service.update_merkle_root(feed_id, 42)
            return registered, updated, await service.get_recent_roots(feed_id, 5)

        registered, updated, roots = asyncio.run(scenario())
        assert updated == registered.new_root
        assert len(roots) == 2
        assert roots[0].block_height == 42

    def test_cold_start_computes_root(self, service, poseidon, uow_provider):
        from storage.models import MemberCommitment, utcnow
        from storage.repositories import CommitmentRepository

        feed_id = uuid.uuid4()
        c = commitment_for(poseidon, 77)
        with uow_provider.create_writable() as uow:
            uow.get_repository(CommitmentRepository).add_commitment(
                MemberCommitment(feed_id, c, utcnow()))
            uow.commit()

        roots = asyncio.run(service.get_recent_roots(feed_id, 3))

        assert len(roots) == 1
        assert roots[0].block_height == 0
        assert roots[0].merkle_root == to_bytes32(
            SparseMerkleTree(hasher=poseidon.hash2).compute_root([from_bytes32(c)]))

    def test_empty_feed_has_no_roots(self, service):
        assert asyncio.run(service.get_recent_roots(uuid.uuid4(), 3)) == []

    def test_root_validity_window(self, service, poseidon):
        feed_id = uuid.uuid4()

        async def scenario():
            results = [await service.register_commitment(feed_id, commitment_for(poseidon, s))
                       for s in (1, 2, 3, 4, 5)]
            oldest_valid = await service.is_root_valid(feed_id, results[2].new_root)
            expired = await service.is_root_valid(feed_id, results[1].new_root)
            widened = await service.is_root_valid(feed_id, results[1].new_root, grace_period=4)
            return oldest_valid, expired, widened

        assert asyncio.run(scenario()) == (True, False, True)

    def test_zero_grace_period_accepts_no_root(self, service, poseidon):
        feed_id = uuid.uuid4()

        async def scenario():
            result = await service.register_commitment(feed_id, commitment_for(poseidon, 1))
            default_window = await service.is_root_valid(feed_id, result.new_root)
            empty_window = await service.is_root_valid(feed_id, result.new_root, grace_period=0)
            return default_window, empty_window

        assert asyncio.run(scenario()) == (True, False)
