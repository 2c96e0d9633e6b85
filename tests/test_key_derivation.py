"""
HKDF key derivation and member commitment tests
"""

import uuid

import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from primitives.field import BN254_SCALAR_PRIME, from_bytes32
from reactions.commitments import UserCommitmentService
from reactions.key_derivation import ReactionKeyDerivationService
from reactions.models import KeyDerivationError

FEED_KEY = bytes(range(32))


@pytest.fixture
def kdf() -> ReactionKeyDerivationService:
    return ReactionKeyDerivationService()


class TestReactionKeys:

    def test_deterministic(self, kdf):
        message_id = uuid.uuid4()
        first = kdf.derive_reaction_key(FEED_KEY, message_id)
        assert len(first) == 32
        assert first == kdf.derive_reaction_key(FEED_KEY, message_id)

    def test_inputs_change_output(self, kdf):
        message_id = uuid.uuid4()
        base = kdf.derive_reaction_key(FEED_KEY, message_id)
        assert base != kdf.derive_reaction_key(bytes(32), message_id)
        assert base != kdf.derive_reaction_key(FEED_KEY, uuid.uuid4())

    def test_matches_hkdf_construction(self, kdf):
        message_id = uuid.UUID("00112233-4455-6677-8899-aabbccddeeff")
        expected = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=message_id.bytes_le,
            info=b"protocol_omega/group_reaction/v1",
            backend=default_backend()
        ).derive(FEED_KEY)
        assert kdf.derive_reaction_key(FEED_KEY, message_id) == expected

    def test_string_identifiers_accepted(self, kdf):
        message_id = uuid.uuid4()
        assert kdf.derive_reaction_key(FEED_KEY, str(message_id)) == \
            kdf.derive_reaction_key(FEED_KEY, message_id)

    def test_feed_secret_is_domain_separated(self, kdf):
        identifier = uuid.uuid4()
        assert kdf.derive_feed_secret(FEED_KEY, identifier) != \
            kdf.derive_reaction_key(FEED_KEY, identifier)

    @pytest.mark.parametrize("key", [b"", bytes(16), bytes(31), bytes(33), None])
    def test_wrong_key_length_rejected(self, kdf, key):
        with pytest.raises(KeyDerivationError):
            kdf.derive_reaction_key(key, uuid.uuid4())
        with pytest.raises(ValueError):
            kdf.derive_feed_secret(key, uuid.uuid4())


class TestCommitments:

    def test_commitment_is_poseidon_of_secret(self, poseidon):
        service = UserCommitmentService(poseidon)
        assert from_bytes32(service.compute_commitment(5)) == poseidon.hash([5])

    def test_address_commitment_deterministic(self, poseidon):
        service = UserCommitmentService(poseidon)
        a = service.derive_commitment_from_address("alice")
        assert a == service.derive_commitment_from_address("alice")
        assert a != service.derive_commitment_from_address("bob")
        assert from_bytes32(a) < BN254_SCALAR_PRIME

    def test_local_commitment(self, poseidon):
        service = UserCommitmentService(poseidon)
        assert service.get_local_commitment() is None

        commitment = service.initialize_local("ab" * 32)

        secret = service.get_local_user_secret()
        assert 0 < secret < BN254_SCALAR_PRIME
        assert commitment == service.compute_commitment(secret)
        assert service.get_local_commitment() == commitment
        assert secret == service.derive_user_secret("ab" * 32)
