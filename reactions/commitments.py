"""
Member Identity Commitments
commitment = Poseidon(secret), with secrets derived through HKDF-SHA256
"""

import logging
from typing import Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from primitives.field import BN254_SCALAR_PRIME, to_bytes32
from primitives.poseidon import PoseidonHash

logger = logging.getLogger(__name__)

USER_SECRET_SALT = b"hush-network-reactions"
USER_SECRET_INFO = b"user-secret-v1"

ADDRESS_COMMITMENT_SALT = b"hush-network-address-commitment"
ADDRESS_COMMITMENT_INFO = b"address-secret-v1"


def _hkdf_field_element(material: bytes, salt: bytes, info: bytes) -> int:
    derived = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        info=info,
        backend=default_backend()
    ).derive(material)
    secret = int.from_bytes(derived, 'big') % BN254_SCALAR_PRIME
    # zero would give a degenerate commitment
    return secret or 1


class UserCommitmentService:
    """Derives member secrets and their Poseidon commitments"""

    def __init__(self, poseidon: Optional[PoseidonHash] = None):
        self.poseidon = poseidon or PoseidonHash()
        self._local_secret: Optional[int] = None
        self._local_commitment: Optional[bytes] = None

    def compute_commitment(self, user_secret: int) -> bytes:
        return to_bytes32(self.poseidon.hash([user_secret]))

    def derive_user_secret(self, private_key_hex: str) -> int:
        return _hkdf_field_element(
            bytes.fromhex(private_key_hex), USER_SECRET_SALT, USER_SECRET_INFO)

    def derive_commitment_from_address(self, public_address: str) -> bytes:
        """Deterministic commitment for a member known only by address"""
        secret = _hkdf_field_element(
            public_address.encode('utf-8'), ADDRESS_COMMITMENT_SALT, ADDRESS_COMMITMENT_INFO)
        return self.compute_commitment(secret)

    def initialize_local(self, private_key_hex: str) -> bytes:
        """Set up the node operator's own secret and commitment"""
        self._local_secret = self.derive_user_secret(private_key_hex)
        self._local_commitment = self.compute_commitment(self._local_secret)
        logger.info(
            f"Local commitment initialized: {self._local_commitment.hex()[:32]}...")
        return self._local_commitment

    def get_local_commitment(self) -> Optional[bytes]:
        return self._local_commitment

    def get_local_user_secret(self) -> Optional[int]:
        return self._local_secret
