"""
Poseidon Hash over the BN254 Scalar Field
Sponge widths t=3 (up to 2 inputs) and t=5 (up to 4 inputs)

Round constants and MDS matrices are derived deterministically:
    c_i   = SHA256("poseidon_t{t}_c{i}") mod p
    M_ij  = 1 / ((i + 1) + (t + j + 1)) mod p
These are the constants the Omega circuits were built against, not circomlib's.
"""

import hashlib
import logging
from typing import Dict, List, Sequence

from .field import BN254_SCALAR_PRIME

logger = logging.getLogger(__name__)

# ============================================================================
# POSEIDON PERMUTATION
# ============================================================================


class PoseidonParameters:
    """Round constants and MDS matrix for one sponge width"""

    def __init__(self, width: int, full_rounds: int, partial_rounds: int,
                 prime: int = BN254_SCALAR_PRIME):
        self.width = width
        self.full_rounds = full_rounds
        self.partial_rounds = partial_rounds
        self.prime = prime
        self.round_constants = self._generate_round_constants()
        self.mds_matrix = self._generate_mds_matrix()

    def _generate_round_constants(self) -> List[int]:
        count = (self.full_rounds + self.partial_rounds) * self.width
        constants = []
        for i in range(count):
            digest = hashlib.sha256(
                f"poseidon_t{self.width}_c{i}".encode()).digest()
            constants.append(int.from_bytes(digest, 'big') % self.prime)
        return constants

    def _generate_mds_matrix(self) -> List[List[int]]:
        # Cauchy matrix over x_i = i + 1, y_j = t + j + 1
        t = self.width
        return [
            [pow((i + 1) + (t + j + 1), -1, self.prime) for j in range(t)]
            for i in range(t)
        ]


class PoseidonHash:
    """Poseidon sponge for 1 to 4 field-element inputs"""

    FULL_ROUNDS = 8
    PARTIAL_ROUNDS = 57
    MAX_INPUTS = 4

    def __init__(self, prime: int = BN254_SCALAR_PRIME):
        self.prime = prime
        self._params: Dict[int, PoseidonParameters] = {
            width: PoseidonParameters(
                width, self.FULL_ROUNDS, self.PARTIAL_ROUNDS, prime)
            for width in (3, 5)
        }

    def ark(self, state: List[int], params: PoseidonParameters, constant_idx: int) -> List[int]:
        """Add round constants"""
        return [(state[i] + params.round_constants[constant_idx + i]) % self.prime
                for i in range(params.width)]

    def sbox(self, state: List[int], full_round: bool) -> List[int]:
        """Apply S-box (x^5 mod p)"""
        if full_round:
            return [pow(x, 5, self.prime) for x in state]
        return [pow(state[0], 5, self.prime)] + state[1:]

    def mix(self, state: List[int], params: PoseidonParameters) -> List[int]:
        """Apply MDS matrix multiplication"""
        return [
            sum(row[j] * state[j] for j in range(params.width)) % self.prime
            for row in params.mds_matrix
        ]

    def permute(self, state: List[int]) -> List[int]:
        params = self._params[len(state)]
        half_full = params.full_rounds // 2
        constant_idx = 0

        for round_idx in range(params.full_rounds + params.partial_rounds):
            full_round = round_idx < half_full or round_idx >= half_full + params.partial_rounds
            state = self.ark(state, params, constant_idx)
            constant_idx += params.width
            state = self.sbox(state, full_round)
            state = self.mix(state, params)

        return state

    def hash(self, inputs: Sequence[int]) -> int:
        """Hash 1-4 field elements; missing lanes are zero"""
        if not 1 <= len(inputs) <= self.MAX_INPUTS:
            raise ValueError(
                f"Poseidon supports 1 to {self.MAX_INPUTS} inputs, got {len(inputs)}")

        width = 3 if len(inputs) <= 2 else 5
        state = [0] * width
        for i, value in enumerate(inputs):
            state[i + 1] = value % self.prime

        return self.permute(state)[0]

    def hash2(self, left: int, right: int) -> int:
        return self.hash([left, right])

    def hash4(self, a: int, b: int, c: int, d: int) -> int:
        return self.hash([a, b, c, d])


_default_poseidon = PoseidonHash()


def poseidon_hash(inputs: Sequence[int]) -> int:
    return _default_poseidon.hash(inputs)


def poseidon_hash2(left: int, right: int) -> int:
    return _default_poseidon.hash2(left, right)
