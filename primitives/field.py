"""
Prime Field Arithmetic for the BN254 Scalar Field
Shared field helpers for the BabyJubJub curve and the Poseidon hash
"""

import logging
import os

import galois

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

# BN254 scalar field prime (BabyJubJub base field)
BN254_SCALAR_PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Multiplicative generator of the BN254 scalar field
BN254_PRIMITIVE_ELEMENT = 5

FIELD_ELEMENT_BYTES = 32


def to_bytes32(value: int) -> bytes:
    """Encode a non-negative integer as a fixed 32-byte big-endian value"""
    if value < 0:
        raise ValueError(f"Cannot encode negative value {value}")
    if value.bit_length() > FIELD_ELEMENT_BYTES * 8:
        raise ValueError(f"Value does not fit in {FIELD_ELEMENT_BYTES} bytes")
    return value.to_bytes(FIELD_ELEMENT_BYTES, 'big')


def from_bytes32(data: bytes) -> int:
    """Decode a fixed 32-byte big-endian value"""
    if len(data) != FIELD_ELEMENT_BYTES:
        raise ValueError(
            f"Expected {FIELD_ELEMENT_BYTES} bytes, got {len(data)}")
    return int.from_bytes(data, 'big')


class FieldArithmetic:
    """Finite field arithmetic over a prime field backed by galois"""

    def __init__(self, prime: int = BN254_SCALAR_PRIME,
                 primitive_element: int = BN254_PRIMITIVE_ELEMENT):
        self.prime = prime
        # Supplying the primitive element skips factoring p - 1
        self.field = galois.GF(
            prime, primitive_element=primitive_element, verify=False)
        self.zero = self.field(0)
        self.one = self.field(1)

        logger.debug(f"Initialized field GF({prime})")

    def element(self, value: int):
        """Lift an integer into the field, reducing it first"""
        return self.field(value % self.prime)

    def validate_element(self, element: int) -> bool:
        return 0 <= element < self.prime

    def secure_random_element(self) -> int:
        """Generate a uniformly distributed field element using OS randomness"""
        # 64 bytes keeps the modular bias negligible
        random_bytes = os.urandom(64)
        return int.from_bytes(random_bytes, 'big') % self.prime

    def inverse(self, value: int) -> int:
        if value % self.prime == 0:
            raise ZeroDivisionError("Zero has no inverse in the field")
        return int(self.one / self.element(value))


_default_field = None


def get_field() -> FieldArithmetic:
    """Shared BN254 scalar field instance"""
    global _default_field
    if _default_field is None:
        _default_field = FieldArithmetic()
    return _default_field
