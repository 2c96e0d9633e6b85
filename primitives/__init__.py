"""
Curve and Hash Primitives for Anonymous Reactions
BabyJubJub point arithmetic and Poseidon hashing over the BN254 scalar field
"""

from .field import (
    BN254_SCALAR_PRIME,
    FIELD_ELEMENT_BYTES,
    FieldArithmetic,
    from_bytes32,
    get_field,
    to_bytes32,
)
from .babyjubjub import (
    BabyJubJub,
    ECPoint,
    GENERATOR,
    IDENTITY,
    SUBGROUP_ORDER,
    POINT_BYTES,

    # Exceptions
    CurveError,
    InvalidPointError,
)
from .poseidon import PoseidonHash, poseidon_hash, poseidon_hash2

__version__ = "1.0.0"

__all__ = [
    # Field
    'BN254_SCALAR_PRIME',
    'FIELD_ELEMENT_BYTES',
    'FieldArithmetic',
    'from_bytes32',
    'get_field',
    'to_bytes32',

    # Curve
    'BabyJubJub',
    'ECPoint',
    'GENERATOR',
    'IDENTITY',
    'SUBGROUP_ORDER',
    'POINT_BYTES',

    # Hash
    'PoseidonHash',
    'poseidon_hash',
    'poseidon_hash2',

    # Exceptions
    'CurveError',
    'InvalidPointError',
]
