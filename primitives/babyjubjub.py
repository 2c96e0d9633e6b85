"""
BabyJubJub Twisted Edwards Curve
Point arithmetic over the BN254 scalar field for homomorphic ElGamal tallies

Curve equation: a*x^2 + y^2 = 1 + d*x^2*y^2
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .field import (
    BN254_SCALAR_PRIME,
    FIELD_ELEMENT_BYTES,
    FieldArithmetic,
    from_bytes32,
    get_field,
    to_bytes32,
)

logger = logging.getLogger(__name__)

# ============================================================================
# CURVE PARAMETERS
# ============================================================================

CURVE_A = 168700
CURVE_D = 168696

GENERATOR_X = 5299619240641551281634865583518297030282874472190772894086521144482721001553
GENERATOR_Y = 16950150798460657717958625567821834550301663161624707787222815936182638968203

# Order of the prime subgroup generated by the generator
SUBGROUP_ORDER = 2736030358979909402780800718157159386076813972158567259200215660948447373041

POINT_BYTES = 2 * FIELD_ELEMENT_BYTES


class CurveError(Exception):
    """Base exception for curve operations"""
    pass


class InvalidPointError(CurveError):
    """Point is malformed or not on the curve"""
    pass


@dataclass(frozen=True)
class ECPoint:
    """Affine curve point with coordinates in [0, p)"""
    x: int
    y: int

    @classmethod
    def from_coordinates(cls, x_bytes: bytes, y_bytes: bytes) -> 'ECPoint':
        return cls(from_bytes32(x_bytes), from_bytes32(y_bytes))

    @classmethod
    def from_bytes(cls, data: bytes) -> 'ECPoint':
        """Decode a 64-byte X||Y encoding"""
        if len(data) != POINT_BYTES:
            raise InvalidPointError(
                f"Point encoding must be {POINT_BYTES} bytes, got {len(data)}")
        return cls(from_bytes32(data[:FIELD_ELEMENT_BYTES]),
                   from_bytes32(data[FIELD_ELEMENT_BYTES:]))

    @property
    def x_bytes(self) -> bytes:
        return to_bytes32(self.x)

    @property
    def y_bytes(self) -> bytes:
        return to_bytes32(self.y)

    def to_bytes(self) -> bytes:
        return self.x_bytes + self.y_bytes

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


IDENTITY = ECPoint(0, 1)
GENERATOR = ECPoint(GENERATOR_X, GENERATOR_Y)


class BabyJubJub:
    """BabyJubJub group law over galois field elements"""

    def __init__(self, field: Optional[FieldArithmetic] = None):
        self.field = field or get_field()
        if self.field.prime != BN254_SCALAR_PRIME:
            raise CurveError("BabyJubJub is defined over the BN254 scalar field")

        self.prime = self.field.prime
        self.order = SUBGROUP_ORDER
        self.generator = GENERATOR
        self.identity = IDENTITY

        gf = self.field.field
        self._a = gf(CURVE_A)
        self._d = gf(CURVE_D)
        self._one = self.field.one

    def is_identity(self, point: ECPoint) -> bool:
        return point == IDENTITY

    def is_on_curve(self, point: ECPoint) -> bool:
        if not (0 <= point.x < self.prime and 0 <= point.y < self.prime):
            return False

        gf = self.field.field
        x, y = gf(point.x), gf(point.y)
        x2 = x * x
        y2 = y * y
        lhs = self._a * x2 + y2
        rhs = self._one + self._d * x2 * y2
        return int(lhs) == int(rhs)

    def add(self, p1: ECPoint, p2: ECPoint) -> ECPoint:
        """Complete twisted Edwards addition"""
        if p1 == IDENTITY:
            return p2
        if p2 == IDENTITY:
            return p1

        gf = self.field.field
        x1, y1 = gf(p1.x), gf(p1.y)
        x2, y2 = gf(p2.x), gf(p2.y)

        x1x2 = x1 * x2
        y1y2 = y1 * y2
        dxy = self._d * x1x2 * y1y2

        x3 = (x1 * y2 + y1 * x2) / (self._one + dxy)
        y3 = (y1y2 - self._a * x1x2) / (self._one - dxy)
        return ECPoint(int(x3), int(y3))

    def negate(self, point: ECPoint) -> ECPoint:
        return ECPoint((-point.x) % self.prime, point.y)

    def subtract(self, p1: ECPoint, p2: ECPoint) -> ECPoint:
        return self.add(p1, self.negate(p2))

    def double(self, point: ECPoint) -> ECPoint:
        return self.add(point, point)

    def scalar_mul(self, point: ECPoint, scalar: int) -> ECPoint:
        """Double-and-add scalar multiplication"""
        if scalar < 0:
            return self.scalar_mul(self.negate(point), -scalar)

        result = IDENTITY
        addend = point
        while scalar:
            if scalar & 1:
                result = self.add(result, addend)
            addend = self.double(addend)
            scalar >>= 1
        return result

    def base_mul(self, scalar: int) -> ECPoint:
        return self.scalar_mul(self.generator, scalar)

    def require_on_curve(self, point: ECPoint, label: str = "point"):
        if not self.is_on_curve(point):
            raise InvalidPointError(f"{label} {point} is not on BabyJubJub")
