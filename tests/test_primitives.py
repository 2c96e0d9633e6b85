"""
Field, BabyJubJub and Poseidon primitive tests
"""

import pytest

from primitives.babyjubjub import (
    GENERATOR,
    IDENTITY,
    SUBGROUP_ORDER,
    ECPoint,
    InvalidPointError,
)
from primitives.field import BN254_SCALAR_PRIME, FieldArithmetic, from_bytes32, to_bytes32
from primitives.poseidon import PoseidonHash, poseidon_hash2


class TestField:

    def test_bytes32_is_fixed_width_big_endian(self):
        encoded = to_bytes32(1)
        assert len(encoded) == 32
        assert encoded == b"\x00" * 31 + b"\x01"
        assert from_bytes32(encoded) == 1

    def test_bytes32_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            to_bytes32(-1)
        with pytest.raises(ValueError):
            to_bytes32(1 << 256)
        with pytest.raises(ValueError):
            from_bytes32(b"\x01" * 31)

    def test_inverse(self):
        field = FieldArithmetic()
        inv = field.inverse(12345)
        assert (inv * 12345) % BN254_SCALAR_PRIME == 1
        with pytest.raises(ZeroDivisionError):
            field.inverse(0)

    def test_random_element_in_range(self):
        field = FieldArithmetic()
        for _ in range(5):
            assert field.validate_element(field.secure_random_element())


class TestBabyJubJub:

    def test_generator_and_identity_on_curve(self, curve):
        assert curve.is_on_curve(GENERATOR)
        assert curve.is_on_curve(IDENTITY)
        assert not curve.is_on_curve(ECPoint(1, 2))

    def test_identity_is_neutral(self, curve):
        assert curve.add(GENERATOR, IDENTITY) == GENERATOR
        assert curve.add(IDENTITY, GENERATOR) == GENERATOR

    def test_point_minus_itself_is_identity(self, curve):
        p = curve.base_mul(5)
        assert curve.subtract(p, p) == IDENTITY
        assert curve.add(p, curve.negate(p)) == IDENTITY

    def test_scalar_mul_matches_repeated_addition(self, curve):
        expected = IDENTITY
        for _ in range(7):
            expected = curve.add(expected, GENERATOR)
        assert curve.base_mul(7) == expected
        assert curve.double(GENERATOR) == curve.base_mul(2)

    def test_addition_is_commutative_and_associative(self, curve):
        a, b, c = curve.base_mul(3), curve.base_mul(11), curve.base_mul(29)
        assert curve.add(a, b) == curve.add(b, a)
        assert curve.add(curve.add(a, b), c) == curve.add(a, curve.add(b, c))

    def test_negative_scalar(self, curve):
        assert curve.scalar_mul(GENERATOR, -3) == curve.negate(curve.base_mul(3))

    def test_generator_has_subgroup_order(self, curve):
        assert curve.base_mul(SUBGROUP_ORDER) == IDENTITY

    def test_point_serialization(self, curve):
        p = curve.base_mul(42)
        data = p.to_bytes()
        assert len(data) == 64
        assert ECPoint.from_bytes(data) == p
        assert ECPoint.from_coordinates(p.x_bytes, p.y_bytes) == p

    def test_require_on_curve(self, curve):
        with pytest.raises(InvalidPointError):
            curve.require_on_curve(ECPoint(3, 3), "C1[0]")


class TestPoseidon:

    def test_deterministic(self, poseidon):
        assert poseidon.hash([1, 2]) == poseidon.hash([1, 2])
        assert poseidon_hash2(1, 2) == poseidon.hash2(1, 2)

    def test_order_and_arity_matter(self, poseidon):
        assert poseidon.hash([1, 2]) != poseidon.hash([2, 1])
        assert poseidon.hash([1]) != poseidon.hash([1, 0, 0])

    def test_output_is_field_element(self, poseidon):
        for inputs in ([0], [1, 2], [1, 2, 3], [1, 2, 3, 4]):
            assert 0 <= poseidon.hash(inputs) < BN254_SCALAR_PRIME

    def test_inputs_reduced_mod_p(self, poseidon):
        assert poseidon.hash([BN254_SCALAR_PRIME + 5]) == poseidon.hash([5])

    def test_input_count_limits(self, poseidon):
        with pytest.raises(ValueError):
            poseidon.hash([])
        with pytest.raises(ValueError):
            poseidon.hash([1, 2, 3, 4, 5])

    def test_hash4_uses_wide_state(self, poseidon):
        assert poseidon.hash4(1, 2, 3, 4) == poseidon.hash([1, 2, 3, 4])
        assert PoseidonHash().hash([9, 9]) == poseidon.hash([9, 9])
