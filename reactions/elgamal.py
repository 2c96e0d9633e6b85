"""
Exponential ElGamal over BabyJubJub
Known-plaintext helpers for the demo and tests

Enc(m, r) = (r*G, m*G + r*PK). The plaintext comes back as the point m*G,
so tallies are recovered by a small discrete-log search.
"""

from typing import Optional, Sequence, Union

from primitives.babyjubjub import BabyJubJub, ECPoint
from storage.models import EMOJI_SLOTS, VoteCiphertext


def encrypt_message(curve: BabyJubJub, public_key: ECPoint, message: int,
                    randomness: int):
    c1 = curve.base_mul(randomness)
    c2 = curve.add(curve.base_mul(message), curve.scalar_mul(public_key, randomness))
    return c1, c2


def encrypt_reaction(curve: BabyJubJub, feed_pk: ECPoint, emoji_index: int,
                     randomness: Union[int, Sequence[int]]) -> VoteCiphertext:
    """Encrypt 1 in the chosen emoji slot and 0 in every other slot"""
    if not 0 <= emoji_index < EMOJI_SLOTS:
        raise ValueError(f"Emoji index must be in [0, {EMOJI_SLOTS}), got {emoji_index}")

    if isinstance(randomness, int):
        randomness = [randomness + slot for slot in range(EMOJI_SLOTS)]
    if len(randomness) != EMOJI_SLOTS:
        raise ValueError(f"Need {EMOJI_SLOTS} randomness values")

    c1, c2 = [], []
    for slot in range(EMOJI_SLOTS):
        point_c1, point_c2 = encrypt_message(
            curve, feed_pk, 1 if slot == emoji_index else 0, randomness[slot])
        c1.append(point_c1)
        c2.append(point_c2)
    return VoteCiphertext(tuple(c1), tuple(c2))


def decrypt_slot(curve: BabyJubJub, secret: int, c1: ECPoint, c2: ECPoint) -> ECPoint:
    """Returns m*G"""
    return curve.subtract(c2, curve.scalar_mul(c1, secret))


def solve_small_discrete_log(curve: BabyJubJub, point: ECPoint, bound: int) -> Optional[int]:
    """Smallest m in [0, bound] with m*G == point"""
    candidate = curve.identity
    for m in range(bound + 1):
        if candidate == point:
            return m
        candidate = curve.add(candidate, curve.generator)
    return None


def decrypt_counts(curve: BabyJubJub, secret: int, ciphertext: VoteCiphertext,
                   bound: int = 1000):
    """Per-slot plaintexts of a tally; None where the count exceeds bound"""
    return [
        solve_small_discrete_log(curve, decrypt_slot(curve, secret, c1, c2), bound)
        for c1, c2 in zip(ciphertext.c1, ciphertext.c2)
    ]
