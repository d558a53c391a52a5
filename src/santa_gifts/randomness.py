"""
Reproducible selection driven by a blockhash.

The seed is HMAC-SHA256(blockhash, key=salt). Only its first 8 hex
characters feed a 32-bit linear congruential generator, so this is NOT
cryptographically secure: it is only as unpredictable as the blockhash,
which nobody knows before the round closes. Anyone holding the blockhash
and the revealed salt can replay every selection.
"""

from __future__ import annotations

from typing import List, Sequence, TypeVar

from .hashing import hmac_sha256_hex
from .project_constants import (
    LCG_INCREMENT,
    LCG_MODULUS,
    LCG_MULTIPLIER,
    SEED_PREFIX_HEX_CHARS,
)

T = TypeVar("T")


def derive_seed(blockhash: str, salt: str) -> str:
    return hmac_sha256_hex(blockhash, salt)


class LcgRandom:
    """s(n+1) = (s(n) * 9301 + 49297) mod 233280; a draw below n is floor(s * n / 233280)."""

    def __init__(self, seed_hex: str) -> None:
        prefix = seed_hex[:SEED_PREFIX_HEX_CHARS]
        try:
            self.state = int(prefix, 16)
        except ValueError:
            raise ValueError(f"Seed must start with {SEED_PREFIX_HEX_CHARS} hex chars: {seed_hex!r}")

    def _step(self) -> int:
        self.state = (self.state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self.state

    def randbelow(self, n: int) -> int:
        # floor((s / M) * n) without going through a float
        return (self._step() * n) // LCG_MODULUS


def seeded_shuffle(items: Sequence[T], seed_hex: str) -> List[T]:
    """Fisher-Yates from the last index down to 1. The input is not modified."""
    out = list(items)
    rng = LcgRandom(seed_hex)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randbelow(i + 1)
        out[i], out[j] = out[j], out[i]
    return out


def seeded_select(items: Sequence[T], seed_hex: str, count: int) -> List[T]:
    return seeded_shuffle(items, seed_hex)[: max(count, 0)]
