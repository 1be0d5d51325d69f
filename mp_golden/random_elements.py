# Uniform random operand draws over raw bit patterns.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from mp_golden.fp_formats import FormatDesc
from mp_golden.fp_golden import cast_up


@dataclass(frozen=True)
class Element:
    """One drawn operand: raw bits in its own format plus the exact binary64 value."""
    bits: int
    desc: FormatDesc
    value: float

    @property
    def width(self) -> int:
        return self.desc.width


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Seeded generator; seed=None draws fresh OS entropy."""
    return np.random.default_rng(seed)


def draw_bits(desc: FormatDesc, rng: np.random.Generator) -> int:
    """
    Draw a signed integer uniformly from [-2^(w-1), 2^(w-1) - 1] and
    return its two's-complement pattern as desc.width bits.

    Uniform over bit patterns, not over real values, so subnormals, NaNs
    and infinities show up at their natural frequency.
    """
    w = desc.width
    lo = -(1 << (w - 1))
    hi = (1 << (w - 1)) - 1
    val = int(rng.integers(lo, hi, endpoint=True, dtype=np.int64))
    return val & ((1 << w) - 1)


def draw_element(desc: FormatDesc, rng: np.random.Generator) -> Element:
    bits = draw_bits(desc, rng)
    return Element(bits, desc, cast_up(bits, desc))


def element_from_bits(bits: int, desc: FormatDesc) -> Element:
    bits &= (1 << desc.width) - 1
    return Element(bits, desc, cast_up(bits, desc))
