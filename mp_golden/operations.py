# Reference results for the mixed-precision vector operations.

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

import numpy as np

from mp_golden.fp_formats import FormatDesc
from mp_golden.fp_golden import canonical_nan, cast_down, fma_to_format, fp_add, fp_fma
from mp_golden.random_elements import Element, draw_element
from mp_golden.stimuli_schema import WIDTH


class Operation(Enum):
    SDOTP = 'SDOTP'
    VSUM = 'VSUM'
    EXVSUM = 'EXVSUM'
    FMADD = 'FMADD'

    @property
    def operand_names(self) -> Tuple[str, ...]:
        """Elements drawn per lane, in draw order."""
        if self is Operation.FMADD:
            return ('a', 'c', 'e')
        return ('a', 'b', 'c', 'd', 'e')

    @property
    def arity(self) -> int:
        return len(self.operand_names)


# Default (src, src2, dst) per operation when no formats are given
DEFAULT_FORMATS: Dict[Operation, Tuple[str, str, str]] = {
    Operation.SDOTP: ('FP16', 'FP16', 'FP32'),
    Operation.VSUM: ('FP16', 'FP16', 'FP16'),
    Operation.EXVSUM: ('FP16', 'FP16', 'FP32'),
    Operation.FMADD: ('FP32', 'FP32', 'FP32'),
}


@dataclass(frozen=True)
class OpConfig:
    """One operation bound to its (src, src2, dst) formats."""
    op: Operation
    src: FormatDesc
    src2: FormatDesc
    dst: FormatDesc

    def operand_format(self, name: str) -> FormatDesc:
        """
        Format of each named operand:
          a -> src2 for FMADD, src otherwise
          b -> src2
          c -> src
          d -> src for VSUM, src2 otherwise
          e -> dst (accumulator)
        """
        if name == 'a':
            return self.src2 if self.op is Operation.FMADD else self.src
        if name == 'b':
            return self.src2
        if name == 'c':
            return self.src
        if name == 'd':
            return self.src if self.op is Operation.VSUM else self.src2
        if name == 'e':
            return self.dst
        raise KeyError(name)

    @property
    def dst_width(self) -> int:
        return self.dst.width

    @property
    def num_lanes(self) -> int:
        # 8-bit VSUM only fills half of the result word
        if self.op is Operation.VSUM and self.dst_width == 8:
            return WIDTH // 16
        return WIDTH // self.dst_width

    @property
    def src_width(self) -> int:
        """Nominal source lane width: half the destination, except FMADD and 8-bit EXVSUM."""
        if self.op is Operation.FMADD or (self.op is Operation.EXVSUM and self.dst_width == 8):
            return self.dst_width
        return self.dst_width // 2

    def lane_width(self, name: str) -> int:
        """Lane occupied by operand `name`; an element never gets a lane narrower than itself."""
        if name == 'e':
            if self.op is Operation.VSUM and self.dst_width == 8:
                return 16
            return self.dst_width
        return max(self.src_width, self.operand_format(name).width)


@dataclass(frozen=True)
class LaneResult:
    operands: Dict[str, Element]
    value: float   # binary64 result before narrowing
    bits: int      # result in dst format


def combine(op: Operation, x: Dict[str, float]) -> float:
    """
    Evaluate one lane in binary64:
      SDOTP         e' = a*b + e ; res = c*d + e'   (two FMAs)
      VSUM/EXVSUM   e' = e + a   ; res = e' + c
      FMADD         res = a*c + e   (binary64 view; the lane bits round once to dst)
    """
    if op is Operation.SDOTP:
        e = fp_fma(x['a'], x['b'], x['e'])
        return fp_fma(x['c'], x['d'], e)
    if op in (Operation.VSUM, Operation.EXVSUM):
        e = fp_add(x['e'], x['a'])
        return fp_add(e, x['c'])
    if op is Operation.FMADD:
        return fp_fma(x['a'], x['c'], x['e'])
    raise ValueError(f"Operation not supported: {op}")


def narrow_result(value: float, dst: FormatDesc) -> int:
    """Round to dst; any NaN result is the canonical quiet NaN."""
    if math.isnan(value):
        return canonical_nan(dst)
    return cast_down(value, dst)


def evaluate_lane(cfg: OpConfig, operands: Dict[str, Element]) -> LaneResult:
    x = {name: el.value for name, el in operands.items()}
    value = combine(cfg.op, x)
    if cfg.op is Operation.FMADD:
        # single rounding straight to dst, no binary64 intermediate
        bits = fma_to_format(x['a'], x['c'], x['e'], cfg.dst)
    else:
        bits = narrow_result(value, cfg.dst)
    return LaneResult(operands, value, bits)


def draw_lane(cfg: OpConfig, rng: np.random.Generator) -> LaneResult:
    """Draw the operation's operands for one lane and compute its result."""
    operands = {name: draw_element(cfg.operand_format(name), rng)
                for name in cfg.op.operand_names}
    return evaluate_lane(cfg, operands)


def draw_vector(cfg: OpConfig, rng: np.random.Generator) -> List[LaneResult]:
    return [draw_lane(cfg, rng) for _ in range(cfg.num_lanes)]
