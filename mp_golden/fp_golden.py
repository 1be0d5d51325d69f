# Golden model for narrow FP formats <-> binary64 working values.
#
# Every narrow format widens exactly into a Python float (binary64), all
# intermediate arithmetic happens there, and results are rounded back to
# the destination format with round-to-nearest-even.

from __future__ import annotations

import math
from fractions import Fraction

import numpy as np

from mp_golden.fp_formats import FP64, FormatDesc


# -------------------------------------------------------------------
# binary64 <-> bit patterns
# -------------------------------------------------------------------

def float_to_bits(val: float) -> int:
    """Convert Python float to its binary64 bit pattern."""
    arr = np.array([val], dtype=np.float64)
    return int(arr.view(np.uint64)[0])


def bits_to_float(bits: int) -> float:
    """Convert binary64 bit pattern to Python float."""
    arr = np.array([bits & 0xFFFFFFFFFFFFFFFF], dtype=np.uint64)
    return float(arr.view(np.float64)[0])


def split_bits(bits: int, desc: FormatDesc):
    """Return (sign, exponent field, mantissa field) of a raw pattern."""
    bits &= (1 << desc.width) - 1
    s = (bits >> (desc.width - 1)) & 0x1
    e = (bits >> desc.man_bits) & desc.exp_mask
    m = bits & desc.man_mask
    return s, e, m


def is_nan_bits(bits: int, desc: FormatDesc) -> bool:
    _, e, m = split_bits(bits, desc)
    return e == desc.exp_mask and m != 0


def canonical_nan(desc: FormatDesc) -> int:
    """Quiet NaN: sign 0, exponent all ones, mantissa MSB set (0x7FC00000 for FP32)."""
    return (desc.exp_mask << desc.man_bits) | (1 << (desc.man_bits - 1))


def infinity(sign: int, desc: FormatDesc) -> int:
    return (sign << (desc.width - 1)) | (desc.exp_mask << desc.man_bits)


# -------------------------------------------------------------------
# Widening: narrow format -> binary64 (always exact)
# -------------------------------------------------------------------

def cast_up(bits: int, desc: FormatDesc) -> float:
    """
    Reinterpret bits as desc and widen to binary64.

      - e == 0, m == 0   -> signed zero
      - e == 0, m != 0   -> subnormal, m * 2^(1 - bias - man_bits)
      - e == max, m == 0 -> +/-Inf
      - e == max, m != 0 -> NaN, payload moved to the top of the binary64 mantissa
      - normal           -> (2^man_bits + m) * 2^(e - bias - man_bits)
    """
    if desc == FP64:
        return bits_to_float(bits)

    s, e, m = split_bits(bits, desc)

    if e == desc.exp_mask:
        payload = m << (FP64.man_bits - desc.man_bits)
        return bits_to_float((s << 63) | (FP64.exp_mask << FP64.man_bits) | payload)

    if e == 0:
        mag = math.ldexp(float(m), 1 - desc.bias - desc.man_bits)
    else:
        mag = math.ldexp(float((1 << desc.man_bits) | m), e - desc.bias - desc.man_bits)
    return -mag if s else mag


# -------------------------------------------------------------------
# Narrowing: exact dyadic value -> desc, round-to-nearest-even
# -------------------------------------------------------------------

def round_to_format(sign: int, sig: int, exp2: int, desc: FormatDesc) -> int:
    """
    Round (-1)^sign * sig * 2^exp2 to desc and return the bit pattern.

    sig is a non-negative integer of any size. Overflow rounds to Inf,
    values below the subnormal range round to (signed) zero.
    """
    sign_field = sign << (desc.width - 1)
    if sig == 0:
        return sign_field

    emin = 1 - desc.bias
    msb_exp = exp2 + sig.bit_length() - 1

    # weight of the result LSB: normal numbers keep man_bits below the MSB,
    # subnormals are pinned to the emin quantum
    q = max(msb_exp, emin) - desc.man_bits
    shift = q - exp2

    if shift > 0:
        keep = sig >> shift
        rem = sig & ((1 << shift) - 1)
        half = 1 << (shift - 1)
        # RS=10 is the exact tie -> up iff LSB == 1
        if rem > half or (rem == half and (keep & 0x1)):
            keep += 1
    else:
        keep = sig << -shift

    # mantissa carry into exponent
    if keep >> (desc.man_bits + 1):
        keep >>= 1
        q += 1

    if keep < (1 << desc.man_bits):
        # subnormal (or zero after rounding)
        return sign_field | keep

    e_field = q + desc.man_bits + desc.bias
    if e_field >= desc.exp_mask:
        return infinity(sign, desc)

    return sign_field | (e_field << desc.man_bits) | (keep & desc.man_mask)


def cast_down(value: float, desc: FormatDesc) -> int:
    """Round a binary64 value to desc (RNE) and return desc.width bits."""
    bits = float_to_bits(value)
    s, e, m = split_bits(bits, FP64)

    if e == FP64.exp_mask:
        if m == 0:
            return infinity(s, desc)
        payload = m >> (FP64.man_bits - desc.man_bits)
        if payload == 0:
            payload = 1 << (desc.man_bits - 1)
        return (s << (desc.width - 1)) | (desc.exp_mask << desc.man_bits) | payload

    if e == 0:
        sig, exp2 = m, 1 - FP64.bias - FP64.man_bits
    else:
        sig, exp2 = (1 << FP64.man_bits) | m, e - FP64.bias - FP64.man_bits

    return round_to_format(s, sig, exp2, desc)


# -------------------------------------------------------------------
# binary64 arithmetic
# -------------------------------------------------------------------

def fp_add(a: float, b: float) -> float:
    """a + b rounded once to binary64."""
    return a + b


def fma_to_format(a: float, b: float, c: float, desc: FormatDesc) -> int:
    """
    Fused multiply-add a*b + c rounded once, directly to desc (RNE).

    The product and sum are formed exactly as rationals; special values
    follow IEEE 754:
      - any NaN operand              -> canonical quiet NaN
      - Inf * 0                      -> canonical quiet NaN
      - Inf product + opposite Inf   -> canonical quiet NaN
      - exact zero sum               -> +0, or -0 when both addends are -0
    """
    if math.isnan(a) or math.isnan(b) or math.isnan(c):
        return canonical_nan(desc)

    prod_neg = (math.copysign(1.0, a) < 0) != (math.copysign(1.0, b) < 0)

    if math.isinf(a) or math.isinf(b):
        if a == 0 or b == 0:
            return canonical_nan(desc)
        if math.isinf(c) and (c < 0) != prod_neg:
            return canonical_nan(desc)
        return infinity(1 if prod_neg else 0, desc)

    if math.isinf(c):
        return infinity(1 if c < 0 else 0, desc)

    prod = Fraction(a) * Fraction(b)
    total = prod + Fraction(c)

    if total == 0:
        neg = prod == 0 and c == 0 and prod_neg and math.copysign(1.0, c) < 0
        return round_to_format(1 if neg else 0, 0, 0, desc)

    sign = 1 if total < 0 else 0
    den = total.denominator
    assert den & (den - 1) == 0, "FP operands only produce dyadic rationals"
    return round_to_format(sign, abs(total.numerator), -(den.bit_length() - 1), desc)


def fp_fma(a: float, b: float, c: float) -> float:
    """Fused multiply-add a*b + c with a single rounding to binary64."""
    return bits_to_float(fma_to_format(a, b, c, FP64))
