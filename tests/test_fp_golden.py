"""Widening, RNE narrowing and binary64 arithmetic of the golden model."""

import math

import ml_dtypes
import numpy as np
import pytest

from mp_golden.fp_formats import FORMATS, FP16, FP16ALT, FP32, FP64, FP8, FP8ALT
from mp_golden.fp_golden import (
    canonical_nan, cast_down, cast_up, float_to_bits, fma_to_format, fp_add, fp_fma,
    is_nan_bits,
)


def _bits64(values):
    return np.asarray(values, dtype=np.float64).view(np.uint64)


# -------------------------------------------------------------------
# round trip
# -------------------------------------------------------------------

@pytest.mark.parametrize("tag", ['FP16', 'AL16', 'FP08', 'AL08'])
def test_roundtrip_exhaustive(tag):
    desc = FORMATS[tag]
    mismatches = [b for b in range(1 << desc.width)
                  if cast_down(cast_up(b, desc), desc) != b]
    assert not mismatches, f"{tag}: {[hex(b) for b in mismatches[:8]]}"


@pytest.mark.parametrize("tag", ['FP32', 'FP64'])
def test_roundtrip_sampled(tag):
    desc = FORMATS[tag]
    rng = np.random.default_rng(7)
    samples = rng.integers(0, 1 << 32, size=20000, dtype=np.uint64)
    if desc.width == 64:
        samples = (samples << np.uint64(32)) | rng.integers(0, 1 << 32, size=20000, dtype=np.uint64)
    for b in samples.tolist():
        assert cast_down(cast_up(b, desc), desc) == b, hex(b)


# -------------------------------------------------------------------
# widening against independent decoders
# -------------------------------------------------------------------

def test_cast_up_fp16_matches_numpy():
    pats = np.arange(1 << 16, dtype=np.uint16)
    ref = _bits64(pats.view(np.float16).astype(np.float64))
    for b in range(1 << 16):
        if is_nan_bits(b, FP16):
            assert math.isnan(cast_up(b, FP16))
            continue
        assert float_to_bits(cast_up(b, FP16)) == int(ref[b]), hex(b)


def test_cast_up_fp32_matches_numpy():
    rng = np.random.default_rng(3)
    pats = rng.integers(0, 1 << 32, size=5000, dtype=np.uint64).astype(np.uint32)
    ref = _bits64(pats.view(np.float32).astype(np.float64))
    for b, r in zip(pats.tolist(), ref.tolist()):
        if is_nan_bits(b, FP32):
            continue
        assert float_to_bits(cast_up(b, FP32)) == r, hex(b)


@pytest.mark.parametrize("desc, dtype", [
    (FP16ALT, ml_dtypes.bfloat16),
    (FP8, ml_dtypes.float8_e5m2),
])
def test_cast_up_matches_ml_dtypes(desc, dtype):
    uint = np.uint16 if desc.width == 16 else np.uint8
    pats = np.arange(1 << desc.width, dtype=uint)
    ref = _bits64(pats.view(dtype).astype(np.float64))
    for b in range(1 << desc.width):
        if is_nan_bits(b, desc):
            continue
        assert float_to_bits(cast_up(b, desc)) == int(ref[b]), hex(b)


def test_cast_up_fp8alt_directed():
    # e4m3 with IEEE-style Inf/NaN, bias 7
    assert cast_up(0x38, FP8ALT) == 1.0
    assert cast_up(0x77, FP8ALT) == 240.0
    assert cast_up(0x01, FP8ALT) == 2.0 ** -9
    assert cast_up(0x08, FP8ALT) == 2.0 ** -6
    assert cast_up(0x78, FP8ALT) == math.inf
    assert cast_up(0xF8, FP8ALT) == -math.inf
    assert math.isnan(cast_up(0x79, FP8ALT))
    assert math.copysign(1.0, cast_up(0x80, FP8ALT)) == -1.0


# -------------------------------------------------------------------
# narrowing
# -------------------------------------------------------------------

def _interesting_doubles(rng, n, lo_exp, hi_exp):
    out = []
    for _ in range(n):
        mant = rng.random() * 2.0 - 1.0
        out.append(math.ldexp(mant, int(rng.integers(lo_exp, hi_exp))))
    return out


def test_cast_down_fp16_matches_numpy():
    rng = np.random.default_rng(11)
    values = _interesting_doubles(rng, 20000, -30, 20)
    with np.errstate(over='ignore'):
        ref = np.asarray(values, dtype=np.float64).astype(np.float16).view(np.uint16)
    for v, r in zip(values, ref.tolist()):
        assert cast_down(v, FP16) == r, f"{v!r}: 0x{cast_down(v, FP16):04x} != 0x{r:04x}"


def test_cast_down_fp32_matches_numpy():
    rng = np.random.default_rng(12)
    values = _interesting_doubles(rng, 20000, -160, 140)
    with np.errstate(over='ignore'):
        ref = np.asarray(values, dtype=np.float64).astype(np.float32).view(np.uint32)
    for v, r in zip(values, ref.tolist()):
        assert cast_down(v, FP32) == r, f"{v!r}: 0x{cast_down(v, FP32):08x} != 0x{r:08x}"


def test_cast_down_fp16_directed():
    assert cast_down(1.0 + 2.0 ** -11, FP16) == 0x3C00        # tie -> even
    assert cast_down(1.0 + 3 * 2.0 ** -11, FP16) == 0x3C02    # tie -> even (up)
    assert cast_down(65504.0, FP16) == 0x7BFF
    assert cast_down(65519.0, FP16) == 0x7BFF
    assert cast_down(65520.0, FP16) == 0x7C00                 # tie past max -> Inf
    assert cast_down(-1e10, FP16) == 0xFC00
    assert cast_down(2.0 ** -24, FP16) == 0x0001
    assert cast_down(2.0 ** -25, FP16) == 0x0000              # tie -> zero
    assert cast_down(1.5 * 2.0 ** -25, FP16) == 0x0001
    assert cast_down(-2.0 ** -30, FP16) == 0x8000
    assert cast_down(2.0 ** -14 - 2.0 ** -25, FP16) == 0x0400  # rounds up into normals
    assert cast_down(-0.0, FP16) == 0x8000


def test_cast_down_narrow_formats():
    assert cast_down(1.0, FP8) == 0x3C
    assert cast_down(1.0, FP8ALT) == 0x38
    assert cast_down(1.0, FP16ALT) == 0x3F80
    assert cast_down(240.0, FP8ALT) == 0x77
    assert cast_down(248.0, FP8ALT) == 0x78                   # tie past max -> Inf
    assert cast_down(57344.0, FP8) == 0x7B
    assert cast_down(1e6, FP8) == 0x7C
    assert cast_down(math.inf, FP16ALT) == 0x7F80
    assert cast_down(-math.inf, FP8ALT) == 0xF8


def test_cast_down_nan():
    assert cast_down(math.nan, FP32) & 0x7FC00000 == 0x7FC00000
    # payload lost in truncation still leaves a NaN
    low_payload_nan = cast_up(0x7FF0000000000001, FP64)
    assert is_nan_bits(cast_down(low_payload_nan, FP16), FP16)


def test_canonical_nan():
    assert canonical_nan(FP32) == 0x7FC00000
    assert canonical_nan(FP16) == 0x7E00
    assert canonical_nan(FP16ALT) == 0x7FC0
    assert canonical_nan(FP8) == 0x7E
    assert canonical_nan(FP8ALT) == 0x7C


# -------------------------------------------------------------------
# binary64 arithmetic
# -------------------------------------------------------------------

def test_fma_single_rounding():
    a = 1.0 + 2.0 ** -30
    c = -(1.0 + 2.0 ** -29)
    assert a * a + c == 0.0
    assert fp_fma(a, a, c) == 2.0 ** -60


def test_fma_matches_exact_when_representable():
    assert fp_fma(3.0, 5.0, 7.0) == 22.0
    assert fp_fma(0.5, -4.0, 1.0) == -1.0
    assert fp_fma(1e-200, 1e-200, 1.0) == 1.0


def test_fma_specials():
    assert math.isnan(fp_fma(math.inf, 0.0, 1.0))
    assert math.isnan(fp_fma(0.0, -math.inf, 1.0))
    assert math.isnan(fp_fma(math.inf, 1.0, -math.inf))
    assert math.isnan(fp_fma(math.nan, 1.0, 1.0))
    assert fp_fma(math.inf, -1.0, -math.inf) == -math.inf
    assert fp_fma(2.0, 3.0, math.inf) == math.inf
    assert fp_fma(1e308, 10.0, 0.0) == math.inf
    assert fp_fma(-1e308, 10.0, 0.0) == -math.inf


def test_fma_signed_zero():
    def sign(x):
        return math.copysign(1.0, x)

    assert sign(fp_fma(-0.0, 1.0, -0.0)) == -1.0
    assert sign(fp_fma(-0.0, -1.0, -0.0)) == 1.0
    assert sign(fp_fma(0.0, 1.0, -0.0)) == 1.0
    assert sign(fp_fma(1.0, -1.0, 1.0)) == 1.0
    assert sign(fp_fma(-2.0, 0.0, 0.0)) == 1.0


def test_fma_to_format_rounds_once():
    a = 1.0 + 2.0 ** -5
    c = 1.0 + 2.0 ** -6
    # a*c = 1 + 2^-5 + 2^-6 + 2^-11: a tie at FP16 precision
    assert fma_to_format(a, c, 0.0, FP16) == 0x3C30
    assert fma_to_format(a, c, 2.0 ** -40, FP16) == 0x3C31
    assert fma_to_format(a, c, -(2.0 ** -40), FP16) == 0x3C30


def test_fma_to_format_specials():
    assert fma_to_format(math.inf, 0.0, 1.0, FP16) == canonical_nan(FP16)
    assert fma_to_format(math.nan, 1.0, 1.0, FP8) == canonical_nan(FP8)
    assert fma_to_format(math.inf, -1.0, 1.0, FP16) == 0xFC00
    assert fma_to_format(1.0, 1.0, -math.inf, FP8ALT) == 0xF8
    assert fma_to_format(65504.0, 2.0, 0.0, FP16) == 0x7C00
    assert fma_to_format(-0.0, 1.0, -0.0, FP16) == 0x8000
    assert fma_to_format(1.0, -1.0, 1.0, FP16) == 0x0000
    # underflow keeps the sign
    assert fma_to_format(-(2.0 ** -30), 2.0 ** -30, 0.0, FP16) == 0x8000


def test_add_is_binary64():
    assert fp_add(1.0, 2.0 ** -53) == 1.0
    assert fp_add(1.0, 2.0 ** -52) == 1.0 + 2.0 ** -52
    assert fp_add(1e308, 1e308) == math.inf
    assert math.isnan(fp_add(math.inf, -math.inf))
