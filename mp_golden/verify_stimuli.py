#!/usr/bin/env python3
"""
Verify FPU simulation results against a stimuli file.

Python model of the testbench checker: one stimulus is issued per cycle,
the expected result is delayed by the pipeline latency, and the device's
output at retirement cycle n is compared against the stimulus issued at
cycle n - latency.

Usage:
    python3 -m mp_golden.verify_stimuli --stimuli stimuli.txt \
        --dut-output fpu_results.txt --latency 3

Expected input files:
    - stimuli.txt         : generated by mp_golden.gen_stimuli
    - fpu_results.txt     : device result per cycle (hex, one per line)
"""

from __future__ import annotations

import argparse
import sys
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional

from mp_golden.fp_formats import FP32, Recognized, decode_format
from mp_golden.stimuli_schema import (
    Opcode, StimuliFormatError, StimulusRecord, UnknownOpcode, WIDTH, decode_opcode,
    read_stimuli,
)

FP32_EXP_MASK = 0x7F800000  # bits 30..23


@dataclass(frozen=True)
class Mismatch:
    cycle: int       # retirement cycle
    index: int       # stimulus index (issue cycle)
    expected: int
    actual: int
    op: Opcode       # opcode as the harness decoded it


def results_match(expected: int, actual: int, dst_width: int) -> bool:
    """
    Exact compare, except 32-bit results with an all-ones exponent field
    on both sides count as equal (NaN payloads differ freely).
    """
    expected &= 0xFFFFFFFF
    actual &= 0xFFFFFFFF
    if expected == actual:
        return True
    if dst_width == 32:
        return (expected & FP32_EXP_MASK) == FP32_EXP_MASK and \
               (actual & FP32_EXP_MASK) == FP32_EXP_MASK
    return False


def decode_for_harness(rec: StimulusRecord):
    """
    Opcode and dst format as the harness sees them. Unknown values fall
    back to SDOTP / FP32 with a warning.
    """
    op = decode_opcode(rec.opcode)
    if isinstance(op, UnknownOpcode):
        print(f"Warning: unknown opcode {rec.opcode!r}, using SDOTP")
        op = Opcode.SDOTP

    dst = decode_format(rec.dst_fmt)
    if isinstance(dst, Recognized):
        dst_desc = dst.desc
    else:
        print(f"Warning: unknown format {rec.dst_fmt!r}, using FP32")
        dst_desc = FP32
    return op, dst_desc


class PipelineChecker:
    """
    Delay line of `latency` slots between issue and retirement.

    step() advances one clock: the next stimulus (or a bubble) enters the
    pipe and the oldest entry retires against the device output of that
    cycle. Retirement cycles n < latency carry no stimulus and are not
    compared.
    """

    def __init__(self, records: Iterable[StimulusRecord], latency: int):
        if latency < 0:
            raise ValueError(f"latency must be >= 0: {latency}")
        self.latency = latency
        self._pending = iter(list(enumerate(records)))
        self._pipe: Deque = deque([None] * latency)
        self.cycle = 0
        self.compared = 0
        self.mismatches: List[Mismatch] = []

    def step(self, actual: Optional[int]) -> Optional[Mismatch]:
        self._pipe.append(next(self._pending, None))
        retiring = self._pipe.popleft()
        cycle = self.cycle
        self.cycle += 1

        if retiring is None:
            return None

        index, rec = retiring
        if actual is None:
            raise ValueError(f"no device output at cycle {cycle} for stimulus {index}")

        op, dst_desc = decode_for_harness(rec)
        self.compared += 1
        if results_match(rec.expected, actual, dst_desc.width):
            return None

        mismatch = Mismatch(cycle, index, rec.expected, actual, op)
        self.mismatches.append(mismatch)
        return mismatch

    def run(self, outputs: Iterable[int]) -> List[Mismatch]:
        for actual in outputs:
            self.step(actual)
        return self.mismatches


def read_hex_file(filename) -> List[int]:
    """Read hex values from file, one per line."""
    values = []
    with open(filename, 'r') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith(('#', '//')):
                values.append(int(line, 16))
    return values


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check FPU results against a stimuli file")
    parser.add_argument('--stimuli', default='stimuli.txt', help='Stimuli file')
    parser.add_argument('--dut-output', required=True,
                        help='Device results, one hex value per cycle')
    parser.add_argument('--latency', type=int, required=True, help='Pipeline latency in cycles')
    parser.add_argument('--max-errors', type=int, default=5, help='Mismatches to print')
    args = parser.parse_args(argv)

    try:
        records = read_stimuli(args.stimuli)
        outputs = read_hex_file(args.dut_output)
    except StimuliFormatError as exc:
        print(f"ERROR: malformed stimuli file: {exc}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"Found {len(records)} stimuli, {len(outputs)} output cycles, latency {args.latency}")

    checker = PipelineChecker(records, args.latency)
    try:
        mismatches = checker.run(outputs)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    for m in mismatches[:args.max_errors]:
        print(f"\nStimulus {m.index} ({m.op.name}, cycle {m.cycle}): result mismatch")
        print(f"  Golden: 0x{m.expected:0{WIDTH // 4}x}")
        print(f"  Sim:    0x{m.actual:0{WIDTH // 4}x}")

    unchecked = len(records) - checker.compared

    print(f"\n{'='*60}")
    if not mismatches and unchecked == 0:
        print(f"✓ PASS: All {checker.compared} results match golden model")
    else:
        print(f"✗ FAIL: {len(mismatches)} mismatches in {checker.compared} compared results")
        if unchecked:
            print(f"  ({unchecked} stimuli never retired)")
        if len(mismatches) > args.max_errors:
            print(f"  (showing first {args.max_errors} errors)")
    print(f"{'='*60}")

    return 0 if not mismatches and unchecked == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
