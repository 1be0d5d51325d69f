#!/usr/bin/env python3
"""
Generate a stimuli file for the mixed-precision FPU testbench.

Operands are drawn uniformly over raw bit patterns. FMADD lanes round the
exact a*c + e once to the destination format; the other operations compute
in binary64 and round the final value to the destination format.

Usage:
    python3 -m mp_golden.gen_stimuli [count] [operation] [src src2 dst] \
        [--seed N] [-o stimuli.txt]

    operation: SDOTP (default), VSUM, EXVSUM, FMADD
    formats:   FP32, FP16, AL16, FP08, AL08 (FP8 / AL8 also accepted)

Known limitation: SDOTP, VSUM and EXVSUM chain two binary64 operations,
so results can differ from the hardware's internal accumulation order in
rare rounding corner cases.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from mp_golden.fp_formats import (
    FP64, GENERATION_FORMATS, Recognized, decode_format, tag_of,
)
from mp_golden.operations import (
    DEFAULT_FORMATS, LaneResult, OpConfig, Operation, draw_vector,
)
from mp_golden.random_elements import make_rng
from mp_golden.stimuli_schema import (
    HEADER, MNEMONICS, OPERANDS_WIDTH, WIDTH, Opcode, StimulusRecord, format_record,
)
from mp_golden.vector_pack import (
    concat_fields, filler_word, pack_lanes, split_fields, unpack_lanes,
)

DEFAULT_COUNT = 10
DEFAULT_OUTPUT = 'stimuli.txt'

OPCODE_OF = {
    Operation.SDOTP: Opcode.SDOTP,
    Operation.VSUM: Opcode.VSUM,
    Operation.EXVSUM: Opcode.EXVSUM,
    Operation.FMADD: Opcode.FMADD,
}


@dataclass(frozen=True)
class FieldSpec:
    """
    One field of the operand word.

    names: operands packed lane by lane; ('d', 'b') interleaves
           d0 b0 d1 b1 ...; () marks an all-ones unused field.
    """
    names: Tuple[str, ...]
    lane_width: int
    width: int


def operand_layout(cfg: OpConfig) -> List[FieldSpec]:
    """
    Operand fields, most significant first:

      SDOTP          [ e ][ d,b ][ c,a ]
      VSUM/EXVSUM    [ e ][ 1..1 ][ c,a ]   c,a fits one word
                     [ e ][    c,a    ]     c,a needs two words
      FMADD          [ e ][ c ][ a ]
    """
    e = FieldSpec(('e',), cfg.lane_width('e'), WIDTH)
    filler = FieldSpec((), 0, WIDTH)
    op = cfg.op

    if op is Operation.SDOTP:
        return [e,
                FieldSpec(('d', 'b'), cfg.lane_width('d'), WIDTH),
                FieldSpec(('c', 'a'), cfg.lane_width('c'), WIDTH)]
    if op in (Operation.VSUM, Operation.EXVSUM):
        ca_bits = cfg.num_lanes * 2 * cfg.lane_width('c')
        if ca_bits <= WIDTH:
            return [e, filler, FieldSpec(('c', 'a'), cfg.lane_width('c'), WIDTH)]
        return [e, FieldSpec(('c', 'a'), cfg.lane_width('c'), 2 * WIDTH)]
    if op is Operation.FMADD:
        return [e,
                FieldSpec(('c',), cfg.lane_width('c'), WIDTH),
                FieldSpec(('a',), cfg.lane_width('a'), WIDTH)]
    raise ValueError(f"Operation not supported: {op}")


def check_config(cfg: OpConfig) -> None:
    """Raise ValueError if the configuration cannot be laid out in the operand word."""
    for desc in (cfg.src, cfg.src2, cfg.dst):
        if desc == FP64:
            raise ValueError("FP64 is not a valid source or destination format")

    layout = operand_layout(cfg)
    total = sum(f.width for f in layout)
    assert total == OPERANDS_WIDTH, f"layout covers {total} bits"

    for field in layout:
        for name in field.names:
            if field.lane_width != cfg.lane_width(name):
                raise ValueError(
                    f"{cfg.op.value}: operands {field.names} need equal lane widths")
        used = cfg.num_lanes * len(field.names) * field.lane_width
        if used > field.width:
            raise ValueError(
                f"{cfg.op.value} {tag_of(cfg.src)} {tag_of(cfg.src2)} {tag_of(cfg.dst)}: "
                f"{cfg.num_lanes} lanes of {'/'.join(field.names)} need {used} bits, "
                f"field has {field.width}")


def pack_operands(cfg: OpConfig, lanes: Sequence[LaneResult]) -> int:
    fields = []
    for field in operand_layout(cfg):
        if not field.names:
            fields.append((filler_word(field.width), field.width))
            continue
        elems = [(lane.operands[name].bits, lane.operands[name].width)
                 for lane in lanes for name in field.names]
        fields.append((pack_lanes(elems, field.lane_width, field.width), field.width))
    word, total = concat_fields(fields)
    assert total == OPERANDS_WIDTH
    return word


def pack_result(cfg: OpConfig, lanes: Sequence[LaneResult]) -> int:
    return pack_lanes([(lane.bits, cfg.dst_width) for lane in lanes], cfg.dst_width, WIDTH)


def decode_operands(cfg: OpConfig, operands: int) -> List[Dict[str, int]]:
    """Recover each lane's operand bits from a packed operand word."""
    layout = operand_layout(cfg)
    words = split_fields(operands, [f.width for f in layout])
    lanes: List[Dict[str, int]] = [{} for _ in range(cfg.num_lanes)]
    for field, word in zip(layout, words):
        if not field.names:
            continue
        count = cfg.num_lanes * len(field.names)
        values = unpack_lanes(word, field.lane_width, count)
        for i, value in enumerate(values):
            name = field.names[i % len(field.names)]
            width = cfg.operand_format(name).width
            lanes[i // len(field.names)][name] = value & ((1 << width) - 1)
    return lanes


class StimuliGenerator:
    """Draws lanes for one operation and turns them into stimulus records."""

    def __init__(self, cfg: OpConfig, rng: np.random.Generator, op_mod: int = 0):
        check_config(cfg)
        self.cfg = cfg
        self.rng = rng
        self.op_mod = op_mod

    def make_record(self) -> StimulusRecord:
        cfg = self.cfg
        lanes = draw_vector(cfg, self.rng)
        return StimulusRecord(
            opcode=MNEMONICS[OPCODE_OF[cfg.op]],
            op_mod=self.op_mod,
            src_fmt=tag_of(cfg.src),
            src2_fmt=tag_of(cfg.src2),
            dst_fmt=tag_of(cfg.dst),
            operands=pack_operands(cfg, lanes),
            expected=pack_result(cfg, lanes),
        )

    def records(self, count: int) -> Iterator[StimulusRecord]:
        for _ in range(count):
            yield self.make_record()


def write_stimuli(filename, records) -> int:
    """Write the header and one line per record; returns the record count."""
    n = 0
    with open(filename, 'w') as f:
        f.write(HEADER + '\n')
        for rec in records:
            f.write(format_record(rec) + '\n')
            n += 1
    return n


def make_config(op: Operation, formats: Optional[Sequence[str]] = None) -> OpConfig:
    tags = formats if formats else DEFAULT_FORMATS[op]
    descs = []
    for tag in tags:
        result = decode_format(tag)
        if not isinstance(result, Recognized):
            raise ValueError(f"Invalid FP format: {tag!r}")
        descs.append(result.desc)
    return OpConfig(op, *descs)


def generate(count: int, op: Operation, formats: Optional[Sequence[str]] = None,
             output: str = DEFAULT_OUTPUT, seed: Optional[int] = None) -> int:
    cfg = make_config(op, formats)
    gen = StimuliGenerator(cfg, make_rng(seed))
    return write_stimuli(output, gen.records(count))


def _operation(text: str) -> Operation:
    try:
        return Operation(text.upper())
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid operation {text!r} (choose from {', '.join(o.value for o in Operation)})")


def _fmt(text: str) -> str:
    result = decode_format(text)
    if not isinstance(result, Recognized) or result.tag not in GENERATION_FORMATS:
        raise argparse.ArgumentTypeError(
            f"invalid format {text!r} (choose from {', '.join(GENERATION_FORMATS)})")
    return result.tag


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate mixed-precision FPU stimuli")
    parser.add_argument('count', nargs='?', type=int, default=DEFAULT_COUNT,
                        help=f'Number of stimuli (default: {DEFAULT_COUNT})')
    parser.add_argument('operation', nargs='?', type=_operation, default=Operation.SDOTP,
                        help='SDOTP, VSUM, EXVSUM or FMADD (default: SDOTP)')
    parser.add_argument('formats', nargs='*', type=_fmt, default=[], metavar='FMT',
                        help='src_fmt src2_fmt dst_fmt (default: per operation)')
    parser.add_argument('-o', '--output', default=DEFAULT_OUTPUT,
                        help=f'Output stimuli file (default: {DEFAULT_OUTPUT})')
    parser.add_argument('--seed', type=int, default=None,
                        help='RNG seed for a reproducible file (default: random)')
    args = parser.parse_args(argv)

    if args.count < 0:
        parser.error("count must be non-negative")
    if len(args.formats) not in (0, 3):
        parser.error("give all three formats (src_fmt src2_fmt dst_fmt) or none")

    op = args.operation
    try:
        cfg = make_config(op, args.formats)
        gen = StimuliGenerator(cfg, make_rng(args.seed))
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"Generating {args.count} {op.value} stimuli: "
          f"{tag_of(cfg.src)} {tag_of(cfg.src2)} -> {tag_of(cfg.dst)}, "
          f"{cfg.num_lanes} lane(s)")

    try:
        n = write_stimuli(args.output, gen.records(args.count))
    except OSError as exc:
        print(f"ERROR: cannot write {args.output}: {exc}", file=sys.stderr)
        return 1

    print(f"   Wrote {n} stimuli to {args.output}")
    print(f"Finished {WIDTH}-bit stimuli file generation.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
