# Stimuli file schema shared by the generator (writer) and the checker (reader).
#
#   line 1:   //operation op_mod src_fmt src2_fmt dst_fmt operands exp_result
#   line n>1: OPCODE MOD SRC SRC2 DST OPERANDS EXPECTED
#
#   OPCODE    5-char mnemonic, '_' padded
#   MOD       0 | 1
#   SRC..DST  4-char format tag
#   OPERANDS  NUM_OPERAND_FIELDS * WIDTH bits of hex
#   EXPECTED  WIDTH bits of hex

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Union

from mp_golden.vector_pack import hex_to_word, split_fields, word_to_hex

WIDTH = 32
NUM_OPERAND_FIELDS = 3
OPERANDS_WIDTH = NUM_OPERAND_FIELDS * WIDTH

HEADER = '//operation op_mod src_fmt src2_fmt dst_fmt operands exp_result'


class Opcode(IntEnum):
    """FPU operations, in the harness decode order."""
    SDOTP = 0
    EXVSUM = 1
    VSUM = 2
    FMADD = 3
    FNMSUB = 4
    ADD = 5
    MUL = 6
    DIV = 7
    SQRT = 8
    SGNJ = 9
    MINMAX = 10
    CMP = 11
    CLASSIFY = 12
    F2F = 13
    F2I = 14
    I2F = 15
    CPKAB = 16
    CPKCD = 17


MNEMONICS = {
    Opcode.SDOTP: 'SDOTP',
    Opcode.EXVSUM: 'EXVSU',
    Opcode.VSUM: 'VSUM_',
    Opcode.FMADD: 'FMADD',
    Opcode.FNMSUB: 'FNMSB',
    Opcode.ADD: 'ADD__',
    Opcode.MUL: 'MUL__',
    Opcode.DIV: 'DIV__',
    Opcode.SQRT: 'SQRT_',
    Opcode.SGNJ: 'SGNJ_',
    Opcode.MINMAX: 'MINMA',
    Opcode.CMP: 'CMP__',
    Opcode.CLASSIFY: 'CLASS',
    Opcode.F2F: 'F2F__',
    Opcode.F2I: 'F2I__',
    Opcode.I2F: 'I2F__',
    Opcode.CPKAB: 'CPKAB',
    Opcode.CPKCD: 'CPKCD',
}

OPCODES = {mnemonic: op for op, mnemonic in MNEMONICS.items()}

assert all(len(m) == 5 for m in MNEMONICS.values())


class StimuliFormatError(ValueError):
    """A stimuli line does not follow the file grammar."""


@dataclass(frozen=True)
class UnknownOpcode:
    raw: str


def decode_opcode(mnemonic: str) -> Union[Opcode, UnknownOpcode]:
    return OPCODES.get(mnemonic, UnknownOpcode(mnemonic))


@dataclass(frozen=True)
class StimulusRecord:
    opcode: str      # 5-char mnemonic as written
    op_mod: int
    src_fmt: str
    src2_fmt: str
    dst_fmt: str
    operands: int    # OPERANDS_WIDTH bits
    expected: int    # WIDTH bits

    def operand_fields(self) -> List[int]:
        """The operand words, most significant field first."""
        return split_fields(self.operands, [WIDTH] * NUM_OPERAND_FIELDS)


def format_record(rec: StimulusRecord) -> str:
    if len(rec.opcode) != 5:
        raise ValueError(f"opcode must be 5 characters: {rec.opcode!r}")
    if rec.op_mod not in (0, 1):
        raise ValueError(f"op_mod must be 0 or 1: {rec.op_mod}")
    for tag in (rec.src_fmt, rec.src2_fmt, rec.dst_fmt):
        if len(tag) != 4:
            raise ValueError(f"format tag must be 4 characters: {tag!r}")
    return ' '.join([
        rec.opcode,
        str(rec.op_mod),
        rec.src_fmt,
        rec.src2_fmt,
        rec.dst_fmt,
        word_to_hex(rec.operands, OPERANDS_WIDTH),
        word_to_hex(rec.expected, WIDTH),
    ])


def parse_record(line: str) -> StimulusRecord:
    """
    Parse one stimulus line: string bit string string string hex hex.

    Any deviation raises StimuliFormatError.
    """
    tokens = line.split()
    if len(tokens) != 7:
        raise StimuliFormatError(f"expected 7 fields, got {len(tokens)}: {line!r}")

    opcode, op_mod, src, src2, dst, operands, expected = tokens

    if op_mod not in ('0', '1'):
        raise StimuliFormatError(f"op_mod must be 0 or 1: {line!r}")

    try:
        operands_word = hex_to_word(operands, OPERANDS_WIDTH)
        expected_word = hex_to_word(expected, WIDTH)
    except ValueError as exc:
        raise StimuliFormatError(f"{exc} in line {line!r}") from exc

    return StimulusRecord(opcode, int(op_mod), src, src2, dst, operands_word, expected_word)


def read_stimuli(path) -> List[StimulusRecord]:
    """
    Read a stimuli file; the first line is a comment and is skipped.

    Every following line must be a full record, blank lines included.
    """
    records = []
    with open(path, 'r') as f:
        f.readline()
        for line in f:
            records.append(parse_record(line))
    return records
