# Floating-point format table for the mixed-precision FPU stimuli.

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Union


@dataclass(frozen=True)
class FormatDesc:
    """Binary floating-point encoding: 1 sign bit, exp_bits, man_bits."""
    exp_bits: int
    man_bits: int

    @property
    def width(self) -> int:
        return 1 + self.exp_bits + self.man_bits

    @property
    def bias(self) -> int:
        return (1 << (self.exp_bits - 1)) - 1

    @property
    def exp_mask(self) -> int:
        return (1 << self.exp_bits) - 1

    @property
    def man_mask(self) -> int:
        return (1 << self.man_bits) - 1


FP64 = FormatDesc(11, 52)
FP32 = FormatDesc(8, 23)
FP16 = FormatDesc(5, 10)
FP16ALT = FormatDesc(8, 7)    # bfloat16
FP8 = FormatDesc(5, 2)
FP8ALT = FormatDesc(4, 3)

# Canonical 4-character tags, as written to the stimuli file
FORMATS: Dict[str, FormatDesc] = {
    'FP32': FP32,
    'FP64': FP64,
    'FP16': FP16,
    'AL16': FP16ALT,
    'FP08': FP8,
    'AL08': FP8ALT,
}

# Spellings accepted on input besides the canonical tags
ALIASES: Dict[str, str] = {
    'FP8': 'FP08',
    'AL8': 'AL08',
    'FP16ALT': 'AL16',
    'FP8ALT': 'AL08',
}

# FP64 is representable but never generated
GENERATION_FORMATS = ('FP32', 'FP16', 'AL16', 'FP08', 'AL08')


@dataclass(frozen=True)
class Recognized:
    tag: str
    desc: FormatDesc


@dataclass(frozen=True)
class Unrecognized:
    raw: str


def decode_format(tag: str) -> Union[Recognized, Unrecognized]:
    """
    Look up a format tag.

    Never raises: unknown tags come back as Unrecognized so the caller
    decides whether to abort (generator) or substitute (checker).
    """
    key = tag.strip().upper()
    key = ALIASES.get(key, key)
    if key in FORMATS:
        return Recognized(key, FORMATS[key])
    return Unrecognized(tag)


def desc_of(tag: str, default: Optional[FormatDesc] = None) -> FormatDesc:
    """Descriptor for tag; KeyError if unknown and no default is given."""
    result = decode_format(tag)
    if isinstance(result, Recognized):
        return result.desc
    if default is None:
        raise KeyError(f"Invalid FP format: {tag!r}")
    return default


def tag_of(desc: FormatDesc) -> str:
    for tag, d in FORMATS.items():
        if d == desc:
            return tag
    raise KeyError(f"No tag for format e{desc.exp_bits}m{desc.man_bits}")
