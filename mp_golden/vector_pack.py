# Lane packing for the FPU's operand / result words.
#
# Layout of one container word (WIDTH bits, shown for 2 populated lanes):
#
#   MSB                                                  LSB
#   [ 1...1 filler ][ lane 0 ][ lane 1 ] ... [ lane n-1 ]
#
# Lane 0 is the first element generated. An element narrower than its
# lane is NaN-boxed: the lane bits above the element are all ones.

from __future__ import annotations

import string
from typing import List, Sequence, Tuple

LaneValue = Tuple[int, int]  # (bits, element width)


def ones(width: int) -> int:
    return (1 << width) - 1


def box(bits: int, elem_width: int, lane_width: int) -> int:
    """Place elem_width bits in a lane_width lane, ones above."""
    if elem_width > lane_width:
        raise ValueError(f"{elem_width}-bit element does not fit a {lane_width}-bit lane")
    bits &= ones(elem_width)
    return (ones(lane_width - elem_width) << elem_width) | bits


def pack_lanes(elements: Sequence[LaneValue], lane_width: int, container_width: int) -> int:
    """
    Concatenate elements into one container word, lane 0 most significant.

    Unused high-order bits are filled with ones. Raises ValueError if the
    lanes do not fit the container.
    """
    used = len(elements) * lane_width
    if used > container_width:
        raise ValueError(
            f"{len(elements)} x {lane_width}-bit lanes exceed {container_width}-bit container")

    word = 0
    for bits, elem_width in elements:
        word = (word << lane_width) | box(bits, elem_width, lane_width)

    return (ones(container_width - used) << used) | word


def unpack_lanes(word: int, lane_width: int, count: int, elem_width: int = 0) -> List[int]:
    """
    Inverse of pack_lanes for the populated lanes (lane 0 first).

    With elem_width set, the NaN-box above each element is stripped.
    """
    keep = elem_width or lane_width
    lanes = []
    for i in range(count):
        shift = (count - 1 - i) * lane_width
        lanes.append((word >> shift) & ones(keep))
    return lanes


def filler_word(width: int) -> int:
    """All-ones word for an unused operand field."""
    return ones(width)


def concat_fields(fields: Sequence[Tuple[int, int]]) -> Tuple[int, int]:
    """Join (value, width) fields, first one most significant -> (value, total width)."""
    word = 0
    total = 0
    for value, width in fields:
        word = (word << width) | (value & ones(width))
        total += width
    return word, total


def split_fields(word: int, widths: Sequence[int]) -> List[int]:
    """Inverse of concat_fields."""
    out = []
    shift = sum(widths)
    for width in widths:
        shift -= width
        out.append((word >> shift) & ones(width))
    return out


def word_to_hex(word: int, width: int) -> str:
    """Fixed-width uppercase hex, width/4 digits."""
    assert width % 4 == 0
    if word >> width:
        raise ValueError(f"0x{word:X} does not fit {width} bits")
    return f'{word:0{width // 4}X}'


def hex_to_word(text: str, width: int) -> int:
    """Parse a hex field; ValueError if it has the wrong length or digits."""
    if len(text) != width // 4:
        raise ValueError(f"expected {width // 4} hex digits, got {len(text)}: {text!r}")
    if not all(ch in string.hexdigits for ch in text):
        raise ValueError(f"not a hex field: {text!r}")
    return int(text, 16)
