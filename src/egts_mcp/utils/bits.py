"""Bit-field packing for the flag bytes found at every EGTS layer.

A layout is an ordered tuple of ``(name, width)`` pairs, most-significant
field first. The layout widths add up to the width of the packed integer
(8 bits for flag bytes, 16 for the position speed word).
"""

from __future__ import annotations

from typing import Mapping, Sequence

from ..errors import FieldOutOfRangeError

Layout = Sequence[tuple[str, int]]


def check_uint(name: str, value: int, width: int) -> int:
    """Ensure ``value`` fits in ``width`` unsigned bits and return it."""
    if isinstance(value, bool):
        value = int(value)
    if not isinstance(value, int):
        raise FieldOutOfRangeError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value < (1 << width):
        raise FieldOutOfRangeError(f"{name}={value} does not fit in {width} bits")
    return value


def uint_le(name: str, value: int, size: int) -> bytes:
    """Serialize an unsigned integer as ``size`` little-endian bytes."""
    return check_uint(name, value, size * 8).to_bytes(size, "little")


def pack_bits(values: Mapping[str, int], layout: Layout) -> int:
    """Combine named values into one integer according to ``layout``.

    Names missing from ``values`` pack as zero.

    Raises:
        FieldOutOfRangeError: If a value exceeds its declared width.
    """
    result = 0
    for name, width in layout:
        result = (result << width) | check_uint(name, values.get(name, 0), width)
    return result


def unpack_bits(value: int, layout: Layout) -> dict[str, int]:
    """Split an integer into named fields according to ``layout``."""
    fields: dict[str, int] = {}
    shift = sum(width for _, width in layout)
    for name, width in layout:
        shift -= width
        fields[name] = (value >> shift) & ((1 << width) - 1)
    return fields
