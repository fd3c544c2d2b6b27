"""Low-level helpers: checksums, bit-field packing and timestamps."""

from .bits import pack_bits, unpack_bits, check_uint, uint_le
from .crc import crc8, crc16
from .navtime import NAVIGATION_EPOCH, from_epoch_seconds, to_epoch_seconds
