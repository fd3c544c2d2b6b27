"""CRC-8 and CRC-16 checksums used by the EGTS transport layer.

CRC-8 protects the transport header (polynomial 0x31, initial value 0xFF).
CRC-16 protects the service frame (CCITT polynomial 0x1021, initial value
0xFFFF). Neither variant reflects input/output or applies a final XOR.
"""

from __future__ import annotations


def _build_crc8_table(poly: int) -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = ((crc << 1) ^ poly) if crc & 0x80 else (crc << 1)
        table.append(crc & 0xFF)
    return tuple(table)


def _build_crc16_table(poly: int) -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte << 8
        for _ in range(8):
            crc = ((crc << 1) ^ poly) if crc & 0x8000 else (crc << 1)
        table.append(crc & 0xFFFF)
    return tuple(table)


CRC8_TABLE = _build_crc8_table(0x31)
CRC16_TABLE = _build_crc16_table(0x1021)


def crc8(data: bytes, init: int = 0xFF) -> int:
    """Compute the header checksum over ``data``."""
    crc = init
    for byte in data:
        crc = CRC8_TABLE[crc ^ byte]
    return crc


def crc16(data: bytes, init: int = 0xFFFF) -> int:
    """Compute the service frame checksum over ``data``."""
    crc = init
    for byte in data:
        crc = ((crc << 8) & 0xFFFF) ^ CRC16_TABLE[(crc >> 8) ^ byte]
    return crc
