"""Tests for the header CRC-8 and frame CRC-16."""

from egts_mcp.utils.crc import crc8, crc16, CRC8_TABLE, CRC16_TABLE

from conftest import FRAME, HEADER


def test_crc8_empty():
    """CRC of empty data is the initial value."""
    assert crc8(b"") == 0xFF


def test_crc8_check_value():
    """Standard check string for CRC-8 poly 0x31, init 0xFF."""
    assert crc8(b"123456789") == 0xF7


def test_crc8_reference_header():
    """The captured header's last byte is the CRC-8 of the ten before it."""
    assert crc8(HEADER[:10]) == 0x49
    assert HEADER[10] == 0x49


def test_crc16_empty():
    assert crc16(b"") == 0xFFFF


def test_crc16_check_value():
    """Standard check string for CRC-16/CCITT-FALSE."""
    assert crc16(b"123456789") == 0x29B1


def test_crc16_reference_frame():
    """The captured frame checksum is 0x27CC (stored as CC 27)."""
    assert crc16(FRAME) == 0x27CC


def test_tables_have_256_entries():
    assert len(CRC8_TABLE) == 256
    assert len(CRC16_TABLE) == 256
    assert CRC8_TABLE[1] == 0x31
    assert CRC16_TABLE[1] == 0x1021


def test_crc_different_inputs():
    assert crc8(b"\x01") != crc8(b"\x02")
    assert crc16(b"\x01") != crc16(b"\x02")
