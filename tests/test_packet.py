"""Tests for whole-packet decode/encode and acknowledgements."""

from datetime import datetime, timezone

import pytest

from egts_mcp.errors import (
    EgtsError,
    FieldOutOfRangeError,
    FrameChecksumError,
    HeaderChecksumError,
    TruncatedInputError,
    UnsupportedPacketTypeError,
)
from egts_mcp.models.pos_data import PositionData
from egts_mcp.models.record_response import RecordResponse
from egts_mcp.protocol.constants import PacketType, ResultCode, ServiceType, SubrecordType
from egts_mcp.protocol.packet import Packet, build_response, decode_packet, encode_packet
from egts_mcp.protocol.service import ServiceFrame, ServiceRecord
from egts_mcp.protocol.subrecords import Subrecord, UnknownSubrecord
from egts_mcp.protocol.transport import TransportHeader
from egts_mcp.utils.crc import crc8

from conftest import ENCODE_REFERENCE, REFERENCE, make_packet

# Decodes one day later than the 2018-07-04 the fixture was captured with,
# whose encoder counted from 2009-12-31 instead of 2010-01-01.
FIX_TIME = datetime(2018, 7, 5, 20, 8, 53, tzinfo=timezone.utc)


def _with_crc(body: bytes) -> bytes:
    return body + bytes([crc8(body)])


def _reference_from_degrees() -> Packet:
    fix = PositionData.from_coordinates(
        FIX_TIME, 55, 37, vld=1, speed=200, direction=300, odometer=1,
    )
    record = ServiceRecord(
        record_number=97,
        object_id=133552,
        ssod=1,
        priority=3,
        subrecords=[Subrecord(SubrecordType.POS_DATA, fix)],
    )
    return Packet(
        header=TransportHeader(packet_id=138, priority=3),
        frame=ServiceFrame(records=[record]),
    )


def test_decode_reference_packet():
    packet = decode_packet(REFERENCE)
    header = packet.header
    assert header.protocol_version == 1
    assert header.packet_id == 138
    assert header.header_length == 11
    assert header.frame_data_length == 35
    assert header.header_checksum == 0x49
    assert packet.frame_checksum == 10188

    assert len(packet.records) == 1
    record = packet.records[0]
    assert record.record_number == 97
    assert record.object_id == 133552
    assert record.source_service == record.recipient_service == ServiceType.TELEDATA

    sub = record.subrecords[0]
    assert sub.subrecord_type == 16
    fix = sub.data
    assert fix.navigation_time == FIX_TIME
    assert int(fix.latitude) == 55
    assert int(fix.longitude) == 37
    assert fix.speed == 200
    assert fix.direction_low == 44
    assert fix.odometer == 1
    assert packet.diagnostics() == []


def test_reference_roundtrip():
    assert encode_packet(decode_packet(REFERENCE)) == REFERENCE
    assert Packet.from_bytes(REFERENCE).to_bytes() == REFERENCE


def test_encode_from_whole_degrees():
    """Rebuilding from truncated degrees yields different geo bytes and CRC."""
    packet = _reference_from_degrees()
    data = packet.to_bytes()
    assert data == ENCODE_REFERENCE
    assert packet.header.frame_data_length == 35
    assert packet.header.header_checksum == 0x49
    assert packet.frame_checksum == 0xC9AC


def test_length_invariants():
    packet = _reference_from_degrees()
    packet.records[0].subrecords.append(Subrecord(99, UnknownSubrecord(b"\x01\x02")))
    data = packet.to_bytes()
    header_length = data[3]
    frame_length = int.from_bytes(data[5:7], "little")
    assert header_length == 11
    assert len(data) == header_length + frame_length + 2
    record_length = int.from_bytes(data[11:13], "little")
    assert record_length == 24 + 5
    assert packet.records[0].record_length == record_length


def test_every_strict_prefix_is_truncated():
    for n in range(len(REFERENCE)):
        with pytest.raises(TruncatedInputError):
            decode_packet(REFERENCE[:n])


def test_trailing_bytes_are_ignored():
    packet = decode_packet(REFERENCE + b"\x01\x02")
    assert packet.to_bytes() == REFERENCE


def test_bit_flips_never_decode():
    for index in range(len(REFERENCE)):
        data = bytearray(REFERENCE)
        data[index] ^= 0x10
        with pytest.raises(EgtsError):
            decode_packet(bytes(data))


def test_header_and_frame_errors_are_distinguished():
    data = bytearray(REFERENCE)
    data[7] ^= 0x01
    with pytest.raises(HeaderChecksumError) as exc:
        decode_packet(bytes(data))
    assert exc.value.result_code == ResultCode.HEADERCRC_ERROR

    data = bytearray(REFERENCE)
    data[30] ^= 0x01
    with pytest.raises(FrameChecksumError) as exc:
        decode_packet(bytes(data))
    assert exc.value.result_code == ResultCode.DATACRC_ERROR
    assert exc.value.offset == 46


def test_unknown_subrecord_packet():
    # RL=6 RN=1 RFL=0 SST=2 RST=2, then subrecord type 99 with 3 bytes
    frame = bytes.fromhex("06000100000202") + bytes([99, 3, 0, 7, 8, 9])
    data = make_packet(frame)
    packet = decode_packet(data)
    sub = packet.records[0].subrecords[0]
    assert sub.result_code == 150
    assert sub.data.raw == b"\x07\x08\x09"
    assert packet.diagnostics() == [{
        "layer": "subrecord",
        "record_number": 1,
        "subrecord_type": 99,
        "result_code": 150,
    }]
    assert packet.to_bytes() == data


def test_packet_without_frame():
    packet = Packet(header=TransportHeader(packet_id=5), frame=None)
    data = packet.to_bytes()
    assert len(data) == 11
    assert data[5:7] == b"\x00\x00"
    decoded = decode_packet(data)
    assert decoded.frame is None
    assert decoded.records == []


def test_empty_frame_is_sent_as_no_frame():
    data = Packet(header=TransportHeader(packet_id=5)).to_bytes()
    assert len(data) == 11


def test_header_only_packet_with_unknown_type():
    with pytest.raises(UnsupportedPacketTypeError):
        decode_packet(_with_crc(bytes.fromhex("0100030B000000010007")))
    with pytest.raises(UnsupportedPacketTypeError):
        Packet(header=TransportHeader(packet_id=1, packet_type=7), frame=None).to_bytes()


def test_encode_never_wraps():
    packet = _reference_from_degrees()
    packet.records[0].subrecords[0].data.odometer = 1 << 24
    with pytest.raises(FieldOutOfRangeError):
        packet.to_bytes()


def test_build_response():
    received = decode_packet(REFERENCE)
    response = build_response(received, packet_id=1, record_number=10)
    assert response.header.packet_type == PacketType.RESPONSE
    assert response.frame.response_packet_id == 138
    assert response.frame.processing_result == ResultCode.OK

    data = response.to_bytes()
    decoded = decode_packet(data)
    assert decoded.header.packet_type == PacketType.RESPONSE
    assert decoded.frame.response_packet_id == 138
    record = decoded.records[0]
    assert record.record_number == 10
    assert record.source_service == ServiceType.TELEDATA
    sub = record.subrecords[0]
    assert sub.subrecord_type == SubrecordType.RECORD_RESPONSE
    assert sub.data == RecordResponse(confirmed_record_number=97, record_status=0)


def test_build_response_reports_diagnostics():
    packet = _reference_from_degrees()
    packet.records[0].subrecords.append(Subrecord(99, UnknownSubrecord(b"\x00")))
    received = decode_packet(packet.to_bytes())
    response = build_response(received, packet_id=2)
    status = response.records[0].subrecords[0].data.record_status
    assert status == ResultCode.SRVC_UNKN


def test_build_response_with_error_code():
    header = TransportHeader(packet_id=138)
    response = build_response(Packet(header=header, frame=None), 3, result_code=138)
    decoded = decode_packet(response.to_bytes())
    assert decoded.frame.processing_result == 138
    assert decoded.records == []


def test_packet_dict_roundtrip():
    packet = decode_packet(REFERENCE)
    d = packet.to_dict()
    assert d["header"]["packet_id"] == 138
    assert d["frame_checksum"] == 0x27CC
    assert d["frame"]["records"][0]["subrecords"][0]["subrecord_type_name"] == "POS_DATA"
    assert Packet.from_dict(d).to_bytes() == REFERENCE


def test_repr():
    assert "packet_id=138" in repr(decode_packet(REFERENCE))
