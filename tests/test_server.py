"""Tests for the MCP tool functions."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

from conftest import ENCODE_REFERENCE, REFERENCE


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            sys.modules.pop("egts_mcp.server", None)
            import egts_mcp.server as server_mod

    return server_mod


def test_decode_packet_tool():
    server = _get_server_module()
    result = server.decode_packet(REFERENCE.hex(" "))
    assert result["header"]["packet_id"] == 138
    record = result["frame"]["records"][0]
    assert record["object_id"] == 133552
    assert record["subrecords"][0]["data"]["direction"] == 300
    assert result["diagnostics"] == []


def test_decode_packet_tool_reports_errors():
    server = _get_server_module()
    result = server.decode_packet(REFERENCE[:-1].hex())
    assert result["type"] == "TruncatedInputError"
    assert result["result_code"] == 139

    result = server.decode_packet("zz")
    assert "error" in result


def test_encode_packet_tool_roundtrip():
    server = _get_server_module()
    decoded = server.decode_packet(REFERENCE.hex())
    encoded = server.encode_packet(decoded)
    assert bytes.fromhex(encoded["hex"]) == REFERENCE
    assert encoded["frame_checksum"] == 0x27CC


def test_encode_packet_tool_rejects_bad_input():
    server = _get_server_module()
    result = server.encode_packet({"header": {"packet_id": 70000}, "frame": {"records": []}})
    assert result["type"] == "FieldOutOfRangeError"


def test_build_position_packet_tool():
    server = _get_server_module()
    result = server.build_position_packet(
        packet_id=138,
        record_number=97,
        latitude=55,
        longitude=37,
        object_id=133552,
        navigation_time="2018-07-05T20:08:53+00:00",
        speed=200,
        direction=300,
        odometer=1,
    )
    data = bytes.fromhex(result["hex"])
    # Same fix as the reference, but default (highest) priorities.
    assert data[2] == 0x00
    assert data[11 + 4] == 0x81
    assert data[22:46] == ENCODE_REFERENCE[22:46]
    assert server.decode_packet(result["hex"])["header"]["packet_id"] == 138


def test_build_ack_tool():
    server = _get_server_module()
    result = server.build_ack(REFERENCE.hex(), packet_id=1)
    assert result["processing_result"] == 0
    assert result["confirmed_records"] == [97]
    ack = server.decode_packet(result["hex"])
    assert ack["header"]["packet_type"] == 0
    assert ack["frame"]["response_packet_id"] == 138


def test_build_ack_for_corrupt_frame():
    server = _get_server_module()
    data = bytearray(REFERENCE)
    data[-1] ^= 0xFF
    result = server.build_ack(bytes(data).hex(), packet_id=2)
    assert result["processing_result"] == 138
    assert result["confirmed_records"] == []


def test_build_ack_for_corrupt_header():
    server = _get_server_module()
    data = bytearray(REFERENCE)
    data[0] ^= 0x01
    result = server.build_ack(bytes(data).hex(), packet_id=2)
    assert result["type"] == "HeaderChecksumError"


def test_split_stream_tool():
    server = _get_server_module()
    result = server.split_stream((REFERENCE + REFERENCE[:4]).hex())
    assert result["packets"] == [REFERENCE.hex().upper()]
    assert result["remainder"] == REFERENCE[:4].hex().upper()


def test_compute_checksums_tool():
    server = _get_server_module()
    result = server.compute_checksums("0x" + REFERENCE[:10].hex())
    assert result["crc8"] == 0x49
    assert result["length"] == 10


def test_resources_are_json():
    server = _get_server_module()
    subrecords = json.loads(server.resource_subrecord_types())["subrecord_types"]
    pos = next(s for s in subrecords if s["code"] == 16)
    assert pos["decoded"] is True
    codes = json.loads(server.resource_result_codes())["result_codes"]
    assert codes["150"] == "SRVC_UNKN"
    assert json.loads(server.resource_services())["services"]["TELEDATA"] == 2


def test_analyze_capture_prompt():
    server = _get_server_module()
    text = server.analyze_capture("0100")
    assert "split_stream" in text
    assert "0100" in text
