"""MCP server entry point for the EGTS codec.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import EgtsError
from .models.pos_data import PositionData
from .protocol.constants import PacketType, ResultCode, ServiceType, SubrecordType
from .protocol.packet import Packet, build_response, decode_packet as _decode_packet
from .protocol.service import ServiceFrame, ServiceRecord
from .protocol.subrecords import SUBRECORD_CLASSES, Subrecord
from .protocol.transport import TransportHeader, decode_header, split_packets
from .utils.crc import crc8, crc16

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "egts",
    instructions="Decode, encode and acknowledge EGTS telematics packets",
)


def _parse_hex(hex_data: str) -> bytes:
    """Parse a hex dump, tolerating spaces, newlines and a 0x prefix."""
    text = "".join(hex_data.split())
    if text.lower().startswith("0x"):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise ValueError(f"Invalid hex data: {e}") from None


# ─── CODEC TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def decode_packet(hex_data: str) -> dict[str, Any]:
    """Decode one EGTS packet from a hex string.

    Returns the transport header, service records, subrecords and any
    non-fatal diagnostics (e.g. result code 150 for unknown subrecords).

    Args:
        hex_data: Packet bytes as hex, e.g. "0100030B00...".
    """
    try:
        data = _parse_hex(hex_data)
        packet = _decode_packet(data)
    except EgtsError as e:
        logger.info("Decode failed: %s", e)
        return e.to_dict()
    except ValueError as e:
        return {"error": str(e)}
    return packet.to_dict()


@mcp.tool()
def encode_packet(packet: dict[str, Any]) -> dict[str, Any]:
    """Encode a packet description (as returned by decode_packet) to hex.

    Lengths and checksums are always recomputed.

    Args:
        packet: Dict with "header" and "frame" keys.
    """
    try:
        built = Packet.from_dict(packet)
        data = built.to_bytes()
    except EgtsError as e:
        return e.to_dict()
    except (KeyError, TypeError, ValueError) as e:
        return {"error": f"Invalid packet description: {e}"}
    return {
        "hex": data.hex().upper(),
        "length": len(data),
        "header_checksum": built.header.header_checksum,
        "frame_checksum": built.frame_checksum,
    }


@mcp.tool()
def build_position_packet(
    packet_id: int,
    record_number: int,
    latitude: float,
    longitude: float,
    object_id: int | None = None,
    navigation_time: str | None = None,
    speed: float = 0.0,
    direction: int = 0,
    odometer: int = 0,
    valid: bool = True,
    moving: bool = False,
) -> dict[str, Any]:
    """Build a teledata packet carrying a single position fix.

    Args:
        packet_id: Transport packet identifier (0-65535).
        record_number: Service record number (0-65535).
        latitude: Degrees, south negative.
        longitude: Degrees, west negative.
        object_id: Optional terminal object identifier.
        navigation_time: ISO 8601 timestamp (default: now, UTC).
        speed: Speed in km/h.
        direction: Heading in degrees (0-359).
        odometer: Odometer reading.
        valid: Whether the fix is valid.
        moving: Whether the vehicle is moving.
    """
    try:
        when = (
            datetime.fromisoformat(navigation_time)
            if navigation_time
            else datetime.now(timezone.utc).replace(microsecond=0)
        )
        fix = PositionData.from_coordinates(
            when, latitude, longitude,
            speed=speed, direction=direction, odometer=odometer,
            vld=int(valid), mv=int(moving),
        )
        packet = Packet(
            header=TransportHeader(packet_id=packet_id),
            frame=ServiceFrame(records=[ServiceRecord(
                record_number=record_number,
                object_id=object_id,
                ssod=1,
                subrecords=[Subrecord(SubrecordType.POS_DATA, fix)],
            )]),
        )
        data = packet.to_bytes()
    except EgtsError as e:
        return e.to_dict()
    except ValueError as e:
        return {"error": str(e)}
    return {"hex": data.hex().upper(), "length": len(data)}


@mcp.tool()
def build_ack(hex_data: str, packet_id: int, record_number: int = 0) -> dict[str, Any]:
    """Build the PT_RESPONSE acknowledgement a server sends for a packet.

    If the packet header is valid but the packet fails to decode, the
    acknowledgement carries the failure's result code and no records.

    Args:
        hex_data: The received packet as hex.
        packet_id: Packet identifier for the acknowledgement.
        record_number: First record number used in the acknowledgement.
    """
    try:
        data = _parse_hex(hex_data)
    except ValueError as e:
        return {"error": str(e)}

    try:
        received = _decode_packet(data)
        result = ResultCode.OK
    except EgtsError as e:
        try:
            header, _ = decode_header(data)
        except EgtsError:
            return e.to_dict()
        received = Packet(header=header, frame=None)
        result = e.result_code

    try:
        response = build_response(received, packet_id, record_number, result)
        out = response.to_bytes()
    except EgtsError as e:
        return e.to_dict()
    return {
        "hex": out.hex().upper(),
        "processing_result": int(result),
        "confirmed_records": [r.record_number for r in received.records],
    }


@mcp.tool()
def split_stream(hex_data: str) -> dict[str, Any]:
    """Split a captured TCP byte stream into complete packets.

    Args:
        hex_data: Concatenated packet bytes as hex.
    """
    try:
        data = _parse_hex(hex_data)
    except ValueError as e:
        return {"error": str(e)}
    packets, rest = split_packets(data)
    return {
        "packets": [p.hex().upper() for p in packets],
        "remainder": rest.hex().upper(),
    }


@mcp.tool()
def compute_checksums(hex_data: str) -> dict[str, Any]:
    """Compute the header CRC-8 and frame CRC-16 of arbitrary bytes.

    Args:
        hex_data: Bytes as hex.
    """
    try:
        data = _parse_hex(hex_data)
    except ValueError as e:
        return {"error": str(e)}
    return {"crc8": crc8(data), "crc16": crc16(data), "length": len(data)}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("egts://catalog/subrecord-types")
def resource_subrecord_types() -> str:
    """Subrecord type codes and whether the codec decodes them."""
    return json.dumps({
        "subrecord_types": [
            {"code": int(t), "name": t.name, "decoded": int(t) in SUBRECORD_CLASSES}
            for t in SubrecordType
        ]
    })


@mcp.resource("egts://catalog/services")
def resource_services() -> str:
    """Service type identifiers."""
    return json.dumps({"services": {s.name: int(s) for s in ServiceType}})


@mcp.resource("egts://catalog/result-codes")
def resource_result_codes() -> str:
    """Processing result codes used in acknowledgements and diagnostics."""
    return json.dumps({
        "result_codes": {int(c): c.name for c in ResultCode},
        "packet_types": {int(p): p.name for p in PacketType},
    })


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def analyze_capture(hex_data: str) -> str:
    """Walk through a captured EGTS byte stream packet by packet.

    Args:
        hex_data: Captured bytes as hex.
    """
    return f"""Analyze this EGTS capture:

{hex_data}

Steps:
- Use split_stream to cut the capture into packets
- Decode each packet with decode_packet
- Report checksum or length failures with their offsets
- List position fixes (time, coordinates, speed, heading) in order
- Flag any diagnostics, such as result code 150 for unknown subrecords

Use build_ack to show the acknowledgement a server would send back."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
