"""Transport layer: the packet header envelope.

Header layout (little-endian)::

    +-----+------+-----+----+----+-------+-------+----+-----------------+-----+
    | PRV | SKID | FLG | HL | HE | FDL   | PID   | PT | [PRA RCA TTL]   | HCS |
    | 1 B | 1 B  | 1 B | 1B | 1B | 2 B   | 2 B   | 1B | 2 B + 2 B + 1 B | 1 B |
    +-----+------+-----+----+----+-------+-------+----+-----------------+-----+

- FLG: prefix(2) route(1) encryption(2) compression(1) priority(2), MSB first
- HL: header length including HCS (11, or 16 when the route bit is set)
- FDL: service frame length, excluding its 2-byte checksum
- HCS: CRC-8 over all preceding header bytes
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from ..errors import (
    HeaderChecksumError,
    HeaderLengthError,
    TruncatedInputError,
    UnsupportedPacketTypeError,
    UnsupportedProtocolVersionError,
)
from ..utils.bits import pack_bits, uint_le, unpack_bits
from ..utils.crc import crc8
from .constants import (
    FRAME_CHECKSUM_SIZE,
    HEADER_LENGTH,
    PROTOCOL_VERSION,
    ROUTED_HEADER_LENGTH,
    TRANSPORT_FLAGS,
    PacketType,
    Priority,
)

logger = logging.getLogger(__name__)

_FIXED = struct.Struct("<BBBBBHHB")
_ROUTE = struct.Struct("<HHB")


@dataclass
class RouteInfo:
    """Optional routing block, present when the route flag is set."""

    peer_address: int = 0
    recipient_address: int = 0
    ttl: int = 0

    def to_bytes(self) -> bytes:
        return (
            uint_le("peer_address", self.peer_address, 2)
            + uint_le("recipient_address", self.recipient_address, 2)
            + uint_le("ttl", self.ttl, 1)
        )

    def to_dict(self) -> dict:
        return {
            "peer_address": self.peer_address,
            "recipient_address": self.recipient_address,
            "ttl": self.ttl,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RouteInfo:
        return cls(
            peer_address=int(data.get("peer_address", 0)),
            recipient_address=int(data.get("recipient_address", 0)),
            ttl=int(data.get("ttl", 0)),
        )


@dataclass
class TransportHeader:
    """Decoded transport header.

    ``frame_data_length`` and ``header_checksum`` are filled in by the
    codec; callers building a packet leave them at zero.
    """

    packet_id: int = 0
    packet_type: int = PacketType.APPDATA
    protocol_version: int = PROTOCOL_VERSION
    security_key_id: int = 0
    prefix: int = 0
    encryption: int = 0
    compression: int = 0
    priority: int = Priority.HIGHEST
    header_encoding: int = 0
    frame_data_length: int = 0
    route: RouteInfo | None = None
    header_checksum: int = 0

    @property
    def header_length(self) -> int:
        return ROUTED_HEADER_LENGTH if self.route is not None else HEADER_LENGTH

    def to_bytes(self) -> bytes:
        return encode_header(self)

    def to_dict(self) -> dict:
        return {
            "protocol_version": self.protocol_version,
            "security_key_id": self.security_key_id,
            "prefix": self.prefix,
            "route": self.route is not None,
            "encryption": self.encryption,
            "compression": self.compression,
            "priority": self.priority,
            "header_length": self.header_length,
            "header_encoding": self.header_encoding,
            "frame_data_length": self.frame_data_length,
            "packet_id": self.packet_id,
            "packet_type": int(self.packet_type),
            "route_info": self.route.to_dict() if self.route else None,
            "header_checksum": self.header_checksum,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TransportHeader:
        route = data.get("route_info")
        return cls(
            packet_id=int(data.get("packet_id", 0)),
            packet_type=int(data.get("packet_type", PacketType.APPDATA)),
            protocol_version=int(data.get("protocol_version", PROTOCOL_VERSION)),
            security_key_id=int(data.get("security_key_id", 0)),
            prefix=int(data.get("prefix", 0)),
            encryption=int(data.get("encryption", 0)),
            compression=int(data.get("compression", 0)),
            priority=int(data.get("priority", Priority.HIGHEST)),
            header_encoding=int(data.get("header_encoding", 0)),
            route=RouteInfo.from_dict(route) if route else None,
        )


def encode_header(header: TransportHeader) -> bytes:
    """Serialize a header, computing its length and checksum.

    The computed checksum is stored back on ``header``. Unknown packet
    types are refused.
    """
    _check_packet_type(header.packet_type)
    flags = pack_bits(
        {
            "prefix": header.prefix,
            "route": header.route is not None,
            "encryption": header.encryption,
            "compression": header.compression,
            "priority": header.priority,
        },
        TRANSPORT_FLAGS,
    )
    body = (
        uint_le("protocol_version", header.protocol_version, 1)
        + uint_le("security_key_id", header.security_key_id, 1)
        + bytes([flags, header.header_length])
        + uint_le("header_encoding", header.header_encoding, 1)
        + uint_le("frame_data_length", header.frame_data_length, 2)
        + uint_le("packet_id", header.packet_id, 2)
        + uint_le("packet_type", header.packet_type, 1)
    )
    if header.route is not None:
        body += header.route.to_bytes()
    if len(body) + 1 != header.header_length:
        raise HeaderLengthError(
            f"encoded header is {len(body) + 1} bytes, expected {header.header_length}",
            layer="transport",
        )
    header.header_checksum = crc8(body)
    return body + bytes([header.header_checksum])


def _check_packet_type(packet_type: int, offset: int | None = None) -> None:
    if packet_type not in (PacketType.RESPONSE, PacketType.APPDATA, PacketType.SIGNED_APPDATA):
        raise UnsupportedPacketTypeError(
            f"packet type {packet_type} is not supported",
            layer="transport",
            offset=offset,
        )


def decode_header(data: bytes, offset: int = 0) -> tuple[TransportHeader, int]:
    """Decode the transport header at ``offset``.

    The CRC-8 is located by the declared header length when that is one
    of the two legal sizes, and by the route flag otherwise. Either way it
    covers the length byte, so a corrupted length surfaces as a checksum
    error before any length check runs.

    Returns:
        The header and the number of bytes it occupied.

    Raises:
        TruncatedInputError: If fewer bytes than the header are available.
        HeaderChecksumError: If the CRC-8 does not match.
        UnsupportedProtocolVersionError: If the version is not 1.
        UnsupportedPacketTypeError: If the packet type is unknown.
        HeaderLengthError: If the declared header length disagrees with
            the route flag.
    """
    available = len(data) - offset
    if available < HEADER_LENGTH:
        raise TruncatedInputError(
            f"header needs at least {HEADER_LENGTH} bytes, got {available}",
            layer="transport",
            offset=offset,
        )
    (
        version, skid, flag_byte, header_length, encoding, fdl, pid, packet_type,
    ) = _FIXED.unpack_from(data, offset)
    flags = unpack_bits(flag_byte, TRANSPORT_FLAGS)
    expected_length = ROUTED_HEADER_LENGTH if flags["route"] else HEADER_LENGTH
    if header_length in (HEADER_LENGTH, ROUTED_HEADER_LENGTH):
        checked_length = header_length
    else:
        checked_length = expected_length
    if available < checked_length:
        raise TruncatedInputError(
            f"header declares {checked_length} bytes, got {available}",
            layer="transport",
            offset=offset,
        )

    # Checksum first: nothing in an unverified header is trusted.
    expected = data[offset + checked_length - 1]
    actual = crc8(data[offset : offset + checked_length - 1])
    if actual != expected:
        raise HeaderChecksumError(
            f"header checksum 0x{expected:02X} != computed 0x{actual:02X}",
            layer="transport",
            offset=offset + checked_length - 1,
        )

    if version != PROTOCOL_VERSION:
        raise UnsupportedProtocolVersionError(
            f"protocol version {version} is not supported",
            layer="transport",
            offset=offset,
        )
    _check_packet_type(packet_type, offset + 9)
    if header_length != expected_length:
        raise HeaderLengthError(
            f"declared header length {header_length}, layout needs {expected_length}",
            layer="transport",
            offset=offset + 3,
        )
    route = None
    if flags["route"]:
        pra, rca, ttl = _ROUTE.unpack_from(data, offset + _FIXED.size)
        route = RouteInfo(peer_address=pra, recipient_address=rca, ttl=ttl)

    header = TransportHeader(
        packet_id=pid,
        packet_type=packet_type,
        protocol_version=version,
        security_key_id=skid,
        prefix=flags["prefix"],
        encryption=flags["encryption"],
        compression=flags["compression"],
        priority=flags["priority"],
        header_encoding=encoding,
        frame_data_length=fdl,
        route=route,
        header_checksum=expected,
    )
    return header, header_length


def packet_length(data: bytes, offset: int = 0) -> int | None:
    """Total size of the packet starting at ``offset``.

    Returns ``None`` while fewer bytes than a minimal header are buffered.
    The header is not verified here; :func:`decode_header` does that.
    """
    if len(data) - offset < HEADER_LENGTH:
        return None
    header_length = data[offset + 3]
    frame_length = int.from_bytes(data[offset + 5 : offset + 7], "little")
    if frame_length == 0:
        return header_length
    return header_length + frame_length + FRAME_CHECKSUM_SIZE


def split_packets(buffer: bytes) -> tuple[list[bytes], bytes]:
    """Cut every complete packet off the front of a stream buffer.

    Returns:
        The complete packets, in order, and the unconsumed remainder.
    """
    packets: list[bytes] = []
    offset = 0
    while True:
        size = packet_length(buffer, offset)
        if size is None or size < HEADER_LENGTH or offset + size > len(buffer):
            break
        packets.append(bytes(buffer[offset : offset + size]))
        offset += size
    if packets:
        logger.debug("Split %d packet(s), %d byte(s) left", len(packets), len(buffer) - offset)
    return packets, bytes(buffer[offset:])
