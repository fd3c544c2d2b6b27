"""Whole-packet encode/decode and acknowledgement building."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..models.record_response import RecordResponse
from .constants import FRAME_CHECKSUM_SIZE, PacketType, ResultCode, SubrecordType
from .service import ServiceFrame, ServiceRecord, decode_frame, encode_frame
from .subrecords import Subrecord
from .transport import TransportHeader, decode_header, encode_header

logger = logging.getLogger(__name__)


@dataclass
class Packet:
    """A transport packet and its service frame.

    ``frame`` is ``None`` for packets that carry no service data (frame
    data length 0, no frame checksum on the wire).
    """

    header: TransportHeader = field(default_factory=TransportHeader)
    frame: ServiceFrame | None = field(default_factory=ServiceFrame)
    frame_checksum: int = 0

    @property
    def records(self) -> list[ServiceRecord]:
        return self.frame.records if self.frame is not None else []

    def to_bytes(self) -> bytes:
        return encode_packet(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> Packet:
        return decode_packet(data)

    def diagnostics(self) -> list[dict]:
        """Non-fatal result codes raised while decoding, per layer."""
        issues = []
        for record in self.records:
            if record.result_code != ResultCode.OK:
                issues.append({
                    "layer": "record",
                    "record_number": record.record_number,
                    "subrecord_type": None,
                    "result_code": int(record.result_code),
                })
            for sub in record.subrecords:
                if sub.result_code != ResultCode.OK:
                    issues.append({
                        "layer": "subrecord",
                        "record_number": record.record_number,
                        "subrecord_type": sub.subrecord_type,
                        "result_code": int(sub.result_code),
                    })
        return issues

    def to_dict(self) -> dict:
        return {
            "header": self.header.to_dict(),
            "frame": self.frame.to_dict() if self.frame is not None else None,
            "frame_checksum": self.frame_checksum,
            "diagnostics": self.diagnostics(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Packet:
        frame = data.get("frame")
        return cls(
            header=TransportHeader.from_dict(data.get("header", {})),
            frame=ServiceFrame.from_dict(frame) if frame is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"Packet(packet_id={self.header.packet_id}, "
            f"packet_type={self.header.packet_type}, records={len(self.records)})"
        )


def encode_packet(packet: Packet) -> bytes:
    """Serialize a packet, filling in lengths and both checksums.

    The header's ``frame_data_length`` and ``header_checksum`` and the
    packet's ``frame_checksum`` are updated to match the output.
    """
    frame_bytes = b""
    if packet.frame is not None:
        frame_bytes = encode_frame(packet.frame, packet.header.packet_type)
    if len(frame_bytes) > FRAME_CHECKSUM_SIZE:
        packet.frame_checksum = int.from_bytes(frame_bytes[-FRAME_CHECKSUM_SIZE:], "little")
        packet.header.frame_data_length = len(frame_bytes) - FRAME_CHECKSUM_SIZE
    else:
        # An empty frame is sent as no frame at all.
        frame_bytes = b""
        packet.frame_checksum = 0
        packet.header.frame_data_length = 0
    data = encode_header(packet.header) + frame_bytes
    logger.debug(
        "Encoded packet %d: %d record(s), %d bytes",
        packet.header.packet_id, len(packet.records), len(data),
    )
    return data


def decode_packet(data: bytes) -> Packet:
    """Decode the packet at the start of ``data``.

    Bytes after the packet are ignored; use
    :func:`~egts_mcp.protocol.transport.split_packets` to walk a stream.

    Raises:
        EgtsError: Any fatal decoding failure. No partial packet is returned.
    """
    header, header_length = decode_header(data)
    frame = None
    checksum = 0
    if header.frame_data_length:
        frame, checksum = decode_frame(
            data, header.frame_data_length, header.packet_type, offset=header_length
        )
    packet = Packet(header=header, frame=frame, frame_checksum=checksum)
    logger.debug(
        "Decoded packet %d: type %d, %d record(s)",
        header.packet_id, header.packet_type, len(packet.records),
    )
    return packet


def build_response(
    packet: Packet,
    packet_id: int,
    record_number: int = 0,
    result_code: int = ResultCode.OK,
) -> Packet:
    """Build the PT_RESPONSE acknowledgement for a received packet.

    Each received record is confirmed by one EGTS_SR_RECORD_RESPONSE
    subrecord, with the first non-zero diagnostic of that record as its
    status.

    Args:
        packet: The packet being acknowledged.
        packet_id: Packet identifier for the response itself.
        record_number: Record number of the first response record.
        result_code: Transport-level processing result.
    """
    records = []
    for i, record in enumerate(packet.records):
        status = record.result_code or next(
            (s.result_code for s in record.subrecords if s.result_code), ResultCode.OK
        )
        records.append(ServiceRecord(
            record_number=(record_number + i) & 0xFFFF,
            source_service=record.recipient_service,
            recipient_service=record.source_service,
            subrecords=[Subrecord(
                SubrecordType.RECORD_RESPONSE,
                RecordResponse(
                    confirmed_record_number=record.record_number,
                    record_status=int(status),
                ),
            )],
        ))
    header = TransportHeader(
        packet_id=packet_id,
        packet_type=PacketType.RESPONSE,
        priority=packet.header.priority,
    )
    frame = ServiceFrame(
        records=records,
        response_packet_id=packet.header.packet_id,
        processing_result=result_code,
    )
    return Packet(header=header, frame=frame)
