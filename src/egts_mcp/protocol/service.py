"""Service layer: service records and the checksummed service frame.

Service record layout (little-endian)::

    +------+------+-----+-------+--------+-------+-----+-----+-----------------+
    | RL   | RN   | RFL | [OID] | [EVID] | [TM]  | SST | RST | RD              |
    | 2 B  | 2 B  | 1 B | 4 B   | 4 B    | 4 B   | 1 B | 1 B | RL bytes        |
    +------+------+-----+-------+--------+-------+-----+-----+-----------------+

- RFL: ssod(1) rsod(1) group(1) priority(2) tmfe(1) evfe(1) obfe(1), MSB first
- OID/EVID/TM are present only when obfe/evfe/tmfe are set
- RD: the record's subrecords, exactly RL bytes

The frame carries a packet-type-specific prefix before its records:
PT_RESPONSE starts with RPID(2) PR(1), PT_SIGNED_APPDATA with SIGL(2) SIGD.
The frame is followed by a CRC-16 over all of its bytes.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from datetime import datetime

from ..errors import (
    FrameChecksumError,
    RecordLengthError,
    TruncatedInputError,
    UnsupportedPacketTypeError,
)
from ..utils.bits import pack_bits, uint_le, unpack_bits
from ..utils.crc import crc16
from ..utils.navtime import from_epoch_seconds, to_epoch_seconds
from .constants import (
    FRAME_CHECKSUM_SIZE,
    RECORD_FLAGS,
    PacketType,
    Priority,
    ResultCode,
    ServiceType,
    describe,
)
from .subrecords import Subrecord, decode_record_data, encode_record_data

logger = logging.getLogger(__name__)

RECORD_HEADER_SIZE = 7  # RL(2) + RN(2) + RFL(1) + SST(1) + RST(1)

_KNOWN_SERVICES = frozenset(int(s) for s in ServiceType)


@dataclass
class ServiceRecord:
    """A service record and its subrecords.

    ``object_id``, ``event_id`` and ``time`` are optional on the wire; a
    value of ``None`` means the field (and its presence flag) is absent.
    """

    record_number: int = 0
    source_service: int = ServiceType.TELEDATA
    recipient_service: int = ServiceType.TELEDATA
    subrecords: list[Subrecord] = field(default_factory=list)
    object_id: int | None = None
    event_id: int | None = None
    time: datetime | None = None
    ssod: int = 0
    rsod: int = 0
    group: int = 0
    priority: int = Priority.HIGHEST
    result_code: int = ResultCode.OK

    @property
    def record_length(self) -> int:
        return len(encode_record_data(self.subrecords))

    def to_bytes(self) -> bytes:
        return encode_record(self)

    def to_dict(self) -> dict:
        return {
            "record_length": self.record_length,
            "record_number": self.record_number,
            "ssod": bool(self.ssod),
            "rsod": bool(self.rsod),
            "group": bool(self.group),
            "priority": self.priority,
            "object_id": self.object_id,
            "event_id": self.event_id,
            "time": self.time.isoformat() if self.time else None,
            "source_service": self.source_service,
            "source_service_name": describe(ServiceType, self.source_service),
            "recipient_service": self.recipient_service,
            "recipient_service_name": describe(ServiceType, self.recipient_service),
            "result_code": int(self.result_code),
            "subrecords": [s.to_dict() for s in self.subrecords],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ServiceRecord:
        time = data.get("time")
        if isinstance(time, str):
            time = datetime.fromisoformat(time)
        return cls(
            record_number=int(data.get("record_number", 0)),
            source_service=int(data.get("source_service", ServiceType.TELEDATA)),
            recipient_service=int(data.get("recipient_service", ServiceType.TELEDATA)),
            subrecords=[Subrecord.from_dict(s) for s in data.get("subrecords", [])],
            object_id=data.get("object_id"),
            event_id=data.get("event_id"),
            time=time,
            ssod=int(data.get("ssod", 0)),
            rsod=int(data.get("rsod", 0)),
            group=int(data.get("group", 0)),
            priority=int(data.get("priority", Priority.HIGHEST)),
        )


@dataclass
class ServiceFrame:
    """The service frame of a packet.

    ``response_packet_id`` and ``processing_result`` are only meaningful
    for PT_RESPONSE packets, ``signature`` only for PT_SIGNED_APPDATA.
    """

    records: list[ServiceRecord] = field(default_factory=list)
    response_packet_id: int = 0
    processing_result: int = ResultCode.OK
    signature: bytes = b""

    def to_dict(self) -> dict:
        return {
            "response_packet_id": self.response_packet_id,
            "processing_result": int(self.processing_result),
            "signature_hex": self.signature.hex(),
            "records": [r.to_dict() for r in self.records],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ServiceFrame:
        return cls(
            records=[ServiceRecord.from_dict(r) for r in data.get("records", [])],
            response_packet_id=int(data.get("response_packet_id", 0)),
            processing_result=int(data.get("processing_result", ResultCode.OK)),
            signature=bytes.fromhex(data.get("signature_hex", "")),
        )


def encode_record(record: ServiceRecord) -> bytes:
    record_data = encode_record_data(record.subrecords)
    flags = pack_bits(
        {
            "ssod": record.ssod,
            "rsod": record.rsod,
            "group": record.group,
            "priority": record.priority,
            "tmfe": record.time is not None,
            "evfe": record.event_id is not None,
            "obfe": record.object_id is not None,
        },
        RECORD_FLAGS,
    )
    out = (
        uint_le("record_length", len(record_data), 2)
        + uint_le("record_number", record.record_number, 2)
        + bytes([flags])
    )
    if record.object_id is not None:
        out += uint_le("object_id", record.object_id, 4)
    if record.event_id is not None:
        out += uint_le("event_id", record.event_id, 4)
    if record.time is not None:
        out += uint_le("time", to_epoch_seconds("time", record.time), 4)
    out += (
        uint_le("source_service", record.source_service, 1)
        + uint_le("recipient_service", record.recipient_service, 1)
        + record_data
    )
    return out


def decode_record(data: bytes, offset: int, end: int) -> tuple[ServiceRecord, int]:
    """Decode the service record at ``offset``; ``end`` bounds the frame.

    Returns:
        The record and the offset just past it.
    """
    if offset + RECORD_HEADER_SIZE > end:
        raise RecordLengthError(
            "record header runs past frame end", layer="service", offset=offset
        )
    record_length, record_number, flag_byte = struct.unpack_from("<HHB", data, offset)
    flags = unpack_bits(flag_byte, RECORD_FLAGS)
    pos = offset + 5

    optional: dict[str, int] = {}
    for name, flag in (("object_id", "obfe"), ("event_id", "evfe"), ("time", "tmfe")):
        if flags[flag]:
            if pos + 4 > end:
                raise RecordLengthError(
                    f"record {record_number} {name} runs past frame end",
                    layer="service",
                    offset=pos,
                )
            optional[name] = int.from_bytes(data[pos : pos + 4], "little")
            pos += 4

    if pos + 2 > end:
        raise RecordLengthError(
            f"record {record_number} service types run past frame end",
            layer="service",
            offset=pos,
        )
    source_service, recipient_service = data[pos], data[pos + 1]
    pos += 2

    record_end = pos + record_length
    if record_end > end:
        raise RecordLengthError(
            f"record {record_number} declares {record_length} bytes, "
            f"only {end - pos} left in frame",
            layer="service",
            offset=offset,
        )
    subrecords = decode_record_data(data, pos, record_end)

    result_code = ResultCode.OK
    if source_service not in _KNOWN_SERVICES or recipient_service not in _KNOWN_SERVICES:
        logger.warning(
            "Record %d addresses unknown service %d -> %d",
            record_number, source_service, recipient_service,
        )
        result_code = ResultCode.SRVC_UNKN

    time = optional.get("time")
    record = ServiceRecord(
        record_number=record_number,
        source_service=source_service,
        recipient_service=recipient_service,
        subrecords=subrecords,
        object_id=optional.get("object_id"),
        event_id=optional.get("event_id"),
        time=from_epoch_seconds(time) if time is not None else None,
        ssod=flags["ssod"],
        rsod=flags["rsod"],
        group=flags["group"],
        priority=flags["priority"],
        result_code=result_code,
    )
    return record, record_end


def _check_packet_type(packet_type: int, offset: int | None = None) -> None:
    if packet_type not in (PacketType.RESPONSE, PacketType.APPDATA, PacketType.SIGNED_APPDATA):
        raise UnsupportedPacketTypeError(
            f"packet type {packet_type} is not supported",
            layer="service",
            offset=offset,
        )


def encode_frame(frame: ServiceFrame, packet_type: int = PacketType.APPDATA) -> bytes:
    """Serialize a frame followed by its CRC-16."""
    _check_packet_type(packet_type)
    body = b""
    if packet_type == PacketType.RESPONSE:
        body += (
            uint_le("response_packet_id", frame.response_packet_id, 2)
            + uint_le("processing_result", frame.processing_result, 1)
        )
    elif packet_type == PacketType.SIGNED_APPDATA:
        body += uint_le("signature_length", len(frame.signature), 2) + frame.signature
    body += b"".join(encode_record(r) for r in frame.records)
    return body + crc16(body).to_bytes(FRAME_CHECKSUM_SIZE, "little")


def decode_frame(
    data: bytes,
    frame_length: int,
    packet_type: int = PacketType.APPDATA,
    offset: int = 0,
) -> tuple[ServiceFrame, int]:
    """Decode ``frame_length`` bytes of service frame at ``offset``.

    The CRC-16 trailing the frame is verified before any record is parsed.

    Returns:
        The frame and its checksum.

    Raises:
        TruncatedInputError: If the frame or its checksum is cut short.
        FrameChecksumError: If the CRC-16 does not match.
        RecordLengthError: If record lengths do not tile the frame exactly.
        SubrecordLengthError: If a typed subrecord has the wrong length.
        UnsupportedPacketTypeError: For an unknown packet type.
    """
    end = offset + frame_length
    available = len(data) - offset
    if available < frame_length + FRAME_CHECKSUM_SIZE:
        raise TruncatedInputError(
            f"frame declares {frame_length} + {FRAME_CHECKSUM_SIZE} bytes, got {available}",
            layer="service",
            offset=offset,
        )
    checksum = int.from_bytes(data[end : end + FRAME_CHECKSUM_SIZE], "little")
    actual = crc16(data[offset:end])
    if actual != checksum:
        raise FrameChecksumError(
            f"frame checksum 0x{checksum:04X} != computed 0x{actual:04X}",
            layer="service",
            offset=end,
        )
    _check_packet_type(packet_type, offset)

    frame = ServiceFrame()
    pos = offset
    if packet_type == PacketType.RESPONSE:
        if pos + 3 > end:
            raise RecordLengthError(
                "response header runs past frame end", layer="service", offset=pos
            )
        frame.response_packet_id, frame.processing_result = struct.unpack_from(
            "<HB", data, pos
        )
        pos += 3
    elif packet_type == PacketType.SIGNED_APPDATA:
        if pos + 2 > end:
            raise RecordLengthError(
                "signature length runs past frame end", layer="service", offset=pos
            )
        signature_length = int.from_bytes(data[pos : pos + 2], "little")
        pos += 2
        if pos + signature_length > end:
            raise RecordLengthError(
                f"signature declares {signature_length} bytes, only {end - pos} left",
                layer="service",
                offset=pos,
            )
        frame.signature = bytes(data[pos : pos + signature_length])
        pos += signature_length

    while pos < end:
        record, pos = decode_record(data, pos, end)
        frame.records.append(record)

    return frame, checksum
