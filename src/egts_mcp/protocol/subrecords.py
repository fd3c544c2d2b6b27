"""Subrecord framing and the payload registry.

Subrecord layout::

    +------+--------+-------------------+
    | SRT  | SRL    | SRD               |
    | 1 B  | 2 B    | SRL bytes         |
    +------+--------+-------------------+

The registry maps a subrecord type code to a payload class. Payload
classes implement ``to_bytes()``, ``unpack(data) -> (payload, consumed)``,
``to_dict()`` and ``from_dict()``. Types that are not registered decode to
:class:`UnknownSubrecord`, keeping the raw bytes so the record can be
re-encoded unchanged.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Any

from ..errors import RecordLengthError, SubrecordLengthError
from ..models.pos_data import PositionData
from ..models.record_response import RecordResponse
from ..utils.bits import uint_le
from .constants import ResultCode, SubrecordType, describe

logger = logging.getLogger(__name__)

SUBRECORD_HEADER_SIZE = 3


@dataclass
class UnknownSubrecord:
    """Opaque payload of a subrecord type with no registered decoder."""

    raw: bytes = b""

    def to_bytes(self) -> bytes:
        return self.raw

    @classmethod
    def unpack(cls, data: bytes) -> tuple[UnknownSubrecord, int]:
        return cls(raw=bytes(data)), len(data)

    def to_dict(self) -> dict:
        return {"raw_hex": self.raw.hex()}

    @classmethod
    def from_dict(cls, data: dict) -> UnknownSubrecord:
        return cls(raw=bytes.fromhex(data.get("raw_hex", "")))

    def __repr__(self) -> str:
        return f"UnknownSubrecord(raw={self.raw.hex(' ') if self.raw else '(empty)'})"


SUBRECORD_CLASSES: dict[int, type] = {
    SubrecordType.RECORD_RESPONSE: RecordResponse,
    SubrecordType.POS_DATA: PositionData,
}


def register_subrecord(subrecord_type: int, cls: type) -> None:
    """Register a payload class for a subrecord type code.

    Re-registering a code replaces the previous class.
    """
    if not 0 <= subrecord_type <= 0xFF:
        raise ValueError(f"Subrecord type must be 0-255, got {subrecord_type}")
    SUBRECORD_CLASSES[subrecord_type] = cls


@dataclass
class Subrecord:
    """One typed unit of a record data set."""

    subrecord_type: int
    data: Any = field(default_factory=UnknownSubrecord)
    result_code: int = ResultCode.OK

    @property
    def length(self) -> int:
        return len(self.data.to_bytes())

    def to_bytes(self) -> bytes:
        return encode_subrecord(self)

    def to_dict(self) -> dict:
        return {
            "subrecord_type": self.subrecord_type,
            "subrecord_type_name": describe(SubrecordType, self.subrecord_type),
            "length": self.length,
            "result_code": int(self.result_code),
            "data": self.data.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Subrecord:
        subrecord_type = int(data["subrecord_type"])
        payload_cls = SUBRECORD_CLASSES.get(subrecord_type, UnknownSubrecord)
        payload = data.get("data", {})
        if "raw_hex" in payload:
            payload_cls = UnknownSubrecord
        return cls(subrecord_type=subrecord_type, data=payload_cls.from_dict(payload))


def encode_subrecord(subrecord: Subrecord) -> bytes:
    payload = subrecord.data.to_bytes()
    return (
        uint_le("subrecord_type", subrecord.subrecord_type, 1)
        + uint_le("subrecord_length", len(payload), 2)
        + payload
    )


def decode_subrecord(data: bytes, offset: int, end: int) -> tuple[Subrecord, int]:
    """Decode the subrecord starting at ``offset``; ``end`` bounds the record.

    Returns:
        The subrecord and the offset just past it.

    Raises:
        RecordLengthError: If the subrecord header or payload runs past ``end``.
        SubrecordLengthError: If a registered payload does not fill its
            declared length exactly.
    """
    if offset + SUBRECORD_HEADER_SIZE > end:
        raise RecordLengthError(
            "subrecord header runs past record end", layer="subrecord", offset=offset
        )
    subrecord_type, length = struct.unpack_from("<BH", data, offset)
    start = offset + SUBRECORD_HEADER_SIZE
    stop = start + length
    if stop > end:
        raise RecordLengthError(
            f"subrecord type {subrecord_type} declares {length} bytes, "
            f"only {end - start} left in record",
            layer="subrecord",
            offset=offset,
        )
    body = data[start:stop]

    payload_cls = SUBRECORD_CLASSES.get(subrecord_type)
    if payload_cls is None:
        logger.warning(
            "Unknown subrecord type %d (%d bytes) at offset %d",
            subrecord_type, length, offset,
        )
        payload, _ = UnknownSubrecord.unpack(body)
        return Subrecord(subrecord_type, payload, ResultCode.SRVC_UNKN), stop

    try:
        payload, consumed = payload_cls.unpack(body)
    except SubrecordLengthError as e:
        raise SubrecordLengthError(e.message, layer="subrecord", offset=start) from e
    if consumed != length:
        raise SubrecordLengthError(
            f"subrecord type {subrecord_type} declares {length} bytes, "
            f"payload uses {consumed}",
            layer="subrecord",
            offset=start,
        )
    return Subrecord(subrecord_type, payload), stop


def decode_record_data(data: bytes, offset: int, end: int) -> list[Subrecord]:
    """Decode subrecords until ``end`` is reached exactly."""
    subrecords: list[Subrecord] = []
    while offset < end:
        subrecord, offset = decode_subrecord(data, offset, end)
        subrecords.append(subrecord)
    return subrecords


def encode_record_data(subrecords: list[Subrecord]) -> bytes:
    return b"".join(encode_subrecord(s) for s in subrecords)
