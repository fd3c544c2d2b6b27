"""EGTS_SR_RECORD_RESPONSE: acknowledgement of a single service record."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar

from ..errors import SubrecordLengthError
from ..utils.bits import uint_le


@dataclass
class RecordResponse:
    """Confirms processing of one received record (3 bytes)."""

    SIZE: ClassVar[int] = 3

    confirmed_record_number: int = 0
    record_status: int = 0

    def to_bytes(self) -> bytes:
        return (
            uint_le("confirmed_record_number", self.confirmed_record_number, 2)
            + uint_le("record_status", self.record_status, 1)
        )

    @classmethod
    def unpack(cls, data: bytes) -> tuple[RecordResponse, int]:
        if len(data) < cls.SIZE:
            raise SubrecordLengthError(
                f"record response needs {cls.SIZE} bytes, got {len(data)}"
            )
        crn, rst = struct.unpack_from("<HB", data, 0)
        return cls(confirmed_record_number=crn, record_status=rst), cls.SIZE

    def to_dict(self) -> dict:
        return {
            "confirmed_record_number": self.confirmed_record_number,
            "record_status": self.record_status,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RecordResponse:
        return cls(
            confirmed_record_number=int(data.get("confirmed_record_number", 0)),
            record_status=int(data.get("record_status", 0)),
        )
