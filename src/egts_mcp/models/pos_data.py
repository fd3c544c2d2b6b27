"""EGTS_SR_POS_DATA: basic navigation fix reported by a terminal.

Payload layout (little-endian)::

    +------+------+------+-------+-----------+-----+----------+-----+-----+---------+
    | NTM  | LAT  | LONG | FLG   | SPD + DIR | DIR | ODM      | DIN | SRC | [ALT]   |
    | 4 B  | 4 B  | 4 B  | 1 B   | 2 B       | 1 B | 3 B      | 1 B | 1 B | 3 B     |
    +------+------+------+-------+-----------+-----+----------+-----+-----+---------+

- NTM: seconds since 2010-01-01T00:00:00 UTC
- LAT/LONG: unsigned fraction of 90/180 degrees scaled to 0xFFFFFFFF;
  the hemisphere lives in the LAHS/LOHS flag bits
- SPD word: bit 15 is the high bit of DIR, bit 14 the altitude sign,
  bits 13-0 the speed in 0.1 km/h
- ALT: present only when the ALTE flag is set
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from ..errors import FieldOutOfRangeError, SubrecordLengthError
from ..utils.bits import check_uint, pack_bits, uint_le, unpack_bits
from ..utils.navtime import from_epoch_seconds, to_epoch_seconds

POS_FLAGS = (
    ("alte", 1),
    ("lohs", 1),
    ("lahs", 1),
    ("mv", 1),
    ("bb", 1),
    ("cs", 1),
    ("fix", 1),
    ("vld", 1),
)

SPEED_WORD = (
    ("dirh", 1),
    ("alts", 1),
    ("speed", 14),
)

COORD_SCALE = 0xFFFFFFFF
LATITUDE_SPAN = 90
LONGITUDE_SPAN = 180

_FIXED = struct.Struct("<IIIBHB")


def coordinate_to_raw(name: str, degrees: float, span: int) -> int:
    """Convert degrees to the unsigned fixed-point wire value.

    The fraction is truncated, so sub-unit precision of the raw value is
    lost; the hemisphere is carried separately.
    """
    magnitude = abs(degrees)
    if magnitude > span:
        raise FieldOutOfRangeError(f"{name}={degrees} is outside +/-{span} degrees")
    return int(magnitude / span * COORD_SCALE)


def raw_to_coordinate(raw: int, span: int, negative: int) -> float:
    degrees = raw / COORD_SCALE * span
    return -degrees if negative else degrees


@dataclass
class PositionData:
    """A single navigation fix (21 bytes, 24 with altitude)."""

    SIZE: ClassVar[int] = 21
    ALTITUDE_SIZE: ClassVar[int] = 3

    navigation_time: datetime
    latitude_raw: int = 0
    longitude_raw: int = 0
    lahs: int = 0
    lohs: int = 0
    mv: int = 0
    bb: int = 0
    cs: int = 0
    fix: int = 0
    vld: int = 0
    speed: float = 0.0
    direction: int = 0
    odometer: int = 0
    digital_inputs: int = 0
    source: int = 0
    altitude: int | None = None
    altitude_sign: int = 0

    @classmethod
    def from_coordinates(
        cls,
        navigation_time: datetime,
        latitude: float,
        longitude: float,
        **kwargs,
    ) -> PositionData:
        """Build a fix from signed degrees (south/west negative)."""
        return cls(
            navigation_time=navigation_time,
            latitude_raw=coordinate_to_raw("latitude", latitude, LATITUDE_SPAN),
            longitude_raw=coordinate_to_raw("longitude", longitude, LONGITUDE_SPAN),
            lahs=1 if latitude < 0 else 0,
            lohs=1 if longitude < 0 else 0,
            **kwargs,
        )

    @property
    def latitude(self) -> float:
        return raw_to_coordinate(self.latitude_raw, LATITUDE_SPAN, self.lahs)

    @property
    def longitude(self) -> float:
        return raw_to_coordinate(self.longitude_raw, LONGITUDE_SPAN, self.lohs)

    @property
    def direction_low(self) -> int:
        return self.direction & 0xFF

    @property
    def direction_high_bit(self) -> int:
        return (self.direction >> 8) & 0x01

    @property
    def signed_altitude(self) -> int | None:
        if self.altitude is None:
            return None
        return -self.altitude if self.altitude_sign else self.altitude

    def to_bytes(self) -> bytes:
        check_uint("direction", self.direction, 9)
        flags = pack_bits(
            {
                "alte": self.altitude is not None,
                "lohs": self.lohs,
                "lahs": self.lahs,
                "mv": self.mv,
                "bb": self.bb,
                "cs": self.cs,
                "fix": self.fix,
                "vld": self.vld,
            },
            POS_FLAGS,
        )
        speed_word = pack_bits(
            {
                "dirh": self.direction_high_bit,
                "alts": self.altitude_sign,
                "speed": round(self.speed * 10),
            },
            SPEED_WORD,
        )
        data = (
            uint_le("navigation_time", to_epoch_seconds("navigation_time", self.navigation_time), 4)
            + uint_le("latitude_raw", self.latitude_raw, 4)
            + uint_le("longitude_raw", self.longitude_raw, 4)
            + bytes([flags])
            + speed_word.to_bytes(2, "little")
            + bytes([self.direction_low])
            + uint_le("odometer", self.odometer, 3)
            + uint_le("digital_inputs", self.digital_inputs, 1)
            + uint_le("source", self.source, 1)
        )
        if self.altitude is not None:
            data += uint_le("altitude", self.altitude, self.ALTITUDE_SIZE)
        return data

    @classmethod
    def unpack(cls, data: bytes) -> tuple[PositionData, int]:
        """Decode a fix from the start of ``data``.

        Returns:
            The decoded fix and the number of bytes it occupied.

        Raises:
            SubrecordLengthError: If ``data`` is too short for the fix.
        """
        if len(data) < cls.SIZE:
            raise SubrecordLengthError(
                f"position data needs {cls.SIZE} bytes, got {len(data)}"
            )
        ntm, lat, lon, flag_byte, speed_word, dir_low = _FIXED.unpack_from(data, 0)
        flags = unpack_bits(flag_byte, POS_FLAGS)
        spd = unpack_bits(speed_word, SPEED_WORD)

        consumed = cls.SIZE
        altitude = None
        if flags["alte"]:
            end = cls.SIZE + cls.ALTITUDE_SIZE
            if len(data) < end:
                raise SubrecordLengthError(
                    f"position data with altitude needs {end} bytes, got {len(data)}"
                )
            altitude = int.from_bytes(data[cls.SIZE:end], "little")
            consumed = end

        fix = cls(
            navigation_time=from_epoch_seconds(ntm),
            latitude_raw=lat,
            longitude_raw=lon,
            lahs=flags["lahs"],
            lohs=flags["lohs"],
            mv=flags["mv"],
            bb=flags["bb"],
            cs=flags["cs"],
            fix=flags["fix"],
            vld=flags["vld"],
            speed=spd["speed"] / 10,
            direction=(spd["dirh"] << 8) | dir_low,
            odometer=int.from_bytes(data[16:19], "little"),
            digital_inputs=data[19],
            source=data[20],
            altitude=altitude,
            altitude_sign=spd["alts"],
        )
        return fix, consumed

    def to_dict(self) -> dict:
        return {
            "navigation_time": self.navigation_time.isoformat(),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "latitude_raw": self.latitude_raw,
            "longitude_raw": self.longitude_raw,
            "lahs": bool(self.lahs),
            "lohs": bool(self.lohs),
            "mv": bool(self.mv),
            "bb": bool(self.bb),
            "cs": bool(self.cs),
            "fix": bool(self.fix),
            "vld": bool(self.vld),
            "speed": self.speed,
            "direction": self.direction,
            "direction_low": self.direction_low,
            "direction_high_bit": self.direction_high_bit,
            "odometer": self.odometer,
            "digital_inputs": self.digital_inputs,
            "source": self.source,
            "altitude": self.altitude,
            "altitude_sign": self.altitude_sign,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PositionData:
        """Build a fix from :meth:`to_dict` output.

        Raw coordinates win over degrees when both are present, so a dict
        produced by decoding re-encodes to the same bytes.
        """
        navigation_time = data["navigation_time"]
        if isinstance(navigation_time, str):
            navigation_time = datetime.fromisoformat(navigation_time)
        extra = {
            name: int(data[name])
            for name in ("mv", "bb", "cs", "fix", "vld", "direction",
                         "odometer", "digital_inputs", "source", "altitude_sign")
            if name in data
        }
        if "speed" in data:
            extra["speed"] = float(data["speed"])
        if data.get("altitude") is not None:
            extra["altitude"] = int(data["altitude"])

        if "latitude_raw" in data and "longitude_raw" in data:
            return cls(
                navigation_time=navigation_time,
                latitude_raw=int(data["latitude_raw"]),
                longitude_raw=int(data["longitude_raw"]),
                lahs=int(data.get("lahs", 0)),
                lohs=int(data.get("lohs", 0)),
                **extra,
            )
        return cls.from_coordinates(
            navigation_time,
            float(data.get("latitude", 0.0)),
            float(data.get("longitude", 0.0)),
            **extra,
        )
