"""EGTS protocol constants: packet types, services, subrecords, result codes."""

from __future__ import annotations

from enum import IntEnum

from ..utils.navtime import NAVIGATION_EPOCH

PROTOCOL_VERSION = 1

HEADER_LENGTH = 11
ROUTED_HEADER_LENGTH = 16
FRAME_CHECKSUM_SIZE = 2

TRANSPORT_FLAGS = (
    ("prefix", 2),
    ("route", 1),
    ("encryption", 2),
    ("compression", 1),
    ("priority", 2),
)

RECORD_FLAGS = (
    ("ssod", 1),
    ("rsod", 1),
    ("group", 1),
    ("priority", 2),
    ("tmfe", 1),
    ("evfe", 1),
    ("obfe", 1),
)


class PacketType(IntEnum):
    """Transport packet types (PT field)."""

    RESPONSE = 0
    APPDATA = 1
    SIGNED_APPDATA = 2


class Priority(IntEnum):
    """Routing/processing priority shared by packets and records."""

    HIGHEST = 0
    HIGH = 1
    NORMAL = 2
    LOW = 3


class ServiceType(IntEnum):
    """Service-layer service identifiers (SST/RST fields)."""

    AUTH = 1
    TELEDATA = 2
    COMMANDS = 4
    FIRMWARE = 9
    ECALL = 10


class SubrecordType(IntEnum):
    """Subrecord type codes (SRT field)."""

    RECORD_RESPONSE = 0
    TERM_IDENTITY = 1
    MODULE_DATA = 2
    VEHICLE_DATA = 3
    DISPATCHER_IDENTITY = 5
    AUTH_PARAMS = 6
    AUTH_INFO = 7
    SERVICE_INFO = 8
    RESULT_CODE = 9
    POS_DATA = 16
    EXT_POS_DATA = 17
    AD_SENSORS_DATA = 18
    COUNTERS_DATA = 19
    ACCEL_DATA = 20
    STATE_DATA = 21
    LOOPIN_DATA = 22
    ABS_DIG_SENS_DATA = 23
    ABS_AN_SENS_DATA = 24
    ABS_CNTR_DATA = 25
    ABS_LOOPIN_DATA = 26
    LIQUID_LEVEL_SENSOR = 27
    PASSENGERS_COUNTERS = 28
    SERVICE_PART_DATA = 33
    SERVICE_FULL_DATA = 34
    MSD_DATA = 50
    COMMAND_DATA = 51


class ResultCode(IntEnum):
    """Processing result codes reported in acknowledgements."""

    OK = 0
    IN_PROGRESS = 1
    UNS_PROTOCOL = 128
    DECRYPT_ERROR = 129
    PROC_DENIED = 130
    INC_HEADERFORM = 131
    INC_DATAFORM = 132
    UNS_TYPE = 133
    NOTEN_PARAMS = 134
    DBL_PROC = 135
    PROC_SRC_DENIED = 136
    HEADERCRC_ERROR = 137
    DATACRC_ERROR = 138
    INVDATALEN = 139
    ROUTE_NFOUND = 140
    ROUTE_CLOSED = 141
    ROUTE_DENIED = 142
    INVADDR = 143
    TTLEXPIRED = 144
    NO_ACK = 145
    OBJ_NFOUND = 146
    EVNT_NFOUND = 147
    SRVC_NFOUND = 148
    SRVC_DENIED = 149
    SRVC_UNKN = 150
    AUTH_DENIED = 151
    ALREADY_EXISTS = 152
    ID_NFOUND = 153
    INC_DATETIME = 154
    IO_ERROR = 155
    NO_RES_AVAIL = 156
    MODULE_FAULT = 157
    MODULE_PWR_FLT = 158
    MODULE_PROC_FLT = 159
    MODULE_SW_FLT = 160
    MODULE_FW_FLT = 161
    MODULE_IO_FLT = 162
    MODULE_MEM_FLT = 163
    TEST_FAILED = 164


def describe(enum_cls: type[IntEnum], value: int) -> str:
    """Return the enum member name for ``value``, or ``"UNKNOWN(<n>)"``."""
    try:
        return enum_cls(value).name
    except ValueError:
        return f"UNKNOWN({value})"
