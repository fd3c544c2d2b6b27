"""Codec exceptions.

Every fatal decode/encode condition raises a subclass of :class:`EgtsError`.
Each carries the EGTS processing result code a receiver would report back
to the sender, the protocol layer that failed, and the byte offset into
the packet where the problem was detected (when known).
"""

from __future__ import annotations

# Processing result codes, duplicated from protocol.constants.ResultCode to
# keep this module free of package imports.
_PC_UNS_PROTOCOL = 128
_PC_INC_HEADERFORM = 131
_PC_INC_DATAFORM = 132
_PC_UNS_TYPE = 133
_PC_HEADERCRC_ERROR = 137
_PC_DATACRC_ERROR = 138
_PC_INVDATALEN = 139


class EgtsError(ValueError):
    """Base class for all codec failures."""

    result_code: int = _PC_INC_DATAFORM

    def __init__(
        self,
        message: str,
        *,
        layer: str = "",
        offset: int | None = None,
    ) -> None:
        self.message = message
        self.layer = layer
        self.offset = offset
        super().__init__(self._format())

    def _format(self) -> str:
        where = []
        if self.layer:
            where.append(self.layer)
        if self.offset is not None:
            where.append(f"offset {self.offset}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "type": type(self).__name__,
            "result_code": self.result_code,
            "layer": self.layer,
            "offset": self.offset,
        }


class TruncatedInputError(EgtsError):
    """The buffer ends before a declared length is satisfied."""

    result_code = _PC_INVDATALEN


class HeaderLengthError(EgtsError):
    """The declared header length is inconsistent with the header layout."""

    result_code = _PC_INC_HEADERFORM


class HeaderChecksumError(EgtsError):
    """CRC-8 of the transport header does not match."""

    result_code = _PC_HEADERCRC_ERROR


class FrameChecksumError(EgtsError):
    """CRC-16 of the service frame does not match."""

    result_code = _PC_DATACRC_ERROR


class RecordLengthError(EgtsError):
    """A service record's subrecords do not exactly fill its declared length."""

    result_code = _PC_INVDATALEN


class SubrecordLengthError(EgtsError):
    """A typed subrecord payload does not match its declared length."""

    result_code = _PC_INVDATALEN


class UnsupportedProtocolVersionError(EgtsError):
    """The header carries a protocol version this codec does not speak."""

    result_code = _PC_UNS_PROTOCOL


class UnsupportedPacketTypeError(EgtsError):
    """The header carries an unknown packet type."""

    result_code = _PC_UNS_TYPE


class FieldOutOfRangeError(EgtsError):
    """A value cannot be encoded in its declared width."""

    result_code = _PC_INC_DATAFORM
