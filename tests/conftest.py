"""Shared packet fixtures.

REFERENCE is a teledata packet captured from a terminal: one record
(number 97, object 133552) carrying one position fix. ENCODE_REFERENCE is
the same packet rebuilt from whole-degree coordinates (55, 37).
"""

from egts_mcp.protocol.transport import TransportHeader, encode_header
from egts_mcp.utils.crc import crc16

REFERENCE = bytes.fromhex(
    "0100030B0023008A000149"
    "1800610099B0090200020210"
    "1500D53F01106F1C059E7AB53C3501D0872C0100000000"
    "CC27"
)

ENCODE_REFERENCE = bytes.fromhex(
    "0100030B0023008A000149"
    "1800610099B0090200020210"
    "1500D53F01101BC7719CF4499F3401D0872C0100000000"
    "ACC9"
)

HEADER = REFERENCE[:11]
FRAME = REFERENCE[11:46]
POS_PAYLOAD = FRAME[14:35]


def make_packet(frame: bytes, packet_id: int = 138) -> bytes:
    """Wrap raw frame bytes in a valid header and frame checksum."""
    header = TransportHeader(packet_id=packet_id, priority=3, frame_data_length=len(frame))
    return encode_header(header) + frame + crc16(frame).to_bytes(2, "little")
