"""Protocol layer: transport header, service frame, subrecords and packets."""

from .constants import PacketType, ResultCode, ServiceType, SubrecordType
from .packet import Packet, build_response, decode_packet, encode_packet
from .service import ServiceFrame, ServiceRecord, decode_frame, encode_frame
from .subrecords import Subrecord, UnknownSubrecord, register_subrecord
from .transport import RouteInfo, TransportHeader, decode_header, encode_header, split_packets
