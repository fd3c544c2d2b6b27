"""Typed subrecord payloads."""

from .pos_data import PositionData
from .record_response import RecordResponse
