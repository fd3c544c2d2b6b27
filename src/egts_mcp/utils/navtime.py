"""Conversion between datetimes and EGTS second offsets."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ..errors import FieldOutOfRangeError
from .bits import check_uint

# Navigation and record timestamps are seconds since this instant.
NAVIGATION_EPOCH = datetime(2010, 1, 1, tzinfo=timezone.utc)


def from_epoch_seconds(seconds: int) -> datetime:
    return NAVIGATION_EPOCH + timedelta(seconds=seconds)


def to_epoch_seconds(name: str, moment: datetime) -> int:
    """Seconds between the navigation epoch and ``moment``.

    Naive datetimes are taken to be UTC; the local timezone never leaks
    into the encoded value. The wire unit is whole seconds, so a moment
    with a fractional second is refused rather than rounded.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - NAVIGATION_EPOCH
    if delta.microseconds:
        raise FieldOutOfRangeError(
            f"{name} {moment.isoformat()} is not a whole second"
        )
    return check_uint(name, delta // timedelta(seconds=1), 32)
