"""Timezone lookup and offset resolution, backed by :mod:`zoneinfo`."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .._common import utc_datetime
from . import system
from .posix import PosixTz

__all__ = [
    "PosixTz",
    "TimeZoneNotFoundError",
    "Zone",
    "TzLike",
    "get_tz",
    "get_system_tz",
    "load_zone",
    "offset_for_instant",
    "offset_for_local",
    "zone_name",
]

# A zone is an IANA timezone, a POSIX TZ string, or a fixed offset
# in seconds east of UTC. An offset of 0 is UTC.
Zone = Union[ZoneInfo, PosixTz, int]
# What users may pass as ``tz=`` argument
TzLike = Union[str, int, ZoneInfo, PosixTz]


def get_tz(key: str) -> ZoneInfo:
    try:
        return ZoneInfo(key)
    # Several exceptions amount to "can't find the key"
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise TimeZoneNotFoundError.for_key(key) from None


def load_zone(tz: TzLike, /) -> Zone:
    if isinstance(tz, (ZoneInfo, PosixTz)):
        return tz
    elif isinstance(tz, int) and not isinstance(tz, bool):
        return tz
    elif isinstance(tz, str):
        # UTC doesn't need the timezone database
        return 0 if tz == "UTC" else get_tz(tz)
    else:
        raise TypeError(
            "tz must be a timezone key, an offset in seconds, "
            "a ZoneInfo, or a PosixTz"
        )


def offset_for_instant(zone: Zone, secs: int, /) -> int:
    """The UTC offset (in seconds) in effect at the given epoch second"""
    if isinstance(zone, int):
        return zone
    elif isinstance(zone, PosixTz):
        return zone.offset_for_instant(secs)
    # Outside the standard library's range, the offset of the
    # nearest representable moment is used.
    return int(
        utc_datetime(secs).astimezone(zone).utcoffset().total_seconds()  # type: ignore[union-attr]
    )


def offset_for_local(zone: Zone, local_secs: int, /) -> int:
    """The UTC offset (in seconds) for a local time, given as seconds since
    1970-01-01T00:00:00 *local* time.

    Repeated times resolve to the earlier offset, skipped times are shifted
    forward by the length of the gap (PEP 495 semantics).
    """
    if isinstance(zone, int):
        return zone
    elif isinstance(zone, PosixTz):
        return zone.offset_for_local(local_secs)
    return int(
        utc_datetime(local_secs)
        .replace(tzinfo=zone)
        .utcoffset()  # type: ignore[union-attr]
        .total_seconds()
    )


def zone_name(zone: Zone, /) -> str:
    if isinstance(zone, int):
        if zone == 0:
            return "UTC"
        sign = "-" if zone < 0 else "+"
        hrs, rest = divmod(abs(zone), 3600)
        mins, secs = divmod(rest, 60)
        return f"{sign}{hrs:02d}:{mins:02d}" + (f":{secs:02d}" if secs else "")
    return zone.key or "<file>"


def get_system_tz() -> Zone:
    """Read the system timezone. The source is looked up on every call,
    so changes to ``TZ`` are picked up. Parsed zones are cached."""
    source = system.zone_source()
    if source.kind == "key":
        return get_tz(source.value)
    elif source.kind == "key_or_posix":
        try:
            return get_tz(source.value)
        except TimeZoneNotFoundError:
            return _posix_tz(source.value)
    elif source.kind == "file":
        # Keyed on modification time, so that replacing the file is noticed
        return _tz_from_file(source.value, os.stat(source.value).st_mtime_ns)
    else:
        return 0


@lru_cache(maxsize=16)
def _posix_tz(s: str, /) -> PosixTz:
    try:
        return PosixTz(s)
    except ValueError as e:
        raise TimeZoneNotFoundError.for_key(s) from e


@lru_cache(maxsize=4)
def _tz_from_file(path: str, _mtime_ns: int, /) -> ZoneInfo:
    with open(path, "rb") as f:
        return ZoneInfo.from_file(f)


class TimeZoneNotFoundError(ValueError):
    """A timezone with the given ID was not found"""

    @classmethod
    def for_key(cls, key: str) -> TimeZoneNotFoundError:
        return cls(f"No time zone found for key: {key!r}")
