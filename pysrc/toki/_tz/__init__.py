from .store import (
    PosixTz,
    TimeZoneNotFoundError,
    TzLike,
    Zone,
    get_system_tz,
    get_tz,
    load_zone,
    offset_for_instant,
    offset_for_local,
    zone_name,
)

__all__ = [
    "PosixTz",
    "TimeZoneNotFoundError",
    "TzLike",
    "Zone",
    "get_system_tz",
    "get_tz",
    "load_zone",
    "offset_for_instant",
    "offset_for_local",
    "zone_name",
]
