from datetime import (
    datetime as _datetime,
    timedelta as _timedelta,
    timezone as _timezone,
)
from functools import lru_cache

UTC = _timezone.utc
Nanos = int  # 0-999_999_999

NS_PER_SEC = 1_000_000_000
NS_PER_MILLI = 1_000_000
NS_PER_MICRO = 1_000
SECS_PER_DAY = 86_400

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

# Seconds between 0001-01-01T00:00:00Z and the UNIX epoch
UNIX_TO_INTERNAL = 62_135_596_800

# The range of epoch seconds the standard library can represent
# as an aware datetime, with a day of margin for any UTC offset.
PY_MIN_SECS = -UNIX_TO_INTERNAL + SECS_PER_DAY
PY_MAX_SECS = 253_402_300_799 - SECS_PER_DAY

_EPOCH = _datetime(1970, 1, 1, tzinfo=UTC)


def wrap_int64(i: int, /) -> int:
    """Truncate an integer to 64 bits, two's complement"""
    return (i - INT64_MIN) % (1 << 64) + INT64_MIN


# We cache fixed-offset tzinfo objects to avoid creating multiple identical ones.
# It's very common to only have whole-hour offsets, so this helps a lot.
@lru_cache
def mk_fixed_tzinfo(secs: int, /) -> _timezone:
    return UTC if secs == 0 else _timezone(_timedelta(seconds=secs))


def utc_datetime(secs: int, /) -> _datetime:
    """UTC datetime for epoch seconds, clamped to the standard library's range"""
    return _EPOCH + _timedelta(
        seconds=min(max(secs, PY_MIN_SECS), PY_MAX_SECS)
    )
