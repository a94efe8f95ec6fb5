import re
from typing import NoReturn

from ._common import INT64_MAX, INT64_MIN, Nanos
from ._math import days_in_month


def _parse_err(s: str) -> NoReturn:
    raise ValueError(f"Invalid RFC 3339 format: {s!r}") from None


_match_rfc3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt ]([0-2]\d):([0-5]\d):([0-5]\d)(?:\.(\d{1,9}))?"
    r"(?:([Zz])|([+-])(\d{2}):([0-5]\d))",
    re.ASCII,
).fullmatch

_match_int = re.compile(r"[+-]?\d+", re.ASCII).fullmatch


def rfc3339_from_str(
    s: str,
) -> tuple[int, int, int, int, int, int, Nanos, int]:
    """Split an RFC 3339 string into its calendar fields.

    Returns year, month, day, hour, minute, second, nanosecond
    and the UTC offset in seconds.
    """
    if (match := _match_rfc3339(s)) is None:
        _parse_err(s)
    year, month, day, hour, minute, second = map(int, match.groups()[:6])
    nanos = int(match[7].ljust(9, "0")) if match[7] else 0

    if match[8]:
        offset = 0
    else:
        offset_hrs = int(match[10])
        if offset_hrs > 23:
            _parse_err(s)
        offset = offset_hrs * 3600 + int(match[11]) * 60
        if match[9] == "-":
            offset = -offset

    if not (
        1 <= month <= 12
        and 1 <= day <= days_in_month(year, month)
        and hour < 24
    ):
        _parse_err(s)

    return year, month, day, hour, minute, second, nanos, offset


def int64_from_str(s: str) -> int:
    """Parse a base-10 signed 64-bit integer.

    Stricter than ``int()``: only ASCII digits with an optional sign,
    no whitespace or underscores.
    """
    if _match_int(s) is None:
        raise ValueError("invalid syntax")
    i = int(s)
    if not INT64_MIN <= i <= INT64_MAX:
        raise ValueError("value out of range")
    return i
