"""POSIX TZ strings, such as ``CET-1CEST,M3.5.0,M10.5.0/3``.

These show up in the ``TZ`` environment variable. The C library supports
them, but Python's :mod:`zoneinfo` doesn't, so we implement them here as a
:class:`~datetime.tzinfo` with PEP 495 semantics.
"""

from __future__ import annotations

import re
from datetime import datetime as _datetime, timedelta as _timedelta, tzinfo
from typing import NamedTuple, NoReturn, Optional, Union

from .._common import SECS_PER_DAY
from .._math import civil_from_days, days_from_civil, days_in_month, is_leap

__all__ = ["PosixTz"]

DEFAULT_DST = 3600
DEFAULT_RULE_TIME = 2 * 3600
MAX_OFFSET = 24 * 3600


def _weekday(days: int) -> int:
    # 1970-01-01 was a Thursday. Sunday is 0, as in POSIX rules.
    return (days + 4) % 7


class NthWeekday(NamedTuple):
    """``Mm.n.d``: the n-th (1-4) weekday d of month m"""

    month: int
    nth: int
    weekday: int

    def day(self, year: int) -> int:
        first = days_from_civil(year, self.month, 1)
        return (
            first + (self.weekday - _weekday(first)) % 7 + 7 * (self.nth - 1)
        )


class LastWeekday(NamedTuple):
    """``Mm.5.d``: the last weekday d of month m"""

    month: int
    weekday: int

    def day(self, year: int) -> int:
        last = days_from_civil(
            year, self.month, days_in_month(year, self.month)
        )
        return last - (_weekday(last) - self.weekday) % 7


class DayOfYear(NamedTuple):
    """``n``: day of the year, counting February 29th"""

    nth: int  # 1-366

    def day(self, year: int) -> int:
        nth = min(self.nth, 365 + is_leap(year))
        return days_from_civil(year, 1, 1) + nth - 1


class JulianDayOfYear(NamedTuple):
    """``Jn``: day of the year (1-365), never counting February 29th"""

    nth: int

    def day(self, year: int) -> int:
        leap_shift = is_leap(year) and self.nth > 59
        return days_from_civil(year, 1, 1) + self.nth - 1 + leap_shift


Rule = Union[NthWeekday, LastWeekday, DayOfYear, JulianDayOfYear]


class Dst(NamedTuple):
    name: str
    offset: int
    start: tuple[Rule, int]  # rule and local time of day (seconds)
    end: tuple[Rule, int]


class PosixTz(tzinfo):
    """A timezone defined by a POSIX TZ string.

    Values are compared and pickled by their TZ string, available as ``key``.
    """

    __slots__ = ("key", "std_name", "std", "dst_rule")

    key: str
    std_name: str
    std: int
    dst_rule: Optional[Dst]

    def __init__(self, key: str) -> None:
        self.key = key
        self.std_name, self.std, self.dst_rule = _parse(key)

    def _transitions(self, year: int) -> tuple[int, int]:
        """Local seconds at which DST starts and ends in the given year"""
        assert self.dst_rule is not None
        (start_rule, start_time), (end_rule, end_time) = (
            self.dst_rule.start,
            self.dst_rule.end,
        )
        return (
            start_rule.day(year) * SECS_PER_DAY + start_time,
            end_rule.day(year) * SECS_PER_DAY + end_time,
        )

    def offset_for_instant(self, epoch: int) -> int:
        if self.dst_rule is None:
            return self.std
        # The DST rules are applied to the standard-time year.
        # Transitions around New Year's don't happen in practice.
        year = civil_from_days((epoch + self.std) // SECS_PER_DAY)[0]
        start, end = self._transitions(year)
        start -= self.std
        end -= self.dst_rule.offset
        if start < end:
            return self.dst_rule.offset if start <= epoch < end else self.std
        else:
            return self.std if end <= epoch < start else self.dst_rule.offset

    def offset_for_local(self, local: int, fold: int = 0) -> int:
        """The offset for local seconds since 1970-01-01T00:00.

        As in PEP 495, ``fold=0`` selects the offset from before the
        transition for both skipped and repeated times.
        """
        if self.dst_rule is None:
            return self.std
        year = civil_from_days(local // SECS_PER_DAY)[0]
        start, end = self._transitions(year)
        if start < end:
            t1, t2 = start, end
            off1, off2 = self.std, self.dst_rule.offset
        else:
            t1, t2 = end, start
            off1, off2 = self.dst_rule.offset, self.std
        shift = off2 - off1
        first, second = (off1, off2) if fold == 0 else (off2, off1)

        if shift >= 0:
            if local < t1:
                return off1
            elif local < t1 + shift:  # skipped
                return first
            elif local < t2 - shift:
                return off2
            elif local < t2:  # repeated
                return second
            return off1
        else:
            if local < t1 + shift:
                return off1
            elif local < t1:  # repeated
                return first
            elif local < t2:
                return off2
            elif local < t2 - shift:  # skipped
                return second
            return off1

    def utcoffset(self, dt: Optional[_datetime]) -> Optional[_timedelta]:
        if dt is None:
            return None
        local = _local_secs(dt)
        return _timedelta(seconds=self.offset_for_local(local, dt.fold))

    def dst(self, dt: Optional[_datetime]) -> Optional[_timedelta]:
        offset = self.utcoffset(dt)
        if offset is None:
            return None
        return offset - _timedelta(seconds=self.std)

    def tzname(self, dt: Optional[_datetime]) -> Optional[str]:
        if dt is None or self.dst_rule is None:
            return self.std_name
        is_dst = self.offset_for_local(_local_secs(dt), dt.fold) != self.std
        return self.dst_rule.name if is_dst else self.std_name

    def fromutc(self, dt: _datetime) -> _datetime:
        offset = self.offset_for_instant(_local_secs(dt))
        local = dt + _timedelta(seconds=offset)
        # The later of two repeated times
        if self.offset_for_local(_local_secs(local)) != offset:
            local = local.replace(fold=1)
        return local

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PosixTz):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"PosixTz({self.key!r})"

    def __reduce__(self) -> tuple[object, ...]:
        return (PosixTz, (self.key,))


def _local_secs(dt: _datetime) -> int:
    return (
        days_from_civil(dt.year, dt.month, dt.day) * SECS_PER_DAY
        + dt.hour * 3600
        + dt.minute * 60
        + dt.second
    )


# Parsing


def _invalid(s: str, reason: str) -> NoReturn:
    raise ValueError(f"Invalid POSIX TZ string {s!r}: {reason}")


_NAME = re.compile(r"<([A-Za-z0-9+-]+)>|([A-Za-z]+)", re.ASCII).match
_HMS = re.compile(
    r"([+-]?)(\d{1,3})(?::(\d{2})(?::(\d{2}))?)?", re.ASCII
).match
_RULE = re.compile(
    r"M(\d{1,2})\.(\d)\.(\d)|J(\d{1,3})|(\d{1,3})", re.ASCII
).match


def _parse(key: str) -> tuple[str, int, Optional[Dst]]:
    s = key
    if not s.isascii():
        _invalid(key, "non-ASCII characters found")

    std_name, s = _parse_name(key, s)
    std, s = _parse_offset(key, s)
    # Without anything else, it's a fixed offset
    if not s:
        return std_name, std, None

    dst_name, s = _parse_name(key, s)
    if s[:1] == ",":
        dst = std + DEFAULT_DST
        if dst >= MAX_OFFSET:
            _invalid(key, "DST offset out of range")
    else:
        dst, s = _parse_offset(key, s)
        if s[:1] != ",":
            _invalid(key, "expected ','")

    start, s = _parse_rule(key, s[1:])
    if s[:1] != ",":
        _invalid(key, "expected ','")
    end, s = _parse_rule(key, s[1:])
    if s:
        _invalid(key, f"unexpected trailing {s!r}")
    return std_name, std, Dst(dst_name, dst, start, end)


def _parse_name(key: str, s: str) -> tuple[str, str]:
    if (m := _NAME(s)) is None:
        _invalid(key, "missing or invalid name")
    return m[1] or m[2], s[m.end() :]


def _parse_hms(key: str, s: str) -> tuple[int, str]:
    if (m := _HMS(s)) is None:
        _invalid(key, "expected [+|-]hh[:mm[:ss]]")
    sign, hrs, mins, secs = m.groups()
    if int(mins or 0) > 59 or int(secs or 0) > 59:
        _invalid(key, "minutes or seconds out of range")
    total = int(hrs) * 3600 + int(mins or 0) * 60 + int(secs or 0)
    return (-total if sign == "-" else total), s[m.end() :]


def _parse_offset(key: str, s: str) -> tuple[int, str]:
    hms, s = _parse_hms(key, s)
    if abs(hms) >= MAX_OFFSET:
        _invalid(key, "offset out of range")
    # POSIX offsets are west of UTC, ours are east
    return -hms, s


def _parse_rule(key: str, s: str) -> tuple[tuple[Rule, int], str]:
    if (m := _RULE(s)) is None:
        _invalid(key, "expected a DST rule")
    m_month, m_nth, m_weekday, julian, day = m.groups()
    rule: Rule
    if m_month:
        month, nth, weekday = int(m_month), int(m_nth), int(m_weekday)
        if not (1 <= month <= 12 and 1 <= nth <= 5 and weekday <= 6):
            _invalid(key, f"invalid rule {m[0]!r}")
        rule = (
            LastWeekday(month, weekday)
            if nth == 5
            else NthWeekday(month, nth, weekday)
        )
    elif julian:
        if not 1 <= int(julian) <= 365:
            _invalid(key, f"invalid Julian day {julian}")
        rule = JulianDayOfYear(int(julian))
    else:
        if int(day) > 365:
            _invalid(key, f"invalid day of year {day}")
        rule = DayOfYear(int(day) + 1)

    s = s[m.end() :]
    if s[:1] == "/":
        time, s = _parse_hms(key, s[1:])
    else:
        time = DEFAULT_RULE_TIME
    return (rule, time), s
