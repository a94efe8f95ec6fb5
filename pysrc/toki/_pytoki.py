# The MIT License (MIT)
#
# Copyright (c) Arie Bovenberg
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

# Maintainer's notes:
#
# - Why are all public types in one file?
#   - Flat is better than nested
#   - It prevents circular imports since the classes 'know' about each other
# - The wire formats of the epoch layouts are asymmetric: marshaling emits
#   an 8-byte big-endian image, unmarshaling reads decimal text.
#   This is relied upon by existing consumers. Don't "fix" it.
from __future__ import annotations

__version__ = "0.1.0"

import logging
from abc import ABC, abstractmethod
from datetime import datetime as _datetime
from struct import pack, unpack
from time import time_ns
from typing import (
    TYPE_CHECKING,
    Callable,
    ClassVar,
    TypeVar,
    Union,
    no_type_check,
)
from zoneinfo import ZoneInfo

from ._common import (
    NS_PER_MICRO,
    NS_PER_MILLI,
    NS_PER_SEC,
    SECS_PER_DAY,
    UNIX_TO_INTERNAL,
    mk_fixed_tzinfo,
    wrap_int64,
)
from ._math import civil_from_days, days_from_civil, days_in_month
from ._parse import int64_from_str, rfc3339_from_str
from ._tz import (
    PosixTz,
    TimeZoneNotFoundError,
    TzLike,
    Zone,
    get_system_tz,
    load_zone,
    offset_for_instant,
    offset_for_local,
    zone_name,
)

__all__ = [
    # Date and time
    "DateTime",
    "LayoutedInstant",
    "Timestamp",
    "TimestampMillis",
    "TimestampNanos",
    # Layouts
    "RFC3339",
    "TIMESTAMP",
    "TIMESTAMP_MILLI",
    "TIMESTAMP_NANO",
    "resolve_layout",
    # Exceptions
    "TokiError",
    "MalformedInteger",
    "NotAJSONString",
    "DelegatedFormatError",
    "DelegatedParseError",
    "TimeZoneNotFoundError",
]

_log = logging.getLogger(__name__)

RFC3339 = "rfc3339"
"""Layout: RFC 3339 text, e.g. ``2020-08-15T23:12:09.5+02:00``. The default."""
TIMESTAMP = "timestamp"
"""Layout: UNIX timestamp in seconds"""
TIMESTAMP_MILLI = "timestamp_milli"
"""Layout: UNIX timestamp in milliseconds"""
TIMESTAMP_NANO = "timestamp_nano"
"""Layout: UNIX timestamp in nanoseconds"""


def resolve_layout(explicit: str | None = None, /) -> str:
    """The layout to use: the given one, or :data:`RFC3339` if it's empty.

    Any string other than the predefined layouts is treated as a
    :meth:`~datetime.datetime.strftime` pattern.

    >>> resolve_layout("")
    'rfc3339'
    >>> resolve_layout("%Y-%m-%d")
    '%Y-%m-%d'
    """
    return explicit or RFC3339


# Helpers that pre-compute/lookup as much as possible
_object_new = object.__new__
_ZERO_NS = -UNIX_TO_INTERNAL * NS_PER_SEC


class _ImmutableBase:
    __slots__ = ()

    # Immutable classes don't need to be copied
    @no_type_check
    def __copy__(self):
        return self

    @no_type_check
    def __deepcopy__(self, _):
        return self


if TYPE_CHECKING:
    from typing import final
else:

    def final(cls):

        def init_subclass_not_allowed(cls, **kwargs):  # pragma: no cover
            raise TypeError("Subclassing not allowed")

        cls.__init_subclass__ = init_subclass_not_allowed
        return cls


# Timezones kept as-is when converting from the standard library
_NAMED_ZONES = (ZoneInfo, PosixTz)


def _zone_or_system(tz: TzLike | None, /) -> Zone:
    return get_system_tz() if tz is None else load_zone(tz)


@final
class DateTime(_ImmutableBase):
    """An exact moment in time with nanosecond precision, observed
    in a timezone or at a fixed UTC offset.

    Unlike the standard library's :class:`~datetime.datetime`, the year
    isn't limited to 1-9999. Whether a value can be *formatted*
    depends on the format: RFC 3339 requires years 0-9999,
    :meth:`strftime` requires 1-9999.

    Example
    -------
    >>> DateTime(2020, 8, 15, hour=23, tz="Europe/Amsterdam")
    DateTime(2020-08-15 23:00:00+02:00[Europe/Amsterdam])
    >>> DateTime(2020, 8, 15, tz=-3600).timestamp()
    1597453200

    Note
    ----
    ``==`` and ordering compare the moment in time only.
    Use :meth:`exact_eq` to also compare the timezone.
    """

    __slots__ = ("_epoch_ns", "_zone")

    ZERO: ClassVar[DateTime]
    """The zero value: 0001-01-01T00:00:00Z"""

    def __init__(
        self,
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        *,
        nanosecond: int = 0,
        tz: TzLike,
    ) -> None:
        if not 1 <= month <= 12:
            raise ValueError(f"month out of range: {month}")
        if not 1 <= day <= days_in_month(year, month):
            raise ValueError(f"day out of range: {day}")
        if not 0 <= hour < 24:
            raise ValueError(f"hour out of range: {hour}")
        if not 0 <= minute < 60:
            raise ValueError(f"minute out of range: {minute}")
        if not 0 <= second < 60:
            raise ValueError(f"second out of range: {second}")
        if not 0 <= nanosecond < NS_PER_SEC:
            raise ValueError(f"nanosecond out of range: {nanosecond}")
        zone = load_zone(tz)
        local_secs = (
            days_from_civil(year, month, day) * SECS_PER_DAY
            + hour * 3600
            + minute * 60
            + second
        )
        self._epoch_ns = (
            local_secs - offset_for_local(zone, local_secs)
        ) * NS_PER_SEC + nanosecond
        self._zone = zone

    @classmethod
    def now(cls, *, tz: TzLike | None = None) -> DateTime:
        """Create an instance from the current time.

        Without ``tz``, the system timezone is used.
        """
        return cls._from_ns_unchecked(time_ns(), _zone_or_system(tz))

    @classmethod
    def from_timestamp(
        cls, secs: int, nanos: int = 0, /, *, tz: TzLike | None = None
    ) -> DateTime:
        """Create an instance from a UNIX timestamp (in seconds),
        plus an optional number of nanoseconds.

        The inverse of the ``timestamp()`` method.
        Without ``tz``, the result is in the system timezone.
        ``nanos`` may be negative or exceed one second.

        Example
        -------
        >>> DateTime.from_timestamp(0, tz="UTC")
        DateTime(1970-01-01 00:00:00Z)
        >>> DateTime.from_timestamp(1_123_000_000, tz="America/New_York")
        DateTime(2005-08-02 12:26:40-04:00[America/New_York])
        """
        if not isinstance(secs, int) or not isinstance(nanos, int):
            raise TypeError("method requires integers")
        return cls._from_ns_unchecked(
            secs * NS_PER_SEC + nanos, _zone_or_system(tz)
        )

    @classmethod
    def from_timestamp_millis(
        cls, millis: int, /, *, tz: TzLike | None = None
    ) -> DateTime:
        """Like :meth:`from_timestamp`, but for milliseconds."""
        if not isinstance(millis, int):
            raise TypeError("method requires an integer")
        return cls._from_ns_unchecked(
            millis * NS_PER_MILLI, _zone_or_system(tz)
        )

    @classmethod
    def from_timestamp_micros(
        cls, micros: int, /, *, tz: TzLike | None = None
    ) -> DateTime:
        """Like :meth:`from_timestamp`, but for microseconds."""
        if not isinstance(micros, int):
            raise TypeError("method requires an integer")
        return cls._from_ns_unchecked(
            micros * NS_PER_MICRO, _zone_or_system(tz)
        )

    @classmethod
    def from_timestamp_nanos(
        cls, nanos: int, /, *, tz: TzLike | None = None
    ) -> DateTime:
        """Like :meth:`from_timestamp`, but for nanoseconds."""
        if not isinstance(nanos, int):
            raise TypeError("method requires an integer")
        return cls._from_ns_unchecked(nanos, _zone_or_system(tz))

    @classmethod
    def from_py_datetime(cls, d: _datetime, /) -> DateTime:
        """Create an instance from an aware standard library
        :class:`~datetime.datetime`.

        A :class:`~zoneinfo.ZoneInfo` or ``PosixTz`` tzinfo is kept,
        any other tzinfo becomes a fixed offset.
        """
        if d.tzinfo is None:
            raise ValueError("Cannot create from a naive datetime")
        offset = int(d.utcoffset().total_seconds())  # type: ignore[union-attr]
        local_secs = (
            days_from_civil(d.year, d.month, d.day) * SECS_PER_DAY
            + d.hour * 3600
            + d.minute * 60
            + d.second
        )
        return cls._from_ns_unchecked(
            (local_secs - offset) * NS_PER_SEC + d.microsecond * NS_PER_MICRO,
            d.tzinfo if isinstance(d.tzinfo, _NAMED_ZONES) else offset,
        )

    @classmethod
    def _from_ns_unchecked(cls, ns: int, zone: Zone, /) -> DateTime:
        self = _object_new(cls)
        self._epoch_ns = ns
        self._zone = zone
        return self

    def timestamp(self) -> int:
        """The UNIX timestamp for this datetime, in whole seconds.

        Sub-second precision is floored, also for times before 1970.

        Example
        -------
        >>> DateTime(1970, 1, 1, tz="UTC").timestamp()
        0
        >>> DateTime.from_timestamp_millis(-1, tz="UTC").timestamp()
        -1
        """
        return self._epoch_ns // NS_PER_SEC

    def timestamp_millis(self) -> int:
        """Like :meth:`timestamp`, but with millisecond precision."""
        return self._epoch_ns // NS_PER_MILLI

    def timestamp_micros(self) -> int:
        """Like :meth:`timestamp`, but with microsecond precision."""
        return self._epoch_ns // NS_PER_MICRO

    def timestamp_nanos(self) -> int:
        """Like :meth:`timestamp`, but with nanosecond precision.

        Note
        ----
        The result is exact. It is not limited to 64 bits.
        """
        return self._epoch_ns

    @property
    def tz(self) -> ZoneInfo | PosixTz | int:
        """The timezone, or the fixed UTC offset in seconds.

        A ``PosixTz`` appears when the system timezone
        is set through a POSIX TZ string."""
        return self._zone

    @property
    def offset(self) -> int:
        """The UTC offset in seconds at this moment"""
        return offset_for_instant(self._zone, self._epoch_ns // NS_PER_SEC)

    def _local(self) -> tuple[int, int, int, int, int, int, int, int]:
        secs, nanos = divmod(self._epoch_ns, NS_PER_SEC)
        offset = offset_for_instant(self._zone, secs)
        days, rest = divmod(secs + offset, SECS_PER_DAY)
        hour, rest = divmod(rest, 3600)
        minute, second = divmod(rest, 60)
        year, month, day = civil_from_days(days)
        return year, month, day, hour, minute, second, nanos, offset

    @property
    def year(self) -> int:
        return self._local()[0]

    @property
    def month(self) -> int:
        return self._local()[1]

    @property
    def day(self) -> int:
        return self._local()[2]

    @property
    def hour(self) -> int:
        return self._local()[3]

    @property
    def minute(self) -> int:
        return self._local()[4]

    @property
    def second(self) -> int:
        return self._local()[5]

    @property
    def nanosecond(self) -> int:
        return self._epoch_ns % NS_PER_SEC

    def is_zero(self) -> bool:
        """Whether this is the zero value 0001-01-01T00:00:00Z,
        in any timezone"""
        return self._epoch_ns == _ZERO_NS

    def to_tz(self, tz: TzLike, /) -> DateTime:
        """The same moment in time, observed in another timezone
        or at another fixed offset.

        Raises
        ------
        TimeZoneNotFoundError
            If the timezone ID is not found in the IANA database.
        """
        return self._from_ns_unchecked(self._epoch_ns, load_zone(tz))

    def to_utc(self) -> DateTime:
        """The same moment in time, in UTC"""
        return self._from_ns_unchecked(self._epoch_ns, 0)

    def to_system_tz(self) -> DateTime:
        """The same moment in time, in the system timezone"""
        return self._from_ns_unchecked(self._epoch_ns, get_system_tz())

    def py_datetime(self) -> _datetime:
        """Convert to a standard library :class:`~datetime.datetime`

        Note
        ----
        Nanoseconds are truncated to microseconds.

        Raises
        ------
        DelegatedFormatError
            If the year is outside 1-9999, or the fixed offset
            is 24 hours or more.
        """
        year, month, day, hour, minute, second, nanos, offset = self._local()
        try:
            py_dt = _datetime(
                year,
                month,
                day,
                hour,
                minute,
                second,
                nanos // NS_PER_MICRO,
                tzinfo=(
                    mk_fixed_tzinfo(offset)
                    if isinstance(self._zone, int)
                    else self._zone
                ),
            )
        except ValueError as e:
            raise DelegatedFormatError(str(e)) from e
        # Repeated local times need the fold to pick the right offset
        if py_dt.utcoffset().total_seconds() != offset:  # type: ignore[union-attr]
            py_dt = py_dt.replace(fold=1)
        return py_dt

    def format_rfc3339(self) -> str:
        """Format as RFC 3339 text ``YYYY-MM-DDTHH:MM:SS[.fff]±HH:MM``

        Trailing zeros of the fraction are omitted. A zero offset is
        written as ``Z``. Offset seconds, if any, are truncated.
        The inverse of :meth:`parse_rfc3339`.

        Example
        -------
        >>> DateTime(2020, 8, 15, 23, 12, tz=7200).format_rfc3339()
        '2020-08-15T23:12:00+02:00'

        Raises
        ------
        DelegatedFormatError
            If the year is outside 0-9999 or the offset is 24 hours or more.
            RFC 3339 can't represent these.
        """
        year, month, day, hour, minute, second, nanos, offset = self._local()
        if not 0 <= year <= 9999:
            raise DelegatedFormatError("year outside of range [0,9999]")
        if offset == 0:
            suffix = "Z"
        else:
            offset_hrs, offset_mins = divmod(abs(offset) // 60, 60)
            if offset_hrs > 23:
                raise DelegatedFormatError(
                    "timezone hour outside of range [0,23]"
                )
            sign = "-" if offset < 0 else "+"
            suffix = f"{sign}{offset_hrs:02d}:{offset_mins:02d}"
        return (
            f"{year:04d}-{month:02d}-{day:02d}"
            f"T{hour:02d}:{minute:02d}:{second:02d}"
            + bool(nanos) * f".{nanos:09d}".rstrip("0")
            + suffix
        )

    @classmethod
    def parse_rfc3339(cls, s: str, /) -> DateTime:
        """Parse RFC 3339 text. The parsed offset becomes a fixed offset
        (``Z`` becomes UTC).

        The inverse of :meth:`format_rfc3339`.

        Example
        -------
        >>> DateTime.parse_rfc3339("2020-08-15T23:12:00+02:00")
        DateTime(2020-08-15 23:12:00+02:00)
        >>> # also valid:
        >>> DateTime.parse_rfc3339("0000-01-01t00:00:00.000000001z")
        DateTime(0000-01-01 00:00:00.000000001Z)

        Raises
        ------
        DelegatedParseError
            If the text isn't valid RFC 3339.
        """
        try:
            year, month, day, hour, minute, second, nanos, offset = (
                rfc3339_from_str(s)
            )
        except ValueError as e:
            raise DelegatedParseError(str(e)) from None
        local_secs = (
            days_from_civil(year, month, day) * SECS_PER_DAY
            + hour * 3600
            + minute * 60
            + second
        )
        return cls._from_ns_unchecked(
            (local_secs - offset) * NS_PER_SEC + nanos, offset
        )

    def strftime(self, pattern: str, /) -> str:
        """Format with a :meth:`~datetime.datetime.strftime` pattern.

        Example
        -------
        >>> DateTime(2020, 8, 15, tz=0).strftime("%d/%m/%Y %z")
        '15/08/2020 +0000'

        Raises
        ------
        DelegatedFormatError
            If the standard library can't represent or format the value.
        """
        py_dt = self.py_datetime()
        try:
            return py_dt.strftime(pattern)
        except ValueError as e:
            raise DelegatedFormatError(str(e)) from e

    @classmethod
    def strptime(cls, s: str, /, pattern: str) -> DateTime:
        """Parse with a :meth:`~datetime.datetime.strptime` pattern.

        If the pattern has no offset directive (``%z``, ``%:z``),
        the text is interpreted as UTC.

        Example
        -------
        >>> DateTime.strptime("2020-08-15+0200", "%Y-%m-%d%z")
        DateTime(2020-08-15 00:00:00+02:00)
        >>> DateTime.strptime("2020-08-15", "%Y-%m-%d")
        DateTime(2020-08-15 00:00:00Z)

        Raises
        ------
        DelegatedParseError
            With the standard library's message, if the text doesn't
            match the pattern.
        """
        try:
            parsed = _datetime.strptime(s, pattern)
        except ValueError as e:
            raise DelegatedParseError(str(e)) from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=mk_fixed_tzinfo(0))
        return cls.from_py_datetime(parsed)

    def to_binary(self) -> bytes:
        """Encode to a compact binary form:

        - 1 byte: version (1, or 2 if the offset has a seconds component)
        - 8 bytes: big-endian seconds since 0001-01-01T00:00:00Z
        - 4 bytes: big-endian nanoseconds
        - 2 bytes: big-endian offset in minutes, -1 for UTC
        - version 2 only: 1 byte with the offset's seconds

        Timezones are not preserved, only their current offset.
        The inverse of :meth:`from_binary`.

        Raises
        ------
        DelegatedFormatError
            If the offset can't be represented.
        struct.error
            If the seconds don't fit in 64 bits.
        """
        secs, nanos = divmod(self._epoch_ns, NS_PER_SEC)
        version = 1
        offset_secs = 0
        if self._zone == 0 and isinstance(self._zone, int):
            offset_mins = -1
        else:
            offset = offset_for_instant(self._zone, secs)
            # truncated towards zero, so both parts have the same sign
            offset_mins = abs(offset) // 60 * (-1 if offset < 0 else 1)
            if offset_secs := offset - offset_mins * 60:
                version = 2
            if not -32768 <= offset_mins <= 32767 or offset_mins == -1:
                raise DelegatedFormatError("unexpected zone offset")
        data = pack(
            ">Bqih", version, secs + UNIX_TO_INTERNAL, nanos, offset_mins
        )
        return data + pack(">b", offset_secs) if version == 2 else data

    @classmethod
    def from_binary(cls, data: bytes, /) -> DateTime:
        """Decode the binary form of :meth:`to_binary`.

        Raises
        ------
        DelegatedParseError
            If the data is empty, of an unknown version, or of the
            wrong length.
        """
        if not data:
            raise DelegatedParseError("no data")
        version = data[0]
        if version not in (1, 2):
            raise DelegatedParseError("unsupported version")
        if len(data) != 14 + version:
            raise DelegatedParseError("invalid length")
        _, secs, nanos, offset_mins = unpack(">Bqih", data[:15])
        if not 0 <= nanos < NS_PER_SEC:
            raise DelegatedParseError("nanoseconds out of range")
        offset = offset_mins * 60
        if version == 2:
            offset += unpack(">b", data[15:])[0]
        return cls._from_ns_unchecked(
            (secs - UNIX_TO_INTERNAL) * NS_PER_SEC + nanos,
            0 if offset == -60 else offset,
        )

    def exact_eq(self, other: DateTime, /) -> bool:
        """Compare objects by their values
        (instead of whether they represent the same instant).

        Example
        -------
        >>> a = DateTime(2020, 8, 15, hour=12, tz=3600)
        >>> b = DateTime(2020, 8, 15, hour=13, tz=7200)
        >>> a == b
        True  # equivalent instants
        >>> a.exact_eq(b)
        False  # different offsets
        """
        if type(self) is not type(other):
            raise TypeError("Cannot compare different types")
        return (self._epoch_ns, self._zone) == (other._epoch_ns, other._zone)

    def __eq__(self, other: object) -> bool:
        """Check if two datetimes represent the same moment in time

        Note
        ----
        If you want to exactly compare the values on their values
        instead, use :meth:`exact_eq`.
        """
        if not isinstance(other, DateTime):
            return NotImplemented
        return self._epoch_ns == other._epoch_ns

    def __lt__(self, other: DateTime) -> bool:
        if not isinstance(other, DateTime):
            return NotImplemented
        return self._epoch_ns < other._epoch_ns

    def __le__(self, other: DateTime) -> bool:
        if not isinstance(other, DateTime):
            return NotImplemented
        return self._epoch_ns <= other._epoch_ns

    def __gt__(self, other: DateTime) -> bool:
        if not isinstance(other, DateTime):
            return NotImplemented
        return self._epoch_ns > other._epoch_ns

    def __ge__(self, other: DateTime) -> bool:
        if not isinstance(other, DateTime):
            return NotImplemented
        return self._epoch_ns >= other._epoch_ns

    def __hash__(self) -> int:
        return hash(self._epoch_ns)

    def _format_common(self, sep: str) -> str:
        year, month, day, hour, minute, second, nanos, offset = self._local()
        if offset == 0 and isinstance(self._zone, int):
            suffix = "Z"
        else:
            suffix = zone_name(offset) if offset else "+00:00"
            if not isinstance(self._zone, int):
                suffix += f"[{zone_name(self._zone)}]"
        return (
            f"{year:04d}-{month:02d}-{day:02d}"
            f"{sep}{hour:02d}:{minute:02d}:{second:02d}"
            + bool(nanos) * f".{nanos:09d}".rstrip("0")
            + suffix
        )

    def __str__(self) -> str:
        """ISO 8601-like text, with the timezone ID in brackets if there is one.

        Unlike :meth:`format_rfc3339`, this never fails.
        """
        return self._format_common("T")

    def __repr__(self) -> str:
        return f"DateTime({self._format_common(' ')})"

    def __reduce__(self) -> tuple[object, ...]:
        return (_unpkl_dt, (self._epoch_ns, self._zone))


# A separate function is needed for unpickling, because the
# constructor doesn't accept epoch nanoseconds.
def _unpkl_dt(ns: int, zone: Zone) -> DateTime:
    return DateTime._from_ns_unchecked(ns, zone)


DateTime.ZERO = DateTime._from_ns_unchecked(_ZERO_NS, 0)


class TokiError(ValueError):
    """Base class for errors raised by this library"""


class MalformedInteger(TokiError):
    """Text couldn't be parsed as a base-10, signed 64-bit integer.

    The offending text is available as ``text``, the underlying
    conversion error as ``__cause__``.
    """

    text: str

    def __init__(self, text: str, reason: str) -> None:
        super().__init__(text, reason)
        self.text = text

    def __str__(self) -> str:
        return f"parsing {self.args[0]!r}: {self.args[1]}"


class NotAJSONString(TokiError):
    """JSON input was expected to be a string, but wasn't quoted"""


class DelegatedFormatError(TokiError):
    """A datetime couldn't be formatted, e.g. because the format
    can't represent its year or offset"""


class DelegatedParseError(TokiError):
    """Text or binary data couldn't be parsed as a datetime"""


_T = TypeVar("_T", bound="_LayoutedBase")
_Comparable = Union["_LayoutedBase", DateTime]

# Epoch layouts and how to convert to and from them
_EPOCH_LAYOUTS: dict[
    str, tuple[Callable[[DateTime], int], Callable[..., DateTime]]
] = {
    TIMESTAMP: (DateTime.timestamp, DateTime.from_timestamp),
    TIMESTAMP_MILLI: (
        DateTime.timestamp_millis,
        DateTime.from_timestamp_millis,
    ),
    TIMESTAMP_NANO: (DateTime.timestamp_nanos, DateTime.from_timestamp_nanos),
}


def _encode_int64(i: int, /) -> bytes:
    # Values outside the 64-bit range wrap around instead of raising
    return pack(">q", wrap_int64(i))


def _marshal(dt: DateTime, layout: str, quote: bool) -> bytes:
    if layout == RFC3339:
        s = dt.format_rfc3339()
    elif (epoch := _EPOCH_LAYOUTS.get(layout)) is not None:
        # The binary image, for text and JSON alike
        return _encode_int64(epoch[0](dt))
    else:
        s = dt.strftime(layout)
    return f'"{s}"'.encode() if quote else s.encode()


def _unquote(data: bytes) -> bytes:
    if len(data) < 2 or data[:1] != b'"' or data[-1:] != b'"':
        raise NotAJSONString("input is not a JSON string")
    return data[1:-1]


def _unmarshal_rfc3339(data: bytes, json: bool) -> DateTime:
    if json:
        data = _unquote(data)
    return DateTime.parse_rfc3339(data.decode("utf-8", "replace"))


def _try_unmarshal_rfc3339(data: bytes, json: bool) -> DateTime | None:
    try:
        return _unmarshal_rfc3339(data, json)
    except TokiError:
        return None


def _unmarshal(
    data: bytes, layout: str, tz: TzLike | None, json: bool
) -> DateTime:
    if layout == RFC3339:
        return _unmarshal_rfc3339(data, json)
    elif (epoch := _EPOCH_LAYOUTS.get(layout)) is not None:
        # Decimal text, unlike the binary image that marshaling emits
        text = data.decode("utf-8", "replace")
        try:
            i = int64_from_str(text)
        except ValueError as e:
            raise MalformedInteger(text, str(e)) from e
        return epoch[1](i, tz=tz)

    text = (_unquote(data) if json else data).decode("utf-8", "replace")
    try:
        return DateTime.strptime(text, layout)
    except DelegatedParseError:
        # For backwards compatibility, RFC 3339 is accepted too
        if (dt := _try_unmarshal_rfc3339(data, json)) is None:
            raise
        _log.debug("%r doesn't match %r, parsed as RFC 3339", data, layout)
        return dt


def _instant_of(other: object) -> DateTime | None:
    if isinstance(other, _LayoutedBase):
        return other._dt
    elif isinstance(other, DateTime):
        return other
    return None


class _LayoutedBase(ABC):
    """Behavior shared by :class:`LayoutedInstant`, :class:`Timestamp`,
    :class:`TimestampMillis` and :class:`TimestampNanos`:
    a :class:`DateTime` plus a layout that determines how it's
    (un)marshaled.

    (This base class itself is not for public use.)
    """

    __slots__ = ("_dt",)
    _dt: DateTime

    def __init__(self, instant: DateTime | None = None, /) -> None:
        if instant is None:
            instant = DateTime.ZERO
        elif not isinstance(instant, DateTime):
            raise TypeError("instant must be a DateTime")
        self._dt = instant

    @property
    @abstractmethod
    def layout(self) -> str:
        """The layout used to (un)marshal this value"""

    @property
    def instant(self) -> DateTime:
        """The underlying moment in time"""
        return self._dt

    @classmethod
    def now(cls: type[_T], *, tz: TzLike | None = None) -> _T:
        """Create an instance from the current time.

        Without ``tz``, the system timezone is used.
        """
        return cls(DateTime.now(tz=tz))

    @classmethod
    def from_timestamp(
        cls: type[_T],
        secs: int,
        nanos: int = 0,
        /,
        *,
        tz: TzLike | None = None,
    ) -> _T:
        """Create an instance from a UNIX timestamp in seconds.
        See :meth:`DateTime.from_timestamp`."""
        return cls(DateTime.from_timestamp(secs, nanos, tz=tz))

    @classmethod
    def from_timestamp_millis(
        cls: type[_T], millis: int, /, *, tz: TzLike | None = None
    ) -> _T:
        return cls(DateTime.from_timestamp_millis(millis, tz=tz))

    @classmethod
    def from_timestamp_micros(
        cls: type[_T], micros: int, /, *, tz: TzLike | None = None
    ) -> _T:
        return cls(DateTime.from_timestamp_micros(micros, tz=tz))

    @classmethod
    def from_timestamp_nanos(
        cls: type[_T], nanos: int, /, *, tz: TzLike | None = None
    ) -> _T:
        return cls(DateTime.from_timestamp_nanos(nanos, tz=tz))

    @classmethod
    def from_calendar_fields(
        cls: type[_T],
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        *,
        nanosecond: int = 0,
        tz: TzLike,
    ) -> _T:
        """Create an instance from a local date and time in the given
        timezone. See :class:`DateTime`."""
        return cls(
            DateTime(
                year,
                month,
                day,
                hour,
                minute,
                second,
                nanosecond=nanosecond,
                tz=tz,
            )
        )

    @classmethod
    def parse(cls: type[_T], pattern: str, value: str, /) -> _T:
        """Create an instance by parsing text with a
        :meth:`~datetime.datetime.strptime` pattern.
        See :meth:`DateTime.strptime`."""
        return cls(DateTime.strptime(value, pattern))

    def _with_instant(self: _T, instant: DateTime) -> _T:
        new = self.__copy__()
        new._dt = instant
        return new

    def timestamp(self) -> int:
        return self._dt.timestamp()

    def timestamp_millis(self) -> int:
        return self._dt.timestamp_millis()

    def timestamp_micros(self) -> int:
        return self._dt.timestamp_micros()

    def timestamp_nanos(self) -> int:
        return self._dt.timestamp_nanos()

    def format_rfc3339(self) -> str:
        return self._dt.format_rfc3339()

    def strftime(self, pattern: str, /) -> str:
        return self._dt.strftime(pattern)

    def py_datetime(self) -> _datetime:
        return self._dt.py_datetime()

    def is_zero(self) -> bool:
        return self._dt.is_zero()

    def to_tz(self: _T, tz: TzLike, /) -> _T:
        """The same moment and layout, in another timezone"""
        return self._with_instant(self._dt.to_tz(tz))

    def to_utc(self: _T) -> _T:
        return self._with_instant(self._dt.to_utc())

    def marshal_text(self) -> bytes:
        """Encode according to the layout:

        - :data:`RFC3339`: RFC 3339 text
        - :data:`TIMESTAMP`, :data:`TIMESTAMP_MILLI`, :data:`TIMESTAMP_NANO`:
          the 8-byte big-endian two's complement image of the timestamp.
          Note this is *not* decimal text. Values outside the 64-bit
          range wrap around.
        - any other layout: formatted with :meth:`DateTime.strftime`

        Raises
        ------
        DelegatedFormatError
            If the value can't be formatted in the layout
        """
        return _marshal(self._dt, self.layout, quote=False)

    def marshal_json(self) -> bytes:
        """Like :meth:`marshal_text`, but text layouts are quoted.

        Warning
        -------
        Epoch layouts produce the 8-byte binary image, which isn't valid
        JSON. It is also not what :meth:`unmarshal_json` reads.
        """
        return _marshal(self._dt, self.layout, quote=True)

    def unmarshal_text(
        self, data: bytes, /, *, tz: TzLike | None = None
    ) -> None:
        """Replace the value by decoding ``data`` according to the layout.

        - :data:`RFC3339`: RFC 3339 text
        - epoch layouts: *decimal* text, e.g. ``b"851042397"``.
          ``tz`` (or else the system timezone) is the timezone of the result.
        - any other layout: parsed with :meth:`DateTime.strptime`.
          If that fails, RFC 3339 text is accepted too.

        On error, the value is left unchanged.

        Raises
        ------
        MalformedInteger
            If decimal text was expected but not found
        DelegatedParseError
            If the text doesn't match the layout
        """
        _log.debug("unmarshal text with layout %r", self.layout)
        self._dt = _unmarshal(bytes(data), self.layout, tz, json=False)

    def unmarshal_json(
        self, data: bytes, /, *, tz: TzLike | None = None
    ) -> None:
        """Like :meth:`unmarshal_text`, but text layouts must be quoted,
        and ``null`` leaves the value unchanged.

        Epoch layouts expect an unquoted decimal number, e.g. ``b"851042397"``.

        Raises
        ------
        NotAJSONString
            If quoted text was expected but not found
        MalformedInteger
            If a decimal number was expected but not found
        DelegatedParseError
            If the text doesn't match the layout
        """
        data = bytes(data)
        _log.debug("unmarshal JSON with layout %r", self.layout)
        if data == b"null":
            return
        self._dt = _unmarshal(data, self.layout, tz, json=True)

    def marshal_binary(self) -> bytes:
        """Encode independent of the layout. See :meth:`DateTime.to_binary`."""
        return self._dt.to_binary()

    def unmarshal_binary(self, data: bytes, /) -> None:
        """Replace the value by decoding the output of :meth:`marshal_binary`.
        See :meth:`DateTime.from_binary`."""
        self._dt = DateTime.from_binary(bytes(data))

    def __eq__(self, other: object) -> bool:
        """Compare the moment in time, regardless of layout or timezone"""
        if (instant := _instant_of(other)) is None:
            return NotImplemented
        return self._dt == instant

    def __lt__(self, other: _Comparable) -> bool:
        if (instant := _instant_of(other)) is None:
            return NotImplemented
        return self._dt < instant

    def __le__(self, other: _Comparable) -> bool:
        if (instant := _instant_of(other)) is None:
            return NotImplemented
        return self._dt <= instant

    def __gt__(self, other: _Comparable) -> bool:
        if (instant := _instant_of(other)) is None:
            return NotImplemented
        return self._dt > instant

    def __ge__(self, other: _Comparable) -> bool:
        if (instant := _instant_of(other)) is None:
            return NotImplemented
        return self._dt >= instant

    # Mutable through the unmarshal methods
    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return str(self._dt)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._dt})"

    def __copy__(self: _T) -> _T:
        new = _object_new(type(self))
        new._dt = self._dt
        return new

    def __deepcopy__(self: _T, _: object) -> _T:
        return self.__copy__()

    def __reduce__(self) -> tuple[object, ...]:
        return (type(self), (self._dt,))


@final
class LayoutedInstant(_LayoutedBase):
    """A moment in time, with the layout used to (un)marshal it.

    The layout is one of :data:`RFC3339` (the default), :data:`TIMESTAMP`,
    :data:`TIMESTAMP_MILLI`, :data:`TIMESTAMP_NANO`, or a
    :meth:`~datetime.datetime.strftime` pattern.
    The layout never affects the moment in time itself.

    Example
    -------
    >>> d = LayoutedInstant.from_timestamp(851042397, tz="UTC", layout=TIMESTAMP)
    >>> d.marshal_json()
    b'\\x00\\x00\\x00\\x002\\xb9\\xe0]'
    >>> d.unmarshal_json(b"0")
    >>> d
    LayoutedInstant(1970-01-01T00:00:00Z, layout='timestamp')
    >>> d.with_layout(RFC3339).marshal_json()
    b'"1970-01-01T00:00:00Z"'

    Instances are mutable (see :meth:`unmarshal_json`) and
    therefore not hashable.
    """

    __slots__ = ("_layout",)

    def __init__(
        self, instant: DateTime | None = None, /, layout: str = ""
    ) -> None:
        super().__init__(instant)
        self._layout = resolve_layout(layout)

    @property
    def layout(self) -> str:
        return self._layout

    def with_layout(self, layout: str = "", /) -> LayoutedInstant:
        """The same moment in time with another layout"""
        return LayoutedInstant(self._dt, layout)

    @classmethod
    def now(
        cls, *, tz: TzLike | None = None, layout: str = ""
    ) -> LayoutedInstant:
        return cls(DateTime.now(tz=tz), layout)

    @classmethod
    def from_timestamp(
        cls,
        secs: int,
        nanos: int = 0,
        /,
        *,
        tz: TzLike | None = None,
        layout: str = "",
    ) -> LayoutedInstant:
        return cls(DateTime.from_timestamp(secs, nanos, tz=tz), layout)

    @classmethod
    def from_timestamp_millis(
        cls, millis: int, /, *, tz: TzLike | None = None, layout: str = ""
    ) -> LayoutedInstant:
        return cls(DateTime.from_timestamp_millis(millis, tz=tz), layout)

    @classmethod
    def from_timestamp_micros(
        cls, micros: int, /, *, tz: TzLike | None = None, layout: str = ""
    ) -> LayoutedInstant:
        return cls(DateTime.from_timestamp_micros(micros, tz=tz), layout)

    @classmethod
    def from_timestamp_nanos(
        cls, nanos: int, /, *, tz: TzLike | None = None, layout: str = ""
    ) -> LayoutedInstant:
        return cls(DateTime.from_timestamp_nanos(nanos, tz=tz), layout)

    @classmethod
    def from_calendar_fields(
        cls,
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        *,
        nanosecond: int = 0,
        tz: TzLike,
        layout: str = "",
    ) -> LayoutedInstant:
        return cls(
            DateTime(
                year,
                month,
                day,
                hour,
                minute,
                second,
                nanosecond=nanosecond,
                tz=tz,
            ),
            layout,
        )

    @classmethod
    def parse(
        cls, pattern: str, value: str, /, layout: str = ""
    ) -> LayoutedInstant:
        """Parse ``value`` with the :meth:`~datetime.datetime.strptime`
        ``pattern``. The result gets ``layout``, which is independent
        of the pattern.

        >>> LayoutedInstant.parse("%Y-%m-%d", "2020-08-15", TIMESTAMP)
        LayoutedInstant(2020-08-15T00:00:00Z, layout='timestamp')
        """
        return cls(DateTime.strptime(value, pattern), layout)

    def __repr__(self) -> str:
        return f"LayoutedInstant({self._dt}, layout={self._layout!r})"

    def __copy__(self) -> LayoutedInstant:
        return LayoutedInstant(self._dt, self._layout)

    def __reduce__(self) -> tuple[object, ...]:
        return (LayoutedInstant, (self._dt, self._layout))


class _PinnedLayout(_LayoutedBase):
    """A value with a layout fixed by its type.

    (This base class itself is not for public use.)
    """

    __slots__ = ()
    _LAYOUT: ClassVar[str]

    @property
    def layout(self) -> str:
        return self._LAYOUT


@final
class Timestamp(_PinnedLayout):
    """A moment in time, (un)marshaled as a UNIX timestamp in seconds.

    Important
    ---------
    Marshaling produces the 8-byte big-endian binary image of the
    timestamp, while unmarshaling reads decimal text.
    The two are deliberately not each other's inverse.

    Example
    -------
    >>> t = Timestamp.from_timestamp(851042397, tz="UTC")
    >>> t.marshal_json()
    b'\\x00\\x00\\x00\\x002\\xb9\\xe0]'
    >>> t.unmarshal_json(b"851042398")
    >>> t.timestamp()
    851042398
    """

    __slots__ = ()
    _LAYOUT = TIMESTAMP


@final
class TimestampMillis(_PinnedLayout):
    """Like :class:`Timestamp`, but in milliseconds.

    Sub-millisecond precision is kept in memory, but lost when marshaling.
    """

    __slots__ = ()
    _LAYOUT = TIMESTAMP_MILLI


@final
class TimestampNanos(_PinnedLayout):
    """Like :class:`Timestamp`, but in nanoseconds.

    Warning
    -------
    Nanosecond timestamps only fit in 64 bits for years 1678-2262.
    Outside this range, the marshaled value wraps around.
    """

    __slots__ = ()
    _LAYOUT = TIMESTAMP_NANO
