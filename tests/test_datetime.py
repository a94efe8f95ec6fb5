import pickle
from copy import copy, deepcopy
from datetime import datetime as py_datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from hypothesis import given
from hypothesis.strategies import integers, text

from toki import (
    DateTime,
    DelegatedFormatError,
    DelegatedParseError,
    TimeZoneNotFoundError,
)

from .common import (
    AlwaysEqual,
    AlwaysLarger,
    AlwaysSmaller,
    NeverEqual,
    system_tz,
    system_tz_ams,
)

BIG_INT = 1 << 64 + 1  # a big int that may cause an overflow error
AMS = ZoneInfo("Europe/Amsterdam")
# 2023-10-29T01:00:00Z: clocks in Amsterdam go from 03:00 back to 02:00
AMS_FOLD_UTC = 1698541200


class TestInit:
    def test_defaults(self):
        assert DateTime(2020, 8, 15, tz="UTC").exact_eq(
            DateTime(2020, 8, 15, 0, 0, 0, nanosecond=0, tz="UTC")
        )

    def test_tz_required(self):
        with pytest.raises(TypeError):
            DateTime(2020, 8, 15)  # type: ignore[call-arg]

    @pytest.mark.parametrize(
        "kwargs, keyword",
        [
            (dict(month=0), "month"),
            (dict(month=13), "month"),
            (dict(month=BIG_INT), "month"),
            (dict(day=0), "day"),
            (dict(day=32), "day"),
            (dict(month=2, day=30), "day"),
            (dict(year=2023, month=2, day=29), "day"),
            (dict(hour=-1), "hour"),
            (dict(hour=24), "hour"),
            (dict(minute=-1), "minute"),
            (dict(minute=60), "minute"),
            (dict(second=-1), "second"),
            (dict(second=60), "second"),
            (dict(nanosecond=-1), "nanosecond"),
            (dict(nanosecond=1_000_000_000), "nanosecond"),
            (dict(nanosecond=-BIG_INT), "nanosecond"),
        ],
    )
    def test_bounds(self, kwargs, keyword):
        defaults = {
            "year": 2020,
            "month": 1,
            "day": 1,
            "hour": 0,
            "minute": 0,
            "second": 0,
            "nanosecond": 0,
        }

        with pytest.raises(ValueError, match=keyword):
            DateTime(**{**defaults, **kwargs}, tz="UTC")

    @pytest.mark.parametrize("year", [0, -998, 10_000, 2_000_000])
    def test_any_year(self, year):
        d = DateTime(year, 2, 28, 12, tz="UTC")
        assert (d.year, d.month, d.day, d.hour) == (year, 2, 28, 12)

    def test_fixed_offset(self):
        d = DateTime(2020, 8, 15, 12, tz=7200)
        assert d.timestamp() == DateTime(2020, 8, 15, 10, tz="UTC").timestamp()
        assert d.offset == 7200
        assert d.tz == 7200

    def test_zoneinfo(self):
        d = DateTime(2020, 8, 15, 12, tz=AMS)
        assert d.tz is AMS
        assert d == DateTime(2020, 8, 15, 12, tz="Europe/Amsterdam")

    def test_unknown_tz(self):
        with pytest.raises(TimeZoneNotFoundError):
            DateTime(2020, 8, 15, tz="Europe/Nowhere")

    def test_skipped_time_moves_forward(self):
        d = DateTime(2023, 3, 26, 2, 30, tz="Europe/Amsterdam")
        assert (d.hour, d.minute) == (3, 30)
        assert d.offset == 7200

    def test_repeated_time_is_earlier(self):
        d = DateTime(2023, 10, 29, 2, 30, tz="Europe/Amsterdam")
        assert d.offset == 7200
        assert d.timestamp() == AMS_FOLD_UTC - 1800

    @given(
        integers(),
        integers(),
        integers(),
        integers(),
        integers(),
        integers(),
        integers(),
    )
    def test_fuzzing(self, year, month, day, hour, minute, second, nanos):
        try:
            DateTime(
                year,
                month,
                day,
                hour,
                minute,
                second,
                nanosecond=nanos,
                tz="UTC",
            )
        except ValueError:
            pass


def test_immutable():
    d = DateTime(2020, 8, 15, tz="UTC")
    with pytest.raises(AttributeError):
        d.foo = 2021  # type: ignore[attr-defined]


def test_zero():
    assert DateTime.ZERO.is_zero()
    assert DateTime.ZERO.exact_eq(DateTime(1, 1, 1, tz="UTC"))
    assert DateTime.ZERO.timestamp() == -62135596800
    assert DateTime.ZERO.to_tz("Asia/Tokyo").is_zero()
    assert not DateTime(1, 1, 1, nanosecond=1, tz="UTC").is_zero()
    assert not DateTime(1970, 1, 1, tz="UTC").is_zero()


class TestEquality:
    def test_same(self):
        d = DateTime(2020, 8, 15, tz="UTC")
        same = DateTime(2020, 8, 15, tz="UTC")
        assert d == same
        assert not d != same
        assert hash(d) == hash(same)
        assert d.exact_eq(same)

    def test_different(self):
        d = DateTime(2020, 8, 15, tz="UTC")
        different = DateTime(2020, 8, 15, nanosecond=1, tz="UTC")
        assert d != different
        assert not d == different
        assert hash(d) != hash(different)

    def test_other_timezone(self):
        d = DateTime(2020, 8, 15, 12, tz=3600)
        same_moment = DateTime(2020, 8, 15, 13, tz="Europe/Amsterdam")
        assert d == same_moment
        assert hash(d) == hash(same_moment)
        assert not d.exact_eq(same_moment)

    def test_notimplemented(self):
        d = DateTime(2020, 8, 15, tz="UTC")
        assert d == AlwaysEqual()
        assert d != NeverEqual()
        assert not d == NeverEqual()
        assert not d != AlwaysEqual()

        assert not d == 3  # type: ignore[comparison-overlap]
        assert d != 3  # type: ignore[comparison-overlap]

    def test_exact_eq_other_type(self):
        with pytest.raises(TypeError):
            DateTime(2020, 8, 15, tz="UTC").exact_eq(3)  # type: ignore[arg-type]


class TestComparison:
    def test_instant(self):
        d = DateTime(2020, 8, 15, 23, tz="UTC")
        later = DateTime(2020, 8, 16, tz="UTC")
        assert d < later
        assert d <= later
        assert later > d
        assert later >= d
        assert not d > later
        assert not later < d
        assert d <= d
        assert d >= d

    def test_across_timezones(self):
        d = DateTime(2020, 8, 15, 23, tz="Asia/Tokyo")
        earlier_local_later_instant = DateTime(2020, 8, 15, 22, tz=0)
        assert d < earlier_local_later_instant

    def test_notimplemented(self):
        d = DateTime(2020, 8, 15, tz="UTC")
        assert d < AlwaysLarger()
        assert d <= AlwaysLarger()
        assert not d > AlwaysLarger()
        assert not d >= AlwaysLarger()
        assert not d < AlwaysSmaller()
        assert not d <= AlwaysSmaller()
        assert d > AlwaysSmaller()
        assert d >= AlwaysSmaller()

        with pytest.raises(TypeError):
            d < 42  # type: ignore[operator]


class TestTimestamp:
    def test_default_seconds(self):
        assert DateTime(1970, 1, 1, tz="UTC").timestamp() == 0
        assert (
            DateTime(2020, 8, 15, 12, 8, 30, nanosecond=45_123, tz="UTC")
            .timestamp()
            == 1_597_493_310
        )

    def test_millis(self):
        assert (
            DateTime(2020, 8, 15, 12, 8, 30, nanosecond=45_923_789, tz="UTC")
            .timestamp_millis()
            == 1_597_493_310_045
        )

    def test_micros(self):
        assert (
            DateTime(2020, 8, 15, 12, 8, 30, nanosecond=45_923_789, tz="UTC")
            .timestamp_micros()
            == 1_597_493_310_045_923
        )

    def test_nanos(self):
        assert (
            DateTime(2020, 8, 15, 12, 8, 30, nanosecond=45_123, tz="UTC")
            .timestamp_nanos()
            == 1_597_493_310_000_045_123
        )

    def test_floored_before_epoch(self):
        d = DateTime.from_timestamp_nanos(-1, tz="UTC")
        assert d.timestamp() == -1
        assert d.timestamp_millis() == -1
        assert d.timestamp_micros() == -1
        assert d.timestamp_nanos() == -1

    def test_not_limited_to_64_bits(self):
        d = DateTime(9999, 4, 12, 23, 20, 50, nanosecond=520_000_000, tz="UTC")
        assert d.timestamp() == 253379575250
        assert d.timestamp_millis() == 253379575250520
        assert d.timestamp_nanos() == 253379575250520000000


class TestFromTimestamp:
    @pytest.mark.parametrize(
        "method, factor",
        [
            (DateTime.from_timestamp, 1),
            (DateTime.from_timestamp_millis, 1_000),
            (DateTime.from_timestamp_micros, 1_000_000),
            (DateTime.from_timestamp_nanos, 1_000_000_000),
        ],
    )
    def test_all(self, method, factor):
        assert method(0, tz="UTC").exact_eq(DateTime(1970, 1, 1, tz="UTC"))
        assert method(1_597_493_310 * factor, tz="UTC").exact_eq(
            DateTime(2020, 8, 15, 12, 8, 30, tz="UTC")
        )
        assert method(-1_597_493_310 * factor, tz=7200).exact_eq(
            DateTime(1919, 5, 19, 13, 51, 30, tz=7200)
        )
        with pytest.raises(TypeError):
            method(1.0, tz="UTC")

    def test_extra_nanos(self):
        assert DateTime.from_timestamp(10, 1_500_000_000, tz="UTC") == (
            DateTime.from_timestamp_millis(11_500, tz="UTC")
        )
        assert DateTime.from_timestamp(10, -1, tz="UTC") == (
            DateTime.from_timestamp_nanos(9_999_999_999, tz="UTC")
        )

    def test_timezone(self):
        d = DateTime.from_timestamp(1_123_000_000, tz="America/New_York")
        assert (d.year, d.month, d.day, d.hour, d.minute, d.second) == (
            2005,
            8,
            2,
            12,
            26,
            40,
        )
        assert d.offset == -4 * 3600

    def test_system_tz_by_default(self):
        with system_tz_ams():
            d = DateTime.from_timestamp(0)
        assert d.tz is AMS
        assert d.hour == 1

    def test_far_outside_stdlib_range(self):
        d = DateTime.from_timestamp(-62167219260, tz=60)
        assert (d.year, d.month, d.day, d.hour, d.minute) == (0, 1, 1, 0, 0)


def test_now():
    now = DateTime.now(tz="UTC")
    py_now = py_datetime.now(timezone.utc)
    assert py_now - now.py_datetime() < timedelta(seconds=1)
    assert now.tz == 0

    with system_tz("Asia/Tokyo"):
        assert DateTime.now().tz is ZoneInfo("Asia/Tokyo")


def test_conversions():
    d = DateTime(2020, 8, 15, 23, tz="Europe/Amsterdam")
    utc = d.to_utc()
    assert utc == d
    assert (utc.hour, utc.offset, utc.tz) == (21, 0, 0)
    tokyo = d.to_tz("Asia/Tokyo")
    assert tokyo == d
    assert (tokyo.day, tokyo.hour) == (16, 6)
    assert d.to_tz(-3600).hour == 20
    with system_tz("America/New_York"):
        assert d.to_system_tz().hour == 17


class TestRFC3339:
    @pytest.mark.parametrize(
        "d, expect",
        [
            (
                DateTime(
                    9999, 4, 12, 23, 20, 50, nanosecond=520_000_000, tz="UTC"
                ),
                "9999-04-12T23:20:50.52Z",
            ),
            (
                DateTime(1996, 12, 19, 16, 39, 57, tz="America/Los_Angeles"),
                "1996-12-19T16:39:57-08:00",
            ),
            (
                DateTime(0, 1, 1, nanosecond=1, tz=60),
                "0000-01-01T00:00:00.000000001+00:01",
            ),
            (
                DateTime(2020, 1, 1, tz=23 * 3600 + 59 * 60),
                "2020-01-01T00:00:00+23:59",
            ),
            (
                DateTime(2020, 1, 1, tz="Europe/London"),
                "2020-01-01T00:00:00Z",
            ),
        ],
    )
    def test_format(self, d, expect):
        assert d.format_rfc3339() == expect
        assert DateTime.parse_rfc3339(expect) == d

    def test_parse_gives_fixed_offset(self):
        d = DateTime.parse_rfc3339("2020-08-15T23:12:09.5+02:00")
        assert d.exact_eq(
            DateTime(2020, 8, 15, 23, 12, 9, nanosecond=500_000_000, tz=7200)
        )
        assert DateTime.parse_rfc3339("2020-08-15T23:12:09z").tz == 0

    @pytest.mark.parametrize(
        "d",
        [
            DateTime(10_000, 1, 1, tz="UTC"),
            DateTime.from_timestamp(
                DateTime(-998, 1, 1, tz="UTC").timestamp() - 1, tz="UTC"
            ),
            DateTime.from_timestamp_nanos(
                DateTime(0, 1, 1, tz="UTC").timestamp_nanos() - 1, tz="UTC"
            ),
        ],
    )
    def test_year_out_of_range(self, d):
        with pytest.raises(
            DelegatedFormatError,
            match=r"year outside of range \[0,9999\]",
        ):
            d.format_rfc3339()

    @pytest.mark.parametrize("offset", [24 * 3600, 123 * 3600, -24 * 3600])
    def test_offset_out_of_range(self, offset):
        with pytest.raises(
            DelegatedFormatError,
            match=r"timezone hour outside of range \[0,23\]",
        ):
            DateTime(2020, 1, 1, tz=offset).format_rfc3339()

    @pytest.mark.parametrize(
        "s",
        [
            "2000-01-01T1:12:34Z",
            "2000-01-01T00:00:00,000Z",
            "2000-01-01T00:00:00+24:00",
            "2000-01-01T00:00:00+00:60",
            "2000-01-01T00:00:00+123:45",
        ],
    )
    def test_parse_invalid(self, s):
        with pytest.raises(DelegatedParseError, match="Invalid RFC 3339"):
            DateTime.parse_rfc3339(s)

    @given(text())
    def test_fuzzing(self, s):
        try:
            DateTime.parse_rfc3339(s)
        except DelegatedParseError as e:
            assert "Invalid RFC 3339" in str(e)


class TestStrftime:
    def test_valid(self):
        d = DateTime(2020, 8, 15, 23, 12, 9, nanosecond=987_654_321, tz=7200)
        assert d.strftime("%Y/%m/%d %H:%M:%S.%f %z") == (
            "2020/08/15 23:12:09.987654 +0200"
        )

    @pytest.mark.parametrize(
        "d",
        [
            DateTime(0, 1, 1, tz="UTC"),
            DateTime(10_000, 1, 1, tz="UTC"),
            DateTime(2020, 1, 1, tz=24 * 3600),
        ],
    )
    def test_unrepresentable(self, d):
        with pytest.raises(DelegatedFormatError):
            d.strftime("%Y")


class TestStrptime:
    def test_no_offset_is_utc(self):
        d = DateTime.strptime("15/08/2020 23:12", "%d/%m/%Y %H:%M")
        assert d.exact_eq(DateTime(2020, 8, 15, 23, 12, tz="UTC"))

    def test_offset(self):
        d = DateTime.strptime("2020-08-15 23:12 -0430", "%Y-%m-%d %H:%M %z")
        assert d.exact_eq(DateTime(2020, 8, 15, 23, 12, tz=-16_200))

    def test_no_match(self):
        with pytest.raises(DelegatedParseError, match="does not match"):
            DateTime.strptime("2020-08-15", "%d/%m/%Y")


class TestPyDatetime:
    def test_fixed(self):
        d = DateTime(2020, 8, 15, 23, 12, 9, nanosecond=987_654_321, tz=7200)
        assert d.py_datetime() == py_datetime(
            2020,
            8,
            15,
            23,
            12,
            9,
            987_654,
            tzinfo=timezone(timedelta(hours=2)),
        )

    def test_zoneinfo(self):
        d = DateTime(2020, 8, 15, 23, tz="Europe/Amsterdam")
        py_dt = d.py_datetime()
        assert py_dt.tzinfo is AMS
        assert py_dt.utcoffset() == timedelta(hours=2)

    def test_fold(self):
        first = DateTime.from_timestamp(AMS_FOLD_UTC - 1800, tz=AMS)
        second = DateTime.from_timestamp(AMS_FOLD_UTC + 1800, tz=AMS)
        assert first.py_datetime().fold == 0
        assert second.py_datetime().fold == 1
        assert second.py_datetime().utcoffset() == timedelta(hours=1)
        assert second.py_datetime().timestamp() == AMS_FOLD_UTC + 1800

    def test_from_py_datetime(self):
        py_dt = py_datetime(2020, 8, 15, 23, 12, 9, 987_654, tzinfo=AMS)
        d = DateTime.from_py_datetime(py_dt)
        assert d.tz is AMS
        assert d.timestamp_micros() == int(py_dt.timestamp()) * 1_000_000 + (
            987_654
        )
        fixed = DateTime.from_py_datetime(
            py_datetime(2020, 8, 15, tzinfo=timezone(timedelta(hours=-5)))
        )
        assert fixed.tz == -5 * 3600

    def test_from_naive(self):
        with pytest.raises(ValueError, match="naive"):
            DateTime.from_py_datetime(py_datetime(2020, 8, 15))


class TestBinary:
    @pytest.mark.parametrize(
        "d",
        [
            DateTime(0, 1, 2, 3, 4, 5, nanosecond=6, tz="UTC"),
            DateTime(7, 8, 9, 10, 11, 12, nanosecond=13, tz=0),
            DateTime.ZERO,
            DateTime(1, 2, 3, 4, 5, 6, nanosecond=7, tz=32767 * 60),
            DateTime(1, 2, 3, 4, 5, 6, nanosecond=7, tz=-32768 * 60),
            DateTime(2020, 8, 15, 23, tz=7200),
        ],
    )
    def test_roundtrip_fixed(self, d):
        assert DateTime.from_binary(d.to_binary()).exact_eq(d)

    def test_zero(self):
        data = DateTime.ZERO.to_binary()
        assert data == b"\x01" + bytes(12) + b"\xff\xff"
        assert DateTime.from_binary(data).exact_eq(DateTime.ZERO)

    def test_timezone_becomes_offset(self):
        d = DateTime(2020, 8, 15, 23, tz="Europe/Amsterdam")
        decoded = DateTime.from_binary(d.to_binary())
        assert decoded == d
        assert decoded.tz == 7200

    def test_version2(self):
        # Before 1883, New York had a local mean time offset of -4:56:02
        d = DateTime.parse_rfc3339("1880-01-01T00:00:00Z").to_tz(
            "America/New_York"
        )
        data = d.to_binary()
        assert data[0] == 2
        assert len(data) == 16
        decoded = DateTime.from_binary(data)
        assert decoded == d
        assert decoded.offset == -(4 * 3600 + 56 * 60 + 2)

    @pytest.mark.parametrize(
        "data, msg",
        [
            (b"", "no data"),
            (bytes([0, 2, 3]), "unsupported version"),
            (bytes([1, 2, 3]), "invalid length"),
            (bytes([2]) + bytes(14), "invalid length"),
        ],
    )
    def test_invalid(self, data, msg):
        with pytest.raises(DelegatedParseError, match=msg):
            DateTime.from_binary(data)

    @pytest.mark.parametrize("offset", [-60, -32769 * 60, 32768 * 60])
    def test_unencodable_offset(self, offset):
        with pytest.raises(
            DelegatedFormatError, match="unexpected zone offset"
        ):
            DateTime(0, 1, 2, 3, 4, 5, nanosecond=6, tz=offset).to_binary()


def test_repr():
    assert repr(DateTime(2020, 8, 15, 23, 12, tz="Europe/Amsterdam")) == (
        "DateTime(2020-08-15 23:12:00+02:00[Europe/Amsterdam])"
    )
    assert repr(DateTime(2020, 8, 15, 23, 12, nanosecond=1, tz=-3600)) == (
        "DateTime(2020-08-15 23:12:00.000000001-01:00)"
    )
    assert repr(DateTime(2020, 1, 1, tz="Europe/London")) == (
        "DateTime(2020-01-01 00:00:00+00:00[Europe/London])"
    )


def test_str():
    assert str(DateTime.ZERO) == "0001-01-01T00:00:00Z"
    # never fails, unlike RFC 3339 formatting
    assert str(DateTime(2020, 1, 1, tz=24 * 3600)) == (
        "2020-01-01T00:00:00+24:00"
    )


def test_pickle():
    d = DateTime(2020, 8, 15, 23, 12, 9, nanosecond=987_654, tz=AMS)
    assert pickle.loads(pickle.dumps(d)).exact_eq(d)
    fixed = DateTime(100_000, 1, 1, tz=-3600)
    assert pickle.loads(pickle.dumps(fixed)).exact_eq(fixed)


def test_copy():
    d = DateTime(2020, 8, 15, 23, 12, 9, nanosecond=987_654, tz="UTC")
    assert copy(d) is d
    assert deepcopy(d) is d


def test_cannot_subclass():
    with pytest.raises(TypeError):

        class Subclass(DateTime):  # type: ignore[misc]
            pass
