import pytest
from hypothesis import given
from hypothesis.strategies import integers, text

from toki._parse import int64_from_str, rfc3339_from_str


class TestRFC3339:
    @pytest.mark.parametrize(
        "s, expect",
        [
            (
                "2020-08-15T23:12:09Z",
                (2020, 8, 15, 23, 12, 9, 0, 0),
            ),
            (
                "2020-08-15t23:12:09.000987654+02:00",
                (2020, 8, 15, 23, 12, 9, 987_654, 7200),
            ),
            (
                "2020-08-15 23:12:09.5-04:30",
                (2020, 8, 15, 23, 12, 9, 500_000_000, -16_200),
            ),
            (
                "0000-01-01T00:00:00.000000001z",
                (0, 1, 1, 0, 0, 0, 1, 0),
            ),
            (
                "9999-12-31T23:59:59.999999999+23:59",
                (9999, 12, 31, 23, 59, 59, 999_999_999, 86_340),
            ),
            (
                "2024-02-29T00:00:00-00:00",
                (2024, 2, 29, 0, 0, 0, 0, 0),
            ),
        ],
    )
    def test_valid(self, s, expect):
        assert rfc3339_from_str(s) == expect

    @pytest.mark.parametrize(
        "s",
        [
            "",
            "2020-08-15T23:12:09",  # no offset
            "2020-08-15",
            "2020-08-15T23:12Z",
            "2020-08-15T23:12:09.Z",
            "2020-08-15T23:12:09.1234567890Z",
            "2020-08-15T24:00:00Z",
            "2020-08-15T23:60:00Z",
            "2020-08-15T23:12:60Z",
            "2020-13-15T23:12:09Z",
            "2020-00-15T23:12:09Z",
            "2023-02-29T23:12:09Z",
            "2020-08-00T23:12:09Z",
            "2020-08-15T23:12:09+24:00",
            "2020-08-15T23:12:09+0200",
            "2020-08-15T23:12:09 +02:00",
            "20200-08-15T23:12:09Z",
            "2020-08-15T23:12:09Z ",
            "2020-08-15T23:12:09.١Z",  # non-ASCII digit
        ],
    )
    def test_invalid(self, s):
        with pytest.raises(ValueError, match="Invalid RFC 3339 format"):
            rfc3339_from_str(s)

    @given(text())
    def test_fuzzing(self, s):
        try:
            rfc3339_from_str(s)
        except ValueError as e:
            assert "Invalid RFC 3339 format" in str(e)


class TestInt64:
    @pytest.mark.parametrize(
        "s, expect",
        [
            ("0", 0),
            ("-0", 0),
            ("+42", 42),
            ("851042397", 851042397),
            ("-62135596800", -62135596800),
            ("007", 7),
            ("9223372036854775807", 2**63 - 1),
            ("-9223372036854775808", -(2**63)),
        ],
    )
    def test_valid(self, s, expect):
        assert int64_from_str(s) == expect

    @pytest.mark.parametrize(
        "s",
        ["", " 1", "1 ", "1_000", "0x10", "1.0", "1e3", "--1", "+", "١٢"],
    )
    def test_invalid_syntax(self, s):
        with pytest.raises(ValueError, match="invalid syntax"):
            int64_from_str(s)

    @pytest.mark.parametrize(
        "s", ["9223372036854775808", "-9223372036854775809", "1" * 30]
    )
    def test_out_of_range(self, s):
        with pytest.raises(ValueError, match="out of range"):
            int64_from_str(s)

    @given(integers(-(2**63), 2**63 - 1))
    def test_any_int64(self, i):
        assert int64_from_str(str(i)) == i
