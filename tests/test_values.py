"""Tests for mud.values: SQL literals and timestamp parsing."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from mud.values import Float32, make_value, sql_to_time, time_to_sql, to_utc


class TestMakeValueScalars:
    """Booleans, integers and numeric types."""

    def test_bool_renders_as_bit(self):
        assert make_value(True) == "1"
        assert make_value(False) == "0"

    @pytest.mark.parametrize("value,expected", [(42, "42"), (-7, "-7"), (0, "0")])
    def test_int(self, value, expected):
        assert make_value(value) == expected

    def test_float32_uses_four_places(self):
        assert make_value(Float32(73.12)) == "73.1200"
        assert make_value(Float32(13.23)) == "13.2300"

    def test_float_uses_six_places(self):
        assert make_value(432.5433) == "432.543300"
        assert make_value(73.12) == "73.120000"

    def test_decimal_keeps_scale(self):
        assert make_value(Decimal("10.50")) == "10.50"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), Decimal("NaN")])
    def test_non_finite_is_unsupported(self, value):
        assert make_value(value) is None


class TestMakeValueText:
    def test_string_is_quoted(self):
        assert make_value("Ada") == "'Ada'"

    def test_single_quote_is_doubled(self):
        assert make_value("O'Connor") == "'O''Connor'"

    def test_empty_string(self):
        assert make_value("") == "''"

    def test_uuid(self):
        value = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert make_value(value) == "'12345678-1234-5678-1234-567812345678'"


class TestMakeValueDatetime:
    def test_aware_utc(self):
        value = datetime(2024, 1, 2, 3, 4, 5, 678900, tzinfo=UTC)
        assert make_value(value) == "'2024-01-02 03:04:05.678'"

    def test_naive_is_taken_as_utc(self):
        assert make_value(datetime(2024, 1, 2, 3, 4, 5)) == "'2024-01-02 03:04:05.000'"

    def test_offset_is_converted(self):
        value = datetime(2024, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        assert make_value(value) == "'2024-01-02 03:04:05.000'"


class TestMakeValueUnsupported:
    @pytest.mark.parametrize("value", [None, object(), {"a": 1}, [1, 2], b"raw"])
    def test_returns_none(self, value):
        assert make_value(value) is None


class TestTimestamps:
    def test_to_utc_naive(self):
        assert to_utc(datetime(2024, 1, 1)).tzinfo is UTC

    def test_time_to_sql_truncates_to_milliseconds(self):
        assert time_to_sql(datetime(2024, 6, 30, 23, 59, 59, 999999, tzinfo=UTC)) == "2024-06-30 23:59:59.999"

    def test_parse_driver_format(self):
        assert sql_to_time("2024-01-02 03:04:05.678") == datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)

    def test_parse_iso_with_zulu(self):
        assert sql_to_time("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_parse_offset_converts_to_utc(self):
        parsed = sql_to_time("2024-01-02 05:04:05+02:00")
        assert parsed == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        assert parsed.tzinfo is UTC

    def test_parse_date_only(self):
        assert sql_to_time("2024-01-02") == datetime(2024, 1, 2, tzinfo=UTC)

    def test_parse_long_fraction(self):
        assert sql_to_time("2024-01-02 03:04:05.1234567").microsecond == 123456

    @pytest.mark.parametrize("text", ["not a date", "", "2024-13-01 00:00:00", "2024-02-30"])
    def test_unparseable_returns_none(self, text):
        assert sql_to_time(text) is None

    def test_written_literal_parses_back(self):
        value = datetime(2023, 11, 5, 8, 30, 1, 250000, tzinfo=UTC)
        assert sql_to_time(time_to_sql(value)) == value
