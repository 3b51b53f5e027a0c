"""
Tests for the fixed-offset time helpers.
"""

from datetime import date, datetime, timedelta, timezone

from volunteer_tracker.timeutils import (
    duration_minutes,
    format_instant,
    local_day_key,
    local_to_utc,
    parse_instant,
    shift_by_fixed_offset,
    utc_to_local,
)


class TestParseInstant:
    """Parsing stored and client-supplied instants."""

    def test_parses_z_suffix(self):
        assert parse_instant("2024-01-15T23:00:00.000Z") == datetime(2024, 1, 15, 23, 0)

    def test_converts_explicit_offset_to_utc(self):
        assert parse_instant("2024-01-16T11:00:00+12:00") == datetime(2024, 1, 15, 23, 0)

    def test_naive_string_is_utc(self):
        assert parse_instant("2024-01-15T23:00:00") == datetime(2024, 1, 15, 23, 0)

    def test_date_only_is_midnight(self):
        assert parse_instant("2024-01-15") == datetime(2024, 1, 15)
        assert parse_instant(date(2024, 1, 15)) == datetime(2024, 1, 15)

    def test_aware_datetime_is_normalized(self):
        aware = datetime(2024, 1, 15, 23, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_instant(aware) == datetime(2024, 1, 16, 4, 0)

    def test_bad_values_return_none(self):
        assert parse_instant(None) is None
        assert parse_instant("") is None
        assert parse_instant("not a date") is None
        assert parse_instant(12345) is None

    def test_offset_past_max_datetime_returns_none(self):
        assert parse_instant("9999-12-31T23:00:00-12:00") is None


class TestFormatting:
    """Serialization and offset shifting."""

    def test_format_millisecond_precision(self):
        assert format_instant(datetime(2024, 1, 15, 23, 0, 5, 123456)) == "2024-01-15T23:00:05.123Z"

    def test_shift_by_fixed_offset(self):
        assert shift_by_fixed_offset(datetime(2024, 1, 15, 23), 12) == datetime(2024, 1, 16, 11)
        assert shift_by_fixed_offset(datetime(2024, 1, 15, 23), -12) == datetime(2024, 1, 15, 11)

    def test_local_and_utc_round_trip(self):
        stored = local_to_utc("2024-01-16T09:00:00")
        assert stored == datetime(2024, 1, 15, 21, 0)
        assert utc_to_local(stored) == datetime(2024, 1, 16, 9, 0)


class TestLocalDayKey:
    """Bucketing instants by local calendar day."""

    def test_late_utc_evening_is_next_local_day(self):
        assert local_day_key("2024-01-15T23:00:00Z") == "2024-01-16"

    def test_one_millisecond_across_local_midnight(self):
        before = local_day_key("2024-03-10T11:59:59.999Z")
        after = local_day_key("2024-03-10T12:00:00.000Z")
        assert before == "2024-03-10"
        assert after == "2024-03-11"

    def test_twenty_hours_apart_within_one_local_day(self):
        assert local_day_key("2024-03-10T12:00:00Z") == local_day_key("2024-03-11T08:00:00Z")

    def test_custom_offset(self):
        assert local_day_key("2024-01-15T23:00:00Z", offset_hours=0) == "2024-01-15"

    def test_unparseable_is_skipped(self):
        assert local_day_key("garbage") is None
        assert local_day_key(None) is None

    def test_shift_past_max_datetime_is_skipped(self):
        assert local_day_key("9999-12-31T13:00:00.000Z") is None
        assert utc_to_local("9999-12-31T13:00:00.000Z") is None

    def test_shift_before_min_datetime_is_rejected(self):
        assert local_to_utc("0001-01-01") is None
        assert local_to_utc("0001-01-01T12:00:00") == datetime(1, 1, 1, 0, 0)


class TestDurationMinutes:
    """Minute rounding for start/end ranges."""

    def test_whole_minutes(self):
        assert duration_minutes(datetime(2024, 1, 1, 9), datetime(2024, 1, 1, 17)) == 480

    def test_rounds_half_up(self):
        start = datetime(2024, 1, 1, 9)
        assert duration_minutes(start, start + timedelta(seconds=90)) == 2
        assert duration_minutes(start, start + timedelta(seconds=89)) == 1
        assert duration_minutes(start, start + timedelta(seconds=150)) == 3
