"""Tests for duration, timezone and cron schedule parsing."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from appproject_governance.errors import WindowParseError
from appproject_governance.windows.schedule import (
    WindowSchedule,
    ensure_aware,
    load_timezone,
    parse_duration,
    parse_schedule,
)


def _utc(hour: int, minute: int = 0, day: int = 5) -> datetime:
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# parse_duration
# ---------------------------------------------------------------------------

class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("2h", timedelta(hours=2)),
            ("1h30m", timedelta(minutes=90)),
            ("90s", timedelta(seconds=90)),
            ("1.5h", timedelta(minutes=90)),
            ("500ms", timedelta(milliseconds=500)),
            ("0", timedelta(0)),
            ("-1m", timedelta(minutes=-1)),
        ],
    )
    def test_valid_durations(self, text: str, expected: timedelta) -> None:
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "3a", "2a", "33mm", "11", "1000days", "h"])
    def test_invalid_durations(self, text: str) -> None:
        with pytest.raises(WindowParseError, match="cannot parse duration"):
            parse_duration(text)

    def test_largest_duration(self) -> None:
        assert parse_duration("2562047h") == timedelta(hours=2562047)

    @pytest.mark.parametrize("text", ["2562048h", "9999999999999h", "-9999999999999h"])
    def test_duration_out_of_range(self, text: str) -> None:
        with pytest.raises(WindowParseError, match="duration out of range"):
            parse_duration(text)


# ---------------------------------------------------------------------------
# load_timezone / parse_schedule
# ---------------------------------------------------------------------------

class TestLoadTimezone:
    def test_empty_is_utc(self) -> None:
        assert load_timezone("") is timezone.utc

    def test_iana_name(self) -> None:
        assert load_timezone("America/New_York") == ZoneInfo("America/New_York")

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(WindowParseError, match="cannot load timezone"):
            load_timezone("Not/AZone")


class TestParseSchedule:
    @pytest.mark.parametrize("expression", ["* 10 * * *", "0 10 * * 1-5", "*/15 * * * *"])
    def test_valid_schedules(self, expression: str) -> None:
        assert parse_schedule(expression) == expression

    def test_too_few_fields(self) -> None:
        with pytest.raises(WindowParseError, match="expected exactly 5 fields"):
            parse_schedule("* * *")

    def test_too_many_fields(self) -> None:
        with pytest.raises(WindowParseError):
            parse_schedule("* * * * * *")

    def test_day_of_week_out_of_range(self) -> None:
        with pytest.raises(WindowParseError, match="day of week"):
            parse_schedule("* 10 * * 7")

    def test_out_of_range_hour(self) -> None:
        with pytest.raises(WindowParseError):
            parse_schedule("* 25 * * *")


# ---------------------------------------------------------------------------
# WindowSchedule
# ---------------------------------------------------------------------------

class TestWindowSchedule:
    def test_active_inside_window(self) -> None:
        schedule = WindowSchedule.parse("* 10 * * *", "2h")
        assert schedule.is_active(_utc(11)) is True

    def test_inactive_after_window(self) -> None:
        schedule = WindowSchedule.parse("* 10 * * *", "2h")
        assert schedule.is_active(_utc(13)) is False

    def test_inactive_before_window(self) -> None:
        schedule = WindowSchedule.parse("0 10 * * *", "1h")
        assert schedule.is_active(_utc(9, 59)) is False

    def test_window_start_is_inclusive_end_is_exclusive(self) -> None:
        schedule = WindowSchedule.parse("0 10 * * *", "1h")
        assert schedule.is_active(_utc(10)) is True
        assert schedule.is_active(_utc(10, 59)) is True
        assert schedule.is_active(_utc(11)) is False

    def test_window_spanning_midnight(self) -> None:
        schedule = WindowSchedule.parse("0 23 * * *", "2h")
        assert schedule.is_active(_utc(0, 30, day=6)) is True

    def test_evaluated_in_window_timezone(self) -> None:
        # 09:00 in Berlin is 08:00 UTC in January.
        schedule = WindowSchedule.parse("0 9 * * *", "1h", "Europe/Berlin")
        assert schedule.is_active(_utc(8, 30)) is True
        assert schedule.is_active(_utc(9, 30)) is False

    def test_zero_duration_is_never_active(self) -> None:
        schedule = WindowSchedule.parse("* * * * *", "0")
        assert schedule.is_active(_utc(12)) is False

    def test_next_start(self) -> None:
        schedule = WindowSchedule.parse("0 10 * * *", "1h")
        assert schedule.next_start(_utc(9)) == _utc(10)

    def test_parse_reports_first_error(self) -> None:
        with pytest.raises(WindowParseError, match="schedule"):
            WindowSchedule.parse("bad", "bad", "bad")

    def test_naive_datetime_treated_as_utc(self) -> None:
        naive = datetime(2026, 1, 5, 11, 0)
        assert ensure_aware(naive) == _utc(11)
        assert WindowSchedule.parse("* 10 * * *", "2h").is_active(naive) is True
