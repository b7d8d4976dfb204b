"""
Unit tests for the temporal module.
Date/clock classification used by the dashboards; every helper is total.
"""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from weddingdesk.core.temporal import (
    CurrentAndNext,
    clock_minutes,
    current_and_next_event,
    days_until,
    due_today_bucket,
    is_overdue,
    local_now,
    local_today,
    parse_date,
)


TODAY = date(2026, 6, 15)


class TestParseDate:
    """Tests for parse_date coercion."""

    def test_date_passthrough(self):
        assert parse_date(TODAY) == TODAY

    def test_datetime_drops_time(self):
        assert parse_date(datetime(2026, 6, 15, 23, 59)) == TODAY

    def test_iso_strings(self):
        assert parse_date("2026-06-15") == TODAY
        assert parse_date("2026-06-15T08:30:00") == TODAY
        assert parse_date("2026-06-15T08:30:00Z") == TODAY

    def test_malformed_values_are_none(self):
        """Absent or unparseable input is 'unknown', never an error."""
        for value in (None, "", "   ", "not-a-date", "2026-13-45", 20260615, object()):
            assert parse_date(value) is None


class TestDaysUntil:
    """Tests for days_until."""

    def test_today_is_zero_regardless_of_time_of_day(self):
        assert days_until(datetime(2026, 6, 15, 0, 1), TODAY) == 0
        assert days_until(datetime(2026, 6, 15, 23, 59), TODAY) == 0
        assert days_until("2026-06-15T12:00:00", TODAY) == 0

    def test_signed_difference(self):
        assert days_until(TODAY + timedelta(days=1), TODAY) == 1
        assert days_until(TODAY - timedelta(days=3), TODAY) == -3

    def test_unknown_is_none(self):
        assert days_until(None, TODAY) is None
        assert days_until("garbage", TODAY) is None

    def test_defaults_to_local_date(self):
        assert days_until(date.today()) == 0


class TestOverdueAndDueToday:
    """Tests for is_overdue and due_today_bucket."""

    def test_past_open_task_is_overdue(self):
        assert is_overdue(TODAY - timedelta(days=1), False, TODAY) is True
        assert is_overdue(TODAY - timedelta(days=400), False, TODAY) is True

    def test_completed_task_is_never_overdue(self):
        assert is_overdue(TODAY - timedelta(days=1), True, TODAY) is False

    def test_today_and_future_are_not_overdue(self):
        assert is_overdue(TODAY, False, TODAY) is False
        assert is_overdue(TODAY + timedelta(days=2), False, TODAY) is False

    def test_missing_date_is_not_overdue(self):
        assert is_overdue(None, False, TODAY) is False
        assert is_overdue("??", False, TODAY) is False

    def test_due_today_bucket(self):
        assert due_today_bucket(TODAY, TODAY) is True
        assert due_today_bucket(datetime(2026, 6, 15, 18, 0), TODAY) is True
        assert due_today_bucket(TODAY + timedelta(days=1), TODAY) is False
        assert due_today_bucket(None, TODAY) is False


class TestClockMinutes:
    """Tests for clock_minutes parsing."""

    def test_24_hour(self):
        assert clock_minutes("00:00") == 0
        assert clock_minutes("13:00") == 780
        assert clock_minutes("9:05") == 545
        assert clock_minutes("23:59") == 1439

    def test_sql_time_with_seconds(self):
        assert clock_minutes("09:05:30") == 545

    def test_12_hour(self):
        assert clock_minutes("1:30 PM") == 810
        assert clock_minutes("12:00 AM") == 0
        assert clock_minutes("12:15 pm") == 735
        assert clock_minutes("9:00am") == 540

    def test_malformed_is_none(self):
        for value in (None, "", "24:00", "7:60", "13:00 PM", "noon", "12", 780):
            assert clock_minutes(value) is None


class TestCurrentAndNext:
    """Tests for current_and_next_event."""

    SCHEDULE = [
        {"title": "Hair and makeup", "time": "09:00"},
        {"title": "Photographer", "time": "11:30"},
        {"title": "Lunch", "time": "13:00"},
        {"title": "Ceremony", "time": "15:00"},
        {"title": "Send-off", "time": None},
    ]

    def test_at_one_pm(self):
        """At 13:00 the 13:00 entry is current and 15:00 is next."""
        result = current_and_next_event(self.SCHEDULE, 13 * 60)
        assert result.current["title"] == "Lunch"
        assert result.next["title"] == "Ceremony"

    def test_before_first_item(self):
        result = current_and_next_event(self.SCHEDULE, 8 * 60)
        assert result.current is None
        assert result.next["title"] == "Hair and makeup"

    def test_after_last_item(self):
        result = current_and_next_event(self.SCHEDULE, 20 * 60)
        assert result.current["title"] == "Ceremony"
        assert result.next is None

    def test_equal_times_current_takes_last_next_takes_first(self):
        items = [{"title": "A", "time": "10:00"}, {"title": "B", "time": "10:00"}]
        assert current_and_next_event(items, 600).current["title"] == "B"
        assert current_and_next_event(items, 599).next["title"] == "A"

    def test_untimed_items_are_never_selected(self):
        items = [{"title": "X", "time": None}, {"title": "Y", "time": "bad"}]
        assert current_and_next_event(items, 600) == CurrentAndNext(None, None)

    def test_empty_schedule(self):
        assert current_and_next_event([], 600) == CurrentAndNext()


class TestLocalClock:
    """Tests for timezone-aware now helpers."""

    def test_known_timezone_is_aware(self):
        now = local_now("America/Chicago")
        assert now.tzinfo is not None

    def test_unknown_timezone_falls_back_to_system_local(self):
        assert isinstance(local_today("Not/AZone"), date)

    def test_utc_matches_utc_date(self):
        before = datetime.now(timezone.utc).date()
        today = local_today("UTC")
        after = datetime.now(timezone.utc).date()
        assert today in (before, after)
