"""Tests for ranking period window resolution."""

import zoneinfo
from datetime import UTC, datetime, timedelta

from bookrank.data_model import PeriodType
from bookrank.rankings import resolve_period_window
from tests.helpers.time import FIXED_NOW


END_OF_DAY = {"hour": 23, "minute": 59, "second": 59, "microsecond": 999_999}


class TestResolvePeriodWindow:
    """Tests for calendar-aligned windows."""

    def test_daily(self) -> None:
        """Today, expiring one day after now."""
        window = resolve_period_window(PeriodType.DAILY, FIXED_NOW)

        assert window.period_start == datetime(2024, 6, 12, tzinfo=UTC)
        assert window.period_end == datetime(2024, 6, 12, **END_OF_DAY, tzinfo=UTC)
        assert window.expires_at == FIXED_NOW + timedelta(days=1)

    def test_weekly_is_monday_to_sunday(self) -> None:
        """The week containing now, expiring the next Monday."""
        window = resolve_period_window(PeriodType.WEEKLY, FIXED_NOW)

        assert window.period_start == datetime(2024, 6, 10, tzinfo=UTC)
        assert window.period_start.weekday() == 0
        assert window.period_end == datetime(2024, 6, 16, **END_OF_DAY, tzinfo=UTC)
        assert window.expires_at == datetime(2024, 6, 17, tzinfo=UTC)

    def test_weekly_on_a_monday(self) -> None:
        """Monday belongs to its own week."""
        monday = datetime(2024, 6, 10, 0, 0, tzinfo=UTC)
        window = resolve_period_window(PeriodType.WEEKLY, monday)
        assert window.period_start == monday

    def test_monthly(self) -> None:
        """First through last day of the month."""
        window = resolve_period_window(PeriodType.MONTHLY, FIXED_NOW)

        assert window.period_start == datetime(2024, 6, 1, tzinfo=UTC)
        assert window.period_end == datetime(2024, 6, 30, **END_OF_DAY, tzinfo=UTC)
        assert window.expires_at == datetime(2024, 7, 1, tzinfo=UTC)

    def test_monthly_in_december_rolls_the_year(self) -> None:
        """December expires on the first of January."""
        window = resolve_period_window(PeriodType.MONTHLY, datetime(2024, 12, 15, tzinfo=UTC))

        assert window.period_end == datetime(2024, 12, 31, **END_OF_DAY, tzinfo=UTC)
        assert window.expires_at == datetime(2025, 1, 1, tzinfo=UTC)

    def test_monthly_in_leap_february(self) -> None:
        """February of a leap year ends on the 29th."""
        window = resolve_period_window(PeriodType.MONTHLY, datetime(2024, 2, 10, tzinfo=UTC))
        assert window.period_end.day == 29

    def test_all_time(self) -> None:
        """From 2020-01-01 through today, expiring in seven days."""
        window = resolve_period_window(PeriodType.ALL_TIME, FIXED_NOW)

        assert window.period_start == datetime(2020, 1, 1, tzinfo=UTC)
        assert window.period_end == datetime(2024, 6, 12, **END_OF_DAY, tzinfo=UTC)
        assert window.expires_at == FIXED_NOW + timedelta(days=7)

    def test_reference_timezone_shifts_the_day(self) -> None:
        """Windows are aligned in the configured timezone."""
        late_utc = datetime(2024, 6, 12, 20, 0, tzinfo=UTC)
        taipei = zoneinfo.ZoneInfo("Asia/Taipei")

        window = resolve_period_window(PeriodType.DAILY, late_utc, "Asia/Taipei")

        assert window.period_start == datetime(2024, 6, 13, tzinfo=taipei)
        assert window.period_start == datetime(2024, 6, 12, 16, 0, tzinfo=UTC)

    def test_window_contains_now(self) -> None:
        """Every period window covers the reference time."""
        for period in PeriodType:
            window = resolve_period_window(period, FIXED_NOW)
            assert window.period_start <= FIXED_NOW <= window.period_end
            assert window.expires_at > FIXED_NOW
