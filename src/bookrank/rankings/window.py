"""Period window resolution for ranking snapshots."""

import zoneinfo
from datetime import date, datetime, time, timedelta

from bookrank.data_model import PeriodType
from bookrank.rankings.models import PeriodWindow


ALL_TIME_START = date(2020, 1, 1)
_END_OF_DAY = time(23, 59, 59, 999_999)


def _start_of(day: date, zone: zoneinfo.ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone)


def _end_of(day: date, zone: zoneinfo.ZoneInfo) -> datetime:
    return datetime.combine(day, _END_OF_DAY, tzinfo=zone)


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def resolve_period_window(
    period_type: PeriodType,
    now: datetime,
    timezone: str = "UTC",
) -> PeriodWindow:
    """Compute the window and expiry of a ranking period.

    Windows are calendar-aligned in the reference timezone and inclusive
    at both ends:
    - daily: today; expires one day after ``now``
    - weekly: Monday through Sunday of the current week; expires the next Monday
    - monthly: first through last day of the month; expires the first of next month
    - all_time: 2020-01-01 through today; expires seven days after ``now``

    Args:
        period_type: Ranking period.
        now: Reference time (timezone-aware).
        timezone: IANA name of the reference timezone.

    Returns:
        The resolved window.
    """
    zone = zoneinfo.ZoneInfo(timezone)
    local_now = now.astimezone(zone)
    today = local_now.date()

    match period_type:
        case PeriodType.DAILY:
            start_day, end_day = today, today
            expires_at = local_now + timedelta(days=1)
        case PeriodType.WEEKLY:
            start_day = today - timedelta(days=today.weekday())
            end_day = start_day + timedelta(days=6)
            expires_at = _start_of(end_day + timedelta(days=1), zone)
        case PeriodType.MONTHLY:
            start_day = today.replace(day=1)
            next_month = _first_of_next_month(today)
            end_day = next_month - timedelta(days=1)
            expires_at = _start_of(next_month, zone)
        case PeriodType.ALL_TIME:
            start_day, end_day = ALL_TIME_START, today
            expires_at = local_now + timedelta(days=7)

    return PeriodWindow(
        period_start=_start_of(start_day, zone),
        period_end=_end_of(end_day, zone),
        expires_at=expires_at,
    )
