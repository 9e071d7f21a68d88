"""Resolve named reporting periods to concrete local-time boundaries.

All values are naive datetimes on the local clock. Callers that need another
zone convert before handing dates in.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from salon_reports.schemas.filters import DateRangeFilter


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    # Millisecond precision, matching timestamps written by the web client.
    return datetime.combine(day, time(23, 59, 59, 999000))


def _span(first: date, last: date) -> DateRange:
    return DateRange(start=start_of_day(first), end=end_of_day(last))


def resolve_date_range(
    date_range: DateRangeFilter, *, now: datetime | None = None
) -> DateRange:
    now = now or datetime.now()
    today = now.date()
    preset = date_range.preset

    if preset == "yesterday":
        yesterday = today - timedelta(days=1)
        return _span(yesterday, yesterday)
    if preset == "last7":
        return _span(today - timedelta(days=7), today)
    if preset == "thisWeek":
        # Weeks start on Sunday.
        days_since_sunday = (today.weekday() + 1) % 7
        return _span(today - timedelta(days=days_since_sunday), today)
    if preset == "last30":
        return _span(today - timedelta(days=30), today)
    if preset == "thisMonth":
        return _span(today.replace(day=1), today)
    if preset == "lastMonth":
        last_day = today.replace(day=1) - timedelta(days=1)
        return _span(last_day.replace(day=1), last_day)
    if preset == "quarter":
        quarter_month = (today.month - 1) // 3 * 3 + 1
        return _span(date(today.year, quarter_month, 1), today)
    if preset == "ytd":
        return _span(date(today.year, 1, 1), today)
    if preset == "custom" and date_range.start_date and date_range.end_date:
        return _span(date_range.start_date, date_range.end_date)

    return _span(today, today)
