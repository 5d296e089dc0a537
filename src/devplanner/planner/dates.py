"""Calendar helpers for plan periods and due-date buckets."""

from __future__ import annotations

import math
from datetime import date, timedelta

UPCOMING_WINDOW_DAYS = 7


def week_start_for(day: date) -> date:
    """Monday of the week containing `day`."""

    return day - timedelta(days=day.weekday())


def week_end_for(week_start: date) -> date:
    return week_start + timedelta(days=6)


def week_number_for(week_start: date) -> int:
    """Week-of-year counted from January 1st with Sunday-based offset."""

    start_of_year = date(week_start.year, 1, 1)
    sunday_based_weekday = start_of_year.isoweekday() % 7
    elapsed_days = (week_start - start_of_year).days
    return math.ceil((elapsed_days + sunday_based_weekday + 1) / 7)


def parse_iso_date(value: object) -> date | None:
    """Parse `YYYY-MM-DD` (or an ISO datetime prefix); return None when unusable."""

    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    try:
        return date.fromisoformat(token[:10])
    except ValueError:
        return None


def format_short_date(day: date) -> str:
    """Render `Mar 1` style dates."""

    return f"{day.strftime('%b')} {day.day}"
