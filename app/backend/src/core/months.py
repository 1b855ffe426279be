"""Calendar-month helpers.

Reports are keyed by month; a month is represented as the ``date`` of its
first day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

MONTH_FORMAT = "%Y-%m"


def month_start(value: date) -> date:
    """Return the first day of the month containing ``value``."""

    if isinstance(value, datetime):
        value = value.date()
    return value.replace(day=1)


def parse_month(value: str) -> date:
    """Parse a ``YYYY-MM`` string; raises ``ValueError`` on bad input."""

    return datetime.strptime(value.strip(), MONTH_FORMAT).date()


def format_month(value: date) -> str:
    return value.strftime(MONTH_FORMAT)


def previous_month(today: date | None = None) -> date:
    """Return the month preceding the one that contains ``today``."""

    first = month_start(today or date.today())
    return month_start(first - timedelta(days=1))


def next_month(value: date) -> date:
    first = month_start(value)
    return month_start(first + timedelta(days=32))


def month_bounds(value: date) -> tuple[date, date]:
    """Return ``(first_day, first_day_of_next_month)`` for ``value``."""

    start = month_start(value)
    return start, next_month(start)


__all__ = [
    "MONTH_FORMAT",
    "format_month",
    "month_bounds",
    "month_start",
    "next_month",
    "parse_month",
    "previous_month",
]
