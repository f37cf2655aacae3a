# backend/carteira/utils/date_utils.py
"""
Date utility functions for carteira.

All business dates are calendar days (datetime.date); nothing here deals
with times or time zones.

Usage:
    from carteira.utils.date_utils import add_months, years_between

    next_statement = add_months(date(2024, 1, 31), 1)  # 2024-02-29
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal

# Average year length used for all year-fraction calculations
DAYS_PER_YEAR = Decimal("365.25")


def add_months(d: date, months: int) -> date:
    """
    Shift a date by a number of calendar months.

    The day is clamped to the last day of the target month, so
    Jan 31 + 1 month is Feb 28 (or 29).

    Args:
        d: Starting date
        months: Months to add (negative to subtract)

    Returns:
        The shifted date
    """
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def monthly_dates(start_date: date, end_date: date) -> list[date]:
    """
    Dates one calendar month apart from start_date up to end_date (inclusive).

    Each date is computed from start_date directly, so a start on the 31st
    does not drift to the 28th after February.

    Example:
        >>> monthly_dates(date(2024, 1, 31), date(2024, 4, 30))
        [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]
    """
    dates = []
    step = 0
    current = start_date

    while current <= end_date:
        dates.append(current)
        step += 1
        current = add_months(start_date, step)

    return dates


def weekly_dates(start_date: date, end_date: date) -> list[date]:
    """Dates seven days apart from start_date up to end_date (inclusive)."""
    dates = []
    current = start_date

    while current <= end_date:
        dates.append(current)
        current += timedelta(days=7)

    return dates


def years_between(start_date: date, end_date: date) -> Decimal:
    """
    Fractional years between two dates using a 365.25-day year.

    Negative when end_date is before start_date.
    """
    return Decimal((end_date - start_date).days) / DAYS_PER_YEAR


def same_or_earlier_month(d: date, reference: date) -> bool:
    """True if d falls in the reference's month or any month before it."""
    return (d.year, d.month) <= (reference.year, reference.month)
