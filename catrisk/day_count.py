"""Calendar arithmetic used to periodize simulation windows.

Simulations step through their window one calendar year at a time and
convert sub-period lengths into year fractions with the Actual/Actual (ISDA)
convention.
"""

import calendar
from datetime import date, datetime, timedelta
from fractions import Fraction
import math
from typing import Any

import pandas as pd


def to_date(value: Any) -> date:
    """Coerce a date-like value (date, datetime, Timestamp or ISO string) to a date.

    Args:
        value: Value to convert.

    Returns:
        The calendar date with day granularity.

    Raises:
        ValueError: If the value cannot be parsed as a date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    timestamp = pd.Timestamp(value)
    if pd.isna(timestamp):
        raise ValueError(f"Cannot interpret {value!r} as a date")
    return timestamp.date()  # type: ignore[no-any-return]


def add_years(d: date, years: int) -> date:
    """Shift a date by a whole number of calendar years.

    29 February rolls back to 28 February in non-leap target years.

    Args:
        d: Date to shift.
        years: Number of years, may be negative.

    Returns:
        Shifted date.
    """
    return (pd.Timestamp(d) + pd.DateOffset(years=years)).date()  # type: ignore[no-any-return]


def day_count(start: date, end: date) -> int:
    """Actual number of days from start to end."""
    return (end - start).days


def _days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def year_fraction(start: date, end: date) -> float:
    """Actual/Actual (ISDA) year fraction between two dates.

    Days falling in a leap year count 1/366, other days 1/365.

    Args:
        start: Start of the span.
        end: End of the span (exclusive).

    Returns:
        Fractional number of years, negative if end precedes start.
    """
    if start == end:
        return 0.0
    if start > end:
        return -year_fraction(end, start)

    if start.year == end.year:
        return (end - start).days / _days_in_year(start.year)

    fraction = (date(start.year + 1, 1, 1) - start).days / _days_in_year(start.year)
    fraction += end.year - start.year - 1
    fraction += (end - date(end.year, 1, 1)).days / _days_in_year(end.year)
    return fraction


def years_between(start: date, end: date) -> int:
    """Number of whole calendar years that fit in ``[start, end)``."""
    if end <= start:
        return 0
    years = end.year - start.year
    if add_years(start, years) > end:
        years -= 1
    return max(years, 0)


def count_periods(start: date, end: date) -> int:
    """Number of yearly sub-periods covering ``[start, end)``.

    A trailing partial year counts as one period; an empty window has none.
    """
    if end <= start:
        return 0
    periods = years_between(start, end)
    if add_years(start, periods) < end:
        periods += 1
    return periods


def year_position(origin: date, d: date) -> Fraction:
    """Elapsed calendar years from ``origin`` to ``d``, kept exact.

    The whole part counts yearly anniversaries of ``origin``; the fractional
    part is the share of days elapsed in the current anniversary year.

    Args:
        origin: Reference date.
        d: Date on or after the origin.

    Returns:
        Position of ``d`` as a fraction of years.

    Examples:
        >>> year_position(date(2021, 1, 1), date(2022, 7, 2))
        Fraction(547, 365)
    """
    years = years_between(origin, d)
    year_start = add_years(origin, years)
    year_days = day_count(year_start, add_years(origin, years + 1))
    return years + Fraction(day_count(year_start, d), year_days)


def date_at_position(origin: date, position: Fraction) -> date:
    """Date reached after ``position`` years from ``origin``.

    Inverse of :func:`year_position`, rounding down to whole days.
    """
    years = math.floor(position)
    year_start = add_years(origin, years)
    year_days = day_count(year_start, add_years(origin, years + 1))
    return year_start + timedelta(days=math.floor((position - years) * year_days))
