"""Reporting windows: trailing months, fiscal years and custom ranges.

The fiscal year runs September to August and is named after the calendar
year it ends in, so FY2024 is 2023-09-01 through 2024-08-31.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, timedelta

from wip_analytics.services.errors import WipValidationError

FISCAL_YEAR_START_MONTH = 9

FISCAL_MONTHS: tuple[str, ...] = (
    "September",
    "October",
    "November",
    "December",
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
)


class WindowMode(str, enum.Enum):
    TRAILING = "trailing"
    FISCAL = "fiscal"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ReportingWindow:
    """Inclusive date range. The opening balance covers everything before ``start``."""

    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    def cache_token(self) -> str:
        return f"{self.start.isoformat()}_{self.end.isoformat()}"


def _month_end(value: date) -> date:
    next_month = value.replace(day=28) + timedelta(days=4)
    return next_month.replace(day=1) - timedelta(days=1)


def _add_months(value: date, months: int) -> date:
    year = value.year + (value.month - 1 + months) // 12
    month = (value.month - 1 + months) % 12 + 1
    day = min(value.day, _month_end(date(year, month, 1)).day)
    return date(year, month, day)


def trailing_window(today: date, months: int) -> ReportingWindow:
    if months < 1:
        raise WipValidationError("Window length must be at least one month")
    return ReportingWindow(start=_add_months(today, -months), end=today)


def fiscal_year_for(value: date) -> int:
    if value.month >= FISCAL_YEAR_START_MONTH:
        return value.year + 1
    return value.year


def fiscal_month_index(name: str) -> int:
    """Zero-based position of a month name within the fiscal year."""
    normalized = name.strip().lower()
    for index, month in enumerate(FISCAL_MONTHS):
        if month.lower() == normalized or month[:3].lower() == normalized:
            return index
    raise WipValidationError(f"Unknown fiscal month: {name}")


def fiscal_window(fiscal_year: int, fiscal_month: str | None = None) -> ReportingWindow:
    """Fiscal year window, or fiscal year-to-date through ``fiscal_month``."""
    if fiscal_year < 1901 or fiscal_year > 9999:
        raise WipValidationError(f"Invalid fiscal year: {fiscal_year}")

    start = date(fiscal_year - 1, FISCAL_YEAR_START_MONTH, 1)
    if fiscal_month is None:
        return ReportingWindow(start=start, end=_add_months(start, 12) - timedelta(days=1))

    month_start = _add_months(start, fiscal_month_index(fiscal_month))
    return ReportingWindow(start=start, end=_month_end(month_start))


def custom_window(start: date | None, end: date | None) -> ReportingWindow:
    """Whole months: first day of the start month through the last day of the end month."""
    if start is None or end is None:
        raise WipValidationError("Custom windows need both start_date and end_date")
    if start > end:
        raise WipValidationError("start_date must be on or before end_date")
    return ReportingWindow(start=start.replace(day=1), end=_month_end(end))


def resolve_window(
    mode: WindowMode,
    today: date,
    trailing_months: int,
    fiscal_year: int | None = None,
    fiscal_month: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> ReportingWindow:
    if mode is WindowMode.TRAILING:
        return trailing_window(today, trailing_months)
    if mode is WindowMode.FISCAL:
        return fiscal_window(fiscal_year or fiscal_year_for(today), fiscal_month)
    return custom_window(start_date, end_date)
