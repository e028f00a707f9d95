"""
Date bucketing: week / month windows and fiscal years.

All windows are closed intervals over ``YYYY-MM-DD`` strings. The format is
fixed-width and zero-padded, so plain string comparison orders dates
chronologically. Everything works on local calendar dates; nothing is
converted through UTC.

A fiscal year runs April 1 to March 31 and is labelled "{start}-{start+1}".
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from src.models.record import DailyRecord


DateLike = Union[str, date]

FISCAL_YEAR_START_MONTH = 4


def local_today() -> date:
    """Today's date on the local calendar."""
    return date.today()


def _as_date(value: DateLike) -> date:
    # datetime is a date subclass; its isoformat() carries the time of day.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _resolve_today(today: Optional[DateLike]) -> date:
    return local_today() if today is None else _as_date(today)


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive window of calendar days.

    ``None`` on either side leaves that side open.
    """

    start: Optional[str] = None
    end: Optional[str] = None

    def contains(self, day: str) -> bool:
        after_start = self.start is None or day >= self.start
        before_end = self.end is None or day <= self.end
        return after_start and before_end

    @classmethod
    def between(cls, start: DateLike, end: DateLike) -> 'DateRange':
        return cls(_as_date(start).isoformat(), _as_date(end).isoformat())


ALL_TIME = DateRange()


def filter_by_range(records: Iterable[DailyRecord], window: DateRange) -> list[DailyRecord]:
    """Records whose date falls inside ``window`` (both ends included)."""
    return [record for record in records if window.contains(record.date)]


# =============================================================================
# WEEKS AND MONTHS
# =============================================================================

def this_week_range(today: Optional[DateLike] = None) -> DateRange:
    """From the most recent Sunday (today if it is Sunday) through today."""
    current = _resolve_today(today)
    days_since_sunday = (current.weekday() + 1) % 7
    return DateRange.between(current - timedelta(days=days_since_sunday), current)


def last_week_range(today: Optional[DateLike] = None) -> DateRange:
    """The full Sunday-to-Saturday week before this one."""
    this_start = _as_date(this_week_range(today).start)
    end = this_start - timedelta(days=1)
    return DateRange.between(end - timedelta(days=6), end)


def this_month_range(today: Optional[DateLike] = None) -> DateRange:
    """Day 1 of the current month through its last day."""
    current = _resolve_today(today)
    last_day = calendar.monthrange(current.year, current.month)[1]
    return DateRange.between(current.replace(day=1), current.replace(day=last_day))


def last_month_range(today: Optional[DateLike] = None) -> DateRange:
    """The whole previous calendar month."""
    current = _resolve_today(today)
    end = current.replace(day=1) - timedelta(days=1)
    return DateRange.between(end.replace(day=1), end)


def last_n_days_range(days: int, today: Optional[DateLike] = None) -> DateRange:
    """The ``days`` calendar days ending today, today included."""
    current = _resolve_today(today)
    span = max(1, days)
    return DateRange.between(current - timedelta(days=span - 1), current)


# =============================================================================
# FISCAL YEARS
# =============================================================================

def fiscal_year_start(value: DateLike) -> int:
    """
    Calendar year in which the fiscal year containing ``value`` starts.

    Read straight from the date's year and month components.
    """
    if isinstance(value, date):
        year, month = value.year, value.month
    else:
        year, month = int(value[0:4]), int(value[5:7])
    return year - 1 if month < FISCAL_YEAR_START_MONTH else year


def fiscal_year_label(value: DateLike) -> str:
    """Bucket label, e.g. 2024-03-31 -> "2023-2024"."""
    start = fiscal_year_start(value)
    return f"{start}-{start + 1}"


def parse_fiscal_year_label(label: str) -> int:
    """Start year of a "YYYY-YYYY" label."""
    parts = label.split("-") if isinstance(label, str) else []
    if len(parts) != 2 or not all(part.isdigit() and len(part) == 4 for part in parts):
        raise ValueError(f"Fiscal year label must look like '2023-2024', got {label!r}")
    start, end = int(parts[0]), int(parts[1])
    if end != start + 1:
        raise ValueError(f"Fiscal year label must span consecutive years, got {label!r}")
    return start


def fiscal_year_range(label_or_start: Union[str, int]) -> DateRange:
    """April 1 of the start year through March 31 of the next."""
    if isinstance(label_or_start, int):
        start = label_or_start
    else:
        start = parse_fiscal_year_label(label_or_start)
    return DateRange(f"{start:04d}-04-01", f"{start + 1:04d}-03-31")


def available_fiscal_years(records: Iterable[DailyRecord]) -> list[str]:
    """Fiscal-year labels that have at least one record, newest first."""
    return sorted({fiscal_year_label(record.date) for record in records}, reverse=True)


def group_by_fiscal_year(records: Iterable[DailyRecord]) -> dict[str, list[DailyRecord]]:
    """Records bucketed by fiscal-year label, each bucket in date order."""
    buckets: dict[str, list[DailyRecord]] = {}
    for record in sorted(records, key=lambda r: r.date):
        buckets.setdefault(fiscal_year_label(record.date), []).append(record)
    return buckets


def available_calendar_years(records: Iterable[DailyRecord]) -> list[str]:
    """Calendar years that have at least one record, newest first."""
    return sorted({record.date[:4] for record in records}, reverse=True)
