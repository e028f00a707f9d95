"""
Report Execution Engine

DESIGN DECISION: Report execution is DETERMINISTIC.
A ReportQuery names a period; this engine resolves it to a concrete date
window, picks the finished days inside it from the in-memory snapshot and
summarizes them with the analytics functions.

It never reads the store and never estimates: an empty window yields an
empty result with an all-zero summary.
"""

from typing import Iterable, Optional

from src.analytics.expenses import has_activity
from src.analytics.periods import (
    ALL_TIME,
    DateRange,
    filter_by_range,
    fiscal_year_range,
    last_month_range,
    last_week_range,
    this_month_range,
    this_week_range,
)
from src.analytics.ratios import summarize
from src.models.record import DailyRecord
from src.models.report import ReportPeriod, ReportQuery, ReportResult


class ReportQueryError(Exception):
    """A report query could not be resolved to a date window."""
    pass


class ReportExecutor:
    """
    Executes report queries against a snapshot of records.

    GUARANTEES:
    - Closed days and days with neither sales nor expenses are left out
    - Records come back in date order
    - Only the records passed in are ever looked at
    """

    def __init__(self, food_categories: Optional[Iterable[str]] = None):
        self._food_categories = list(food_categories or [])

    def resolve_window(self, query: ReportQuery) -> DateRange:
        """Concrete date window for the query's period preset."""
        today = query.today
        if query.period is ReportPeriod.THIS_WEEK:
            return this_week_range(today)
        if query.period is ReportPeriod.LAST_WEEK:
            return last_week_range(today)
        if query.period is ReportPeriod.THIS_MONTH:
            return this_month_range(today)
        if query.period is ReportPeriod.LAST_MONTH:
            return last_month_range(today)
        if query.period is ReportPeriod.CUSTOM:
            return DateRange(query.start_date or None, query.end_date or None)
        if query.period is ReportPeriod.FISCAL_YEAR:
            try:
                return fiscal_year_range(query.fiscal_year)
            except ValueError as e:
                raise ReportQueryError(str(e)) from e
        return ALL_TIME

    def execute(self, query: ReportQuery, records: Iterable[DailyRecord]) -> ReportResult:
        window = self.resolve_window(query)
        finished = [record for record in records if has_activity(record)]
        selected = sorted(filter_by_range(finished, window), key=lambda r: r.date)

        return ReportResult(
            query_id=query.query_id,
            period=query.period,
            start_date=window.start,
            end_date=window.end,
            records=selected,
            summary=summarize(selected, self._food_categories),
        )
