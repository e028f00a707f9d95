"""
Report Models

Typed query and result objects for the report screen.

DESIGN DECISION: Reports are computed from the in-memory snapshot only.
A ReportQuery names a period preset; the executor resolves it to a date
window, filters the records and hands them to the analytics functions.
Nothing is read from the store and nothing is estimated.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from src.models.record import DailyRecord, validate_date_string


class ReportPeriod(str, Enum):
    """Period presets offered by the report screen."""
    THIS_WEEK = "THIS_WEEK"
    LAST_WEEK = "LAST_WEEK"
    THIS_MONTH = "THIS_MONTH"
    LAST_MONTH = "LAST_MONTH"
    ALL_TIME = "ALL_TIME"
    CUSTOM = "CUSTOM"
    FISCAL_YEAR = "FISCAL_YEAR"


class MetricRating(str, Enum):
    """Traffic-light verdict shown next to a ratio."""
    GOOD = "good"
    AVERAGE = "average"
    WARNING = "warning"
    INFO = "info"


class DayFigure(BaseModel):
    """A notable day and the amount that made it notable."""

    date: str
    amount: Decimal


class NamedAmount(BaseModel):
    """One row of a category or item breakdown."""

    name: str
    amount: Decimal


class ReportSummary(BaseModel):
    """
    Aggregate figures for a set of records.

    Percentages are on a 0-100 scale and are 0 when there were no sales.
    Breakdowns are sorted by amount, largest first.
    """

    record_count: int = 0
    total_sales: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    net_profit: Decimal = Decimal("0")
    total_food_cost: Decimal = Decimal("0")
    total_labor_cost: Decimal = Decimal("0")
    profit_margin: Decimal = Decimal("0")
    food_cost_pct: Decimal = Decimal("0")
    labor_cost_pct: Decimal = Decimal("0")
    prime_cost_pct: Decimal = Decimal("0")
    avg_daily_sales: Decimal = Decimal("0")
    avg_daily_profit: Decimal = Decimal("0")
    busiest_day: Optional[DayFigure] = None
    most_profitable_day: Optional[DayFigure] = None
    least_profitable_day: Optional[DayFigure] = None
    category_breakdown: list[NamedAmount] = Field(default_factory=list)
    item_breakdown: list[NamedAmount] = Field(default_factory=list)


class ReportQuery(BaseModel):
    """
    What the user asked to see.

    CUSTOM uses start_date / end_date (either may be open).
    FISCAL_YEAR uses fiscal_year, a label such as "2023-2024".
    ``today`` pins the calendar for relative presets; None means the
    local date at execution time.
    """

    query_id: UUID = Field(default_factory=uuid4)
    period: ReportPeriod = ReportPeriod.THIS_MONTH
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    fiscal_year: Optional[str] = None
    today: Optional[date] = None

    @model_validator(mode='after')
    def validate_period_arguments(self) -> 'ReportQuery':
        for value in (self.start_date, self.end_date):
            if value:
                validate_date_string(value)
        if self.period is ReportPeriod.FISCAL_YEAR and not self.fiscal_year:
            raise ValueError("A fiscal year report needs a fiscal_year label")
        return self


class ReportResult(BaseModel):
    """Records inside the resolved window plus their summary."""

    query_id: UUID
    period: ReportPeriod
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    records: list[DailyRecord] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)

    @property
    def data_found(self) -> bool:
        return bool(self.records)
