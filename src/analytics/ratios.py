"""
Cost ratios and the report summary.

Percentages are on a 0-100 scale. With zero sales every ratio is 0, never
a division error or an infinity.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union

from src.analytics.expenses import (
    ZERO,
    category_total,
    item_totals,
    net_profit,
    sales,
    total_expenses,
)
from src.analytics.periods import filter_by_range, last_n_days_range
from src.models.record import DailyRecord
from src.models.report import (
    DayFigure,
    MetricRating,
    NamedAmount,
    ReportSummary,
)
from src.models.settings import ReportMetric


HUNDRED = Decimal("100")

LABOR_CATEGORY = "labours"


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO
    return part / whole * HUNDRED


def is_labor_category(name: str) -> bool:
    return isinstance(name, str) and name.lower() == LABOR_CATEGORY


def food_cost(records: Iterable[DailyRecord], food_categories: Iterable[str]) -> Decimal:
    """Spend in the categories the user counts as food."""
    names = set(food_categories)
    return sum(
        (
            category_total(category)
            for record in records
            for category in record.expenses or []
            if category.name in names
        ),
        ZERO,
    )


def labor_cost(records: Iterable[DailyRecord]) -> Decimal:
    """Spend in the category named "Labours" (any letter case)."""
    return sum(
        (
            category_total(category)
            for record in records
            for category in record.expenses or []
            if is_labor_category(category.name)
        ),
        ZERO,
    )


def food_cost_pct(total_food: Decimal, total_sales: Decimal) -> Decimal:
    return _percent(total_food, total_sales)


def labor_cost_pct(total_labor: Decimal, total_sales: Decimal) -> Decimal:
    return _percent(total_labor, total_sales)


def prime_cost_pct(total_food: Decimal, total_labor: Decimal, total_sales: Decimal) -> Decimal:
    """Food plus labor as a share of sales."""
    return _percent(total_food + total_labor, total_sales)


def profit_margin(total_sales: Decimal, total_expenses_: Decimal) -> Decimal:
    return _percent(total_sales - total_expenses_, total_sales)


def _ranked(totals: dict[str, Decimal]) -> list[NamedAmount]:
    ordered = sorted(totals.items(), key=lambda pair: pair[1], reverse=True)
    return [NamedAmount(name=name, amount=amount) for name, amount in ordered]


def summarize(
    records: Iterable[DailyRecord],
    food_categories: Iterable[str],
) -> ReportSummary:
    """
    Everything the report screen shows for a set of records.

    Records are visited in date order, so ties for busiest / most / least
    profitable day go to the earliest date. The busiest day needs sales
    above zero.
    """
    ordered = sorted(records, key=lambda r: r.date)
    food_names = list(food_categories)

    total_sales = ZERO
    total_spent = ZERO
    busiest: Optional[DayFigure] = None
    most: Optional[DayFigure] = None
    least: Optional[DayFigure] = None
    category_spend: dict[str, Decimal] = {}

    for record in ordered:
        day_sales = sales(record)
        profit = net_profit(record)
        total_sales += day_sales
        total_spent += total_expenses(record)

        for category in record.expenses or []:
            amount = category_total(category)
            if amount > 0:
                category_spend[category.name] = category_spend.get(category.name, ZERO) + amount

        if day_sales > (busiest.amount if busiest else ZERO):
            busiest = DayFigure(date=record.date, amount=day_sales)
        if most is None or profit > most.amount:
            most = DayFigure(date=record.date, amount=profit)
        if least is None or profit < least.amount:
            least = DayFigure(date=record.date, amount=profit)

    total_food = food_cost(ordered, food_names)
    total_labor = labor_cost(ordered)
    net = total_sales - total_spent
    count = len(ordered)

    return ReportSummary(
        record_count=count,
        total_sales=total_sales,
        total_expenses=total_spent,
        net_profit=net,
        total_food_cost=total_food,
        total_labor_cost=total_labor,
        profit_margin=profit_margin(total_sales, total_spent),
        food_cost_pct=food_cost_pct(total_food, total_sales),
        labor_cost_pct=labor_cost_pct(total_labor, total_sales),
        prime_cost_pct=prime_cost_pct(total_food, total_labor, total_sales),
        avg_daily_sales=total_sales / count if count else ZERO,
        avg_daily_profit=net / count if count else ZERO,
        busiest_day=busiest,
        most_profitable_day=most,
        least_profitable_day=least,
        category_breakdown=_ranked(category_spend),
        item_breakdown=_ranked(item_totals(ordered)),
    )


def rolling_average_profit(
    records: Iterable[DailyRecord],
    days: int,
    today: Optional[Union[str, date]] = None,
) -> Decimal:
    """Mean profit of the records dated within the last ``days`` days."""
    window = filter_by_range(records, last_n_days_range(days, today))
    if not window:
        return ZERO
    return sum((net_profit(record) for record in window), ZERO) / len(window)


# Thresholds on the 0-100 scale: (good below / above, average below / above)
_LOWER_IS_BETTER = {
    ReportMetric.PRIME_COST: (Decimal("60"), Decimal("65")),
    ReportMetric.FOOD_COST: (Decimal("30"), Decimal("35")),
    ReportMetric.LABOR_COST: (Decimal("30"), Decimal("35")),
}


def rate_metric(metric: ReportMetric, summary: ReportSummary) -> MetricRating:
    """Verdict for a report card, using restaurant rule-of-thumb bands."""
    if metric is ReportMetric.NET_PROFIT:
        return MetricRating.GOOD if summary.net_profit >= 0 else MetricRating.WARNING
    if metric is ReportMetric.PROFIT_MARGIN:
        if summary.profit_margin > 15:
            return MetricRating.GOOD
        if summary.profit_margin > 5:
            return MetricRating.AVERAGE
        return MetricRating.WARNING
    if metric in _LOWER_IS_BETTER:
        good, average = _LOWER_IS_BETTER[metric]
        value = {
            ReportMetric.PRIME_COST: summary.prime_cost_pct,
            ReportMetric.FOOD_COST: summary.food_cost_pct,
            ReportMetric.LABOR_COST: summary.labor_cost_pct,
        }[metric]
        if value < good:
            return MetricRating.GOOD
        if value < average:
            return MetricRating.AVERAGE
        return MetricRating.WARNING
    return MetricRating.INFO
