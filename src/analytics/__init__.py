"""
Analytics Package

Pure functions over in-memory records and gas logs. Nothing here touches
the store, and nothing is cached: every figure is recomputed on request.
"""

from src.analytics.expenses import (
    category_total,
    category_totals,
    has_activity,
    item_totals,
    net_profit,
    night_sales,
    sales,
    to_decimal,
    total_expenses,
    total_expenses_of,
    total_profit,
    total_sales_of,
    tracked_item_totals,
)
from src.analytics.periods import (
    ALL_TIME,
    DateRange,
    available_calendar_years,
    available_fiscal_years,
    filter_by_range,
    fiscal_year_label,
    fiscal_year_range,
    fiscal_year_start,
    group_by_fiscal_year,
    last_month_range,
    last_n_days_range,
    last_week_range,
    local_today,
    this_month_range,
    this_week_range,
)
from src.analytics.ratios import (
    food_cost,
    food_cost_pct,
    labor_cost,
    labor_cost_pct,
    prime_cost_pct,
    profit_margin,
    rate_metric,
    rolling_average_profit,
    summarize,
)
from src.analytics.gas import (
    average_daily_usage,
    compute_gas_state,
    days_since_last_swap,
    gas_stock,
    projected_days_left,
)

__all__ = [
    # Expenses
    "category_total",
    "category_totals",
    "has_activity",
    "item_totals",
    "net_profit",
    "night_sales",
    "sales",
    "to_decimal",
    "total_expenses",
    "total_expenses_of",
    "total_profit",
    "total_sales_of",
    "tracked_item_totals",
    # Periods
    "ALL_TIME",
    "DateRange",
    "available_calendar_years",
    "available_fiscal_years",
    "filter_by_range",
    "fiscal_year_label",
    "fiscal_year_range",
    "fiscal_year_start",
    "group_by_fiscal_year",
    "last_month_range",
    "last_n_days_range",
    "last_week_range",
    "local_today",
    "this_month_range",
    "this_week_range",
    # Ratios
    "food_cost",
    "food_cost_pct",
    "labor_cost",
    "labor_cost_pct",
    "prime_cost_pct",
    "profit_margin",
    "rate_metric",
    "rolling_average_profit",
    "summarize",
    # Gas
    "average_daily_usage",
    "compute_gas_state",
    "days_since_last_swap",
    "gas_stock",
    "projected_days_left",
]
