"""
Expense and profit aggregation for a single record.

These are the only implementations of the record-level formulas. Every
report, export and view goes through them.

Numeric coercion is part of the contract: a missing, non-numeric, NaN or
infinite amount counts as zero. None of these functions raise.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from src.models.record import DailyRecord, ExpenseCategory


ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce ``value`` to a finite Decimal; anything unusable is zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def category_total(category: ExpenseCategory) -> Decimal:
    """Sum of the item amounts of one category."""
    return sum((to_decimal(item.amount) for item in category.items or []), ZERO)


def total_expenses(record: DailyRecord) -> Decimal:
    """Sum of every item amount across all categories."""
    if record is None:
        return ZERO
    return sum((category_total(category) for category in record.expenses or []), ZERO)


def category_totals(record: DailyRecord) -> dict[str, Decimal]:
    """Per-category totals; categories sharing a name are added together."""
    totals: dict[str, Decimal] = {}
    for category in record.expenses or []:
        totals[category.name] = totals.get(category.name, ZERO) + category_total(category)
    return totals


def sales(record: DailyRecord) -> Decimal:
    """Sales that count for the day: zero on a closed day."""
    if record.is_closed:
        return ZERO
    return to_decimal(record.total_sales)


def night_sales(record: DailyRecord) -> Decimal:
    """Night sales are always total minus morning, never stored."""
    if record.is_closed:
        return ZERO
    return to_decimal(record.total_sales) - to_decimal(record.morning_sales)


def net_profit(record: DailyRecord) -> Decimal:
    """
    Profit for the day.

    A closed day is a pure loss of its expenses, whatever stale sales
    figure the record may still carry.
    """
    return sales(record) - total_expenses(record)


def total_sales_of(records: Iterable[DailyRecord]) -> Decimal:
    return sum((sales(record) for record in records), ZERO)


def total_expenses_of(records: Iterable[DailyRecord]) -> Decimal:
    return sum((total_expenses(record) for record in records), ZERO)


def total_profit(records: Iterable[DailyRecord]) -> Decimal:
    return sum((net_profit(record) for record in records), ZERO)


def item_totals(records: Iterable[DailyRecord]) -> dict[str, Decimal]:
    """Positive spend per item name across ``records``."""
    totals: dict[str, Decimal] = {}
    for record in records:
        for category in record.expenses or []:
            for item in category.items or []:
                amount = to_decimal(item.amount)
                if amount > 0:
                    totals[item.name] = totals.get(item.name, ZERO) + amount
    return totals


def tracked_item_totals(
    records: Iterable[DailyRecord],
    tracked_items: Iterable[str],
) -> dict[str, Decimal]:
    """Spend on each tracked item, zero for items never bought."""
    names = list(tracked_items)
    spent = item_totals(records)
    return {name: spent.get(name, ZERO) for name in names}


def has_activity(record: DailyRecord) -> bool:
    """An open day with sales or expenses recorded."""
    return not record.is_closed and (
        to_decimal(record.total_sales) > 0 or total_expenses(record) > 0
    )
