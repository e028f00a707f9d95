"""
CSV export of daily records for spreadsheets.

One row per record, oldest first. Every category gets a column of its own:
the structure's categories in their order, then any category that only
appears in old records, in the order first seen.
"""

import csv
import io
from decimal import Decimal
from typing import Iterable, Optional

from src.analytics.expenses import (
    category_totals,
    net_profit,
    night_sales,
    sales,
    to_decimal,
    total_expenses,
)
from src.models.record import CustomExpenseStructure, DailyRecord


LEADING_COLUMNS = ["Date", "Total Sales", "Morning Sales", "Night Sales"]
TRAILING_COLUMNS = ["Total Expenses", "Net Profit"]


def format_amount(value: Decimal) -> str:
    """Plain two-decimal rendering, no grouping, no currency symbol."""
    return f"{to_decimal(value):.2f}"


def category_columns(
    records: Iterable[DailyRecord],
    structure: Optional[CustomExpenseStructure] = None,
) -> list[str]:
    columns = list(structure or {})
    for record in records:
        for category in record.expenses or []:
            if category.name not in columns:
                columns.append(category.name)
    return columns


def records_to_csv(
    records: Iterable[DailyRecord],
    structure: Optional[CustomExpenseStructure] = None,
) -> str:
    """Render ``records`` as CSV text with a header row."""
    ordered = sorted(records, key=lambda r: r.date)
    categories = category_columns(ordered, structure)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(LEADING_COLUMNS + categories + TRAILING_COLUMNS)

    for record in ordered:
        morning = to_decimal(record.morning_sales) if not record.is_closed else Decimal("0")
        per_category = category_totals(record)
        writer.writerow(
            [
                record.date,
                format_amount(sales(record)),
                format_amount(morning),
                format_amount(night_sales(record)),
            ]
            + [format_amount(per_category.get(name, Decimal("0"))) for name in categories]
            + [
                format_amount(total_expenses(record)),
                format_amount(net_profit(record)),
            ]
        )
    return buffer.getvalue()


def csv_filename(start: Optional[str], end: Optional[str]) -> str:
    if start and end:
        return f"daybook-records-{start}-to-{end}.csv"
    return "daybook-records-all.csv"
