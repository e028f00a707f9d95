"""Shared fixtures for the Daybook test suite."""

from decimal import Decimal

import pytest

from src.config import AppSettings
from src.models.record import DailyRecord, ExpenseCategory, ExpenseItem


def build_record(
    day: str,
    sales=0,
    morning=0,
    closed: bool = False,
    expenses: dict = None,
) -> DailyRecord:
    """
    A record for ``day``. ``expenses`` maps category name to a mapping of
    item name to amount.
    """
    categories = [
        ExpenseCategory(
            name=category,
            items=[
                ExpenseItem(name=item, amount=Decimal(str(amount)))
                for item, amount in items.items()
            ],
        )
        for category, items in (expenses or {}).items()
    ]
    return DailyRecord.for_date(
        day,
        expenses=categories,
        total_sales=Decimal(str(sales)),
        morning_sales=Decimal(str(morning)),
        is_closed=closed,
    )


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def app_settings(tmp_path):
    return AppSettings(data_dir=tmp_path)
