"""
User Preference Models

The store keeps a small key-value table of user preferences. At startup all
keys are read once into a single typed Preferences snapshot which is passed
explicitly to analytics and the application facade.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.models.gas import GasConfig


SETTING_SCHEMA_VERSION = 1


class SettingKey(str, Enum):
    """Keys of the settings table."""
    FOOD_COST_CATEGORIES = "foodCostCategories"
    BILL_UPLOAD_CATEGORIES = "billUploadCategories"
    TRACKED_ITEMS = "trackedItems"
    REPORT_CARD_VISIBILITY = "reportCardVisibility"
    GAS_CONFIG = "gasConfig"
    ACTIVE_YEAR = "activeYear"


class ReportMetric(str, Enum):
    """Cards that can be shown on the report screen."""
    NET_PROFIT = "NET_PROFIT"
    PROFIT_MARGIN = "PROFIT_MARGIN"
    PRIME_COST = "PRIME_COST"
    TOTAL_SALES = "TOTAL_SALES"
    TOTAL_EXPENSES = "TOTAL_EXPENSES"
    FOOD_COST = "FOOD_COST"
    LABOR_COST = "LABOR_COST"
    AVG_DAILY_SALES = "AVG_DAILY_SALES"
    AVG_DAILY_PROFIT = "AVG_DAILY_PROFIT"
    BUSIEST_DAY = "BUSIEST_DAY"
    MOST_PROFITABLE_DAY = "MOST_PROFITABLE_DAY"
    LEAST_PROFITABLE_DAY = "LEAST_PROFITABLE_DAY"


DEFAULT_FOOD_COST_CATEGORIES = ["Market Bills", "Meat", "Diary Expenses", "Gas"]
DEFAULT_BILL_UPLOAD_CATEGORIES = ["Market Bills", "Meat", "Gas"]
ALL_TIME = "all"


def default_report_card_visibility() -> dict[str, bool]:
    return {metric.value: True for metric in ReportMetric}


class Preferences(BaseModel):
    """
    Typed snapshot of the settings table.

    Every key has a documented default used when it is absent from the store:
    - food_cost_categories: Market Bills, Meat, Diary Expenses, Gas
    - bill_upload_categories: Market Bills, Meat, Gas
    - tracked_items: none
    - report_card_visibility: every card visible
    - gas_config: GasConfig() defaults
    - active_year: "all"
    """

    food_cost_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FOOD_COST_CATEGORIES)
    )
    bill_upload_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BILL_UPLOAD_CATEGORIES)
    )
    tracked_items: list[str] = Field(default_factory=list)
    report_card_visibility: dict[str, bool] = Field(
        default_factory=default_report_card_visibility
    )
    gas_config: GasConfig = Field(default_factory=GasConfig)
    active_year: str = ALL_TIME

    def value_for(self, key: SettingKey) -> Any:
        """JSON value stored under ``key``."""
        if key is SettingKey.FOOD_COST_CATEGORIES:
            return list(self.food_cost_categories)
        if key is SettingKey.BILL_UPLOAD_CATEGORIES:
            return list(self.bill_upload_categories)
        if key is SettingKey.TRACKED_ITEMS:
            return list(self.tracked_items)
        if key is SettingKey.REPORT_CARD_VISIBILITY:
            return dict(self.report_card_visibility)
        if key is SettingKey.GAS_CONFIG:
            return self.gas_config.to_json_dict()
        return self.active_year
