"""
Tests for the analytics engine: record formulas, date windows, ratios and
gas projection.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from src.analytics import (
    DateRange,
    available_calendar_years,
    available_fiscal_years,
    average_daily_usage,
    category_totals,
    compute_gas_state,
    days_since_last_swap,
    filter_by_range,
    fiscal_year_label,
    fiscal_year_range,
    fiscal_year_start,
    food_cost_pct,
    gas_stock,
    group_by_fiscal_year,
    has_activity,
    last_month_range,
    last_n_days_range,
    last_week_range,
    net_profit,
    night_sales,
    prime_cost_pct,
    profit_margin,
    projected_days_left,
    rate_metric,
    rolling_average_profit,
    sales,
    summarize,
    this_month_range,
    this_week_range,
    to_decimal,
    total_expenses,
    total_profit,
    tracked_item_totals,
)
from src.analytics.periods import parse_fiscal_year_label
from src.models.gas import GasConfig, GasLog, GasLogType
from src.models.report import MetricRating, ReportSummary
from src.models.settings import DEFAULT_FOOD_COST_CATEGORIES, ReportMetric

from tests.conftest import build_record


def q2(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"))


def gas_log(moment: str, log_type: GasLogType, count: int) -> GasLog:
    return GasLog(date=moment, type=log_type, count=count)


class TestRecordFormulas:
    """Tests for per-record totals."""

    def test_total_expenses_sums_every_item(self):
        record = build_record(
            "2024-06-11",
            expenses={"Meat": {"Beef": 100, "Fish": 50}, "Gas": {"Super Gas": 25}},
        )
        assert total_expenses(record) == Decimal("175")

    def test_fractional_amounts_are_exact(self):
        record = build_record("2024-06-11", expenses={"Market Bills": {"Ice": 0.1, "Curd": 0.2}})
        assert total_expenses(record) == Decimal("0.3")

    @pytest.mark.parametrize("raw,expected", [
        (None, Decimal("0")),
        ("abc", Decimal("0")),
        ("12.5", Decimal("12.5")),
        (float("nan"), Decimal("0")),
        (float("inf"), Decimal("0")),
        (True, Decimal("0")),
        (7, Decimal("7")),
    ])
    def test_to_decimal_coercion(self, raw, expected):
        assert to_decimal(raw) == expected

    def test_closed_day_is_a_loss_of_its_expenses(self):
        record = build_record("2024-06-10", sales=500, closed=True, expenses={"Fixed Costs": {"Rent": 300}})
        assert sales(record) == 0
        assert net_profit(record) == Decimal("-300")

    def test_open_day_profit(self):
        record = build_record("2024-06-11", sales=1500, expenses={"Meat": {"Beef": 200}})
        assert net_profit(record) == Decimal("1300")

    def test_night_sales_derived(self):
        record = build_record("2024-06-11", sales=1500, morning=600)
        assert night_sales(record) == Decimal("900")

    def test_night_sales_of_closed_day(self):
        record = build_record("2024-06-11", sales=1500, morning=600, closed=True)
        assert night_sales(record) == 0

    def test_category_totals_merge_duplicate_names(self):
        record = build_record("2024-06-11", expenses={"Meat": {"Beef": 100}})
        record.expenses.append(build_record("2024-06-11", expenses={"Meat": {"Fish": 40}}).expenses[0])
        assert category_totals(record) == {"Meat": Decimal("140")}

    def test_total_profit_over_records(self):
        records = [
            build_record("2024-06-10", sales=1000, expenses={"Meat": {"Beef": 400}}),
            build_record("2024-06-11", closed=True, expenses={"Fixed Costs": {"Rent": 100}}),
        ]
        assert total_profit(records) == Decimal("500")

    def test_tracked_items_include_unbought(self):
        records = [
            build_record("2024-06-10", expenses={"Meat": {"Beef": 200}}),
            build_record("2024-06-11", expenses={"Meat": {"Beef": 100}}),
        ]
        assert tracked_item_totals(records, ["Beef", "Milk"]) == {
            "Beef": Decimal("300"),
            "Milk": Decimal("0"),
        }

    def test_activity(self):
        assert has_activity(build_record("2024-06-10")) is False
        assert has_activity(build_record("2024-06-10", sales=1)) is True
        assert has_activity(build_record("2024-06-10", expenses={"Gas": {"Super Gas": 5}})) is True
        assert has_activity(
            build_record("2024-06-10", closed=True, expenses={"Gas": {"Super Gas": 5}})
        ) is False


class TestPeriods:
    """Tests for week, month and fiscal-year windows."""

    def test_this_week_starts_on_sunday(self):
        assert this_week_range(date(2024, 6, 12)) == DateRange("2024-06-09", "2024-06-12")

    def test_this_week_on_a_sunday(self):
        assert this_week_range("2024-06-09") == DateRange("2024-06-09", "2024-06-09")

    def test_this_week_on_a_saturday(self):
        assert this_week_range("2024-06-15") == DateRange("2024-06-09", "2024-06-15")

    def test_last_week_is_sunday_to_saturday(self):
        assert last_week_range("2024-06-12") == DateRange("2024-06-02", "2024-06-08")

    def test_this_month_covers_leap_february(self):
        assert this_month_range("2024-02-10") == DateRange("2024-02-01", "2024-02-29")

    def test_last_month_crosses_year(self):
        assert last_month_range("2024-01-15") == DateRange("2023-12-01", "2023-12-31")

    def test_last_n_days_includes_today(self):
        assert last_n_days_range(7, "2024-06-12") == DateRange("2024-06-06", "2024-06-12")

    def test_window_from_a_datetime_keeps_first_day(self):
        assert last_n_days_range(7, datetime(2024, 6, 12, 18, 30)) == DateRange("2024-06-06", "2024-06-12")
        assert this_week_range(datetime(2024, 6, 12, 9, 0)) == DateRange("2024-06-09", "2024-06-12")

    def test_range_bounds_are_inclusive(self):
        window = DateRange("2024-06-01", "2024-06-30")
        records = [
            build_record("2024-05-31"),
            build_record("2024-06-01"),
            build_record("2024-06-30"),
            build_record("2024-07-01"),
        ]
        assert [r.date for r in filter_by_range(records, window)] == ["2024-06-01", "2024-06-30"]

    def test_open_range_matches_everything(self):
        assert DateRange().contains("1999-01-01")
        assert DateRange(start="2024-01-01").contains("2030-12-31")

    @pytest.mark.parametrize("day,label", [
        ("2024-03-31", "2023-2024"),
        ("2024-04-01", "2024-2025"),
        ("2024-01-01", "2023-2024"),
        ("2024-12-31", "2024-2025"),
    ])
    def test_fiscal_year_boundary(self, day, label):
        assert fiscal_year_label(day) == label

    def test_fiscal_year_start_from_date(self):
        assert fiscal_year_start(date(2025, 2, 14)) == 2024

    def test_fiscal_year_range(self):
        assert fiscal_year_range("2023-2024") == DateRange("2023-04-01", "2024-03-31")
        assert fiscal_year_range(2024) == DateRange("2024-04-01", "2025-03-31")

    @pytest.mark.parametrize("label", ["2023", "2023-2025", "23-24", "abcd-efgh", ""])
    def test_bad_fiscal_labels(self, label):
        with pytest.raises(ValueError):
            parse_fiscal_year_label(label)

    def test_available_fiscal_years_newest_first(self):
        records = [
            build_record("2023-05-01"),
            build_record("2024-02-01"),
            build_record("2024-04-02"),
        ]
        assert available_fiscal_years(records) == ["2024-2025", "2023-2024"]
        assert available_calendar_years(records) == ["2024", "2023"]

    def test_group_by_fiscal_year(self):
        records = [
            build_record("2024-04-02"),
            build_record("2024-02-01"),
            build_record("2023-05-01"),
        ]
        groups = group_by_fiscal_year(records)
        assert [r.date for r in groups["2023-2024"]] == ["2023-05-01", "2024-02-01"]
        assert [r.date for r in groups["2024-2025"]] == ["2024-04-02"]


class TestRatios:
    """Tests for cost ratios and the report summary."""

    def test_zero_sales_gives_zero_ratios(self):
        assert food_cost_pct(Decimal("100"), Decimal("0")) == 0
        assert prime_cost_pct(Decimal("100"), Decimal("50"), Decimal("0")) == 0
        assert profit_margin(Decimal("0"), Decimal("100")) == 0

    def test_summary_figures(self):
        records = [
            build_record(
                "2024-06-10",
                sales=1000,
                expenses={"Meat": {"Beef": 300}, "Labours": {"Cook": 400}},
            ),
            build_record("2024-06-11", sales=2000),
        ]
        summary = summarize(records, DEFAULT_FOOD_COST_CATEGORIES)

        assert summary.record_count == 2
        assert summary.total_sales == Decimal("3000")
        assert summary.total_expenses == Decimal("700")
        assert summary.net_profit == Decimal("2300")
        assert summary.total_food_cost == Decimal("300")
        assert summary.total_labor_cost == Decimal("400")
        assert summary.food_cost_pct == Decimal("10")
        assert q2(summary.labor_cost_pct) == Decimal("13.33")
        assert q2(summary.prime_cost_pct) == Decimal("23.33")
        assert q2(summary.profit_margin) == Decimal("76.67")
        assert summary.avg_daily_sales == Decimal("1500")
        assert summary.avg_daily_profit == Decimal("1150")
        assert summary.busiest_day.date == "2024-06-11"
        assert summary.most_profitable_day.date == "2024-06-11"
        assert summary.least_profitable_day.date == "2024-06-10"
        assert [row.name for row in summary.item_breakdown] == ["Cook", "Beef"]
        assert summary.category_breakdown[0].name == "Labours"

    def test_labour_category_matched_case_insensitively(self):
        records = [build_record("2024-06-10", sales=1000, expenses={"LABOURS": {"Cook": 100}})]
        assert summarize(records, []).total_labor_cost == Decimal("100")

    def test_ties_go_to_earliest_day(self):
        records = [
            build_record("2024-06-11", sales=500),
            build_record("2024-06-10", sales=500),
        ]
        summary = summarize(records, [])
        assert summary.busiest_day.date == "2024-06-10"
        assert summary.most_profitable_day.date == "2024-06-10"

    def test_busiest_day_needs_sales(self):
        records = [build_record("2024-06-10", expenses={"Gas": {"Super Gas": 10}})]
        assert summarize(records, []).busiest_day is None

    def test_empty_summary(self):
        summary = summarize([], DEFAULT_FOOD_COST_CATEGORIES)
        assert summary.record_count == 0
        assert summary.avg_daily_sales == 0
        assert summary.most_profitable_day is None

    def test_rolling_average_profit(self):
        records = [
            build_record("2024-05-20", sales=100, expenses={"Gas": {"Super Gas": 200}}),
            build_record("2024-06-10", sales=600),
            build_record("2024-06-12", sales=400),
        ]
        assert rolling_average_profit(records, 7, "2024-06-12") == Decimal("500")
        assert rolling_average_profit(records, 30, "2024-06-12") == Decimal("300")

    def test_rolling_average_of_nothing(self):
        assert rolling_average_profit([], 7, "2024-06-12") == 0

    @pytest.mark.parametrize("metric,value,rating", [
        (ReportMetric.PRIME_COST, Decimal("55"), MetricRating.GOOD),
        (ReportMetric.PRIME_COST, Decimal("62"), MetricRating.AVERAGE),
        (ReportMetric.PRIME_COST, Decimal("70"), MetricRating.WARNING),
        (ReportMetric.FOOD_COST, Decimal("29.9"), MetricRating.GOOD),
        (ReportMetric.LABOR_COST, Decimal("35"), MetricRating.WARNING),
    ])
    def test_cost_ratings(self, metric, value, rating):
        summary = ReportSummary(
            prime_cost_pct=value,
            food_cost_pct=value,
            labor_cost_pct=value,
        )
        assert rate_metric(metric, summary) == rating

    def test_margin_and_profit_ratings(self):
        assert rate_metric(ReportMetric.PROFIT_MARGIN, ReportSummary(profit_margin=Decimal("20"))) == MetricRating.GOOD
        assert rate_metric(ReportMetric.PROFIT_MARGIN, ReportSummary(profit_margin=Decimal("10"))) == MetricRating.AVERAGE
        assert rate_metric(ReportMetric.NET_PROFIT, ReportSummary(net_profit=Decimal("-1"))) == MetricRating.WARNING
        assert rate_metric(ReportMetric.TOTAL_SALES, ReportSummary()) == MetricRating.INFO


class TestGasProjection:
    """Tests for gas stock replay and projections."""

    NOW = datetime(2024, 6, 10, 8, 0, 0)

    def logs(self) -> list[GasLog]:
        return [
            gas_log("2024-06-06T08:00:00", GasLogType.USAGE, 2),
            gas_log("2024-06-01T08:00:00", GasLogType.REFILL, 6),
        ]

    def test_stock_replayed_in_time_order(self):
        assert gas_stock(self.logs()) == 4

    def test_adjustment_overwrites_stock(self):
        logs = self.logs() + [
            gas_log("2024-06-07T08:00:00", GasLogType.ADJUSTMENT, 3),
            gas_log("2024-06-08T08:00:00", GasLogType.USAGE, 1),
        ]
        assert gas_stock(logs) == 2

    def test_stock_may_go_negative(self):
        assert gas_stock([gas_log("2024-06-06T08:00:00", GasLogType.USAGE, 2)]) == -2

    def test_average_usage_over_elapsed_days(self):
        assert average_daily_usage(self.logs(), now=self.NOW) == 0.5

    def test_usage_outside_window_ignored(self):
        logs = self.logs() + [gas_log("2024-01-01T08:00:00", GasLogType.USAGE, 5)]
        assert average_daily_usage(logs, now=self.NOW, window_days=60) == 0.5

    def test_same_day_usage_divides_by_one(self):
        logs = [gas_log("2024-06-10T07:00:00", GasLogType.USAGE, 2)]
        assert average_daily_usage(logs, now=self.NOW) == 2.0

    def test_no_usage_means_no_average(self):
        assert average_daily_usage([], now=self.NOW) == 0.0
        assert projected_days_left(4, 0.0) is None

    def test_projection_floors(self):
        assert projected_days_left(4, 0.5) == 8
        assert projected_days_left(5, 2.0) == 2
        assert projected_days_left(-3, 1.0) == 0

    def test_projection_never_shrinks_with_more_stock(self):
        days = [projected_days_left(stock, 0.7) for stock in range(0, 20)]
        assert days == sorted(days)

    def test_days_since_last_swap(self):
        assert days_since_last_swap(self.logs(), now=self.NOW) == 4
        assert days_since_last_swap([], now=self.NOW) == -1

    def test_full_state(self):
        state = compute_gas_state(self.logs(), GasConfig(), now=self.NOW)
        assert state.current_stock == 4
        assert state.raw_stock == 4
        assert state.empty_cylinders == 0
        assert state.avg_daily_usage == 0.5
        assert state.days_since_last_swap == 4
        assert state.projected_days_left == 8

    def test_empty_cylinders_from_config(self):
        logs = [gas_log("2024-06-01T08:00:00", GasLogType.REFILL, 1)]
        state = compute_gas_state(logs, GasConfig(total_cylinders=6, cylinders_per_bank=2), now=self.NOW)
        assert state.empty_cylinders == 3
        assert state.projected_days_left is None

    def test_negative_stock_is_clamped(self):
        logs = [gas_log("2024-06-09T08:00:00", GasLogType.USAGE, 3)]
        state = compute_gas_state(logs, GasConfig(), now=self.NOW)
        assert state.raw_stock == -3
        assert state.current_stock == 0
        assert state.empty_cylinders == 4
