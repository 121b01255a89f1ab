"""Tests for last-month analysis and month forecasts."""
from datetime import date
from decimal import Decimal

from fin_engine.analytics.models import AlertLevel, ProfitStatus
from fin_engine.analytics.projections import (
    analyze_last_month,
    forecast_month,
    month_bounds,
    previous_month_bounds,
)

from conftest import daily_revenues


def test_month_bounds():
    assert month_bounds(date(2024, 2, 14)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert previous_month_bounds(date(2024, 1, 5)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_analyze_last_month(config, feb_march_revenues, expenses):
    analysis = analyze_last_month(feb_march_revenues, expenses, config, date(2024, 3, 15), branch_id=1)

    assert analysis.period_start == date(2024, 2, 1)
    assert analysis.total_days == 29
    assert analysis.days_recorded == 29
    assert analysis.total_revenue == Decimal("29000")
    assert analysis.daily_average == Decimal("1000")
    # Salaries are already a fixed-cost line item; the pending repair and
    # branch 2's cleaning do not count.
    assert analysis.other_expenses == Decimal("580")
    assert analysis.profit.net_profit == Decimal("3620")
    assert analysis.break_even.daily_threshold == Decimal("794")
    assert analysis.above_break_even
    assert [a.level for a in analysis.alerts] == [AlertLevel.INFO]
    assert analysis.fixed_costs_breakdown["salaries"] == Decimal("10500")


def test_analyze_last_month_without_data(config):
    analysis = analyze_last_month([], [], config, date(2024, 3, 15), branch_id=1)

    assert analysis.total_revenue == 0
    assert analysis.days_recorded == 0
    assert analysis.profit.status == ProfitStatus.LOSS
    assert not analysis.above_break_even
    assert any(a.level == AlertLevel.CRITICAL for a in analysis.alerts)


def test_forecast_month_flat_history(config, feb_march_revenues):
    forecast = forecast_month(feb_march_revenues, [], config, date(2024, 3, 15), branch_id=1)

    assert forecast.month == "2024-03"
    assert forecast.total_days == 31
    assert forecast.remaining_days == 16
    assert forecast.actual_revenue == Decimal("15000")
    assert forecast.expected_total_revenue == Decimal("31000")
    assert forecast.break_even.monthly_threshold == Decimal("23000")
    assert forecast.above_break_even


def test_forecast_month_periods(config, feb_march_revenues):
    forecast = forecast_month(feb_march_revenues, [], config, date(2024, 3, 15), branch_id=1)

    assert [p.days for p in forecast.periods] == ["1-10", "11-20", "21-31"]
    assert forecast.periods[0].expected_revenue == Decimal("10000")
    assert forecast.periods[2].expected_revenue == Decimal("11000")
    # A third of 16100 per period.
    assert forecast.periods[0].fixed_costs == Decimal("5367")


def test_forecast_month_daily(config, feb_march_revenues):
    forecast = forecast_month(feb_march_revenues, [], config, date(2024, 3, 15), branch_id=1)

    assert len(forecast.daily) == 7
    assert forecast.daily[0].date == date(2024, 3, 16)
    assert forecast.daily[0].weekday == "Saturday"
    assert [d.confidence for d in forecast.daily] == [90, 85, 80, 75, 70, 65, 60]
    assert forecast.daily[0].expected_revenue == Decimal("1000")
    assert forecast.daily[0].fixed_costs == Decimal("537")
    assert forecast.daily[0].expected_profit == Decimal("163")


def test_forecast_month_applies_weekday_factors(config):
    """Fridays at double revenue raise Friday forecasts above the flat average."""
    revenues = daily_revenues(date(2024, 2, 1), date(2024, 3, 15), 1000)
    revenues = [
        r.model_copy(update={"amount": Decimal("2000")}) if r.date.isoweekday() == 5 else r
        for r in revenues
    ]

    forecast = forecast_month(revenues, [], config, date(2024, 3, 15), branch_id=1)

    friday = next(d for d in forecast.daily if d.weekday == "Friday")
    monday = next(d for d in forecast.daily if d.weekday == "Monday")
    assert friday.day_factor > 1
    assert monday.day_factor < 1
    assert friday.expected_revenue > monday.expected_revenue
