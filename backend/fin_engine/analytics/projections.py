"""
Month-level analysis built from the calculators: last month's result and the
current month's forecast, both relative to an explicit reference date.
"""
import calendar
import logging
from datetime import date, timedelta
from datetime import date as Date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from fin_engine.analytics.anomaly import generate_alerts
from fin_engine.analytics.cost_model import ZERO, CostConfiguration
from fin_engine.analytics.forecasting import WEEKDAY_NAMES, SeasonalForecaster, build_day_pattern
from fin_engine.analytics.kpi import approved_expenses, filter_revenues, other_expenses, sum_amounts
from fin_engine.analytics.models import (
    Alert,
    BreakEvenResult,
    ExpenseRecord,
    FrozenModel,
    ProfitResult,
    ProfitStatus,
    RevenueRecord,
)
from fin_engine.analytics.profit import calculate_break_even, calculate_profit, round_half_up

logger = logging.getLogger(__name__)

DAILY_FORECAST_DAYS = 7


class LastMonthAnalysis(FrozenModel):
    period_start: date
    period_end: date
    total_days: int
    days_recorded: int
    total_revenue: Decimal
    daily_average: Decimal
    variable_cost_rate: Decimal
    fixed_costs: Decimal
    fixed_costs_breakdown: Dict[str, Decimal]
    other_expenses: Decimal
    profit: ProfitResult
    break_even: BreakEvenResult
    above_break_even: bool
    alerts: List[Alert]


class PeriodForecast(FrozenModel):
    name: str
    days: str
    expected_revenue: Decimal
    fixed_costs: Decimal
    variable_costs: Decimal
    other_expenses: Decimal
    expected_costs: Decimal
    expected_profit: Decimal
    status: ProfitStatus


class DailyForecast(FrozenModel):
    date: Date
    weekday: str
    expected_revenue: Decimal
    fixed_costs: Decimal
    variable_costs: Decimal
    other_expenses: Decimal
    expected_costs: Decimal
    expected_profit: Decimal
    status: ProfitStatus
    confidence: int
    day_factor: Decimal


class MonthForecast(FrozenModel):
    month: str
    total_days: int
    current_day: int
    remaining_days: int
    actual_revenue: Decimal
    expected_total_revenue: Decimal
    last_month_daily_average: Decimal
    profit: ProfitResult
    break_even: BreakEvenResult
    above_break_even: bool
    periods: List[PeriodForecast]
    daily: List[DailyForecast]
    alerts: List[Alert]


def month_bounds(day: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def previous_month_bounds(day: date) -> Tuple[date, date]:
    first_of_month = day.replace(day=1)
    return month_bounds(first_of_month - timedelta(days=1))


def analyze_last_month(
    revenues: Iterable[RevenueRecord],
    expenses: Iterable[ExpenseRecord],
    config: CostConfiguration,
    reference_date: date,
    branch_id: Optional[int] = None,
) -> LastMonthAnalysis:
    """Profit, break-even and alerts for the calendar month before reference_date."""
    start, end = previous_month_bounds(reference_date)
    total_days = (end - start).days + 1

    month_revenues = filter_revenues(revenues, start, end, branch_id)
    total_revenue = sum_amounts(month_revenues)
    days_recorded = len({r.date for r in month_revenues})
    daily_average = total_revenue / Decimal(total_days)

    fixed = config.fixed_costs_for(branch_id)
    other = sum_amounts(other_expenses(approved_expenses(expenses, start, end, branch_id), config))

    profit = calculate_profit(total_revenue, config.variable_cost_rate, fixed, other)
    break_even = calculate_break_even(fixed, config.variable_cost_rate, other, config.days_per_month)
    above = daily_average >= break_even.daily_threshold

    logger.info(
        "Last month %s..%s branch=%s revenue=%s net_profit=%s",
        start, end, branch_id, total_revenue, profit.net_profit,
    )

    return LastMonthAnalysis(
        period_start=start,
        period_end=end,
        total_days=total_days,
        days_recorded=days_recorded,
        total_revenue=total_revenue,
        daily_average=daily_average,
        variable_cost_rate=config.variable_cost_rate,
        fixed_costs=fixed,
        fixed_costs_breakdown=config.branch_breakdown(branch_id),
        other_expenses=other,
        profit=profit,
        break_even=break_even,
        above_break_even=above,
        alerts=generate_alerts(total_revenue, break_even, profit.net_profit),
    )


def _period_forecasts(
    daily_average: Decimal,
    total_days: int,
    config: CostConfiguration,
    fixed: Decimal,
    other: Decimal,
) -> List[PeriodForecast]:
    """Thirds of the month (1-10, 11-20, 21-end); fixed and other costs split evenly."""
    periods = [
        ("First period", "1-10", 10),
        ("Second period", "11-20", 10),
        ("Third period", f"21-{total_days}", total_days - 20),
    ]
    forecasts = []
    for name, days, count in periods:
        revenue = daily_average * Decimal(count)
        result = calculate_profit(revenue, config.variable_cost_rate, fixed / 3, other / 3)
        forecasts.append(PeriodForecast(
            name=name,
            days=days,
            expected_revenue=round_half_up(revenue),
            fixed_costs=round_half_up(result.fixed_costs),
            variable_costs=round_half_up(result.variable_costs),
            other_expenses=round_half_up(result.other_expenses),
            expected_costs=round_half_up(result.total_costs),
            expected_profit=round_half_up(result.net_profit),
            status=result.status,
        ))
    return forecasts


def _daily_forecasts(
    forecaster: SeasonalForecaster,
    reference_date: date,
    config: CostConfiguration,
    fixed: Decimal,
    other: Decimal,
) -> List[DailyForecast]:
    """Next seven days; confidence decays 5 points a day, floored at 50."""
    daily_fixed = fixed / Decimal(config.days_per_month)
    daily_other = other / Decimal(config.days_per_month)
    forecasts = []
    projections = forecaster.project(reference_date + timedelta(days=1), DAILY_FORECAST_DAYS)
    for offset, projection in enumerate(projections, start=1):
        result = calculate_profit(projection.expected_revenue, config.variable_cost_rate, daily_fixed, daily_other)
        forecasts.append(DailyForecast(
            date=projection.day,
            weekday=WEEKDAY_NAMES[projection.weekday],
            expected_revenue=round_half_up(result.revenue),
            fixed_costs=round_half_up(result.fixed_costs),
            variable_costs=round_half_up(result.variable_costs),
            other_expenses=round_half_up(result.other_expenses),
            expected_costs=round_half_up(result.total_costs),
            expected_profit=round_half_up(result.net_profit),
            status=result.status,
            confidence=max(50, 95 - offset * 5),
            day_factor=round_half_up(projection.factor, 2),
        ))
    return forecasts


def forecast_month(
    revenues: Iterable[RevenueRecord],
    expenses: Iterable[ExpenseRecord],
    config: CostConfiguration,
    reference_date: date,
    branch_id: Optional[int] = None,
    lookback_days: int = 60,
) -> MonthForecast:
    """
    Forecast the month containing reference_date.

    Revenue to date is actual; each remaining day is last month's daily
    average scaled by its weekday factor from the recent day pattern.
    """
    revenues = list(revenues)
    expenses = list(expenses)

    last_month = analyze_last_month(revenues, expenses, config, reference_date, branch_id)
    daily_average = last_month.daily_average

    pattern = build_day_pattern(revenues, reference_date, lookback_days, branch_id)
    if not pattern.has_history:
        logger.info("No day pattern history; forecasting with a flat daily average")
    forecaster = SeasonalForecaster.with_multipliers(daily_average, pattern.factors)

    start, end = month_bounds(reference_date)
    total_days = end.day
    remaining_days = total_days - reference_date.day

    actual = sum_amounts(filter_revenues(revenues, start, reference_date, branch_id))
    other = sum_amounts(other_expenses(approved_expenses(expenses, start, reference_date, branch_id), config))
    fixed = config.fixed_costs_for(branch_id)

    remaining = sum(
        (p.expected_revenue for p in forecaster.project(reference_date + timedelta(days=1), remaining_days)),
        ZERO,
    )
    expected_total = actual + remaining

    profit = calculate_profit(expected_total, config.variable_cost_rate, fixed, other)
    break_even = calculate_break_even(fixed, config.variable_cost_rate, other, config.days_per_month)
    above = expected_total / Decimal(total_days) >= break_even.daily_threshold

    return MonthForecast(
        month=reference_date.strftime("%Y-%m"),
        total_days=total_days,
        current_day=reference_date.day,
        remaining_days=remaining_days,
        actual_revenue=actual,
        expected_total_revenue=expected_total,
        last_month_daily_average=daily_average,
        profit=profit,
        break_even=break_even,
        above_break_even=above,
        periods=_period_forecasts(daily_average, total_days, config, fixed, other),
        daily=_daily_forecasts(forecaster, reference_date, config, fixed, other),
        alerts=generate_alerts(expected_total, break_even, profit.net_profit),
    )
