"""Profit/loss and break-even calculations."""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from fin_engine.analytics.cost_model import HUNDRED, ZERO, to_decimal
from fin_engine.analytics.models import BreakEvenResult, ProfitResult, ProfitStatus

logger = logging.getLogger(__name__)

INFINITY = Decimal("Infinity")
DAYS_PER_MONTH = 30
UNREACHABLE_BREAK_EVEN = "Variable cost rate too high to reach break-even"


def round_half_up(value: Decimal, places: int = 0) -> Decimal:
    """Round like a spreadsheet (0.5 goes up), leaving infinities untouched."""
    if value.is_infinite():
        return value
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def calculate_profit(
    revenue: Any,
    variable_cost_rate: Any,
    fixed_costs: Any,
    other_expenses: Any = 0,
) -> ProfitResult:
    """
    Combine revenue and costs into a profit/loss result.

    Args:
        revenue: Revenue for the period (may be negative after corrections)
        variable_cost_rate: Percentage of revenue consumed by goods/services (0-100)
        fixed_costs: Fixed costs for the period
        other_expenses: Approved expenses outside the fixed-cost line items

    Returns:
        ProfitResult. A net profit of exactly zero counts as profit; the
        margin is 0 when revenue is not positive.
    """
    revenue = to_decimal(revenue, "revenue")
    rate = to_decimal(variable_cost_rate, "variable cost rate")
    fixed_costs = to_decimal(fixed_costs, "fixed costs")
    other_expenses = to_decimal(other_expenses, "other expenses")

    variable_costs = revenue * rate / HUNDRED
    total_costs = variable_costs + fixed_costs + other_expenses
    net_profit = revenue - total_costs

    return ProfitResult(
        revenue=revenue,
        variable_costs=variable_costs,
        fixed_costs=fixed_costs,
        other_expenses=other_expenses,
        total_costs=total_costs,
        net_profit=net_profit,
        profit_margin=net_profit / revenue * HUNDRED if revenue > 0 else ZERO,
        status=ProfitStatus.PROFIT if net_profit >= 0 else ProfitStatus.LOSS,
    )


def calculate_break_even(
    fixed_costs: Any,
    variable_cost_rate: Any,
    other_expenses: Any = 0,
    days_per_month: int = DAYS_PER_MONTH,
) -> BreakEvenResult:
    """
    Revenue at which net profit is zero.

    monthly = (fixed + other) / (1 - rate/100); daily = round(monthly / 30).
    A rate of 100% or more makes break-even unreachable: both thresholds are
    Infinity and the warning message is set.
    """
    fixed_costs = to_decimal(fixed_costs, "fixed costs")
    rate = to_decimal(variable_cost_rate, "variable cost rate")
    other_expenses = to_decimal(other_expenses, "other expenses")

    if rate >= HUNDRED:
        logger.warning("Break-even unreachable: variable cost rate %s%%", rate)
        return BreakEvenResult(
            daily_threshold=INFINITY,
            monthly_threshold=INFINITY,
            warning_message=UNREACHABLE_BREAK_EVEN,
        )

    monthly = (fixed_costs + other_expenses) * HUNDRED / (HUNDRED - rate)
    daily = round_half_up(monthly / Decimal(days_per_month))

    return BreakEvenResult(daily_threshold=daily, monthly_threshold=monthly)
