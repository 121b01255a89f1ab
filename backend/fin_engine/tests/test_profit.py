"""Tests for the profit and break-even calculators."""
from decimal import Decimal

import pytest

from fin_engine.analytics.models import BreakEvenResult, ProfitStatus
from fin_engine.analytics.profit import (
    UNREACHABLE_BREAK_EVEN,
    calculate_break_even,
    calculate_profit,
    round_half_up,
)


def test_profit_single_branch():
    result = calculate_profit(50000, 30, 16100, 0)

    assert result.variable_costs == Decimal("15000")
    assert result.total_costs == Decimal("31100")
    assert result.net_profit == Decimal("18900")
    assert result.status == ProfitStatus.PROFIT
    assert float(result.profit_margin) == pytest.approx(37.8)


def test_loss():
    result = calculate_profit(20000, 30, 16100, 0)

    assert result.net_profit == Decimal("-2100")
    assert result.status == ProfitStatus.LOSS


def test_zero_revenue_has_zero_margin():
    result = calculate_profit(0, 30, 16100, 0)

    assert result.net_profit == Decimal("-16100")
    assert result.profit_margin == 0
    assert result.status == ProfitStatus.LOSS


def test_exact_zero_profit_counts_as_profit():
    result = calculate_profit(10000, 30, 7000, 0)

    assert result.net_profit == 0
    assert result.status == ProfitStatus.PROFIT


def test_negative_revenue_is_computed_not_rejected():
    result = calculate_profit(-500, 30, 0, 0)

    assert result.variable_costs == Decimal("-150")
    assert result.net_profit == Decimal("-350")
    assert result.profit_margin == 0


@pytest.mark.parametrize("revenue,rate,fixed,other", [
    ("12345.67", "27.5", "16100", "432.10"),
    ("0.01", "99.9", "0", "0"),
    ("987654.32", "1", "32200", "1500.55"),
])
def test_cost_identities_hold_exactly(revenue, rate, fixed, other):
    result = calculate_profit(revenue, rate, fixed, other)

    assert result.total_costs == result.variable_costs + Decimal(fixed) + Decimal(other)
    assert result.net_profit == Decimal(revenue) - result.total_costs
    assert calculate_profit(revenue, rate, fixed, other) == result


def test_break_even_single_branch():
    result = calculate_break_even(16100, 30, 0)

    assert result.monthly_threshold == Decimal("23000")
    assert result.daily_threshold == Decimal("767")
    assert result.warning_message is None
    assert result.reachable


def test_break_even_both_branches():
    assert calculate_break_even(32200, 30, 0).monthly_threshold == Decimal("46000")


def test_break_even_includes_other_expenses():
    result = calculate_break_even(16100, 30, 700)
    assert result.monthly_threshold == Decimal("24000")
    assert result.daily_threshold == Decimal("800")


@pytest.mark.parametrize("rate", [100, 120])
def test_break_even_unreachable(rate):
    """A rate of 100% or more is a result state, not an exception."""
    result = calculate_break_even(16100, rate, 0)

    assert result.daily_threshold == Decimal("Infinity")
    assert result.monthly_threshold == Decimal("Infinity")
    assert result.warning_message == UNREACHABLE_BREAK_EVEN
    assert not result.reachable


def test_unreachable_break_even_survives_json_round_trip():
    result = calculate_break_even(16100, 100, 0)
    restored = BreakEvenResult.model_validate(result.model_dump(mode="json"))

    assert restored == result


def test_round_half_up():
    assert round_half_up(Decimal("2.5")) == Decimal("3")
    assert round_half_up(Decimal("766.6667")) == Decimal("767")
    assert round_half_up(Decimal("1.005"), 2) == Decimal("1.01")
    assert round_half_up(Decimal("Infinity")).is_infinite()
