"""Tests for KPIs, trends and ABC classification."""
from datetime import date
from decimal import Decimal

import pytest

from fin_engine.analytics.kpi import (
    build_kpi_snapshot,
    build_monthly_trend,
    calculate_change,
    classify_abc,
    compare_branches,
    describe_values,
    expense_breakdown,
    months_in_period,
    previous_period,
    summarize_trend,
)
from fin_engine.analytics.models import AbcTier, ExpenseRecord, ExpenseStatus, RevenueRecord, Trend


def _revenue(day, amount, branch_id=1):
    return RevenueRecord(branch_id=branch_id, date=day, amount=Decimal(str(amount)))


def _expense(day, amount, category="supplies", status=ExpenseStatus.APPROVED):
    return ExpenseRecord(category=category, amount=Decimal(str(amount)), date=day, status=status)


def test_calculate_change():
    change = calculate_change(120, 100)

    assert change.change == Decimal("20")
    assert change.change_percent == Decimal("20.00")
    assert change.trend == Trend.UP


def test_calculate_change_rounds_to_two_places():
    assert calculate_change(100, 300).change_percent == Decimal("-66.67")
    assert calculate_change(100, 300).trend == Trend.DOWN


def test_calculate_change_from_zero_is_zero_percent():
    change = calculate_change(500, 0)

    assert change.change_percent == 0
    assert change.trend == Trend.UP
    assert calculate_change(0, 0).trend == Trend.STABLE


def test_previous_period_has_equal_length():
    prev_start, prev_end = previous_period(date(2024, 2, 1), date(2024, 2, 29))

    assert prev_end == date(2024, 1, 31)
    assert prev_start == date(2024, 1, 3)
    assert (prev_end - prev_start) == (date(2024, 2, 29) - date(2024, 2, 1))


def test_trend_excludes_zero_revenue_months():
    """Six months where four had no revenue: only the two active months are averaged."""
    revenues = [
        _revenue(date(2024, 1, 15), 24685),
        _revenue(date(2024, 2, 10), 4000),
        _revenue(date(2024, 2, 20), 650),
    ]
    expenses = [
        _expense(date(2024, 1, 20), 20000),
        _expense(date(2024, 2, 5), 2000),
        _expense(date(2024, 4, 1), 800),  # spent in a non-operating month
        _expense(date(2024, 3, 1), 999, status=ExpenseStatus.PENDING),
    ]

    points = build_monthly_trend(revenues, expenses, date(2024, 1, 1), date(2024, 6, 30))
    summary = summarize_trend(points)

    assert [p.month for p in points] == ["2024-01", "2024-02", "2024-03", "2024-04", "2024-05", "2024-06"]
    assert points[1].revenue == Decimal("4650")
    assert points[2].expenses == 0
    assert summary.active_count == 2
    assert summary.avg_revenue == Decimal("14667.5")
    assert summary.avg_expenses == Decimal("11000")
    assert summary.avg_profit == Decimal("3667.5")


def test_trend_with_no_active_months():
    points = build_monthly_trend([], [_expense(date(2024, 1, 5), 100)], date(2024, 1, 1), date(2024, 3, 31))
    summary = summarize_trend(points)

    assert len(summary.months) == 3
    assert summary.active_months == []
    assert summary.avg_revenue is None


def test_trend_filters_branch():
    revenues = [_revenue(date(2024, 1, 5), 100, branch_id=1), _revenue(date(2024, 1, 5), 900, branch_id=2)]

    points = build_monthly_trend(revenues, [], date(2024, 1, 1), date(2024, 1, 31), branch_id=2)

    assert points[0].revenue == Decimal("900")


def test_kpi_snapshot(config):
    revenues = [_revenue(date(2024, 1, d), 2500) for d in range(1, 21)]
    expenses = [
        _expense(date(2024, 1, 3), 1000),
        _expense(date(2024, 1, 4), 5000, category="salaries"),
        _expense(date(2024, 1, 5), 700, status=ExpenseStatus.PENDING),
    ]

    kpi = build_kpi_snapshot(revenues, expenses, config, branch_id=1, invoice_count=100, customer_count=40)

    assert kpi.total_revenue == Decimal("50000")
    assert kpi.net_profit == Decimal("17900")
    assert kpi.gross_profit_margin == Decimal("70")
    assert kpi.net_profit_margin == Decimal("35.8")
    assert kpi.roi == pytest.approx(Decimal("17900") / Decimal("32100") * 100)
    assert kpi.average_order_value == Decimal("500")
    assert kpi.customer_count == 40
    assert kpi.current_ratio is None


def test_kpi_snapshot_edge_cases(config):
    kpi = build_kpi_snapshot([], [], config, current_assets=2000, current_liabilities=1000)

    assert kpi.total_revenue == 0
    assert kpi.gross_profit_margin == 0
    assert kpi.average_order_value == 0
    assert kpi.current_ratio == Decimal("2")


def test_abc_tiers():
    result = classify_abc({"coffee": 500, "tea": 300, "cake": 100, "juice": 60, "water": 40})

    assert [e.name for e in result.entries] == ["coffee", "tea", "cake", "juice", "water"]
    assert result.tier_of("coffee") == AbcTier.A
    assert result.tier_of("tea") == AbcTier.A  # exactly 80%
    assert result.tier_of("cake") == AbcTier.B
    assert result.tier_of("juice") == AbcTier.C
    assert result.summary[AbcTier.A].count == 2
    assert result.summary[AbcTier.A].percentage == Decimal("80")


def test_abc_boundary_at_95_goes_to_b():
    result = classify_abc([("a", 800), ("b", 150), ("c", 50)])

    assert [e.tier for e in result.entries] == [AbcTier.A, AbcTier.B, AbcTier.C]


def test_abc_ties_keep_input_order():
    result = classify_abc([("first", 100), ("second", 100)])

    assert [e.name for e in result.entries] == ["first", "second"]


def test_abc_without_revenue():
    result = classify_abc({"a": 0, "b": 0})

    assert all(e.tier == AbcTier.C for e in result.entries)
    assert result.summary[AbcTier.C].count == 2


def test_abc_is_idempotent_on_its_own_output():
    """Re-ranking the ranked output yields the same order, tiers and boundaries."""
    first = classify_abc({"tea": 300, "juice": 60, "coffee": 500, "water": 40, "cake": 100, "mint": 100})

    second = classify_abc([(e.name, e.revenue) for e in first.entries])

    assert [e.name for e in second.entries] == [e.name for e in first.entries]
    assert [e.tier for e in second.entries] == [e.tier for e in first.entries]
    assert [e.cumulative_share for e in second.entries] == [e.cumulative_share for e in first.entries]
    assert second.summary == first.summary


def test_months_in_period():
    assert months_in_period(date(2024, 2, 1), date(2024, 2, 29)) == 1
    assert months_in_period(date(2024, 1, 1), date(2024, 3, 31)) == 3
    assert months_in_period(date(2024, 3, 4), date(2024, 3, 10)) == Decimal(7) / Decimal(30)
    assert months_in_period(date(2024, 1, 15), date(2024, 2, 14)) == pytest.approx(Decimal(31) / Decimal(30))


def test_describe_values():
    stats = describe_values([2, 4, 4, 4, 5, 5, 7, 9])

    assert stats.count == 8
    assert stats.mean == pytest.approx(5)
    assert stats.median == pytest.approx(4.5)
    assert stats.std_dev == pytest.approx(2)
    assert stats.coefficient_of_variation == pytest.approx(40)
    assert stats.skewness == pytest.approx(0.65625)
    assert stats.range == pytest.approx(7)
    assert (stats.q1, stats.q2, stats.q3) == pytest.approx((4, 4.5, 5.5))


def test_describe_values_empty_and_flat():
    assert describe_values([]).count == 0
    flat = describe_values([1000] * 5)
    assert flat.std_dev == 0
    assert flat.skewness == 0


def test_expense_breakdown(config):
    expenses = [
        _expense(date(2024, 1, 3), 300),
        _expense(date(2024, 1, 4), 100, category="cleaning"),
        _expense(date(2024, 1, 5), 200),
        _expense(date(2024, 1, 6), 5000, category="salaries"),
        _expense(date(2024, 1, 7), 700, category="repairs", status=ExpenseStatus.PENDING),
    ]

    breakdown = expense_breakdown(expenses, config)

    assert breakdown.total == Decimal("600")
    assert [c.category for c in breakdown.categories] == ["supplies", "cleaning"]
    assert breakdown.categories[0].amount == Decimal("500")
    assert float(breakdown.categories[0].percentage) == pytest.approx(83.333, abs=0.001)
    assert expense_breakdown([], config).categories == []


def test_compare_branches(config):
    """Months without revenue carry no fixed costs; growth compares active months."""
    revenues = (
        [_revenue(date(2024, 1, d), 1000) for d in range(1, 32)]
        + [_revenue(date(2024, 3, d), 1500) for d in range(1, 32)]
        + [_revenue(date(2024, 1, d), 600, branch_id=2) for d in range(1, 32)]
        + [_revenue(date(2024, 2, d), 600, branch_id=2) for d in range(1, 30)]
        + [_revenue(date(2024, 3, d), 600, branch_id=2) for d in range(1, 32)]
    )
    expenses = [ExpenseRecord(category="supplies", amount=Decimal("400"), date=date(2024, 1, 10), branch_id=1)]

    report = compare_branches(revenues, expenses, config, date(2024, 1, 1), date(2024, 3, 31))

    first, second = report.branches
    assert [m.month for m in first.months] == ["2024-01", "2024-03"]
    assert first.months[0].expenses == Decimal("16500")
    assert first.months[1].growth_rate == Decimal("50.00")
    assert first.total_profit == Decimal("44900")
    assert first.avg_monthly_revenue == Decimal("38750")
    assert (first.best_month, first.worst_month) == ("2024-03", "2024-01")
    assert first.consistency_score == 80

    assert len(second.months) == 3
    assert second.total_profit == Decimal("6300")
    assert second.worst_month == "2024-02"

    assert (report.best_branch, report.worst_branch) == (1, 2)
    assert report.total_revenue == Decimal("132100")


def test_compare_branches_without_revenue(config):
    report = compare_branches([], [], config, date(2024, 1, 1), date(2024, 3, 31), branch_ids=[1])

    assert report.branches[0].months == []
    assert report.branches[0].best_month is None
    assert report.branches[0].consistency_score == 0
