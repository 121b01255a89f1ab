"""
Period KPIs, trend aggregation, descriptive statistics and ABC classification.

Only approved expenses are aggregated. Months with zero revenue are treated as
non-operating and excluded from trend averages and branch comparisons.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from fin_engine.analytics.cost_model import HUNDRED, ZERO, CostConfiguration, to_decimal
from fin_engine.analytics.models import (
    AbcEntry,
    AbcResult,
    AbcTier,
    AbcTierSummary,
    BranchComparison,
    BranchMonth,
    CategoryShare,
    ChangeKpi,
    ExpenseBreakdown,
    ExpenseRecord,
    KpiSnapshot,
    MonthlyComparison,
    MonthlyPoint,
    RevenueRecord,
    StatisticalMetrics,
    Trend,
    TrendSummary,
)
from fin_engine.analytics.profit import calculate_profit, round_half_up

logger = logging.getLogger(__name__)

TIER_A_LIMIT = Decimal("80")
TIER_B_LIMIT = Decimal("95")


# =============================================================================
# PERIOD HELPERS
# =============================================================================

def calculate_change(current: Any, previous: Any) -> ChangeKpi:
    """
    Compare two consecutive periods.

    percent = (current - previous) / previous * 100, or 0 when previous is 0.
    """
    current = to_decimal(current, "current")
    previous = to_decimal(previous, "previous")
    change = current - previous
    percent = change / previous * HUNDRED if previous != 0 else ZERO

    if change > 0:
        trend = Trend.UP
    elif change < 0:
        trend = Trend.DOWN
    else:
        trend = Trend.STABLE

    return ChangeKpi(
        value=current,
        previous_value=previous,
        change=change,
        change_percent=round_half_up(percent, 2),
        trend=trend,
    )


def previous_period(start: date, end: date) -> Tuple[date, date]:
    """The period of equal length ending the day before `start`."""
    length = end - start
    prev_end = start - timedelta(days=1)
    return prev_end - length, prev_end


def months_in_period(start: date, end: date, days_per_month: int = 30) -> Decimal:
    """
    Length of a period in months, for prorating monthly fixed costs.

    A calendar month covered in full counts as one month. Days of a partially
    covered month count 1/days_per_month each, so a 7-day period is 7/30.
    """
    total = ZERO
    for month in pd.period_range(start=start, end=end, freq="M"):
        first = max(start, month.start_time.date())
        last = min(end, month.end_time.date())
        covered = (last - first).days + 1
        if covered == month.days_in_month:
            total += 1
        else:
            total += Decimal(covered) / Decimal(days_per_month)
    return total


def filter_revenues(
    records: Iterable[RevenueRecord],
    start: date,
    end: date,
    branch_id: Optional[int] = None,
) -> List[RevenueRecord]:
    return [
        r for r in records
        if start <= r.date <= end and (branch_id is None or r.branch_id == branch_id)
    ]


def approved_expenses(
    records: Iterable[ExpenseRecord],
    start: date,
    end: date,
    branch_id: Optional[int] = None,
) -> List[ExpenseRecord]:
    """Approved expenses in range; expenses without a branch apply to every branch."""
    return [
        e for e in records
        if e.is_approved
        and start <= e.date <= end
        and (branch_id is None or e.branch_id is None or e.branch_id == branch_id)
    ]


def sum_amounts(records: Iterable[Union[RevenueRecord, ExpenseRecord]]) -> Decimal:
    return sum((r.amount for r in records), ZERO)


def other_expenses(expenses: Iterable[ExpenseRecord], config: CostConfiguration) -> List[ExpenseRecord]:
    """Approved expenses not already covered by a fixed-cost line item."""
    fixed_categories = {item.name for item in config.line_items}
    return [e for e in expenses if e.is_approved and e.category not in fixed_categories]


# =============================================================================
# KPI SNAPSHOT
# =============================================================================

def build_kpi_snapshot(
    revenues: Iterable[RevenueRecord],
    expenses: Iterable[ExpenseRecord],
    config: CostConfiguration,
    branch_id: Optional[int] = None,
    fixed_costs: Optional[Any] = None,
    invoice_count: int = 0,
    customer_count: int = 0,
    invested_capital: Optional[Any] = None,
    current_assets: Optional[Any] = None,
    current_liabilities: Optional[Any] = None,
) -> KpiSnapshot:
    """
    Compute period KPIs from already-scoped records.

    Fixed costs default to one month of the branch's (or all branches') fixed
    costs. ROI uses invested capital when given, otherwise total costs.
    """
    revenue = sum_amounts(revenues)
    other = sum_amounts(other_expenses(expenses, config))
    fixed = config.fixed_costs_for(branch_id) if fixed_costs is None else to_decimal(fixed_costs, "fixed costs")

    profit = calculate_profit(revenue, config.variable_cost_rate, fixed, other)

    gross_profit = revenue - profit.variable_costs
    gross_margin = gross_profit / revenue * HUNDRED if revenue > 0 else ZERO

    investment = profit.total_costs if invested_capital is None else to_decimal(invested_capital, "invested capital")
    roi = profit.net_profit / investment * HUNDRED if investment > 0 else ZERO

    current_ratio = None
    if current_assets is not None and current_liabilities is not None:
        liabilities = to_decimal(current_liabilities, "current liabilities")
        if liabilities > 0:
            current_ratio = to_decimal(current_assets, "current assets") / liabilities

    average_order_value = revenue / Decimal(invoice_count) if invoice_count > 0 else ZERO

    return KpiSnapshot(
        total_revenue=revenue,
        net_profit=profit.net_profit,
        gross_profit_margin=gross_margin,
        net_profit_margin=profit.profit_margin,
        roi=roi,
        current_ratio=current_ratio,
        invoice_count=invoice_count,
        average_order_value=average_order_value,
        customer_count=customer_count,
    )


# =============================================================================
# TRENDS
# =============================================================================

def _monthly_totals(rows: List[dict], months: pd.PeriodIndex) -> Dict[pd.Period, Decimal]:
    if not rows:
        return {month: ZERO for month in months}
    df = pd.DataFrame(rows)
    df["month"] = pd.to_datetime(df["date"]).dt.to_period("M")
    totals = df.groupby("month")["amount"].agg(lambda s: sum(s, ZERO))
    return {
        month: to_decimal(totals[month], "monthly total") if month in totals.index else ZERO
        for month in months
    }


def build_monthly_trend(
    revenues: Iterable[RevenueRecord],
    expenses: Iterable[ExpenseRecord],
    start: date,
    end: date,
    branch_id: Optional[int] = None,
) -> List[MonthlyPoint]:
    """Month-by-month revenue, approved expenses and profit, one point per calendar month."""
    months = pd.period_range(start=start, end=end, freq="M")
    revenue_rows = [{"date": r.date, "amount": r.amount} for r in filter_revenues(revenues, start, end, branch_id)]
    expense_rows = [{"date": e.date, "amount": e.amount} for e in approved_expenses(expenses, start, end, branch_id)]

    revenue_by_month = _monthly_totals(revenue_rows, months)
    expenses_by_month = _monthly_totals(expense_rows, months)

    points = []
    for month in months:
        revenue = revenue_by_month[month]
        spent = expenses_by_month[month]
        points.append(MonthlyPoint(
            month=str(month),
            revenue=revenue,
            expenses=spent,
            profit=revenue - spent,
        ))
    return points


def summarize_trend(points: Iterable[MonthlyPoint]) -> TrendSummary:
    """
    Average only over active months (non-zero revenue).

    When no month is active the summary has an empty active set and no averages.
    """
    points = list(points)
    active = [p for p in points if p.active]
    excluded = len(points) - len(active)
    if excluded:
        logger.info("Excluding %d non-operating month(s) from trend averages", excluded)

    if not active:
        return TrendSummary(months=points, active_months=[])

    count = Decimal(len(active))
    return TrendSummary(
        months=points,
        active_months=active,
        avg_revenue=sum((p.revenue for p in active), ZERO) / count,
        avg_expenses=sum((p.expenses for p in active), ZERO) / count,
        avg_profit=sum((p.profit for p in active), ZERO) / count,
    )


# =============================================================================
# DESCRIPTIVE STATISTICS / EXPENSE BREAKDOWN
# =============================================================================

def describe_values(values: Iterable[Any]) -> StatisticalMetrics:
    """
    Mean, median, spread, skewness and quartiles of a series.

    An empty series yields all zeros. Skewness needs at least three points
    and a non-zero spread.
    """
    series = np.array([float(to_decimal(v, "value")) for v in values], dtype=float)
    if len(series) == 0:
        return StatisticalMetrics()

    mean = float(series.mean())
    variance = float(series.var())
    std = float(np.sqrt(variance))
    skewness = float(np.mean(((series - mean) / std) ** 3)) if len(series) > 2 and std > 0 else 0.0
    q1, q2, q3 = (float(q) for q in np.percentile(series, [25, 50, 75]))
    low, high = float(series.min()), float(series.max())

    return StatisticalMetrics(
        count=len(series),
        mean=mean,
        median=float(np.median(series)),
        std_dev=std,
        variance=variance,
        coefficient_of_variation=std / mean * 100 if mean != 0 else 0.0,
        skewness=skewness,
        min=low,
        max=high,
        range=high - low,
        q1=q1,
        q2=q2,
        q3=q3,
    )


def expense_breakdown(expenses: Iterable[ExpenseRecord], config: CostConfiguration) -> ExpenseBreakdown:
    """Other expenses grouped by category, largest first, with shares of the total."""
    rows = [{"category": e.category, "amount": e.amount} for e in other_expenses(expenses, config)]
    if not rows:
        return ExpenseBreakdown(total=ZERO, categories=[])

    df = pd.DataFrame(rows)
    totals = df.groupby("category", sort=False)["amount"].agg(lambda s: sum(s, ZERO))
    by_category = sorted(
        ((str(name), to_decimal(amount, f"expenses of {name}")) for name, amount in totals.items()),
        key=lambda item: item[1],
        reverse=True,
    )
    total = sum((amount for _, amount in by_category), ZERO)
    return ExpenseBreakdown(
        total=total,
        categories=[
            CategoryShare(
                category=name,
                amount=amount,
                percentage=amount / total * HUNDRED if total > 0 else ZERO,
            )
            for name, amount in by_category
        ],
    )


# =============================================================================
# BRANCH COMPARISON
# =============================================================================

def _compare_branch(
    branch_id: int,
    revenues: List[RevenueRecord],
    expenses: List[ExpenseRecord],
    config: CostConfiguration,
    start: date,
    end: date,
) -> BranchComparison:
    # Fixed costs are charged only for months the branch actually traded.
    points = build_monthly_trend(revenues, other_expenses(expenses, config), start, end, branch_id)
    fixed = config.fixed_costs_for(branch_id)

    months = []
    previous_revenue = ZERO
    for point in points:
        if not point.active:
            continue
        spent = fixed + point.expenses
        profit = point.revenue - spent
        months.append(BranchMonth(
            month=point.month,
            revenue=point.revenue,
            expenses=spent,
            profit=profit,
            profit_margin=profit / point.revenue * HUNDRED if point.revenue > 0 else ZERO,
            growth_rate=calculate_change(point.revenue, previous_revenue).change_percent,
        ))
        previous_revenue = point.revenue

    total_revenue = sum((m.revenue for m in months), ZERO)
    stats = describe_values([m.revenue for m in months])
    consistency = max(0.0, 100 - stats.coefficient_of_variation) if stats.mean > 0 else 0.0

    return BranchComparison(
        branch_id=branch_id,
        months=months,
        total_revenue=total_revenue,
        total_expenses=sum((m.expenses for m in months), ZERO),
        total_profit=sum((m.profit for m in months), ZERO),
        avg_monthly_revenue=total_revenue / Decimal(len(months)) if months else ZERO,
        best_month=max(months, key=lambda m: m.profit).month if months else None,
        worst_month=min(months, key=lambda m: m.profit).month if months else None,
        consistency_score=round(consistency),
    )


def compare_branches(
    revenues: Iterable[RevenueRecord],
    expenses: Iterable[ExpenseRecord],
    config: CostConfiguration,
    start: date,
    end: date,
    branch_ids: Optional[Sequence[int]] = None,
) -> MonthlyComparison:
    """
    Month-by-month comparison of branches over their active months.

    Branches default to every branch with revenue in the records. Best and
    worst branch are ranked by total profit.
    """
    revenues = list(revenues)
    expenses = list(expenses)
    if branch_ids is None:
        branch_ids = sorted({r.branch_id for r in revenues})

    branches = [_compare_branch(b, revenues, expenses, config, start, end) for b in branch_ids]
    logger.info("Compared %d branch(es) over %s..%s", len(branches), start, end)

    return MonthlyComparison(
        branches=branches,
        total_revenue=sum((b.total_revenue for b in branches), ZERO),
        total_profit=sum((b.total_profit for b in branches), ZERO),
        best_branch=max(branches, key=lambda b: b.total_profit).branch_id if branches else None,
        worst_branch=min(branches, key=lambda b: b.total_profit).branch_id if branches else None,
    )


# =============================================================================
# ABC CLASSIFICATION
# =============================================================================

def _tier_for(cumulative_share: Decimal) -> AbcTier:
    if cumulative_share <= TIER_A_LIMIT:
        return AbcTier.A
    if cumulative_share <= TIER_B_LIMIT:
        return AbcTier.B
    return AbcTier.C


def classify_abc(revenue_by_entity: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]) -> AbcResult:
    """
    Rank products/services into A/B/C tiers by cumulative revenue share.

    Entities are sorted by revenue, highest first (ties keep input order). An
    entity is A while the running share is <= 80%, B while <= 95%, C after.
    With no positive total every entity is C.
    """
    items = revenue_by_entity.items() if isinstance(revenue_by_entity, Mapping) else revenue_by_entity
    ranked = sorted(
        ((str(name), to_decimal(value, f"revenue of {name}")) for name, value in items),
        key=lambda item: item[1],
        reverse=True,
    )
    total = sum((value for _, value in ranked), ZERO)

    entries = []
    cumulative = ZERO
    for name, value in ranked:
        cumulative += value
        if total > 0:
            share = value / total * HUNDRED
            cumulative_share = cumulative / total * HUNDRED
            tier = _tier_for(cumulative_share)
        else:
            share = cumulative_share = ZERO
            tier = AbcTier.C
        entries.append(AbcEntry(
            name=name,
            revenue=value,
            share=share,
            cumulative_share=cumulative_share,
            tier=tier,
        ))

    summary = {}
    for tier in AbcTier:
        members = [e for e in entries if e.tier == tier]
        value = sum((e.revenue for e in members), ZERO)
        summary[tier] = AbcTierSummary(
            count=len(members),
            value=value,
            percentage=value / total * HUNDRED if total > 0 else ZERO,
        )

    return AbcResult(entries=entries, summary=summary)
