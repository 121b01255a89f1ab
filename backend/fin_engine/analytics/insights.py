"""
Insight orchestration: read records once, run the calculators, attach an
optional narrative.

The numeric payload never depends on the narrative. A failing or slow
narrative only marks the report's narrative as unavailable; a failing record
source fails the whole request.
"""
import asyncio
import dataclasses
import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from fin_engine.analytics.anomaly import AnomalyDetector, generate_alerts, rank_alerts
from fin_engine.analytics.cost_model import CostConfiguration
from fin_engine.analytics.kpi import (
    approved_expenses,
    build_kpi_snapshot,
    build_monthly_trend,
    calculate_change,
    classify_abc,
    compare_branches,
    describe_values,
    expense_breakdown,
    filter_revenues,
    months_in_period,
    other_expenses,
    previous_period,
    sum_amounts,
    summarize_trend,
)
from fin_engine.analytics.models import (
    AbcResult,
    Alert,
    Amount,
    BreakEvenResult,
    ChangeKpi,
    ExpenseBreakdown,
    FrozenModel,
    KpiSnapshot,
    MonthlyComparison,
    ProfitResult,
    StatisticalMetrics,
    TrendSummary,
)
from fin_engine.analytics.profit import calculate_break_even, calculate_profit
from fin_engine.analytics.projections import MonthForecast, forecast_month, previous_month_bounds
from fin_engine.analytics.sources import RecordSource
from fin_engine.core.config import settings
from fin_engine.core.exceptions import EngineError, InvalidConfiguration, UpstreamDataUnavailable
from fin_engine.llm.narrative import NarrativeGenerator

logger = logging.getLogger(__name__)


class NarrativeStatus(str, Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    DISABLED = "disabled"


class AnalyticsPayload(FrozenModel):
    """
    Everything the calculators produced for one request.

    break_even holds true monthly and daily thresholds; period_break_even is
    the monthly threshold prorated to the period, which is what period
    revenue is judged against.
    """
    branch_id: Optional[int] = None
    period_start: date
    period_end: date
    reference_date: date
    months_covered: Decimal
    fixed_costs_breakdown: Dict[str, Decimal]
    profit: ProfitResult
    break_even: BreakEvenResult
    period_break_even: Amount
    kpi: KpiSnapshot
    revenue_change: ChangeKpi
    profit_change: ChangeKpi
    trend: TrendSummary
    daily_revenue_stats: StatisticalMetrics
    expense_breakdown: ExpenseBreakdown
    abc: Optional[AbcResult] = None
    forecast: MonthForecast
    alerts: List[Alert]


class InsightReport(FrozenModel):
    payload: AnalyticsPayload
    narrative: Optional[str] = None
    narrative_status: NarrativeStatus


class InsightOrchestrator:
    """
    Thin coordinator over the calculators.

    Example:
        orchestrator = InsightOrchestrator(InMemoryRecordSource(revenues, expenses))
        report = await orchestrator.build_report(date(2024, 1, 1), date(2024, 1, 31))
    """

    def __init__(
        self,
        source: RecordSource,
        config: Optional[CostConfiguration] = None,
        narrative: Optional[NarrativeGenerator] = None,
        narrative_timeout: Optional[float] = None,
        detector: Optional[AnomalyDetector] = None,
        lookback_days: Optional[int] = None,
    ):
        self.source = source
        self.config = config or CostConfiguration.default()
        self.narrative = narrative
        self.narrative_timeout = (
            narrative_timeout if narrative_timeout is not None else settings.NARRATIVE_TIMEOUT_SECONDS
        )
        self.detector = detector or AnomalyDetector()
        self.lookback_days = lookback_days if lookback_days is not None else settings.FORECAST_LOOKBACK_DAYS

    async def _gather(self, start: date, end: date, branch_id: Optional[int], *extra):
        """Records for start..end plus any extra fetches, all in one gather."""
        try:
            return await asyncio.gather(
                self.source.fetch_revenues(start, end, branch_id),
                self.source.fetch_expenses(start, end, branch_id),
                self.source.fetch_fixed_costs(),
                *extra,
            )
        except EngineError:
            raise
        except Exception as e:
            logger.error("Record source failed for %s..%s branch=%s: %s", start, end, branch_id, e)
            raise UpstreamDataUnavailable("Record source failed", {"error": str(e)}) from e

    def _config_for(self, line_items) -> CostConfiguration:
        """Stored fixed-cost line items replace the configured ones when present."""
        if not line_items:
            return self.config
        return dataclasses.replace(self.config, line_items=tuple(line_items))

    async def build_payload(
        self,
        start: date,
        end: date,
        branch_id: Optional[int] = None,
        reference_date: Optional[date] = None,
        product_revenue: Optional[Mapping[str, Any]] = None,
    ) -> AnalyticsPayload:
        """
        Compute the numeric payload for start..end.

        Monthly fixed costs are prorated to the period (see months_in_period).
        Product sales from the source feed the ABC tiers unless
        product_revenue is given explicitly.
        """
        if end < start:
            raise InvalidConfiguration("Period end is before its start", {"start": str(start), "end": str(end)})
        reference_date = reference_date or end

        prev_start, prev_end = previous_period(start, end)
        fetch_start = min(
            prev_start,
            previous_month_bounds(reference_date)[0],
            reference_date - timedelta(days=self.lookback_days),
        )
        fetch_end = max(end, reference_date)

        revenues, expenses, line_items, invoice_stats, product_sales = await self._gather(
            fetch_start,
            fetch_end,
            branch_id,
            self.source.fetch_invoice_stats(start, end, branch_id),
            self.source.fetch_product_sales(start, end, branch_id),
        )

        config = self._config_for(line_items)
        monthly_fixed = config.fixed_costs_for(branch_id)

        months = months_in_period(start, end, config.days_per_month)
        fixed = monthly_fixed * months
        prev_fixed = monthly_fixed * months_in_period(prev_start, prev_end, config.days_per_month)

        period_revenues = filter_revenues(revenues, start, end, branch_id)
        period_expenses = approved_expenses(expenses, start, end, branch_id)
        revenue = sum_amounts(period_revenues)
        other = sum_amounts(other_expenses(period_expenses, config))

        profit = calculate_profit(revenue, config.variable_cost_rate, fixed, other)
        # Thresholds are per month; other expenses are scaled to a monthly rate.
        break_even = calculate_break_even(
            monthly_fixed, config.variable_cost_rate, other / months, config.days_per_month
        )

        prev_revenue = sum_amounts(filter_revenues(revenues, prev_start, prev_end, branch_id))
        prev_other = sum_amounts(other_expenses(approved_expenses(expenses, prev_start, prev_end, branch_id), config))
        prev_profit = calculate_profit(prev_revenue, config.variable_cost_rate, prev_fixed, prev_other)

        daily_totals = defaultdict(Decimal)
        for record in period_revenues:
            daily_totals[record.date] += record.amount
        daily_series = [daily_totals[d] for d in sorted(daily_totals)]
        outliers = self.detector.detect_outliers(daily_series, "revenue")

        forecast = forecast_month(revenues, expenses, config, reference_date, branch_id, self.lookback_days)

        sales = product_revenue if product_revenue is not None else product_sales
        kpi = build_kpi_snapshot(
            period_revenues,
            period_expenses,
            config,
            branch_id,
            fixed_costs=fixed,
            invoice_count=invoice_stats.invoice_count,
            customer_count=invoice_stats.customer_count,
        )

        return AnalyticsPayload(
            branch_id=branch_id,
            period_start=start,
            period_end=end,
            reference_date=reference_date,
            months_covered=months,
            fixed_costs_breakdown=config.branch_breakdown(branch_id),
            profit=profit,
            break_even=break_even,
            period_break_even=break_even.monthly_threshold * months,
            kpi=kpi,
            revenue_change=calculate_change(revenue, prev_revenue),
            profit_change=calculate_change(profit.net_profit, prev_profit.net_profit),
            trend=summarize_trend(build_monthly_trend(revenues, expenses, start, end, branch_id)),
            daily_revenue_stats=describe_values(daily_series),
            expense_breakdown=expense_breakdown(period_expenses, config),
            abc=classify_abc(sales) if sales else None,
            forecast=forecast,
            alerts=rank_alerts(generate_alerts(revenue, break_even, profit.net_profit, months=months) + outliers),
        )

    async def _summarize(self, payload: AnalyticsPayload):
        if self.narrative is None:
            return None, NarrativeStatus.DISABLED
        data = payload.model_dump(mode="json")
        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self.narrative.summarize, data),
                timeout=self.narrative_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Narrative timed out after %.1fs", self.narrative_timeout)
            return None, NarrativeStatus.UNAVAILABLE
        except Exception as e:
            logger.warning("Narrative generation failed: %s: %s", type(e).__name__, e)
            return None, NarrativeStatus.UNAVAILABLE
        if not text:
            return None, NarrativeStatus.UNAVAILABLE
        return text, NarrativeStatus.OK

    async def build_report(
        self,
        start: date,
        end: date,
        branch_id: Optional[int] = None,
        reference_date: Optional[date] = None,
        product_revenue: Optional[Mapping[str, Any]] = None,
    ) -> InsightReport:
        payload = await self.build_payload(start, end, branch_id, reference_date, product_revenue)
        narrative, status = await self._summarize(payload)
        logger.info(
            "Insight report %s..%s branch=%s: net_profit=%s alerts=%d narrative=%s",
            start, end, branch_id, payload.profit.net_profit, len(payload.alerts), status.value,
        )
        return InsightReport(payload=payload, narrative=narrative, narrative_status=status)

    async def build_forecast(
        self,
        reference_date: date,
        branch_id: Optional[int] = None,
    ) -> MonthForecast:
        """Current-month forecast alone, without the period payload."""
        fetch_start = min(
            previous_month_bounds(reference_date)[0],
            reference_date - timedelta(days=self.lookback_days),
        )
        revenues, expenses, line_items = await self._gather(fetch_start, reference_date, branch_id)
        config = self._config_for(line_items)
        return forecast_month(revenues, expenses, config, reference_date, branch_id, self.lookback_days)

    async def build_comparison(
        self,
        start: date,
        end: date,
        branch_ids: Optional[Sequence[int]] = None,
    ) -> MonthlyComparison:
        """Month-by-month comparison across branches for start..end."""
        if end < start:
            raise InvalidConfiguration("Period end is before its start", {"start": str(start), "end": str(end)})
        revenues, expenses, line_items = await self._gather(start, end, None)
        return compare_branches(revenues, expenses, self._config_for(line_items), start, end, branch_ids)
