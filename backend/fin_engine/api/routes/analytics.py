"""Analytics routes: thin adapters over the calculators and the orchestrator."""
import copy
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from fin_engine.analytics.cost_model import CostConfiguration
from fin_engine.analytics.insights import InsightOrchestrator, InsightReport
from fin_engine.analytics.models import BreakEvenResult, MonthlyComparison, ProfitResult
from fin_engine.analytics.profit import calculate_break_even, calculate_profit
from fin_engine.analytics.projections import MonthForecast
from fin_engine.db.source import SqlRecordSource
from fin_engine.llm.narrative import LLMNarrativeGenerator

router = APIRouter()


def get_orchestrator() -> InsightOrchestrator:
    return InsightOrchestrator(
        SqlRecordSource(),
        config=CostConfiguration.default(),
        narrative=LLMNarrativeGenerator(),
    )


def _with_rate(orchestrator: InsightOrchestrator, rate: Optional[Decimal]) -> InsightOrchestrator:
    if rate is not None:
        orchestrator = copy.copy(orchestrator)
        orchestrator.config = orchestrator.config.with_variable_cost_rate(rate)
    return orchestrator


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/profit", response_model=ProfitResult)
def profit(
    revenue: Decimal,
    variable_cost_rate: Decimal,
    fixed_costs: Decimal,
    other_expenses: Decimal = Decimal("0"),
):
    """Profit/loss for explicit inputs."""
    return calculate_profit(revenue, variable_cost_rate, fixed_costs, other_expenses)


@router.get("/break-even", response_model=BreakEvenResult)
def break_even(
    fixed_costs: Decimal,
    variable_cost_rate: Decimal,
    other_expenses: Decimal = Decimal("0"),
):
    """Break-even thresholds; an unreachable break-even is a 200 with a warning."""
    return calculate_break_even(fixed_costs, variable_cost_rate, other_expenses)


@router.get("/report", response_model=InsightReport)
async def report(
    start: date,
    end: date,
    branch_id: Optional[int] = None,
    reference_date: Optional[date] = None,
    variable_cost_rate: Optional[Decimal] = Query(None, description="Clamped to the configured range"),
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    """Full insight report for a period, with narrative when available."""
    orchestrator = _with_rate(orchestrator, variable_cost_rate)
    return await orchestrator.build_report(start, end, branch_id, reference_date)


@router.get("/forecast", response_model=MonthForecast)
async def forecast(
    reference_date: date,
    branch_id: Optional[int] = None,
    variable_cost_rate: Optional[Decimal] = Query(None, description="Clamped to the configured range"),
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    """Forecast for the month containing reference_date."""
    orchestrator = _with_rate(orchestrator, variable_cost_rate)
    return await orchestrator.build_forecast(reference_date, branch_id)


@router.get("/comparison", response_model=MonthlyComparison)
async def comparison(
    start: date,
    end: date,
    branch_id: Optional[List[int]] = Query(None, description="Defaults to every branch with revenue"),
    variable_cost_rate: Optional[Decimal] = Query(None, description="Clamped to the configured range"),
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    """Month-by-month branch comparison over active months."""
    orchestrator = _with_rate(orchestrator, variable_cost_rate)
    return await orchestrator.build_comparison(start, end, branch_id)
