"""
Branch Finance Engine

Analytics and forecasting for small multi-branch businesses:
- cost model and fixed-cost allocation across branches
- profit/loss and break-even calculators
- day-of-week seasonal forecasting and month projections
- KPI, trend and ABC aggregation
- break-even alerts and operational anomaly detection
- insight orchestration with an optional LLM narrative

The FastAPI application lives in fin_engine.main.
"""

from .analytics.cost_model import (
    CostConfiguration,
    FixedCostLineItem,
    DEFAULT_LINE_ITEMS,
    clamp_variable_cost_rate,
    per_branch_fixed_cost,
    total_fixed_costs,
)
from .analytics.profit import calculate_profit, calculate_break_even
from .analytics.forecasting import DayPattern, SeasonalForecaster, build_day_pattern, pattern_from_totals
from .analytics.kpi import (
    build_kpi_snapshot,
    build_monthly_trend,
    calculate_change,
    classify_abc,
    compare_branches,
    describe_values,
    expense_breakdown,
    months_in_period,
    summarize_trend,
)
from .analytics.anomaly import AnomalyDetector, Sensitivity, generate_alerts, rank_alerts
from .analytics.projections import analyze_last_month, forecast_month
from .analytics.insights import InsightOrchestrator, InsightReport, AnalyticsPayload, NarrativeStatus
from .analytics.sources import InMemoryRecordSource, RecordSource
from .analytics.models import (
    Alert,
    AlertLevel,
    BreakEvenResult,
    ExpenseRecord,
    ExpenseStatus,
    InvoiceLine,
    InvoiceRecord,
    InvoiceStats,
    MonthlyComparison,
    ProfitResult,
    RevenueRecord,
    Severity,
    StatisticalMetrics,
)
from .core.exceptions import EngineError, InvalidConfiguration, UpstreamDataUnavailable

__all__ = [
    # Cost model
    "CostConfiguration",
    "FixedCostLineItem",
    "DEFAULT_LINE_ITEMS",
    "clamp_variable_cost_rate",
    "per_branch_fixed_cost",
    "total_fixed_costs",
    # Calculators
    "calculate_profit",
    "calculate_break_even",
    # Forecasting
    "DayPattern",
    "SeasonalForecaster",
    "build_day_pattern",
    "pattern_from_totals",
    "analyze_last_month",
    "forecast_month",
    # KPIs
    "build_kpi_snapshot",
    "build_monthly_trend",
    "calculate_change",
    "classify_abc",
    "compare_branches",
    "describe_values",
    "expense_breakdown",
    "months_in_period",
    "summarize_trend",
    # Alerts
    "AnomalyDetector",
    "Sensitivity",
    "generate_alerts",
    "rank_alerts",
    # Orchestration
    "InsightOrchestrator",
    "InsightReport",
    "AnalyticsPayload",
    "NarrativeStatus",
    "InMemoryRecordSource",
    "RecordSource",
    # Models
    "Alert",
    "AlertLevel",
    "BreakEvenResult",
    "ExpenseRecord",
    "ExpenseStatus",
    "InvoiceLine",
    "InvoiceRecord",
    "InvoiceStats",
    "MonthlyComparison",
    "ProfitResult",
    "RevenueRecord",
    "Severity",
    "StatisticalMetrics",
    # Errors
    "EngineError",
    "InvalidConfiguration",
    "UpstreamDataUnavailable",
]
