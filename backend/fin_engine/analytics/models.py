"""
Value objects for the analytics engine.

Money is carried as Decimal end to end. Results are frozen: once a calculator
returns one it is never mutated, and serializing it for the narrative payload
(model_dump(mode="json")) and validating it back yields identical numbers.
"""
from datetime import date as Date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Thresholds may legitimately be Infinity (unreachable break-even).
Amount = Annotated[Decimal, Field(allow_inf_nan=True)]


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# RAW RECORDS
# =============================================================================

class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RevenueRecord(FrozenModel):
    """Daily revenue total for one branch."""
    branch_id: int
    date: Date
    amount: Decimal


class ExpenseRecord(FrozenModel):
    """Recorded expense. Only approved expenses count toward costs."""
    category: str
    amount: Decimal
    date: Date
    status: ExpenseStatus = ExpenseStatus.APPROVED
    branch_id: Optional[int] = None

    @property
    def is_approved(self) -> bool:
        return self.status == ExpenseStatus.APPROVED


class InvoiceLine(FrozenModel):
    product: str
    amount: Decimal


class InvoiceRecord(FrozenModel):
    """A sales invoice; lines carry per-product revenue for ABC tiering."""
    branch_id: int
    date: Date
    total: Decimal
    customer_id: Optional[str] = None
    lines: List[InvoiceLine] = Field(default_factory=list)


class InvoiceStats(FrozenModel):
    invoice_count: int = 0
    customer_count: int = 0


# =============================================================================
# PROFIT / BREAK-EVEN
# =============================================================================

class ProfitStatus(str, Enum):
    PROFIT = "profit"
    LOSS = "loss"


class ProfitResult(FrozenModel):
    revenue: Decimal
    variable_costs: Decimal
    fixed_costs: Decimal
    other_expenses: Decimal
    total_costs: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    status: ProfitStatus


class BreakEvenResult(FrozenModel):
    daily_threshold: Amount
    monthly_threshold: Amount
    warning_message: Optional[str] = None

    @property
    def reachable(self) -> bool:
        return self.warning_message is None


# =============================================================================
# ALERTS
# =============================================================================

class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AlertLevel(str, Enum):
    """Display level used by dashboards (red / orange / green)."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class Alert(FrozenModel):
    type: str
    level: AlertLevel
    severity: Severity
    message: str
    expected_value: Optional[Amount] = None
    actual_value: Optional[Amount] = None
    mitigation_steps: List[str] = Field(default_factory=list)


# =============================================================================
# KPIs / TRENDS / ABC
# =============================================================================

class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class ChangeKpi(FrozenModel):
    value: Decimal
    previous_value: Decimal
    change: Decimal
    change_percent: Decimal
    trend: Trend


class KpiSnapshot(FrozenModel):
    total_revenue: Decimal
    net_profit: Decimal
    gross_profit_margin: Decimal
    net_profit_margin: Decimal
    roi: Decimal
    current_ratio: Optional[Decimal] = None  # None when there are no current liabilities
    invoice_count: int
    average_order_value: Decimal
    customer_count: int


class MonthlyPoint(FrozenModel):
    month: str  # YYYY-MM
    revenue: Decimal
    expenses: Decimal
    profit: Decimal

    @property
    def active(self) -> bool:
        return self.revenue != 0


class TrendSummary(FrozenModel):
    months: List[MonthlyPoint]
    active_months: List[MonthlyPoint]
    avg_revenue: Optional[Decimal] = None
    avg_expenses: Optional[Decimal] = None
    avg_profit: Optional[Decimal] = None

    @property
    def active_count(self) -> int:
        return len(self.active_months)


class StatisticalMetrics(FrozenModel):
    """Descriptive statistics of a value series (population variance)."""
    count: int = 0
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    variance: float = 0.0
    coefficient_of_variation: float = 0.0  # percent
    skewness: float = 0.0
    min: float = 0.0
    max: float = 0.0
    range: float = 0.0
    q1: float = 0.0
    q2: float = 0.0
    q3: float = 0.0


class CategoryShare(FrozenModel):
    category: str
    amount: Decimal
    percentage: Decimal


class ExpenseBreakdown(FrozenModel):
    total: Decimal
    categories: List[CategoryShare]


class BranchMonth(FrozenModel):
    month: str  # YYYY-MM
    revenue: Decimal
    expenses: Decimal  # fixed costs plus other expenses
    profit: Decimal
    profit_margin: Decimal
    growth_rate: Decimal  # vs the branch's previous active month


class BranchComparison(FrozenModel):
    branch_id: int
    months: List[BranchMonth]
    total_revenue: Decimal
    total_expenses: Decimal
    total_profit: Decimal
    avg_monthly_revenue: Decimal
    best_month: Optional[str] = None
    worst_month: Optional[str] = None
    consistency_score: int = 0


class MonthlyComparison(FrozenModel):
    branches: List[BranchComparison]
    total_revenue: Decimal
    total_profit: Decimal
    best_branch: Optional[int] = None
    worst_branch: Optional[int] = None


class AbcTier(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class AbcEntry(FrozenModel):
    name: str
    revenue: Decimal
    share: Decimal
    cumulative_share: Decimal
    tier: AbcTier


class AbcTierSummary(FrozenModel):
    count: int = 0
    value: Decimal = Decimal("0")
    percentage: Decimal = Decimal("0")


class AbcResult(FrozenModel):
    entries: List[AbcEntry]
    summary: Dict[AbcTier, AbcTierSummary]

    def tier_of(self, name: str) -> Optional[AbcTier]:
        for entry in self.entries:
            if entry.name == name:
                return entry.tier
        return None
