"""
Cost model: fixed-cost line items and their allocation across branches.

All amounts are Decimal. Floats are converted through their string form so
16100.0 stays 16100 and never 16099.999...
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional, Tuple

from fin_engine.core.config import settings
from fin_engine.core.exceptions import InvalidConfiguration

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert a numeric input to Decimal, failing fast on anything else."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InvalidConfiguration(f"{name} must be numeric", {"field": name, "value": repr(value)})
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidConfiguration(f"{name} must be numeric", {"field": name, "value": repr(value)})
    else:
        raise InvalidConfiguration(f"{name} must be numeric", {"field": name, "value": repr(value)})

    if result.is_nan():
        raise InvalidConfiguration(f"{name} must not be NaN", {"field": name})
    return result


@dataclass(frozen=True)
class FixedCostLineItem:
    """A recurring monthly cost independent of revenue volume."""
    name: str
    monthly_amount: Decimal

    def __post_init__(self):
        amount = to_decimal(self.monthly_amount, f"fixed cost '{self.name}'")
        if amount < 0:
            raise InvalidConfiguration(
                f"Fixed cost '{self.name}' must not be negative",
                {"field": self.name, "value": str(amount)},
            )
        object.__setattr__(self, "monthly_amount", amount)


# Combined monthly fixed costs for all branches.
DEFAULT_LINE_ITEMS: Tuple[FixedCostLineItem, ...] = (
    FixedCostLineItem("salaries", Decimal("21000")),
    FixedCostLineItem("shop_rent", Decimal("6600")),
    FixedCostLineItem("housing_rent", Decimal("3200")),
    FixedCostLineItem("electricity", Decimal("800")),
    FixedCostLineItem("internet", Decimal("600")),
)


def total_fixed_costs(line_items: Iterable[FixedCostLineItem]) -> Decimal:
    """Sum all fixed-cost line items."""
    return sum((item.monthly_amount for item in line_items), ZERO)


def per_branch_fixed_cost(total: Any, branch_count: int) -> Decimal:
    """Split total fixed costs evenly across branches."""
    if isinstance(branch_count, bool) or not isinstance(branch_count, int):
        raise InvalidConfiguration("Branch count must be an integer", {"branch_count": repr(branch_count)})
    if branch_count <= 0:
        raise InvalidConfiguration("Branch count must be positive", {"branch_count": branch_count})
    total = to_decimal(total, "total fixed costs")
    if total < 0:
        raise InvalidConfiguration("Total fixed costs must not be negative", {"total": str(total)})
    return total / Decimal(branch_count)


def clamp_variable_cost_rate(rate: Any) -> Decimal:
    """Bound a user-supplied variable-cost rate to the configured range."""
    rate = to_decimal(rate, "variable cost rate")
    low = to_decimal(settings.VARIABLE_COST_RATE_MIN, "VARIABLE_COST_RATE_MIN")
    high = to_decimal(settings.VARIABLE_COST_RATE_MAX, "VARIABLE_COST_RATE_MAX")
    clamped = max(low, min(high, rate))
    if clamped != rate:
        logger.info("Variable cost rate %s clamped to %s", rate, clamped)
    return clamped


@dataclass(frozen=True)
class CostConfiguration:
    """
    Explicit cost inputs passed into every calculation.

    Line items hold combined amounts for all branches; per-branch figures are
    derived by equal split.
    """
    line_items: Tuple[FixedCostLineItem, ...] = DEFAULT_LINE_ITEMS
    branch_count: int = 2
    variable_cost_rate: Decimal = Decimal("30")
    days_per_month: int = 30

    def __post_init__(self):
        object.__setattr__(self, "line_items", tuple(self.line_items))
        object.__setattr__(
            self, "variable_cost_rate", to_decimal(self.variable_cost_rate, "variable cost rate")
        )
        if self.variable_cost_rate < 0:
            raise InvalidConfiguration(
                "Variable cost rate must not be negative",
                {"variable_cost_rate": str(self.variable_cost_rate)},
            )
        if self.days_per_month <= 0:
            raise InvalidConfiguration("Days per month must be positive", {"days_per_month": self.days_per_month})
        # Validates branch_count eagerly.
        per_branch_fixed_cost(self.total_fixed_costs, self.branch_count)

    @classmethod
    def default(cls) -> "CostConfiguration":
        return cls(
            line_items=DEFAULT_LINE_ITEMS,
            branch_count=settings.BRANCH_COUNT,
            variable_cost_rate=to_decimal(settings.DEFAULT_VARIABLE_COST_RATE, "DEFAULT_VARIABLE_COST_RATE"),
            days_per_month=settings.DAYS_PER_MONTH,
        )

    @property
    def total_fixed_costs(self) -> Decimal:
        return total_fixed_costs(self.line_items)

    @property
    def per_branch_fixed_costs(self) -> Decimal:
        return per_branch_fixed_cost(self.total_fixed_costs, self.branch_count)

    def fixed_costs_for(self, branch_id: Optional[int] = None) -> Decimal:
        """Per-branch share for a single branch, combined total otherwise."""
        if branch_id is None:
            return self.total_fixed_costs
        return self.per_branch_fixed_costs

    def branch_breakdown(self, branch_id: Optional[int] = None) -> Dict[str, Decimal]:
        """Line items as they apply to one branch (or to all branches)."""
        divisor = Decimal(1) if branch_id is None else Decimal(self.branch_count)
        return {item.name: item.monthly_amount / divisor for item in self.line_items}

    def with_variable_cost_rate(self, rate: Any) -> "CostConfiguration":
        return CostConfiguration(
            line_items=self.line_items,
            branch_count=self.branch_count,
            variable_cost_rate=clamp_variable_cost_rate(rate),
            days_per_month=self.days_per_month,
        )
