"""
Anomaly detection and alert generation.

Financial alerts compare revenue with the break-even threshold and flag losses.
Operational checks (inventory counts, price changes, login failures, revenue
swings) share one expected-vs-actual model: severity is a function of the
relative deviation and a per-metric threshold table, so each deployment can
tune sensitivity without code changes.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

from fin_engine.analytics.cost_model import HUNDRED, ZERO, to_decimal
from fin_engine.analytics.models import Alert, AlertLevel, BreakEvenResult, Severity
from fin_engine.analytics.profit import round_half_up

logger = logging.getLogger(__name__)

INFINITY = Decimal("Infinity")


# =============================================================================
# BREAK-EVEN / PROFIT ALERTS
# =============================================================================

LOSS_STEPS = [
    "Review pricing of the lowest-margin services",
    "Cut or defer non-critical operating expenses",
    "Check for unrecorded revenue or duplicated expenses",
]
BELOW_BREAK_EVEN_STEPS = [
    "Run promotions on the slowest weekdays",
    "Review the variable cost rate with suppliers",
    "Track daily revenue against the daily break-even target",
]
UNREACHABLE_STEPS = [
    "Lower the variable cost rate below 100% of revenue",
    "Raise prices so each sale covers its variable cost",
]
ABOVE_BREAK_EVEN_STEPS = [
    "Keep monitoring daily revenue against the break-even target",
]


def _percent_gap(numerator: Decimal, threshold: Decimal) -> Optional[Decimal]:
    if threshold.is_infinite() or threshold <= 0:
        return None
    return round_half_up(numerator / threshold * HUNDRED, 1)


def generate_alerts(
    actual_revenue: Any,
    break_even: BreakEvenResult,
    net_profit: Any,
    is_daily: bool = False,
    months: Any = 1,
) -> List[Alert]:
    """
    Evaluate the profit and break-even rules independently.

    - net profit < 0: critical "loss"
    - net profit >= 0 and revenue below the threshold: warning
    - revenue at or above the threshold: info

    Args:
        actual_revenue: Revenue for the period being judged
        break_even: Break-even thresholds for the same cost inputs
        net_profit: Net profit for the period
        is_daily: Compare against the daily threshold instead of the monthly one
        months: Period length in months; the monthly threshold is scaled by it
    """
    revenue = to_decimal(actual_revenue, "actual revenue")
    profit = to_decimal(net_profit, "net profit")
    if is_daily:
        threshold = break_even.daily_threshold
    else:
        threshold = break_even.monthly_threshold * to_decimal(months, "months")
    alerts = []

    if profit < 0:
        alerts.append(Alert(
            type="loss",
            level=AlertLevel.CRITICAL,
            severity=Severity.CRITICAL,
            message=f"Operating at a loss of {abs(round_half_up(profit))}",
            expected_value=ZERO,
            actual_value=profit,
            mitigation_steps=list(LOSS_STEPS),
        ))

    if profit >= 0 and revenue < threshold:
        gap = _percent_gap(threshold - revenue, threshold)
        if not break_even.reachable:
            message = "Revenue below break-even: break-even is unreachable at the current variable cost rate"
            steps = list(UNREACHABLE_STEPS)
        else:
            message = f"Revenue below break-even by {gap}%"
            steps = list(BELOW_BREAK_EVEN_STEPS)
        alerts.append(Alert(
            type="below_break_even",
            level=AlertLevel.WARNING,
            severity=Severity.MEDIUM,
            message=message,
            expected_value=threshold,
            actual_value=revenue,
            mitigation_steps=steps,
        ))

    if revenue >= threshold:
        gap = _percent_gap(revenue - threshold, threshold)
        message = "Revenue above break-even" if gap is None else f"Revenue above break-even by {gap}%"
        alerts.append(Alert(
            type="above_break_even",
            level=AlertLevel.INFO,
            severity=Severity.LOW,
            message=message,
            expected_value=threshold,
            actual_value=revenue,
            mitigation_steps=list(ABOVE_BREAK_EVEN_STEPS),
        ))

    return alerts


def rank_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """Most severe first; equal severities keep their order."""
    return sorted(alerts, key=lambda a: a.severity.rank, reverse=True)


# =============================================================================
# OPERATIONAL ANOMALIES
# =============================================================================

@dataclass(frozen=True)
class DeviationThresholds:
    """Relative deviation (percent) above which each severity applies."""
    low: Decimal
    medium: Decimal
    high: Decimal
    critical: Decimal

    def severity_for(self, deviation_pct: Decimal) -> Optional[Severity]:
        if deviation_pct > self.critical:
            return Severity.CRITICAL
        if deviation_pct > self.high:
            return Severity.HIGH
        if deviation_pct > self.medium:
            return Severity.MEDIUM
        if deviation_pct > self.low:
            return Severity.LOW
        return None


def thresholds(low: Any, medium: Any, high: Any, critical: Any) -> DeviationThresholds:
    return DeviationThresholds(
        low=to_decimal(low, "low threshold"),
        medium=to_decimal(medium, "medium threshold"),
        high=to_decimal(high, "high threshold"),
        critical=to_decimal(critical, "critical threshold"),
    )


DEFAULT_THRESHOLDS: Dict[str, DeviationThresholds] = {
    "inventory_count": thresholds(2, 5, 10, 25),
    # Price changes above 20% go to review.
    "price_change": thresholds(10, 15, 20, 50),
    "login_failures": thresholds(0, 50, 100, 200),
    "revenue": thresholds(10, 20, 30, 50),
    "expense": thresholds(10, 20, 30, 50),
}

MITIGATIONS: Dict[str, List[str]] = {
    "inventory_count": [
        "Recount the affected items",
        "Compare recent stock movements with sales records",
        "Review who had access to the stock since the last count",
    ],
    "price_change": [
        "Confirm the price change with the branch supervisor",
        "Check the change against the approved price list",
    ],
    "login_failures": [
        "Lock the account until the owner confirms the attempts",
        "Force a password reset",
        "Review the source addresses of the failed attempts",
    ],
    "revenue": [
        "Verify the day's cash and network totals",
        "Check whether the branch was closed or short-staffed",
    ],
    "expense": [
        "Check the expense for duplicates",
        "Confirm the expense was approved",
    ],
}

_LEVELS = {
    Severity.LOW: AlertLevel.INFO,
    Severity.MEDIUM: AlertLevel.WARNING,
    Severity.HIGH: AlertLevel.WARNING,
    Severity.CRITICAL: AlertLevel.CRITICAL,
}


class Sensitivity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# (standard-deviation multiplier, percentage threshold)
SENSITIVITY_THRESHOLDS = {
    Sensitivity.LOW: (3.0, 50.0),
    Sensitivity.MEDIUM: (2.0, 30.0),
    Sensitivity.HIGH: (1.5, 15.0),
}


def deviation_percent(expected: Decimal, actual: Decimal) -> Decimal:
    """|actual - expected| / |expected| * 100; any change from zero is infinite."""
    if expected == 0:
        return ZERO if actual == 0 else INFINITY
    return abs(actual - expected) / abs(expected) * HUNDRED


class AnomalyDetector:
    """Expected-vs-actual checks with configurable severity thresholds."""

    def __init__(
        self,
        thresholds: Optional[Mapping[str, DeviationThresholds]] = None,
        sensitivity: Sensitivity = Sensitivity.MEDIUM,
        min_data_points: int = 10,
    ):
        self.thresholds = dict(DEFAULT_THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)
        self.sensitivity = sensitivity
        self.min_data_points = min_data_points

    def check_deviation(
        self,
        metric: str,
        expected: Any,
        actual: Any,
        subject: Optional[str] = None,
    ) -> Optional[Alert]:
        """Return an alert when actual deviates from expected beyond the metric's thresholds."""
        if metric not in self.thresholds:
            raise KeyError(f"No thresholds configured for metric '{metric}'")

        expected = to_decimal(expected, f"expected {metric}")
        actual = to_decimal(actual, f"actual {metric}")
        deviation = deviation_percent(expected, actual)
        severity = self.thresholds[metric].severity_for(deviation)
        if severity is None:
            return None

        label = metric.replace("_", " ")
        target = f" for {subject}" if subject else ""
        if deviation.is_infinite():
            message = f"Unexpected {label}{target}: expected {expected}, got {actual}"
        else:
            message = f"{label.capitalize()}{target} deviates {round_half_up(deviation, 1)}% from expected"

        logger.info("Anomaly detected: metric=%s subject=%s severity=%s", metric, subject, severity.value)
        return Alert(
            type=metric,
            level=_LEVELS[severity],
            severity=severity,
            message=message,
            expected_value=expected,
            actual_value=actual,
            mitigation_steps=list(MITIGATIONS.get(metric, [])),
        )

    def check_inventory(self, product: str, expected_quantity: Any, counted_quantity: Any) -> Optional[Alert]:
        return self.check_deviation("inventory_count", expected_quantity, counted_quantity, product)

    def check_price_change(self, product: str, old_price: Any, new_price: Any) -> Optional[Alert]:
        return self.check_deviation("price_change", old_price, new_price, product)

    def check_login_failures(self, user: str, failed_attempts: Any, allowed_attempts: Any = 3) -> Optional[Alert]:
        """Only attempts beyond the allowance count as deviation."""
        failed = to_decimal(failed_attempts, "failed attempts")
        allowed = to_decimal(allowed_attempts, "allowed attempts")
        if failed <= allowed:
            return None
        return self.check_deviation("login_failures", allowed, failed, user)

    def detect_outliers(self, values: Iterable[Any], metric: str = "revenue") -> List[Alert]:
        """
        Flag outliers in a series by z-score, relative deviation from the median and IQR fences.

        Non-finite values are skipped but keep their place in the numbering of
        the alert messages. Series with fewer than min_data_points finite
        values are not analysed.
        """
        raw = np.array([float(to_decimal(v, metric)) for v in values], dtype=float)
        finite = np.isfinite(raw)
        positions = np.flatnonzero(finite)
        series = raw[finite]
        if len(series) < self.min_data_points:
            logger.info(
                "Outlier detection skipped for %s: %d points, need %d",
                metric, len(series), self.min_data_points,
            )
            return []

        std_multiplier, pct_threshold = SENSITIVITY_THRESHOLDS[self.sensitivity]
        mean = float(series.mean())
        median = float(np.median(series))
        std = float(series.std())
        q1, q3 = np.percentile(series, [25, 75])
        iqr = q3 - q1
        lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr

        alerts = []
        for position, value in zip(positions, series):
            z = abs(value - mean) / std if std > 0 else 0.0
            pct = abs(value - median) / abs(median) * 100 if median != 0 else 0.0

            if z > std_multiplier * 2:
                severity = Severity.CRITICAL
                reason = f"{z:.2f} standard deviations from the mean"
            elif z > std_multiplier:
                severity = Severity.HIGH
                reason = f"{z:.2f} standard deviations from the mean"
            elif pct > pct_threshold:
                severity = Severity.MEDIUM
                reason = f"{pct:.1f}% away from the median"
            elif value < lower or value > upper:
                severity = Severity.LOW
                reason = "outside the interquartile range fences"
            else:
                continue

            alerts.append(Alert(
                type=f"{metric}_outlier",
                level=_LEVELS[severity],
                severity=severity,
                message=f"{metric.capitalize()} value #{int(position) + 1} is {reason}",
                expected_value=to_decimal(round(median, 2), "median"),
                actual_value=to_decimal(float(value), metric),
                mitigation_steps=list(MITIGATIONS.get(metric, [])),
            ))

        return alerts
