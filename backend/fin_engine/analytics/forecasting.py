"""
Seasonal (day-of-week) revenue forecasting.

Two independent modes:
- historical: average revenue per weekday, falling back to the global average
  for weekdays without samples
- multiplier: an explicit base average scaled by a weekday multiplier table
  (unmapped weekdays use 1.0)

Weekdays are indexed 0=Sunday .. 6=Saturday. The reference date is always an
argument; nothing here reads the clock.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from fin_engine.analytics.cost_model import ZERO, to_decimal
from fin_engine.analytics.models import RevenueRecord

logger = logging.getLogger(__name__)

WEEKDAYS = tuple(range(7))
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
ONE = Decimal("1")

DayLike = Union[date, int]


def weekday_index(day: date) -> int:
    """Sunday-based weekday index (Python's weekday() is Monday-based)."""
    return (day.weekday() + 1) % 7


def _as_weekday(day: DayLike) -> int:
    if isinstance(day, date):
        return weekday_index(day)
    if day not in WEEKDAYS:
        raise ValueError(f"Weekday index must be 0-6, got {day}")
    return day


def _decimal_sum(values: pd.Series) -> Decimal:
    return sum(values, ZERO)


@dataclass(frozen=True)
class DaySample:
    """Accumulated revenue for one weekday."""
    total_revenue: Decimal
    sample_count: int

    @property
    def average(self) -> Optional[Decimal]:
        if self.sample_count <= 0:
            return None
        return self.total_revenue / Decimal(self.sample_count)


@dataclass(frozen=True)
class DayPattern:
    """Weekday -> revenue samples, plus the global average used as fallback."""
    samples: Dict[int, DaySample]
    global_average: Decimal
    data_points: int = 0

    def average_for(self, day: DayLike) -> Optional[Decimal]:
        sample = self.samples.get(_as_weekday(day))
        return sample.average if sample is not None else None

    def forecast(self, day: DayLike) -> Decimal:
        """Historical average for the weekday, or the global average."""
        weekday = _as_weekday(day)
        average = self.average_for(weekday)
        if average is None:
            logger.info(
                "No revenue history for %s; using global average %s",
                WEEKDAY_NAMES[weekday], self.global_average,
            )
            return self.global_average
        return average

    def factor(self, day: DayLike) -> Decimal:
        """Weekday average relative to the global average (1 without data)."""
        average = self.average_for(day)
        if average is None or self.global_average <= 0:
            return ONE
        return average / self.global_average

    @property
    def factors(self) -> Dict[int, Decimal]:
        return {weekday: self.factor(weekday) for weekday in WEEKDAYS}

    @property
    def has_history(self) -> bool:
        return any(s.sample_count > 0 for s in self.samples.values())

    def to_dict(self) -> Dict[str, object]:
        return {
            "days": {
                WEEKDAY_NAMES[weekday]: {
                    "total_revenue": str(sample.total_revenue),
                    "sample_count": sample.sample_count,
                    "average": str(sample.average) if sample.average is not None else None,
                }
                for weekday, sample in sorted(self.samples.items())
            },
            "global_average": str(self.global_average),
            "data_points": self.data_points,
        }


def pattern_from_totals(
    totals: Mapping[int, Tuple[object, int]],
    global_average: Optional[object] = None,
) -> DayPattern:
    """
    Build a DayPattern from precomputed {weekday: (total, count)}.

    Without an explicit global average, the mean of the weekday averages is used.
    """
    samples = {}
    for weekday, (total, count) in totals.items():
        samples[_as_weekday(weekday)] = DaySample(to_decimal(total, "weekday total"), int(count))

    if global_average is not None:
        overall = to_decimal(global_average, "global average")
    else:
        overall = _mean_of_averages(samples)

    return DayPattern(
        samples=samples,
        global_average=overall,
        data_points=sum(s.sample_count for s in samples.values()),
    )


def _mean_of_averages(samples: Mapping[int, DaySample]) -> Decimal:
    averages = [s.average for s in samples.values() if s.average is not None]
    if not averages:
        return ZERO
    return sum(averages, ZERO) / Decimal(len(averages))


def build_day_pattern(
    records: Iterable[RevenueRecord],
    reference_date: date,
    lookback_days: int = 60,
    branch_id: Optional[int] = None,
) -> DayPattern:
    """
    Group daily revenue by weekday over the lookback window ending at reference_date.

    Rows for the same date are summed first, so a day counts once. Days with no
    positive revenue (closed days) are not sampled.
    """
    start = reference_date - timedelta(days=lookback_days)
    rows = [
        {"date": r.date, "amount": r.amount}
        for r in records
        if start <= r.date <= reference_date and (branch_id is None or r.branch_id == branch_id)
    ]

    if not rows:
        logger.info("No revenue records between %s and %s; empty day pattern", start, reference_date)
        return DayPattern(samples={}, global_average=ZERO, data_points=0)

    df = pd.DataFrame(rows)
    daily = df.groupby("date")["amount"].agg(_decimal_sum).reset_index()
    daily = daily[daily["amount"] > 0]

    if daily.empty:
        return DayPattern(samples={}, global_average=ZERO, data_points=len(df))

    daily["weekday"] = (pd.to_datetime(daily["date"]).dt.dayofweek + 1) % 7
    grouped = daily.groupby("weekday")["amount"].agg(total=_decimal_sum, count="size")

    samples = {
        int(weekday): DaySample(to_decimal(row["total"], "weekday total"), int(row["count"]))
        for weekday, row in grouped.iterrows()
    }
    return DayPattern(
        samples=samples,
        global_average=_mean_of_averages(samples),
        data_points=len(df),
    )


class ForecastMode(str, Enum):
    HISTORICAL = "historical"
    MULTIPLIER = "multiplier"


@dataclass(frozen=True)
class DailyProjection:
    day: date
    weekday: int
    expected_revenue: Decimal
    factor: Decimal

    @property
    def weekday_name(self) -> str:
        return WEEKDAY_NAMES[self.weekday]


@dataclass(frozen=True)
class SeasonalForecaster:
    """
    Project expected revenue for a day.

    Use SeasonalForecaster.historical(pattern) or
    SeasonalForecaster.with_multipliers(base_average, multipliers).
    """
    mode: ForecastMode
    pattern: Optional[DayPattern] = None
    base_average: Optional[Decimal] = None
    multipliers: Dict[int, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        if self.mode == ForecastMode.HISTORICAL and self.pattern is None:
            raise ValueError("Historical mode requires a day pattern")
        if self.mode == ForecastMode.MULTIPLIER and self.base_average is None:
            raise ValueError("Multiplier mode requires a base average")

    @classmethod
    def historical(cls, pattern: DayPattern) -> "SeasonalForecaster":
        return cls(mode=ForecastMode.HISTORICAL, pattern=pattern)

    @classmethod
    def with_multipliers(
        cls,
        base_average: object,
        multipliers: Optional[Mapping[int, object]] = None,
    ) -> "SeasonalForecaster":
        table = {
            _as_weekday(weekday): to_decimal(value, f"multiplier[{weekday}]")
            for weekday, value in (multipliers or {}).items()
        }
        return cls(
            mode=ForecastMode.MULTIPLIER,
            base_average=to_decimal(base_average, "base average"),
            multipliers=table,
        )

    def factor(self, day: DayLike) -> Decimal:
        weekday = _as_weekday(day)
        if self.mode == ForecastMode.MULTIPLIER:
            return self.multipliers.get(weekday, ONE)
        return self.pattern.factor(weekday)

    def forecast(self, day: DayLike) -> Decimal:
        weekday = _as_weekday(day)
        if self.mode == ForecastMode.MULTIPLIER:
            return self.base_average * self.multipliers.get(weekday, ONE)
        return self.pattern.forecast(weekday)

    def project(self, start: date, days: int) -> List[DailyProjection]:
        """Forecast each of the `days` days starting at `start`."""
        projections = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            projections.append(DailyProjection(
                day=day,
                weekday=weekday_index(day),
                expected_revenue=self.forecast(day),
                factor=self.factor(day),
            ))
        return projections
