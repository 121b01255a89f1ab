"""Shared fixtures for engine tests."""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from fin_engine.analytics.cost_model import CostConfiguration
from fin_engine.analytics.models import ExpenseRecord, ExpenseStatus, RevenueRecord


def daily_revenues(start, end, amount, branch_id=1):
    """One revenue record per day from start to end inclusive."""
    records = []
    day = start
    while day <= end:
        records.append(RevenueRecord(branch_id=branch_id, date=day, amount=Decimal(str(amount))))
        day += timedelta(days=1)
    return records


@pytest.fixture
def config():
    return CostConfiguration(variable_cost_rate=Decimal("30"), branch_count=2)


@pytest.fixture
def feb_march_revenues():
    """Branch 1: 1000/day through February 2024 and the first half of March."""
    return daily_revenues(date(2024, 2, 1), date(2024, 3, 15), 1000)


@pytest.fixture
def expenses():
    return [
        ExpenseRecord(category="supplies", amount=Decimal("580"), date=date(2024, 2, 10), branch_id=1),
        ExpenseRecord(category="salaries", amount=Decimal("10500"), date=date(2024, 2, 28), branch_id=1),
        ExpenseRecord(
            category="repairs", amount=Decimal("900"), date=date(2024, 2, 12),
            status=ExpenseStatus.PENDING, branch_id=1,
        ),
        ExpenseRecord(category="cleaning", amount=Decimal("300"), date=date(2024, 2, 5), branch_id=2),
    ]
