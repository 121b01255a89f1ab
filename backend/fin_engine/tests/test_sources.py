"""Tests for record sources."""
import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fin_engine.analytics.models import ExpenseStatus, InvoiceLine, InvoiceRecord
from fin_engine.analytics.sources import InMemoryRecordSource
from fin_engine.core.exceptions import UpstreamDataUnavailable
from fin_engine.db.database import init_db
from fin_engine.db.models import DailyRevenue, Expense, FixedCostItem, Invoice, InvoiceItem
from fin_engine.db.source import SqlRecordSource


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def session_factory():
    engine = _memory_engine()
    init_db(engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = Session()
    db.add_all([
        DailyRevenue(branch_id=1, date=date(2024, 2, 1), amount=Decimal("1000.50")),
        DailyRevenue(branch_id=1, date=date(2024, 2, 2), amount=Decimal("1200")),
        DailyRevenue(branch_id=2, date=date(2024, 2, 1), amount=Decimal("800")),
        DailyRevenue(branch_id=1, date=date(2024, 3, 1), amount=Decimal("999")),
        Expense(branch_id=1, category="supplies", amount=Decimal("300"), date=date(2024, 2, 3), status="approved"),
        Expense(branch_id=None, category="insurance", amount=Decimal("200"), date=date(2024, 2, 4), status="approved"),
        Expense(branch_id=1, category="repairs", amount=Decimal("900"), date=date(2024, 2, 5), status="pending"),
        Expense(branch_id=2, category="cleaning", amount=Decimal("100"), date=date(2024, 2, 6), status="approved"),
        FixedCostItem(name="salaries", monthly_amount=Decimal("21000")),
        FixedCostItem(name="shop_rent", monthly_amount=Decimal("6600")),
        Invoice(branch_id=1, date=date(2024, 2, 1), customer_id="c1", total=Decimal("300"), items=[
            InvoiceItem(product_name="coffee", quantity=2, line_total=Decimal("200")),
            InvoiceItem(product_name="tea", quantity=1, line_total=Decimal("100")),
        ]),
        Invoice(branch_id=1, date=date(2024, 2, 2), customer_id="c2", total=Decimal("500"), items=[
            InvoiceItem(product_name="coffee", quantity=5, line_total=Decimal("500")),
        ]),
        Invoice(branch_id=1, date=date(2024, 2, 3), customer_id="c1", total=Decimal("50"), items=[
            InvoiceItem(product_name="cake", quantity=1, line_total=Decimal("50")),
        ]),
        Invoice(branch_id=2, date=date(2024, 2, 1), total=Decimal("80"), items=[
            InvoiceItem(product_name="water", quantity=4, line_total=Decimal("80")),
        ]),
        Invoice(branch_id=1, date=date(2024, 3, 1), customer_id="c3", total=Decimal("900"), items=[
            InvoiceItem(product_name="cake", quantity=9, line_total=Decimal("900")),
        ]),
    ])
    db.commit()
    db.close()
    yield Session
    engine.dispose()


def test_in_memory_source_filters(expenses, feb_march_revenues):
    source = InMemoryRecordSource(feb_march_revenues, expenses)

    revenues = asyncio.run(source.fetch_revenues(date(2024, 2, 1), date(2024, 2, 29), 1))
    approved = asyncio.run(source.fetch_expenses(date(2024, 2, 1), date(2024, 2, 29), 1))

    assert len(revenues) == 29
    assert {e.category for e in approved} == {"supplies", "salaries"}
    assert all(e.status == ExpenseStatus.APPROVED for e in approved)


def test_sql_revenues_by_branch_and_range(session_factory):
    source = SqlRecordSource(session_factory)

    revenues = asyncio.run(source.fetch_revenues(date(2024, 2, 1), date(2024, 2, 29), branch_id=1))

    assert [r.date for r in revenues] == [date(2024, 2, 1), date(2024, 2, 2)]
    assert revenues[0].amount == Decimal("1000.50")


def test_sql_expenses_approved_only(session_factory):
    """Pending expenses are excluded; expenses without a branch apply to every branch."""
    source = SqlRecordSource(session_factory)

    expenses = asyncio.run(source.fetch_expenses(date(2024, 2, 1), date(2024, 2, 29), branch_id=1))

    assert [e.category for e in expenses] == ["supplies", "insurance"]
    assert expenses[1].branch_id is None


def test_sql_fixed_costs(session_factory):
    source = SqlRecordSource(session_factory)

    items = asyncio.run(source.fetch_fixed_costs())

    assert [i.name for i in items] == ["salaries", "shop_rent"]
    assert sum(i.monthly_amount for i in items) == Decimal("27600")


def test_sql_failure_is_upstream_unavailable():
    """A database without the tables fails the read instead of returning nothing."""
    engine = _memory_engine()
    source = SqlRecordSource(sessionmaker(bind=engine))

    with pytest.raises(UpstreamDataUnavailable):
        asyncio.run(source.fetch_revenues(date(2024, 2, 1), date(2024, 2, 29)))


def test_in_memory_invoices():
    invoices = [
        InvoiceRecord(branch_id=1, date=date(2024, 2, 1), total=Decimal("300"), customer_id="c1", lines=[
            InvoiceLine(product="coffee", amount=Decimal("200")),
            InvoiceLine(product="tea", amount=Decimal("100")),
        ]),
        InvoiceRecord(branch_id=1, date=date(2024, 2, 2), total=Decimal("50"), lines=[
            InvoiceLine(product="coffee", amount=Decimal("50")),
        ]),
        InvoiceRecord(branch_id=2, date=date(2024, 2, 2), total=Decimal("70"), customer_id="c9"),
    ]
    source = InMemoryRecordSource(invoices=invoices)

    stats = asyncio.run(source.fetch_invoice_stats(date(2024, 2, 1), date(2024, 2, 29), 1))
    sales = asyncio.run(source.fetch_product_sales(date(2024, 2, 1), date(2024, 2, 29), 1))

    assert (stats.invoice_count, stats.customer_count) == (2, 1)
    assert sales == {"coffee": Decimal("250"), "tea": Decimal("100")}


def test_sql_invoice_stats(session_factory):
    source = SqlRecordSource(session_factory)

    branch = asyncio.run(source.fetch_invoice_stats(date(2024, 2, 1), date(2024, 2, 29), branch_id=1))
    everyone = asyncio.run(source.fetch_invoice_stats(date(2024, 2, 1), date(2024, 2, 29)))

    assert (branch.invoice_count, branch.customer_count) == (3, 2)
    assert (everyone.invoice_count, everyone.customer_count) == (4, 2)


def test_sql_product_sales(session_factory):
    """Invoice lines are summed per product within the branch and period."""
    source = SqlRecordSource(session_factory)

    sales = asyncio.run(source.fetch_product_sales(date(2024, 2, 1), date(2024, 2, 29), branch_id=1))

    assert list(sales) == ["coffee", "tea", "cake"]
    assert sales["coffee"] == Decimal("700")
    assert sales["cake"] == Decimal("50")
