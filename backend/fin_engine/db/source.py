"""Record source backed by the SQL database."""
import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import distinct, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fin_engine.analytics.cost_model import FixedCostLineItem, to_decimal
from fin_engine.analytics.models import ExpenseRecord, ExpenseStatus, InvoiceStats, RevenueRecord
from fin_engine.core.exceptions import UpstreamDataUnavailable
from fin_engine.db.database import SessionLocal
from fin_engine.db.models import DailyRevenue, Expense, FixedCostItem, Invoice, InvoiceItem

logger = logging.getLogger(__name__)


class SqlRecordSource:
    """
    Reads revenues, approved expenses, fixed costs and invoices through SQLAlchemy.

    Queries are blocking, so each fetch runs in a worker thread with its own
    session. Any database error surfaces as UpstreamDataUnavailable.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    async def _run(self, what: str, query: Callable[[Session], Any]) -> Any:
        def work():
            db = self.session_factory()
            try:
                return query(db)
            finally:
                db.close()

        try:
            return await asyncio.to_thread(work)
        except SQLAlchemyError as e:
            logger.error("Failed to read %s: %s", what, e)
            raise UpstreamDataUnavailable(f"Could not read {what}", {"source": "sql", "error": str(e)}) from e

    async def fetch_revenues(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> List[RevenueRecord]:
        def query(db: Session):
            q = db.query(DailyRevenue).filter(DailyRevenue.date >= start, DailyRevenue.date <= end)
            if branch_id is not None:
                q = q.filter(DailyRevenue.branch_id == branch_id)
            return [
                RevenueRecord(branch_id=row.branch_id, date=row.date, amount=row.amount)
                for row in q.order_by(DailyRevenue.date).all()
            ]

        return await self._run("revenues", query)

    async def fetch_expenses(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> List[ExpenseRecord]:
        def query(db: Session):
            q = db.query(Expense).filter(
                Expense.status == ExpenseStatus.APPROVED.value,
                Expense.date >= start,
                Expense.date <= end,
            )
            if branch_id is not None:
                q = q.filter((Expense.branch_id == branch_id) | (Expense.branch_id.is_(None)))
            return [
                ExpenseRecord(
                    category=row.category,
                    amount=row.amount,
                    date=row.date,
                    status=ExpenseStatus(row.status),
                    branch_id=row.branch_id,
                )
                for row in q.order_by(Expense.date).all()
            ]

        return await self._run("expenses", query)

    async def fetch_fixed_costs(self) -> List[FixedCostLineItem]:
        def query(db: Session):
            return [
                FixedCostLineItem(row.name, row.monthly_amount)
                for row in db.query(FixedCostItem).order_by(FixedCostItem.id).all()
            ]

        return await self._run("fixed costs", query)

    async def fetch_invoice_stats(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> InvoiceStats:
        def query(db: Session):
            q = db.query(
                func.count(Invoice.id),
                func.count(distinct(Invoice.customer_id)),
            ).filter(Invoice.date >= start, Invoice.date <= end)
            if branch_id is not None:
                q = q.filter(Invoice.branch_id == branch_id)
            invoice_count, customer_count = q.one()
            return InvoiceStats(invoice_count=invoice_count or 0, customer_count=customer_count or 0)

        return await self._run("invoice stats", query)

    async def fetch_product_sales(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> Dict[str, Decimal]:
        def query(db: Session):
            total = func.sum(InvoiceItem.line_total)
            q = (
                db.query(InvoiceItem.product_name, total)
                .join(Invoice, InvoiceItem.invoice_id == Invoice.id)
                .filter(Invoice.date >= start, Invoice.date <= end)
            )
            if branch_id is not None:
                q = q.filter(Invoice.branch_id == branch_id)
            rows = q.group_by(InvoiceItem.product_name).order_by(total.desc(), InvoiceItem.product_name).all()
            return {name: to_decimal(amount, f"sales of {name}") for name, amount in rows}

        return await self._run("product sales", query)
