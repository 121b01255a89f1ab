"""
Read-only record sources.

The engine never writes records. Every source is async so a request can gather
revenues, expenses, fixed costs and invoice data in one await.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from fin_engine.analytics.cost_model import DEFAULT_LINE_ITEMS, ZERO, FixedCostLineItem
from fin_engine.analytics.kpi import approved_expenses, filter_revenues
from fin_engine.analytics.models import ExpenseRecord, InvoiceRecord, InvoiceStats, RevenueRecord

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    async def fetch_revenues(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> List[RevenueRecord]:
        ...

    async def fetch_expenses(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> List[ExpenseRecord]:
        """Approved expenses only."""
        ...

    async def fetch_fixed_costs(self) -> List[FixedCostLineItem]:
        ...

    async def fetch_invoice_stats(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> InvoiceStats:
        """Invoice count and distinct identified customers in the period."""
        ...

    async def fetch_product_sales(
        self, start: date, end: date, branch_id: Optional[int] = None
    ) -> Dict[str, Decimal]:
        """Revenue per product from invoice lines in the period."""
        ...


class InMemoryRecordSource:
    """List-backed source for tests and embedding."""

    def __init__(
        self,
        revenues: Iterable[RevenueRecord] = (),
        expenses: Iterable[ExpenseRecord] = (),
        fixed_costs: Sequence[FixedCostLineItem] = DEFAULT_LINE_ITEMS,
        invoices: Iterable[InvoiceRecord] = (),
    ):
        self.revenues = list(revenues)
        self.expenses = list(expenses)
        self.fixed_costs = list(fixed_costs)
        self.invoices = list(invoices)

    def _invoices(self, start, end, branch_id):
        return [
            i for i in self.invoices
            if start <= i.date <= end and (branch_id is None or i.branch_id == branch_id)
        ]

    async def fetch_revenues(self, start, end, branch_id=None):
        records = filter_revenues(self.revenues, start, end, branch_id)
        logger.debug("In-memory revenues %s..%s branch=%s: %d", start, end, branch_id, len(records))
        return records

    async def fetch_expenses(self, start, end, branch_id=None):
        return approved_expenses(self.expenses, start, end, branch_id)

    async def fetch_fixed_costs(self):
        return list(self.fixed_costs)

    async def fetch_invoice_stats(self, start, end, branch_id=None):
        invoices = self._invoices(start, end, branch_id)
        customers = {i.customer_id for i in invoices if i.customer_id is not None}
        return InvoiceStats(invoice_count=len(invoices), customer_count=len(customers))

    async def fetch_product_sales(self, start, end, branch_id=None):
        sales: Dict[str, Decimal] = {}
        for invoice in self._invoices(start, end, branch_id):
            for line in invoice.lines:
                sales[line.product] = sales.get(line.product, ZERO) + line.amount
        return sales
