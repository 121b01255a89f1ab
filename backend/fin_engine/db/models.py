"""SQLAlchemy models for the records the engine reads."""
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fin_engine.db.database import Base


class DailyRevenue(Base):
    """One branch's revenue total for a day."""
    __tablename__ = "daily_revenues"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    branch_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False, default=0)


class Expense(Base):
    """Recorded expense awaiting or past approval."""
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    branch_id = Column(Integer, index=True)  # NULL: shared by all branches
    category = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    date = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")  # pending, approved, rejected


class FixedCostItem(Base):
    """Monthly fixed cost, combined across branches."""
    __tablename__ = "fixed_cost_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    monthly_amount = Column(Numeric(14, 2), nullable=False)


class Invoice(Base):
    """Sales invoice header."""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    branch_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    customer_id = Column(String, index=True)  # NULL: walk-in customer
    total = Column(Numeric(14, 2), nullable=False, default=0)

    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_name = Column(String, nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False, default=1)
    line_total = Column(Numeric(14, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="items")
