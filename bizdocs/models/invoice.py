from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Text, ForeignKey, JSON, Numeric, UniqueConstraint, Index
)
from sqlalchemy.sql import func
from bizdocs.database import Base
from bizdocs.services.totals import compute_totals, to_money


class Invoice(Base):
    """Invoice model for customer billing."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    invoice_number = Column(String(50), index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    original_quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    title = Column(String(200), nullable=False)
    description = Column(Text)

    # Status: draft, sent, paid, overdue, cancelled
    status = Column(String(20), default="draft", nullable=False, index=True)

    # Line items stored as JSON array
    # Each item: {name, description, quantity, unit_price, total}
    items = Column(JSON, nullable=False, default=list)

    # Calculated totals
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)  # Percentage (e.g., 8.25 for 8.25%)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    # Payments stored as JSON array
    # Each payment: {amount, payment_date, payment_method, notes}
    payments = Column(JSON, nullable=False, default=list)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)

    due_date = Column(Date)
    notes = Column(Text)
    terms = Column(Text)

    # Lifecycle stamps
    sent_at = Column(DateTime(timezone=True))
    paid_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
        Index("idx_invoices_customer_status", "customer_id", "status"),
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_number}>"

    def calculate_totals(self):
        """Recalculate item totals, subtotal, tax, and total from line items."""
        result = compute_totals(self.items, self.tax_rate)
        self.items = result.items
        self.subtotal = result.subtotal
        self.tax_amount = result.tax_amount
        self.total = result.total
        return result

    def calculate_paid_amount(self) -> Decimal:
        """Recompute paid_amount from the payment list."""
        self.paid_amount = to_money(sum((Decimal(str(p["amount"])) for p in self.payments or []), Decimal("0")))
        return self.paid_amount

    @property
    def balance_due(self) -> Decimal:
        return Decimal(str(self.total or 0)) - Decimal(str(self.paid_amount or 0))
