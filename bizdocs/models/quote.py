"""
SQLAlchemy model for Quotes/Estimates.
"""
from sqlalchemy import (
    Column, DateTime, Date, Integer, String, Text, JSON, Index, ForeignKey, Numeric, UniqueConstraint
)
from sqlalchemy.sql import func

from bizdocs.database import Base
from bizdocs.services.totals import compute_totals


class Quote(Base):
    """Quote/Estimate model for customer pricing proposals."""
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    # Counter-based number (e.g., "Q-0001"), unique per company
    quote_number = Column(String(50), nullable=False, index=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    title = Column(String(200), nullable=False)
    description = Column(Text)

    # Status: draft, sent, viewed, accepted, rejected, expired
    status = Column(String(20), nullable=False, default="draft", index=True)

    # Line items stored as JSON array
    # Each item: { name, description, quantity, unit_price, total }
    items = Column(JSON, nullable=False, default=list)

    # Pricing (always derived from items by calculate_totals)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)  # Percentage (e.g., 8.25)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    valid_until = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    # Lifecycle stamps
    sent_at = Column(DateTime(timezone=True))
    viewed_at = Column(DateTime(timezone=True))
    accepted_at = Column(DateTime(timezone=True))
    rejected_at = Column(DateTime(timezone=True))
    rejection_reason = Column(Text)

    # Set once the quote has been turned into an invoice
    converted_invoice_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "quote_number", name="uq_quotes_company_number"),
        Index("idx_quotes_customer_status", "customer_id", "status"),
        Index("idx_quotes_created_at", "created_at"),
    )

    def calculate_totals(self):
        """Recalculate item totals, subtotal, tax, and total from line items."""
        result = compute_totals(self.items, self.tax_rate)
        self.items = result.items
        self.subtotal = result.subtotal
        self.tax_amount = result.tax_amount
        self.total = result.total
        return result

    def __repr__(self):
        return f"<Quote(id={self.id}, quote_number={self.quote_number}, status={self.status})>"
