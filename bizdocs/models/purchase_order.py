"""
SQLAlchemy model for Purchase Orders.
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Text, ForeignKey, JSON, Numeric, UniqueConstraint, Index
)
from sqlalchemy.sql import func

from bizdocs.database import Base
from bizdocs.services.totals import compute_totals

PO_PRIORITIES = ("low", "medium", "high", "urgent")


class PurchaseOrder(Base):
    """Order placed with a vendor, on behalf of the company itself or one of its customers."""

    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    po_number = Column(String(50), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Client: "company" (the tenant itself) or "customer" (client_customer_id set)
    client_kind = Column(String(20), nullable=False, default="company")
    client_customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    client_name = Column(String(200))
    client_email = Column(String(255))

    title = Column(String(200), nullable=False)
    description = Column(Text)

    # Status: draft, sent, confirmed, in_progress, completed, cancelled
    status = Column(String(20), nullable=False, default="draft", index=True)
    priority = Column(String(20), nullable=False, default="medium")

    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    expected_delivery_date = Column(Date)
    actual_delivery_date = Column(Date)
    payment_terms = Column(String(100))
    terms = Column(Text)
    notes = Column(Text)

    # Approval and lifecycle stamps
    approved_by = Column(String(200))
    approved_at = Column(DateTime(timezone=True))
    sent_at = Column(DateTime(timezone=True))
    confirmed_at = Column(DateTime(timezone=True))
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "po_number", name="uq_purchase_orders_company_number"),
        Index("idx_purchase_orders_vendor_status", "vendor_id", "status"),
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
        return f"<PurchaseOrder {self.po_number} ({self.status})>"
