from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Text, ForeignKey, JSON, Numeric, UniqueConstraint, Index,
    CheckConstraint,
)
from sqlalchemy.sql import func
from bizdocs.database import Base

EXPENSE_CATEGORIES = (
    "office_supplies", "utilities", "rent", "marketing", "travel", "equipment",
    "maintenance", "professional_services", "insurance", "other",
)
EXPENSE_PAYMENT_METHODS = ("cash", "card", "bank_transfer", "cheque", "other")
EXPENSE_PAYMENT_STATUSES = ("pending", "paid", "reimbursed")


class Expense(Base):
    """Company expense, optionally tied to a vendor."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    # Scan-based number, e.g. "EXP-20260115-0001"
    expense_number = Column(String(50), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text)
    category = Column(String(50), nullable=False, default="other", index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    payment_method = Column(String(30), nullable=False, default="cash")
    payment_status = Column(String(20), nullable=False, default="pending")

    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)
    vendor_name = Column(String(200))

    expense_date = Column(Date, nullable=False)
    receipt_number = Column(String(100))
    tags = Column(JSON, nullable=False, default=list)
    notes = Column(Text)

    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True))

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "expense_number", name="uq_expenses_company_number"),
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        Index("idx_expenses_company_date", "company_id", "expense_date"),
    )

    def __repr__(self):
        return f"<Expense {self.expense_number}>"
