from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Numeric, CheckConstraint
from sqlalchemy.sql import func
from bizdocs.database import Base

CURRENCIES = ("USD", "EUR", "GBP", "CAD", "AUD", "AED", "INR")


class Company(Base):
    """Tenant. Owns every other record and the per-type document counters."""

    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)

    # Settings
    currency = Column(String(3), default="INR", nullable=False)
    tax_rate = Column(Numeric(5, 2), default=0, nullable=False)  # Percentage
    terms = Column(Text)
    quote_validity_days = Column(Integer, default=14, nullable=False)

    # Numbering: prefix + last number issued. Counters only ever increase.
    quote_prefix = Column(String(10), default="Q", nullable=False)
    next_quote_number = Column(Integer, default=0, nullable=False)
    invoice_prefix = Column(String(10), default="INV", nullable=False)
    next_invoice_number = Column(Integer, default=0, nullable=False)
    po_prefix = Column(String(10), default="PO", nullable=False)
    next_po_number = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_companies_tax_rate"),
        CheckConstraint(
            "quote_validity_days >= 1 AND quote_validity_days <= 365",
            name="ck_companies_quote_validity_days",
        ),
    )

    def __repr__(self):
        return f"<Company {self.name}>"
