from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.sql import func
from bizdocs.database import Base

VENDOR_STATUSES = ("active", "inactive", "suspended")


class Vendor(Base):
    """Supplier that purchase orders and expenses are placed with."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    contact_person = Column(String(200))
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    status = Column(String(20), default="active", nullable=False, index=True)
    payment_terms = Column(String(100))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Vendor {self.name}>"
