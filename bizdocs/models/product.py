from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Numeric, UniqueConstraint, Index
)
from sqlalchemy.sql import func
from bizdocs.database import Base

PRODUCT_UNITS = ("piece", "kg", "g", "liter", "ml", "box", "pack", "dozen", "meter", "cm", "other")
STOCK_STATUSES = ("in_stock", "low_stock", "out_of_stock")


class Product(Base):
    """Catalogue item that sale lines can reference; tracks stock on hand."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    sku = Column(String(50), nullable=False)  # Stored upper-case
    barcode = Column(String(100))
    category = Column(String(100), index=True)
    unit = Column(String(20), nullable=False, default="piece")

    cost_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False, default=0)

    # Fractional units (kg, liter) are allowed
    stock_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    min_stock_level = Column(Numeric(12, 3), nullable=False, default=0)
    reorder_point = Column(Numeric(12, 3), nullable=False, default=0)
    track_stock = Column(Boolean, nullable=False, default=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    notes = Column(Text)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        Index("idx_products_company_name", "company_id", "name"),
    )

    def __repr__(self):
        return f"<Product {self.sku}>"

    @property
    def stock_status(self) -> str:
        stock = Decimal(str(self.stock_quantity or 0))
        if stock <= 0:
            return "out_of_stock"
        if stock <= Decimal(str(self.min_stock_level or 0)):
            return "low_stock"
        return "in_stock"

    @property
    def profit_margin(self) -> Decimal:
        """Markup over cost as a percentage, 0 when cost is 0."""
        cost = Decimal(str(self.cost_price or 0))
        if cost == 0:
            return Decimal("0")
        margin = (Decimal(str(self.selling_price or 0)) - cost) / cost * 100
        return margin.quantize(Decimal("0.01"))

    @property
    def needs_reorder(self) -> bool:
        return Decimal(str(self.stock_quantity or 0)) <= Decimal(str(self.reorder_point or 0))
