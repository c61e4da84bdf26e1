from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, JSON, Numeric, UniqueConstraint, Index
)
from sqlalchemy.sql import func
from bizdocs.database import Base
from bizdocs.services.totals import compute_totals

PAYMENT_METHODS = ("cash", "card", "bank_transfer", "cheque", "credit", "other")
SALE_PAYMENT_STATUSES = ("pending", "partial", "paid", "refunded")
SALE_STATUSES = ("completed", "cancelled", "returned")


class Sale(Base):
    """Point-of-sale transaction. Returns are sales with is_return set."""

    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    # Scan-based number, e.g. "SALE-20260115-0003"
    sale_number = Column(String(50), nullable=False, index=True)

    # Optional customer plus a snapshot taken at sale time
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = Column(String(200))
    customer_email = Column(String(255))
    customer_phone = Column(String(50))

    # Each item: {product_id, product_name, product_sku, quantity, unit_price,
    # cost_price, total, profit}
    items = Column(JSON, nullable=False, default=list)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_type = Column(String(20), nullable=False, default="fixed")  # percentage | fixed
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    total_cost = Column(Numeric(12, 2), nullable=False, default=0)
    total_profit = Column(Numeric(12, 2), nullable=False, default=0)

    payment_method = Column(String(30), nullable=False, default="cash")
    payment_status = Column(String(20), nullable=False, default="paid")
    status = Column(String(20), nullable=False, default="completed", index=True)
    sale_date = Column(DateTime(timezone=True), server_default=func.now())
    notes = Column(Text)

    # Returns
    is_return = Column(Boolean, default=False, nullable=False)
    original_sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True)
    return_reason = Column(Text)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("company_id", "sale_number", name="uq_sales_company_number"),
        Index("idx_sales_company_date", "company_id", "sale_date"),
    )

    def calculate_totals(self):
        """Recalculate totals including discount, cost and profit."""
        result = compute_totals(
            self.items,
            self.tax_rate,
            discount=self.discount,
            discount_type=self.discount_type or "fixed",
            with_cost=True,
            name_field="product_name",
        )
        self.items = result.items
        self.subtotal = result.subtotal
        self.discount_amount = result.discount_amount
        self.tax_amount = result.tax_amount
        self.total = result.total
        self.total_cost = result.total_cost
        self.total_profit = result.total_profit
        return result

    def __repr__(self):
        return f"<Sale {self.sale_number}>"
