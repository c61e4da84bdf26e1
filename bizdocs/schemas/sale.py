from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Literal
from decimal import Decimal

PaymentMethod = Literal["cash", "card", "bank_transfer", "cheque", "credit", "other"]
SalePaymentStatus = Literal["pending", "partial", "paid", "refunded"]
SaleStatus = Literal["completed", "cancelled", "returned"]
DiscountType = Literal["percentage", "fixed"]


class SaleItemIn(BaseModel):
    """Sale line. Product lines fill blanks from the catalogue; manual lines need a product_name."""
    product_id: Optional[int] = None
    product_name: Optional[str] = Field(None, max_length=200)
    product_sku: Optional[str] = None
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    cost_price: Optional[Decimal] = None


class SaleItemOut(BaseModel):
    product_id: Optional[int] = None
    product_name: str
    product_sku: Optional[str] = None
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    cost_price: Optional[Decimal] = None
    total: Decimal
    profit: Optional[Decimal] = None


class SaleCreate(BaseModel):
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    items: List[SaleItemIn] = Field(..., min_length=1)
    tax_rate: Optional[Decimal] = None
    discount: Decimal = Decimal("0")
    discount_type: DiscountType = "fixed"
    payment_method: PaymentMethod = "cash"
    payment_status: SalePaymentStatus = "paid"
    status: SaleStatus = "completed"
    sale_date: Optional[datetime] = None
    notes: Optional[str] = None


class SaleUpdate(BaseModel):
    """Only sales that are not completed can be updated."""
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    items: Optional[List[SaleItemIn]] = None
    tax_rate: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[SalePaymentStatus] = None
    status: Optional[SaleStatus] = None
    notes: Optional[str] = None


class ReturnItemIn(BaseModel):
    """Item being returned; matched to the original by product_id, else product_name."""
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: Decimal = Field(..., gt=0)
    unit_price: Optional[Decimal] = None


class SaleReturnCreate(BaseModel):
    items: List[ReturnItemIn] = Field(..., min_length=1)
    reason: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None


class SaleResponse(BaseModel):
    id: int
    sale_number: str
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    items: List[SaleItemOut] = []
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount: Decimal
    discount_type: DiscountType
    discount_amount: Decimal
    total: Decimal
    total_cost: Decimal
    total_profit: Decimal
    payment_method: str
    payment_status: str
    status: SaleStatus
    sale_date: Optional[datetime] = None
    notes: Optional[str] = None
    is_return: bool
    original_sale_id: Optional[int] = None
    return_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SaleListResponse(BaseModel):
    items: list[SaleResponse]
    total: int
    page: int
    page_size: int
