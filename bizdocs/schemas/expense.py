from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import Optional, List, Literal
from decimal import Decimal

from bizdocs.schemas.types import Currency

ExpenseCategory = Literal[
    "office_supplies", "utilities", "rent", "marketing", "travel", "equipment",
    "maintenance", "professional_services", "insurance", "other",
]
ExpensePaymentMethod = Literal["cash", "card", "bank_transfer", "cheque", "other"]
ExpensePaymentStatus = Literal["pending", "paid", "reimbursed"]


class ExpenseBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: ExpenseCategory
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    currency: Optional[Currency] = None
    payment_method: ExpensePaymentMethod = "cash"
    payment_status: ExpensePaymentStatus = "pending"
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None
    expense_date: Optional[date] = None
    receipt_number: Optional[str] = None
    tags: List[str] = []
    notes: Optional[str] = None


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[ExpenseCategory] = None
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    currency: Optional[Currency] = None
    payment_method: Optional[ExpensePaymentMethod] = None
    payment_status: Optional[ExpensePaymentStatus] = None
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None
    expense_date: Optional[date] = None
    receipt_number: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None


class ExpenseResponse(ExpenseBase):
    id: int
    expense_number: str
    currency: str
    expense_date: date
    approved_by_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseListResponse(BaseModel):
    items: list[ExpenseResponse]
    total: int
    page: int
    page_size: int
