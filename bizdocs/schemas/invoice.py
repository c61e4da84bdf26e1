from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import Optional, List, Literal
from decimal import Decimal

from bizdocs.schemas.types import LineItemIn, LineItemOut, EmailResult

InvoiceStatus = Literal["draft", "sent", "paid", "overdue", "cancelled"]


class PaymentCreate(BaseModel):
    """Payment recorded against an invoice."""
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[date] = None
    payment_method: str = Field("cash", max_length=30)
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    amount: Decimal
    payment_date: date
    payment_method: str
    notes: Optional[str] = None


class InvoiceBase(BaseModel):
    """Base invoice schema."""
    customer_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None


class InvoiceCreate(InvoiceBase):
    """Schema for creating an invoice. due_date defaults to today + INVOICE_DUE_DAYS."""
    items: List[LineItemIn] = []
    tax_rate: Optional[Decimal] = None


class InvoiceUpdate(BaseModel):
    """Schema for updating an invoice."""
    customer_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    items: Optional[List[LineItemIn]] = None
    tax_rate: Optional[Decimal] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None


class ConvertQuoteRequest(BaseModel):
    due_date: Optional[date] = None


class InvoiceResponse(InvoiceBase):
    """Schema for invoice response."""
    id: int
    invoice_number: str
    status: InvoiceStatus
    items: List[LineItemOut] = []
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    payments: List[PaymentResponse] = []
    paid_amount: Decimal
    balance_due: Decimal
    original_quote_id: Optional[int] = None
    created_by_id: Optional[int] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceListResponse(BaseModel):
    """Paginated invoice list response."""
    items: list[InvoiceResponse]
    total: int
    page: int
    page_size: int


class InvoiceSendResponse(BaseModel):
    """The sent invoice plus the outcome of the notification email."""
    invoice: InvoiceResponse
    email: EmailResult


class StatementEntry(BaseModel):
    """One ledger line: an invoice charge or a payment against it."""
    entry_date: date
    entry_type: Literal["invoice", "payment"]
    invoice_id: int
    reference: str
    description: str
    charge: Decimal
    payment: Decimal
    balance: Decimal


class CustomerStatement(BaseModel):
    """Statement of account for one customer over a date range."""
    customer_id: int
    customer_name: str
    currency: str
    start_date: date
    end_date: date
    statement_date: date
    opening_balance: Decimal
    total_charges: Decimal
    total_payments: Decimal
    closing_balance: Decimal
    entries: List[StatementEntry]
