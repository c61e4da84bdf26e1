from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import Optional, List, Literal
from decimal import Decimal

from bizdocs.schemas.types import LineItemIn, LineItemOut, EmailResult

QuoteStatus = Literal["draft", "sent", "viewed", "accepted", "rejected", "expired"]


class QuoteBase(BaseModel):
    """Base quote schema."""
    customer_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None


class QuoteCreate(QuoteBase):
    """Schema for creating a quote.

    tax_rate defaults to the company rate, valid_until to today plus the
    company's quote validity window. Totals sent by the client are ignored.
    """
    items: List[LineItemIn] = []
    tax_rate: Optional[Decimal] = None


class QuoteUpdate(BaseModel):
    """Schema for updating a quote."""
    customer_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    items: Optional[List[LineItemIn]] = None
    tax_rate: Optional[Decimal] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None


class QuoteResponse(QuoteBase):
    """Schema for quote response."""
    id: int
    quote_number: str
    status: QuoteStatus
    items: List[LineItemOut] = []
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    created_by_id: Optional[int] = None
    sent_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    converted_invoice_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuoteListResponse(BaseModel):
    """Paginated quote list response."""
    items: list[QuoteResponse]
    total: int
    page: int
    page_size: int


class QuoteRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class QuoteSendResponse(BaseModel):
    """The sent quote plus the outcome of the notification email."""
    quote: QuoteResponse
    email: EmailResult
