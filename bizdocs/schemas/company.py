from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from bizdocs.schemas.types import Currency


class CompanyResponse(BaseModel):
    """Company with its settings and numbering state."""
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    currency: str
    tax_rate: Decimal
    terms: Optional[str] = None
    quote_validity_days: int
    quote_prefix: str
    next_quote_number: int
    invoice_prefix: str
    next_invoice_number: int
    po_prefix: str
    next_po_number: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CompanyUpdate(BaseModel):
    """Profile fields of the company."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class CompanySettingsUpdate(BaseModel):
    """Settings. Counters may be raised but never lowered."""
    currency: Optional[Currency] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    terms: Optional[str] = None
    quote_validity_days: Optional[int] = Field(None, ge=1, le=365)
    quote_prefix: Optional[str] = Field(None, min_length=1, max_length=10)
    next_quote_number: Optional[int] = Field(None, ge=0)
    invoice_prefix: Optional[str] = Field(None, min_length=1, max_length=10)
    next_invoice_number: Optional[int] = Field(None, ge=0)
    po_prefix: Optional[str] = Field(None, min_length=1, max_length=10)
    next_po_number: Optional[int] = Field(None, ge=0)
