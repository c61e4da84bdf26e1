"""
Shared Pydantic types for schema validation.

Line items are stored as JSON with their decimal fields as strings; the
item schemas here parse them back into Decimal for responses.
"""

from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

Currency = Literal["USD", "EUR", "GBP", "CAD", "AUD", "AED", "INR"]
TaxRate = Decimal


class LineItemIn(BaseModel):
    """Line item as submitted. Totals are always derived server-side."""
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal


class LineItemOut(BaseModel):
    """Line item with its computed total."""
    name: str
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    total: Decimal


class EmailResult(BaseModel):
    """Outcome of a best-effort notification."""
    success: bool
    status_code: Optional[int] = None
    message_id: Optional[str] = None
    error: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


StatsDict = Dict[str, Any]
