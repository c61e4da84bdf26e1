"""
Purchase order schemas.

The client of a purchase order is a tagged union: either the company
itself or one of its customers.
"""
from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import Annotated, Optional, List, Literal, Union
from decimal import Decimal

from bizdocs.schemas.types import LineItemIn, LineItemOut

PurchaseOrderStatus = Literal["draft", "sent", "confirmed", "in_progress", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]


class CompanyClient(BaseModel):
    """The ordering company is its own client."""
    kind: Literal["company"] = "company"


class CustomerClient(BaseModel):
    """The order is placed on behalf of a customer of the company."""
    kind: Literal["customer"] = "customer"
    customer_id: int


ClientRef = Annotated[Union[CompanyClient, CustomerClient], Field(discriminator="kind")]


class ClientResponse(BaseModel):
    kind: Literal["company", "customer"]
    customer_id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None


class PurchaseOrderCreate(BaseModel):
    vendor_id: int
    client: ClientRef = Field(default_factory=CompanyClient)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    items: List[LineItemIn] = []
    tax_rate: Optional[Decimal] = None
    priority: Priority = "medium"
    expected_delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None


class PurchaseOrderUpdate(BaseModel):
    vendor_id: Optional[int] = None
    client: Optional[ClientRef] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    items: Optional[List[LineItemIn]] = None
    tax_rate: Optional[Decimal] = None
    priority: Optional[Priority] = None
    expected_delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None


class ConfirmRequest(BaseModel):
    approved_by: str = Field(..., min_length=1, max_length=200)


class PurchaseOrderResponse(BaseModel):
    id: int
    po_number: str
    vendor_id: int
    client: ClientResponse
    title: str
    description: Optional[str] = None
    status: PurchaseOrderStatus
    priority: Priority
    items: List[LineItemOut] = []
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, po) -> "PurchaseOrderResponse":
        """Build the response, folding the stored client columns into one object."""
        data = {name: getattr(po, name, None) for name in cls.model_fields if name != "client"}
        data["client"] = ClientResponse(
            kind=po.client_kind,
            customer_id=po.client_customer_id,
            name=po.client_name,
            email=po.client_email,
        )
        return cls(**data)


class PurchaseOrderListResponse(BaseModel):
    items: list[PurchaseOrderResponse]
    total: int
    page: int
    page_size: int
