from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, Literal

VendorStatus = Literal["active", "inactive", "suspended"]


class VendorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    contact_person: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: VendorStatus = "active"
    payment_terms: Optional[str] = None
    notes: Optional[str] = None


class VendorCreate(VendorBase):
    pass


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_person: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[VendorStatus] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None


class VendorResponse(VendorBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VendorListResponse(BaseModel):
    """Paginated vendor list response."""
    items: list[VendorResponse]
    total: int
    page: int
    page_size: int
