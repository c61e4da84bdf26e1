from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, Literal
from decimal import Decimal

ProductUnit = Literal["piece", "kg", "g", "liter", "ml", "box", "pack", "dozen", "meter", "cm", "other"]
StockStatus = Literal["in_stock", "low_stock", "out_of_stock"]
StockOperation = Literal["add", "subtract", "set"]


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    sku: str = Field(..., min_length=1, max_length=50)
    barcode: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=100)
    unit: ProductUnit = "piece"
    cost_price: Decimal = Field(..., ge=0)
    selling_price: Decimal = Field(..., ge=0)
    stock_quantity: Decimal = Field(Decimal("0"), ge=0)
    min_stock_level: Decimal = Field(Decimal("0"), ge=0)
    reorder_point: Decimal = Field(Decimal("0"), ge=0)
    track_stock: bool = True
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("sku")
    @classmethod
    def normalise_sku(cls, v: str) -> str:
        return v.strip().upper()


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    """Stock is changed through the stock endpoint, not here."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    sku: Optional[str] = Field(None, min_length=1, max_length=50)
    barcode: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=100)
    unit: Optional[ProductUnit] = None
    cost_price: Optional[Decimal] = Field(None, ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    min_stock_level: Optional[Decimal] = Field(None, ge=0)
    reorder_point: Optional[Decimal] = Field(None, ge=0)
    track_stock: Optional[bool] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("sku")
    @classmethod
    def normalise_sku(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else v


class StockAdjustment(BaseModel):
    quantity: Decimal = Field(..., ge=0)
    operation: StockOperation = "set"


class ProductResponse(ProductBase):
    id: int
    is_active: bool
    stock_status: StockStatus
    profit_margin: Decimal
    needs_reorder: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductListResponse(BaseModel):
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
