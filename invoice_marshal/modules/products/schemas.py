from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from invoice_marshal.common.currency import Currency
from invoice_marshal.modules.products.models import ProductType


# Variation Schemas
class VariationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="Atributo, p.ej. Size")
    value: str = Field(..., min_length=1, max_length=50, description="Valor, p.ej. L")
    price_adjust: Decimal = Field(default=Decimal("0"), description="Se suma al precio base")
    stock_qty: int = Field(default=0, ge=0)


class VariationCreate(VariationBase):
    pass


class VariationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    value: Optional[str] = Field(None, min_length=1, max_length=50)
    price_adjust: Optional[Decimal] = None
    stock_qty: Optional[int] = Field(None, ge=0)


class VariationOut(VariationBase):
    id: UUID
    product_id: UUID

    class Config:
        from_attributes = True


# Product Schemas
class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=50)
    type: ProductType = ProductType.SERVICE
    base_price: Decimal = Field(..., ge=0)
    currency: Currency = Currency.USD
    track_stock: bool = False
    stock_qty: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=0, ge=0)
    reorder_point: int = Field(default=0, ge=0)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Product name is required')
        return v


class ProductCreate(ProductBase):
    variations: List[VariationCreate] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=50)
    type: Optional[ProductType] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[Currency] = None
    track_stock: Optional[bool] = None
    min_stock_level: Optional[int] = Field(None, ge=0)
    reorder_point: Optional[int] = Field(None, ge=0)


class StockUpdate(BaseModel):
    """Ajuste manual del inventario a una cantidad absoluta"""
    stock_qty: int = Field(..., ge=0)
    variation_id: Optional[UUID] = None


class ProductOut(ProductBase):
    id: UUID
    is_low_stock: bool
    variations: List[VariationOut] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LowStockProduct(BaseModel):
    id: UUID
    name: str
    sku: Optional[str] = None
    stock_qty: int
    min_stock_level: int
    reorder_point: int

    class Config:
        from_attributes = True


class LowStockResponse(BaseModel):
    products: List[LowStockProduct]
    total_count: int
