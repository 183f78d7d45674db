from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from decimal import Decimal
from typing import Optional, List, Union, Dict
from uuid import UUID
from datetime import date, datetime
import json

from invoice_marshal.common.currency import Currency
from invoice_marshal.common.exceptions import MalformedPayload, ValidationError
from invoice_marshal.modules.invoices.models import InvoiceStatus


# Item Schemas
class InvoiceItemIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(..., ge=1, description="Cantidad entera, mínimo 1")
    rate: Decimal = Field(..., ge=0, description="Precio unitario")
    product_id: Optional[UUID] = None
    variation_id: Optional[UUID] = None

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Description is required')
        return v


class InvoiceItemOut(BaseModel):
    id: UUID
    description: str
    quantity: int
    rate: Decimal
    subtotal: Decimal
    product_id: Optional[UUID] = None
    variation_id: Optional[UUID] = None

    class Config:
        from_attributes = True


_item_list_adapter = TypeAdapter(List[InvoiceItemIn])


def parse_items(raw: Union[List[InvoiceItemIn], str]) -> List[InvoiceItemIn]:
    """
    Normalizar la lista de items. Algunos clientes envían la lista
    serializada como string JSON; si no se puede interpretar se rechaza.
    """
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedPayload(f"Invalid items payload: {e.msg}")
        try:
            items = _item_list_adapter.validate_python(decoded)
        except PydanticValidationError as e:
            raise MalformedPayload(f"Invalid items payload: {e.error_count()} validation error(s)")
    else:
        items = list(raw)

    if not items:
        raise ValidationError("items", "At least one item is required")
    return items


# Invoice Schemas
class InvoiceBase(BaseModel):
    invoice_name: str = Field(..., min_length=1, max_length=200)
    invoice_number: int = Field(..., ge=1)
    issue_date: date = Field(default_factory=date.today)
    due_date_offset_days: int = Field(..., ge=0, description="Días de plazo desde la fecha de emisión")
    currency: Currency = Currency.USD
    from_name: str = Field(..., min_length=1, max_length=200)
    from_email: EmailStr
    from_address: str = Field(..., min_length=1)
    client_name: str = Field(..., min_length=1, max_length=200)
    client_email: EmailStr
    client_address: str = Field(..., min_length=1)
    note: Optional[str] = None


class InvoiceCreate(InvoiceBase):
    items: Union[List[InvoiceItemIn], str] = Field(..., description="Lista de items o string JSON")
    total: Optional[Decimal] = Field(None, description="Ignorado: el total se calcula en el servidor")


class InvoiceUpdate(InvoiceCreate):
    pass


class InvoiceOut(InvoiceBase):
    id: UUID
    status: InvoiceStatus
    total: Decimal
    total_paid: Decimal
    balance_due: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    items: List[InvoiceItemOut] = []
    formatted_total: str
    payment_progress: Decimal


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int


# Payment Schemas
class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Monto debe ser mayor a 0")
    method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    id: UUID
    invoice_id: UUID
    amount: Decimal
    method: Optional[str] = None
    notes: Optional[str] = None
    payment_date: datetime

    class Config:
        from_attributes = True


class PaymentHistory(BaseModel):
    payments: List[PaymentOut]
    total: Decimal
    total_paid: Decimal
    balance_due: Decimal
    progress: Decimal
    status: InvoiceStatus


# Dashboard
class DashboardSummary(BaseModel):
    total_revenue: Decimal
    outstanding: Decimal
    invoice_count: int
    status_counts: Dict[str, int]


class NextInvoiceNumber(BaseModel):
    next_number: int


class InvoiceEmailResponse(BaseModel):
    queued: bool
    status: InvoiceStatus
    message: str
