"""
Módulo de Facturación (Invoices) - Invoice Marshal

Este módulo maneja el ciclo de vida de las facturas:

- Creación y edición con items de catálogo o libres
- Integración con inventario (descuento y devolución de stock)
- Registro de pagos parciales y estado derivado
- PDF público por factura
- Envío por email (creación, edición y recordatorio)

Tablas principales:
- invoices: Facturas
- invoice_items: Ítems de factura
- payments: Pagos de facturas
"""

from .models import Invoice, InvoiceItem, Payment, InvoiceStatus
from .schemas import (
    InvoiceCreate, InvoiceUpdate, InvoiceOut, InvoiceDetail,
    PaymentCreate, PaymentOut
)
from .service import InvoiceService
from .router import router

__all__ = [
    "Invoice", "InvoiceItem", "Payment", "InvoiceStatus",
    "InvoiceCreate", "InvoiceUpdate", "InvoiceOut", "InvoiceDetail",
    "PaymentCreate", "PaymentOut",
    "InvoiceService",
    "router"
]
