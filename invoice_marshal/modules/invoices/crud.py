"""
CRUD operations para el módulo de Facturas

Única capa del núcleo de facturación que usa la API de consultas del ORM.
Ninguna función hace commit: el service controla la transacción.
"""

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, or_
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from invoice_marshal.modules.invoices.models import Invoice, InvoiceItem, Payment, InvoiceStatus


class InvoiceCrud:
    """Operaciones de datos para facturas, items y pagos"""

    def __init__(self, db: Session):
        self.db = db

    def find_invoice(self, invoice_id: UUID, owner_id: UUID) -> Optional[Invoice]:
        """Obtener factura del propietario con sus items"""
        return self.db.query(Invoice).options(
            selectinload(Invoice.items)
        ).filter(
            Invoice.id == invoice_id,
            Invoice.user_id == owner_id
        ).first()

    def find_public_invoice(self, invoice_id: UUID) -> Optional[Invoice]:
        """Obtener factura sólo por id, para el enlace público del PDF"""
        return self.db.query(Invoice).options(
            selectinload(Invoice.items)
        ).filter(Invoice.id == invoice_id).first()

    def create_invoice(self, invoice_data: dict, owner_id: UUID) -> Invoice:
        invoice = Invoice(**invoice_data, user_id=owner_id)
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def replace_items(self, invoice: Invoice, items: List[dict]) -> List[InvoiceItem]:
        """Borrar todos los items y crear el nuevo conjunto, en orden"""
        for existing in list(invoice.items):
            invoice.items.remove(existing)
        self.db.flush()

        new_items = []
        for position, item_data in enumerate(items):
            item = InvoiceItem(**item_data, position=position)
            invoice.items.append(item)
            new_items.append(item)
        self.db.flush()
        return new_items

    def delete_invoice(self, invoice: Invoice) -> None:
        self.db.delete(invoice)
        self.db.flush()

    def list_invoices(
        self,
        owner_id: UUID,
        status: Optional[InvoiceStatus] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[Invoice], int]:
        """Listar facturas con filtros, más recientes primero"""
        query = self.db.query(Invoice).filter(Invoice.user_id == owner_id)

        if status:
            query = query.filter(Invoice.status == status)

        if search:
            search_term = f"%{search}%"
            query = query.filter(
                or_(
                    Invoice.invoice_name.ilike(search_term),
                    Invoice.client_name.ilike(search_term),
                    Invoice.client_email.ilike(search_term)
                )
            )

        total = query.count()
        invoices = query.order_by(
            Invoice.created_at.desc(), Invoice.invoice_number.desc()
        ).offset(offset).limit(limit).all()

        return invoices, total

    def list_invoices_by_status(self, statuses) -> List[Invoice]:
        """Facturas de todos los usuarios en los estados dados"""
        return self.db.query(Invoice).filter(Invoice.status.in_(statuses)).all()

    def max_invoice_number(self, owner_id: UUID) -> int:
        return self.db.query(func.max(Invoice.invoice_number)).filter(
            Invoice.user_id == owner_id
        ).scalar() or 0

    def list_all_for_owner(self, owner_id: UUID) -> List[Invoice]:
        return self.db.query(Invoice).filter(Invoice.user_id == owner_id).all()

    # Pagos

    def list_payments(self, invoice_id: UUID) -> List[Payment]:
        return self.db.query(Payment).filter(
            Payment.invoice_id == invoice_id
        ).order_by(Payment.payment_date.desc()).all()

    def create_payment(self, invoice: Invoice, payment_data: dict) -> Payment:
        payment = Payment(invoice_id=invoice.id, **payment_data)
        self.db.add(payment)
        self.db.flush()
        return payment

    def sum_payments(self, invoice_id: UUID) -> Decimal:
        total = self.db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.invoice_id == invoice_id
        ).scalar()
        return Decimal(str(total)).quantize(Decimal("0.01"))
