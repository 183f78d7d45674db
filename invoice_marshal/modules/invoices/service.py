"""
Servicio de facturación: ciclo de vida de la factura, pagos e inventario.

Cada operación es una unidad de trabajo sobre la sesión: o hace commit una
vez o hace rollback completo. Los correos se despachan después del commit.
"""
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from invoice_marshal.common.currency import format_currency, to_money
from invoice_marshal.common.exceptions import (
    InvoiceNotFound, ProductNotFound, ValidationError, VariationNotFound
)
from invoice_marshal.modules.company.service import get_company_for_user
from invoice_marshal.modules.inventory.service import StockLedger
from invoice_marshal.modules.invoices.crud import InvoiceCrud
from invoice_marshal.modules.invoices.models import DERIVED_STATUSES, Invoice, InvoiceStatus, Payment
from invoice_marshal.modules.invoices.notifications import InvoiceEmailKind, InvoiceNotifier, notify
from invoice_marshal.modules.invoices.pdf import InvoiceSnapshot, render_invoice_pdf
from invoice_marshal.modules.invoices.schemas import (
    DashboardSummary, InvoiceCreate, InvoiceDetail, InvoiceItemIn, InvoiceItemOut,
    InvoiceOut, InvoiceUpdate, PaymentCreate, PaymentHistory, PaymentOut, parse_items
)
from invoice_marshal.modules.invoices.status import compute_status, payment_progress
from invoice_marshal.modules.products.crud import ProductCrud
from invoice_marshal.modules.products.models import Product

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_total(items: List[InvoiceItemIn]) -> Decimal:
    return to_money(sum((Decimal(item.quantity) * item.rate for item in items), Decimal("0")))


def build_invoice_detail(invoice: Invoice) -> InvoiceDetail:
    data = InvoiceOut.model_validate(invoice).model_dump()
    return InvoiceDetail(
        **data,
        items=[InvoiceItemOut.model_validate(item) for item in invoice.items],
        formatted_total=format_currency(invoice.total, invoice.currency),
        payment_progress=payment_progress(invoice.total, invoice.total_paid)
    )


class InvoiceService:
    """Servicio principal de facturas"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[InvoiceNotifier] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.crud = InvoiceCrud(db)
        self.products = ProductCrud(db)
        self.ledger = StockLedger(db)
        self.notifier = notifier
        self.clock = clock

    # Helpers

    def _load_products(self, items: List[InvoiceItemIn], owner_id: UUID) -> Dict[UUID, Product]:
        """Cargar los productos referenciados y validar sus variaciones"""
        products: Dict[UUID, Product] = {}
        for item in items:
            if item.variation_id and not item.product_id:
                raise ValidationError("items", "variation_id requires product_id")
            if not item.product_id:
                continue

            product = products.get(item.product_id)
            if product is None:
                product = self.products.find_product(item.product_id, owner_id)
                if product is None:
                    raise ProductNotFound()
                products[product.id] = product

            if item.variation_id and item.variation_id not in {v.id for v in product.variations}:
                raise VariationNotFound()
        return products

    def _item_rows(self, items: List[InvoiceItemIn]) -> List[dict]:
        return [
            {
                "description": item.description,
                "quantity": item.quantity,
                "rate": to_money(item.rate),
                "product_id": item.product_id,
                "variation_id": item.variation_id,
            }
            for item in items
        ]

    def _header(self, invoice_data: InvoiceCreate) -> dict:
        header = invoice_data.model_dump(exclude={"items", "total"})
        header["currency"] = invoice_data.currency.value
        return header

    def _check_client_total(self, invoice_data: InvoiceCreate, total: Decimal) -> None:
        if invoice_data.total is not None and to_money(invoice_data.total) != total:
            logger.warning(
                f"Client total {invoice_data.total} differs from computed total {total}; using computed total"
            )

    def _decrement_items(self, items: List[InvoiceItemIn], products: Dict[UUID, Product]) -> None:
        for item in items:
            if item.product_id:
                self.ledger.decrement(products[item.product_id], item.variation_id, item.quantity)

    def _restore_items(self, invoice: Invoice, owner_id: UUID) -> None:
        for item in invoice.items:
            if not item.product_id:
                continue
            product = self.products.find_product(item.product_id, owner_id)
            if product is None:
                continue
            self.ledger.restore(product, item.variation_id, item.quantity)

    def _notify(self, kind: InvoiceEmailKind, invoice: Invoice) -> bool:
        try:
            company = get_company_for_user(self.db, invoice.user_id)
        except Exception as e:
            logger.error(f"Could not load company for invoice {invoice.id} email: {e}")
            company = None
        return notify(self.notifier, kind, invoice, company)

    # Consultas

    def get_invoice(self, invoice_id: UUID, owner_id: UUID) -> Invoice:
        invoice = self.crud.find_invoice(invoice_id, owner_id)
        if not invoice:
            raise InvoiceNotFound()
        return invoice

    def list_invoices(
        self,
        owner_id: UUID,
        status: Optional[InvoiceStatus] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[Invoice], int]:
        return self.crud.list_invoices(owner_id, status=status, search=search, limit=limit, offset=offset)

    def next_invoice_number(self, owner_id: UUID) -> int:
        return self.crud.max_invoice_number(owner_id) + 1

    def dashboard_summary(self, owner_id: UUID) -> DashboardSummary:
        """Ingresos cobrados, saldo pendiente y conteo por estado"""
        revenue = Decimal("0")
        outstanding = Decimal("0")
        counts = Counter()

        invoices = self.crud.list_all_for_owner(owner_id)
        for invoice in invoices:
            total = Decimal(invoice.total)
            paid = Decimal(invoice.total_paid)
            revenue += paid
            counts[invoice.status.value] += 1
            if invoice.status in (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE):
                outstanding += total
            elif invoice.status == InvoiceStatus.PARTIALLY_PAID:
                outstanding += total - paid

        return DashboardSummary(
            total_revenue=to_money(revenue),
            outstanding=to_money(outstanding),
            invoice_count=len(invoices),
            status_counts={s.value: counts.get(s.value, 0) for s in InvoiceStatus}
        )

    # Ciclo de vida

    def create_invoice(self, invoice_data: InvoiceCreate, owner_id: UUID) -> Invoice:
        """
        Crear factura con sus items y descontar inventario en una sola transacción.
        El total se calcula en el servidor.
        """
        items = parse_items(invoice_data.items)
        products = self._load_products(items, owner_id)
        for item in items:
            if item.product_id:
                self.ledger.reserve(products[item.product_id], item.variation_id, item.quantity)

        total = compute_total(items)
        self._check_client_total(invoice_data, total)

        try:
            invoice = self.crud.create_invoice(
                {
                    **self._header(invoice_data),
                    "total": total,
                    "total_paid": Decimal("0"),
                    "status": InvoiceStatus.PENDING,
                },
                owner_id
            )
            self.crud.replace_items(invoice, self._item_rows(items))
            self._decrement_items(items, products)

            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice created: {invoice.id} (#{invoice.invoice_number}) total={total}")
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating invoice: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creating invoice"
            )

        self._notify(InvoiceEmailKind.CREATED, invoice)
        return invoice

    def edit_invoice(self, invoice_id: UUID, invoice_data: InvoiceUpdate, owner_id: UUID) -> Invoice:
        """
        Reemplazar cabecera e items. El stock que la factura ya tiene tomado
        cuenta como disponible para el mismo producto/variación.
        """
        invoice = self.get_invoice(invoice_id, owner_id)
        items = parse_items(invoice_data.items)
        products = self._load_products(items, owner_id)

        committed = Counter()
        for existing in invoice.items:
            if existing.product_id:
                committed[(existing.product_id, existing.variation_id)] += existing.quantity

        for item in items:
            if item.product_id:
                self.ledger.reserve(
                    products[item.product_id],
                    item.variation_id,
                    item.quantity,
                    already_committed=committed[(item.product_id, item.variation_id)]
                )

        total = compute_total(items)
        self._check_client_total(invoice_data, total)

        try:
            self._restore_items(invoice, owner_id)

            for field, value in self._header(invoice_data).items():
                setattr(invoice, field, value)
            self.crud.replace_items(invoice, self._item_rows(items))
            self._decrement_items(items, products)

            invoice.total = total
            if invoice.status in DERIVED_STATUSES:
                invoice.status = compute_status(
                    total, invoice.total_paid, invoice.issue_date, invoice.due_date_offset_days, self.clock()
                )

            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice updated: {invoice.id} total={total} status={invoice.status.value}")
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating invoice {invoice_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating invoice"
            )

        self._notify(InvoiceEmailKind.UPDATED, invoice)
        return invoice

    def delete_invoice(self, invoice_id: UUID, owner_id: UUID) -> None:
        """Eliminar factura devolviendo al inventario lo que tenía tomado"""
        invoice = self.get_invoice(invoice_id, owner_id)
        try:
            self._restore_items(invoice, owner_id)
            self.crud.delete_invoice(invoice)
            self.db.commit()
            logger.info(f"Invoice deleted: {invoice_id}")
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting invoice {invoice_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error deleting invoice"
            )

    def _set_status(self, invoice_id: UUID, owner_id: UUID, new_status: InvoiceStatus) -> Invoice:
        invoice = self.get_invoice(invoice_id, owner_id)
        try:
            invoice.status = new_status
            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice {invoice_id} status set to {new_status.value}")
            return invoice
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating status of invoice {invoice_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating invoice status"
            )

    def mark_as_paid(self, invoice_id: UUID, owner_id: UUID) -> Invoice:
        """Marcar como pagada manualmente; total_paid no se modifica"""
        return self._set_status(invoice_id, owner_id, InvoiceStatus.PAID)

    def mark_as_emailed(self, invoice_id: UUID, owner_id: UUID) -> Invoice:
        return self._set_status(invoice_id, owner_id, InvoiceStatus.EMAILED)

    def send_reminder(self, invoice_id: UUID, owner_id: UUID) -> Invoice:
        """Encolar el recordatorio al cliente y marcar la factura como EMAILED"""
        invoice = self.get_invoice(invoice_id, owner_id)
        if not self._notify(InvoiceEmailKind.REMINDER, invoice):
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Could not send invoice email"
            )
        return self.mark_as_emailed(invoice_id, owner_id)

    # Pagos

    def record_payment(self, invoice_id: UUID, payment_data: PaymentCreate, owner_id: UUID) -> Invoice:
        """
        Registrar un pago y recalcular total_paid y estado en la misma transacción.
        Se aceptan sobrepagos.
        """
        if payment_data.amount is None or payment_data.amount <= 0:
            raise ValidationError("amount", "Payment amount must be greater than 0")

        invoice = self.get_invoice(invoice_id, owner_id)
        now = self.clock()
        try:
            self.crud.create_payment(invoice, {
                "amount": to_money(payment_data.amount),
                "method": payment_data.method,
                "notes": payment_data.notes,
                "payment_date": now,
            })
            invoice.total_paid = self.crud.sum_payments(invoice.id)
            invoice.status = compute_status(
                invoice.total, invoice.total_paid, invoice.issue_date, invoice.due_date_offset_days, now
            )

            self.db.commit()
            self.db.refresh(invoice)
            logger.info(
                f"Payment of {payment_data.amount} recorded for invoice {invoice_id}: "
                f"total_paid={invoice.total_paid} status={invoice.status.value}"
            )
            return invoice
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error recording payment for invoice {invoice_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error recording payment"
            )

    def list_payments(self, invoice_id: UUID, owner_id: UUID) -> List[Payment]:
        """Pagos de la factura, más recientes primero"""
        invoice = self.get_invoice(invoice_id, owner_id)
        return self.crud.list_payments(invoice.id)

    def payment_history(self, invoice_id: UUID, owner_id: UUID) -> PaymentHistory:
        invoice = self.get_invoice(invoice_id, owner_id)
        payments = self.crud.list_payments(invoice.id)
        return PaymentHistory(
            payments=[PaymentOut.model_validate(p) for p in payments],
            total=invoice.total,
            total_paid=invoice.total_paid,
            balance_due=invoice.balance_due,
            progress=payment_progress(invoice.total, invoice.total_paid),
            status=invoice.status
        )

    # Estados y documentos

    def refresh_statuses(self, now: Optional[datetime] = None) -> int:
        """
        Recalcular el estado de las facturas con estado derivado.
        PAID y EMAILED no se tocan. Retorna cuántas cambiaron.
        """
        now = now or self.clock()
        changed = 0
        try:
            for invoice in self.crud.list_invoices_by_status(DERIVED_STATUSES):
                new_status = compute_status(
                    invoice.total, invoice.total_paid, invoice.issue_date, invoice.due_date_offset_days, now
                )
                if new_status != invoice.status:
                    logger.info(f"Invoice {invoice.id}: {invoice.status.value} -> {new_status.value}")
                    invoice.status = new_status
                    changed += 1
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error refreshing invoice statuses: {e}")
            raise
        return changed

    def render_pdf(self, invoice_id: UUID) -> Tuple[bytes, str]:
        """PDF de la factura por id (enlace público)"""
        invoice = self.crud.find_public_invoice(invoice_id)
        if not invoice:
            raise InvoiceNotFound()
        company = get_company_for_user(self.db, invoice.user_id)
        content = render_invoice_pdf(InvoiceSnapshot.from_invoice(invoice, company))
        return content, f"invoice-{invoice.invoice_number}.pdf"
