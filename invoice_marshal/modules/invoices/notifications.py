"""
Notificaciones por correo de facturas.

El envío nunca forma parte de la transacción de la factura: se encola
después del commit y cualquier fallo sólo se registra en el log.
"""
from enum import Enum
from typing import Any, Dict, Optional, Protocol
import logging

from invoice_marshal.common.currency import format_currency
from invoice_marshal.core.config import settings
from invoice_marshal.modules.invoices.models import Invoice
from invoice_marshal.modules.invoices.status import due_at

logger = logging.getLogger(__name__)


class InvoiceEmailKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    REMINDER = "reminder"


class InvoiceNotifier(Protocol):
    def send_invoice_email(self, kind: InvoiceEmailKind, recipient: str, variables: Dict[str, Any]) -> bool:
        ...


class CeleryInvoiceNotifier:
    """Encola el correo en la cola de email de Celery."""

    def send_invoice_email(self, kind: InvoiceEmailKind, recipient: str, variables: Dict[str, Any]) -> bool:
        from invoice_marshal.modules.email.tasks import send_invoice_email_task

        try:
            task = send_invoice_email_task.delay(kind.value, recipient, variables)
            logger.info(f"Invoice email ({kind.value}) queued for {recipient}: task {task.id}")
            return True
        except Exception as e:
            logger.error(f"Could not queue invoice email ({kind.value}) for {recipient}: {e}")
            return False


def get_invoice_notifier() -> InvoiceNotifier:
    return CeleryInvoiceNotifier()


def sender_identity(invoice: Invoice, company=None) -> Dict[str, str]:
    """La empresa del usuario, si existe, reemplaza los datos "from" de la factura."""
    if company is not None:
        return {
            "from_name": company.name,
            "from_email": company.email,
            "from_address": company.address or invoice.from_address,
        }
    return {
        "from_name": invoice.from_name,
        "from_email": invoice.from_email,
        "from_address": invoice.from_address,
    }


def build_email_variables(invoice: Invoice, company=None) -> Dict[str, Any]:
    """Variables de template ya formateadas, serializables a JSON."""
    variables = {
        "client_name": invoice.client_name,
        "invoice_number": invoice.invoice_number,
        "invoice_name": invoice.invoice_name,
        "due_date": due_at(invoice.issue_date, invoice.due_date_offset_days).strftime("%B %d, %Y"),
        "total_amount": format_currency(invoice.total, invoice.currency),
        "balance_due": None,
        "invoice_link": settings.invoice_pdf_url(invoice.id),
        "note": invoice.note,
    }
    if invoice.total_paid and invoice.balance_due > 0:
        variables["balance_due"] = format_currency(invoice.balance_due, invoice.currency)
    variables.update(sender_identity(invoice, company))
    return variables


def notify(
    notifier: Optional[InvoiceNotifier],
    kind: InvoiceEmailKind,
    invoice: Invoice,
    company=None
) -> bool:
    """Despachar la notificación sin propagar errores."""
    if notifier is None:
        return False
    try:
        return bool(notifier.send_invoice_email(kind, invoice.client_email, build_email_variables(invoice, company)))
    except Exception as e:
        logger.error(f"Invoice email ({kind.value}) for invoice {invoice.id} failed: {e}")
        return False
