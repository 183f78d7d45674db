"""
Tareas periódicas de facturación.
"""
import logging
from invoice_marshal.core.celery import celery_app
from invoice_marshal.database.database import SessionLocal
from invoice_marshal.modules.invoices.service import InvoiceService

logger = logging.getLogger(__name__)


@celery_app.task(name="invoice_marshal.modules.invoices.tasks.refresh_invoice_statuses")
def refresh_invoice_statuses():
    """
    Pasar a OVERDUE las facturas vencidas sin pagos. Sólo toca estados derivados.
    """
    db = SessionLocal()
    try:
        changed = InvoiceService(db).refresh_statuses()
        logger.info(f"Invoice status refresh finished: {changed} updated")
        return {"status": "success", "updated": changed}
    finally:
        db.close()
