from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from invoice_marshal.database.database import get_db
from invoice_marshal.dependencies.userDependencies import user_dependency
from invoice_marshal.modules.invoices.notifications import InvoiceNotifier, get_invoice_notifier
from invoice_marshal.modules.invoices.service import InvoiceService, build_invoice_detail
from invoice_marshal.modules.invoices.models import InvoiceStatus
from invoice_marshal.modules.invoices.schemas import (
    InvoiceCreate, InvoiceUpdate, InvoiceOut, InvoiceDetail, InvoiceList,
    PaymentCreate, PaymentHistory, DashboardSummary, NextInvoiceNumber, InvoiceEmailResponse
)

# Router principal del módulo de facturas
router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(
    db: Session = Depends(get_db),
    notifier: InvoiceNotifier = Depends(get_invoice_notifier)
) -> InvoiceService:
    return InvoiceService(db, notifier=notifier)


@router.post("", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    current_user: user_dependency,
    service: InvoiceService = Depends(get_invoice_service)
):
    """
    Crear una nueva factura

    El total se calcula a partir de los items. El stock de los productos
    con inventario se descuenta en la misma transacción.
    """
    invoice = service.create_invoice(invoice_data, current_user.id)
    return build_invoice_detail(invoice)


@router.get("", response_model=InvoiceList)
def list_invoices(
    current_user: user_dependency,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    status: Optional[InvoiceStatus] = Query(None, description="Estado de la factura"),
    search: Optional[str] = Query(None, description="Buscar por nombre o cliente"),
    service: InvoiceService = Depends(get_invoice_service)
):
    """
    Listar facturas del usuario, más recientes primero
    """
    invoices, total = service.list_invoices(current_user.id, status=status, search=search, limit=limit, offset=offset)
    return InvoiceList(
        invoices=[InvoiceOut.model_validate(invoice) for invoice in invoices],
        total=total,
        limit=limit,
        offset=offset
    )


@router.get("/next-number", response_model=NextInvoiceNumber)
def next_invoice_number(current_user: user_dependency, service: InvoiceService = Depends(get_invoice_service)):
    """Número sugerido para la próxima factura"""
    return NextInvoiceNumber(next_number=service.next_invoice_number(current_user.id))


@router.get("/dashboard", response_model=DashboardSummary)
def dashboard(current_user: user_dependency, service: InvoiceService = Depends(get_invoice_service)):
    """Ingresos cobrados, saldo pendiente y facturas por estado"""
    return service.dashboard_summary(current_user.id)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(invoice_id: UUID, current_user: user_dependency, service: InvoiceService = Depends(get_invoice_service)):
    """
    Obtener detalle de una factura con sus items
    """
    return build_invoice_detail(service.get_invoice(invoice_id, current_user.id))


@router.put("/{invoice_id}", response_model=InvoiceDetail)
def update_invoice(
    invoice_id: UUID,
    invoice_data: InvoiceUpdate,
    current_user: user_dependency,
    service: InvoiceService = Depends(get_invoice_service)
):
    """
    Editar una factura reemplazando todos sus items
    """
    invoice = service.edit_invoice(invoice_id, invoice_data, current_user.id)
    return build_invoice_detail(invoice)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: UUID, current_user: user_dependency, service: InvoiceService = Depends(get_invoice_service)):
    """
    Eliminar una factura y devolver el stock de sus items
    """
    service.delete_invoice(invoice_id, current_user.id)


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceOut)
def mark_invoice_paid(invoice_id: UUID, current_user: user_dependency, service: InvoiceService = Depends(get_invoice_service)):
    """
    Marcar la factura como pagada sin registrar pagos
    """
    return service.mark_as_paid(invoice_id, current_user.id)


@router.post("/{invoice_id}/payments", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def add_payment(
    invoice_id: UUID,
    payment_data: PaymentCreate,
    current_user: user_dependency,
    service: InvoiceService = Depends(get_invoice_service)
):
    """
    Registrar un pago (parcial o total) y recalcular el estado
    """
    return service.record_payment(invoice_id, payment_data, current_user.id)


@router.get("/{invoice_id}/payments", response_model=PaymentHistory)
def get_invoice_payments(invoice_id: UUID, current_user: user_dependency, service: InvoiceService = Depends(get_invoice_service)):
    """
    Historial de pagos, más recientes primero, con el progreso de pago
    """
    return service.payment_history(invoice_id, current_user.id)


@router.get("/{invoice_id}/pdf")
def get_invoice_pdf(invoice_id: UUID, service: InvoiceService = Depends(get_invoice_service)):
    """
    Descargar el PDF de la factura. Público: el enlace viaja en el correo al cliente.
    """
    content, filename = service.render_pdf(invoice_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'}
    )


@router.post("/{invoice_id}/send-email", response_model=InvoiceEmailResponse, status_code=status.HTTP_202_ACCEPTED)
def send_invoice_email(invoice_id: UUID, current_user: user_dependency, service: InvoiceService = Depends(get_invoice_service)):
    """
    Enviar recordatorio de la factura al cliente y marcarla como EMAILED
    """
    invoice = service.send_reminder(invoice_id, current_user.id)
    return InvoiceEmailResponse(
        queued=True,
        status=invoice.status,
        message=f"Invoice #{invoice.invoice_number} queued for {invoice.client_email}"
    )
