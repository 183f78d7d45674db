"""
Derivación del estado de una factura a partir de montos y fechas.

Funciones puras: no tocan la base de datos.
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from invoice_marshal.modules.invoices.models import InvoiceStatus


def due_at(issue_date: date, due_date_offset_days: int, tzinfo=None) -> datetime:
    """Medianoche del día de emisión más el plazo en días."""
    return datetime.combine(issue_date, time.min, tzinfo=tzinfo) + timedelta(days=due_date_offset_days)


def compute_status(
    total: Decimal,
    total_paid: Decimal,
    issue_date: date,
    due_date_offset_days: int,
    now: datetime
) -> InvoiceStatus:
    """
    Primera regla que aplica:

    1. total_paid >= total            -> PAID
    2. total_paid > 0                 -> PARTIALLY_PAID (aunque esté vencida)
    3. now > vencimiento              -> OVERDUE
    4. en otro caso                   -> PENDING

    EMAILED nunca se deriva.
    """
    total = Decimal(total)
    total_paid = Decimal(total_paid)

    if total_paid >= total:
        return InvoiceStatus.PAID
    if total_paid > 0:
        return InvoiceStatus.PARTIALLY_PAID
    if now > due_at(issue_date, due_date_offset_days, now.tzinfo):
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING


def payment_progress(total: Decimal, total_paid: Decimal) -> Decimal:
    """Porcentaje pagado en [0, 100]; 0 cuando el total es 0."""
    total = Decimal(total)
    if total <= 0:
        return Decimal("0")
    progress = (Decimal(total_paid) / total) * 100
    return min(progress, Decimal("100")).quantize(Decimal("0.01"))
