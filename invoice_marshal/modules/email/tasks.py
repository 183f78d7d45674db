"""
Tareas asíncronas de Celery para el envío de correos electrónicos.
"""
import logging
from typing import Dict, Any
from invoice_marshal.core.celery import celery_app
from invoice_marshal.modules.email.service import email_service

logger = logging.getLogger(__name__)

INVOICE_TEMPLATES = {
    "created": "invoice_created.html",
    "updated": "invoice_updated.html",
    "reminder": "invoice_reminder.html",
}


def invoice_email_subject(kind: str, variables: Dict[str, Any]) -> str:
    number = variables.get("invoice_number", "")
    sender = variables.get("from_name", "")
    if kind == "updated":
        return f"Invoice #{number} has been updated"
    if kind == "reminder":
        return f"Invoice #{number} from {sender}"
    return f"New invoice #{number} from {sender}"


@celery_app.task(bind=True, max_retries=3)
def send_invoice_email_task(self, kind: str, recipient: str, variables: Dict[str, Any]):
    """
    Enviar correo de factura (created, updated o reminder).

    Args:
        kind: Tipo de correo
        recipient: Email del cliente
        variables: Datos ya formateados (cliente, número, vencimiento, total, link)
    """
    try:
        template_name = INVOICE_TEMPLATES.get(kind)
        if template_name is None:
            # Un tipo desconocido no se reintenta
            logger.error(f"Unknown invoice email kind: {kind}")
            return {"status": "failed", "error": f"unknown kind {kind}", "recipients": [recipient]}

        success = email_service.send_template_email(
            to_emails=[recipient],
            subject=invoice_email_subject(kind, variables),
            template_name=template_name,
            context=variables,
            from_name=variables.get("from_name"),
            reply_to=variables.get("from_email")
        )

        if not success:
            raise Exception("Failed to send invoice email")

        logger.info(f"Invoice email ({kind}) sent to {recipient} for invoice #{variables.get('invoice_number')}")
        return {"status": "success", "recipients": [recipient]}

    except Exception as exc:
        logger.error(f"Invoice email sending failed: {str(exc)}")

        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))

        return {"status": "failed", "error": str(exc), "recipients": [recipient]}
