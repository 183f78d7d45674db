"""
Módulo de email: servicio SMTP con templates Jinja2 y tareas Celery.
"""

from .service import email_service
from .tasks import send_invoice_email_task

__all__ = [
    'email_service',
    'send_invoice_email_task'
]
