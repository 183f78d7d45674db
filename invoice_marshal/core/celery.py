"""
Celery configuration for background tasks
"""
from celery import Celery
import logging

logger = logging.getLogger(__name__)

# Import settings with error handling
try:
    from invoice_marshal.core.config import settings
    redis_url = settings.redis_url
    status_refresh_interval = settings.STATUS_REFRESH_INTERVAL_SECONDS
except Exception as e:
    logger.warning(f"Could not load settings: {e}")
    # Fallback URL for development
    redis_url = "redis://redis:6379/0"
    status_refresh_interval = 3600.0

# Create Celery instance
celery_app = Celery(
    "invoice_marshal",
    broker=redis_url,
    backend=redis_url,
    include=[
        "invoice_marshal.modules.email.tasks",
        "invoice_marshal.modules.invoices.tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Rate limiting
    task_default_rate_limit="100/m",

    # Result backend settings
    result_expires=3600,  # 1 hour

    # Task routes for different queues
    task_routes={
        "invoice_marshal.modules.email.tasks.*": {"queue": "email"},
        "invoice_marshal.modules.invoices.tasks.*": {"queue": "invoices"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "refresh-invoice-statuses": {
            "task": "invoice_marshal.modules.invoices.tasks.refresh_invoice_statuses",
            "schedule": status_refresh_interval,
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
