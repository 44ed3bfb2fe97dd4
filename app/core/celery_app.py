from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from app.core.config import settings
import sys

# Create Celery app
celery_app = Celery(
    "shift_coordinator",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.workers.celery_tasks.notification_tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_acks_late=True,
    # Producers publish from the request path
    broker_connection_timeout=2,
    task_routes={
        "app.workers.celery_tasks.notification_tasks.*": {"queue": "notifications"},
    }
)

# Windows-specific configuration
if sys.platform == 'win32':
    celery_app.conf.update(
        worker_pool='threads',
        worker_concurrency=4
    )


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the application's logging config instead of Celery's default"""
    from app.core.logging_config import setup_logging
    setup_logging()
