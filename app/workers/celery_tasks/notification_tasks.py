"""
Notification tasks - best-effort delivery of swap request notifications
"""
import asyncio
import logging

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.database import async_session_maker
from app.core.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)


def run_async_task(coro):
    """Helper function to run async coroutines in Celery tasks"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.error(f"Error in async task: {e}")
        raise
    finally:
        loop.close()


@celery_app.task(
    bind=True,
    autoretry_for=(NotificationDeliveryError,),
    max_retries=settings.NOTIFICATION_MAX_RETRIES,
    retry_backoff=settings.NOTIFICATION_RETRY_BACKOFF_SECONDS,
    retry_jitter=True,
)
def send_swap_request_notification(self, tenant_id: int, swap_request_id: int):
    """Record and push the notification for a newly created swap request"""
    async def _send():
        async with async_session_maker() as db:
            # Import inside function to avoid circular imports
            from app.services.notification.notification_service import SwapNotificationService

            service = SwapNotificationService(db)
            notification = await service.send_swap_request_notification(
                tenant_id, swap_request_id, max_retries=settings.NOTIFICATION_MAX_RETRIES
            )
            if notification is None:
                return f"Swap request {swap_request_id}: nothing to send"
            return f"Swap request {swap_request_id}: notification {notification.id} {notification.status}"

    logger.info(f"Sending swap request notification {swap_request_id} (attempt {self.request.retries + 1})")
    return run_async_task(_send())
