import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotificationDeliveryError
from app.models.alerts.notification_queue import NotificationQueue
from app.models.scheduling.shift_swap_request import ShiftSwapRequest
from app.models.shared.enums import NotificationStatus
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.shift_repository import ShiftRepository
from app.repositories.shift_swap_repository import ShiftSwapRepository
from app.services.communication.push_service import PushClient
from app.utils.date_time_serializer import serialize_dates, utc_now

logger = logging.getLogger(__name__)

SWAP_REQUEST_NOTIFICATION = "SHIFT_SWAP_REQUEST"

# Publishing happens on the request path, so a dead broker fails within a second
PUBLISH_RETRY_POLICY = {"max_retries": 1, "interval_start": 0, "interval_step": 0.2, "interval_max": 0.2}


class NotificationDispatcher:
    """
    Best-effort side channel for swap notifications. dispatch() is called after the
    swap request has been committed and never raises: a failed hand-off is logged and
    the core operation carries on.
    """

    def dispatch(self, tenant_id: int, swap_request: ShiftSwapRequest) -> bool:
        try:
            self._enqueue(tenant_id, swap_request)
            return True
        except Exception as e:
            logger.error(f"Failed to dispatch notification for swap request {swap_request.id} (tenant {tenant_id}): {e}")
            return False

    def _enqueue(self, tenant_id: int, swap_request: ShiftSwapRequest) -> None:
        logger.info(f"Notification dispatch disabled; swap request {swap_request.id} (tenant {tenant_id}) not sent")


class CeleryNotificationDispatcher(NotificationDispatcher):
    """Hands the notification to the Celery worker, which retries delivery on its own"""

    def _enqueue(self, tenant_id: int, swap_request: ShiftSwapRequest) -> None:
        # Import inside function to avoid circular imports
        from app.workers.celery_tasks.notification_tasks import send_swap_request_notification

        send_swap_request_notification.apply_async(
            args=(tenant_id, swap_request.id),
            retry=True,
            retry_policy=PUBLISH_RETRY_POLICY,
        )
        logger.info(f"Queued notification for swap request {swap_request.id} to employee {swap_request.requested_to}")


class SwapNotificationService:
    """Builds, records and delivers the push notification for a swap request (worker side)"""

    def __init__(self, db: AsyncSession, push_client: Optional[PushClient] = None):
        self.db = db
        self.push_client = push_client or PushClient()
        self.swaps = ShiftSwapRepository(db)
        self.shifts = ShiftRepository(db)
        self.employees = EmployeeRepository(db)

    async def send_swap_request_notification(
        self, tenant_id: int, swap_request_id: int, max_retries: int = 3
    ) -> Optional[NotificationQueue]:
        swap_request = await self.swaps.get(swap_request_id, tenant_id)
        if not swap_request:
            logger.warning(f"Swap request {swap_request_id} (tenant {tenant_id}) vanished before notification")
            return None

        recipient = await self.employees.get(swap_request.requested_to, tenant_id)
        if not recipient:
            logger.warning(f"Recipient {swap_request.requested_to} of swap request {swap_request_id} not found")
            return None

        notification = await self._get_or_create_entry(tenant_id, swap_request, recipient, max_retries)
        if notification.status == NotificationStatus.SENT:
            return notification

        try:
            result = await self.push_client.send(
                external_user_id=str(recipient.user_id or recipient.id),
                title=notification.subject,
                body=notification.message,
                data={"type": SWAP_REQUEST_NOTIFICATION, "swap_request_id": swap_request.id},
            )
        except NotificationDeliveryError as e:
            notification.retry_count = (notification.retry_count or 0) + 1
            notification.error_message = str(e)
            if notification.retry_count >= notification.max_retries:
                notification.status = NotificationStatus.FAILED.value
            await self.db.commit()
            raise

        if result.get("status") == "disabled":
            # Nothing was delivered; the row stays PENDING
            notification.error_message = "Push notifications disabled"
            await self.db.commit()
            await self.db.refresh(notification)
            logger.info(f"Swap request {swap_request_id} notification held: push notifications disabled")
            return notification

        if result.get("status") == "ok":
            notification.status = NotificationStatus.SENT.value
            notification.sent_at = utc_now()
            notification.error_message = None
        else:
            notification.status = NotificationStatus.FAILED.value
            notification.error_message = str(result.get("error") or result.get("provider_response"))
        await self.db.commit()
        await self.db.refresh(notification)

        logger.info(f"Swap request {swap_request_id} notification to employee {recipient.id}: {notification.status}")
        return notification

    async def _get_or_create_entry(self, tenant_id, swap_request, recipient, max_retries) -> NotificationQueue:
        existing = await self._find_entry(tenant_id, swap_request.id)
        if existing:
            return existing

        shift = await self.shifts.get(swap_request.shift_id, tenant_id)
        requester = await self.employees.get(swap_request.requested_by, tenant_id)
        template_data: Dict[str, Any] = {"swap_request_id": swap_request.id, "requested_by": swap_request.requested_by}
        when = ""
        if shift:
            when = f" on {shift.start_time:%d/%m} {shift.start_time:%H:%M} - {shift.end_time:%H:%M}"
            template_data.update(shift_id=shift.id, shift_start=shift.start_time, shift_end=shift.end_time)
        who = requester.full_name if requester else "A colleague"

        notification = NotificationQueue(
            tenant_id=tenant_id,
            notification_type=SWAP_REQUEST_NOTIFICATION,
            recipient_id=recipient.id,
            recipient_email=recipient.email,
            subject="New shift swap request",
            message=f"{who} asked to swap a shift with you{when}",
            template_name="shift_swap_request",
            template_data=serialize_dates(template_data),
            priority=1,
            status=NotificationStatus.PENDING.value,
            retry_count=0,
            max_retries=max_retries,
            reference_type="shift_swap_request",
            reference_id=swap_request.id,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def _find_entry(self, tenant_id: int, swap_request_id: int) -> Optional[NotificationQueue]:
        result = await self.db.execute(
            select(NotificationQueue).where(
                NotificationQueue.tenant_id == tenant_id,
                NotificationQueue.reference_type == "shift_swap_request",
                NotificationQueue.reference_id == swap_request_id,
                NotificationQueue.notification_type == SWAP_REQUEST_NOTIFICATION,
            )
        )
        return result.scalars().first()
