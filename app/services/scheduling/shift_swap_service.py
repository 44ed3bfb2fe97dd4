import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import Actor, Capability, PermissionChecker, require_capability
from app.core.config import settings
from app.core.exceptions import (
    NotFoundError, PermissionDeniedError, ServiceUnavailableError, StateConflictError, ValidationError
)
from app.models.scheduling.shift import Shift
from app.models.scheduling.shift_swap_request import ShiftSwapRequest
from app.models.shared.enums import AssignmentStatus, ScheduleStatus, SwapRequestStatus
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.schedule_repository import ScheduleRepository
from app.repositories.shift_repository import ShiftRepository
from app.repositories.shift_swap_repository import ShiftSwapRepository
from app.schemas.scheduling.shift_swap_schema import ShiftSwapRequestCreate
from app.services.notification.notification_service import CeleryNotificationDispatcher, NotificationDispatcher
from app.services.scheduling.shift_service import ShiftService
from app.utils.date_time_serializer import utc_now

logger = logging.getLogger(__name__)


class ShiftSwapService:
    """
    Negotiates shift swaps between employees.

    A request starts pending and ends approved, rejected or cancelled. Every
    transition goes through a guarded update on status='pending', so when two
    actors race on the same request exactly one wins and the other gets a
    StateConflictError.
    """

    def __init__(
        self,
        session: AsyncSession,
        swap_repository: Optional[ShiftSwapRepository] = None,
        shift_repository: Optional[ShiftRepository] = None,
        schedule_repository: Optional[ScheduleRepository] = None,
        employee_repository: Optional[EmployeeRepository] = None,
        shift_service: Optional[ShiftService] = None,
        notifier: Optional[NotificationDispatcher] = None,
    ):
        self.session = session
        self.swaps = swap_repository or ShiftSwapRepository(session)
        self.shifts = shift_repository or ShiftRepository(session)
        self.schedules = schedule_repository or ScheduleRepository(session)
        self.employees = employee_repository or EmployeeRepository(session)
        self.shift_service = shift_service or ShiftService(
            session,
            shift_repository=self.shifts,
            schedule_repository=self.schedules,
            employee_repository=self.employees,
        )
        self.notifier = notifier or CeleryNotificationDispatcher()

    # region ---------- Queries ----------

    async def get_swap_request(self, swap_request_id: int, tenant_id: int) -> ShiftSwapRequest:
        swap_request = await self.swaps.get(swap_request_id, tenant_id)
        if not swap_request:
            raise NotFoundError("Swap request not found")
        return swap_request

    async def get_all_swap_requests(
        self,
        tenant_id: int,
        status: Optional[SwapRequestStatus] = None,
        employee_id: Optional[int] = None,
        shift_id: Optional[int] = None,
    ) -> List[ShiftSwapRequest]:
        return await self.swaps.list(tenant_id, status=status, employee_id=employee_id, shift_id=shift_id)

    async def get_swap_requests_by_employee(
        self, tenant_id: int, employee_id: int, status: Optional[SwapRequestStatus] = None
    ) -> List[ShiftSwapRequest]:
        return await self.swaps.list(tenant_id, status=status, employee_id=employee_id)

    async def list_visible_swap_requests(
        self,
        tenant_id: int,
        actor: Actor,
        status: Optional[SwapRequestStatus] = None,
        shift_id: Optional[int] = None,
    ) -> List[ShiftSwapRequest]:
        """Managers see every request in the tenant, everyone else only their own"""
        if PermissionChecker(actor).can(Capability.VIEW_ALL_SWAPS):
            return await self.get_all_swap_requests(tenant_id, status=status, shift_id=shift_id)
        if actor.employee_id is None:
            return []
        requests = await self.get_swap_requests_by_employee(tenant_id, actor.employee_id, status=status)
        if shift_id is not None:
            requests = [r for r in requests if shift_id in (r.shift_id, r.target_shift_id)]
        return requests

    # endregion

    # region ---------- Create ----------

    async def create_swap_request(
        self, tenant_id: int, data: ShiftSwapRequestCreate, actor: Actor
    ) -> List[ShiftSwapRequest]:
        """
        Create a targeted request, or one request per active employee sharing the
        shift's role when broadcasting. Notifications go out after the commit.
        """
        require_capability(actor, Capability.REQUEST_SWAPS)
        requester_id = actor.employee_id
        if requester_id is None:
            raise ValidationError("An employee profile is required to request a shift swap")

        try:
            shift = await self.shifts.get(data.shift_id, tenant_id)
            if not shift:
                raise NotFoundError("Shift not found or does not belong to this tenant")
            if shift.employee_id != requester_id:
                raise PermissionDeniedError("Only the assigned employee can request a swap")

            schedule = await self.schedules.get(shift.schedule_id, tenant_id)
            if schedule and schedule.status == ScheduleStatus.LOCKED:
                raise StateConflictError("Cannot request a swap for a shift in a locked schedule")

            if data.broadcast_to_role:
                if data.target_shift_id is not None:
                    raise ValidationError("A target shift cannot be combined with a role broadcast")
                recipients = await self._broadcast_recipients(tenant_id, shift, requester_id)
                target_shift_id = None
            else:
                recipients = [await self._targeted_recipient(tenant_id, data, requester_id)]
                target_shift_id = data.target_shift_id

            created = []
            for recipient_id in recipients:
                swap_request = ShiftSwapRequest(
                    tenant_id=tenant_id,
                    shift_id=shift.id,
                    requested_by=requester_id,
                    requested_to=recipient_id,
                    target_shift_id=target_shift_id,
                    status=SwapRequestStatus.PENDING,
                    reason=data.reason,
                    notes=data.notes,
                    created_by=actor.user_id,
                )
                self.swaps.add(swap_request)
                created.append(swap_request)

            await self.session.commit()

        except HTTPException as e:
            await self.session.rollback()
            logger.warning(f"Swap request for shift {data.shift_id} rejected: {e.detail}")
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating swap request for shift {data.shift_id}: {e}")
            raise ServiceUnavailableError("Error creating swap request")

        for swap_request in created:
            await self.session.refresh(swap_request)
        logger.info(
            f"Created {len(created)} swap request(s) for shift {data.shift_id} "
            f"(tenant {tenant_id}) by employee {requester_id}"
        )

        for swap_request in created:
            self.notifier.dispatch(tenant_id, swap_request)
        return created

    async def _targeted_recipient(self, tenant_id: int, data: ShiftSwapRequestCreate, requester_id: int) -> int:
        if data.requested_to is None:
            raise ValidationError("Either requested_to or broadcast_to_role must be specified")
        if data.requested_to == requester_id:
            raise ValidationError("Cannot request a swap with yourself")
        if not await self.employees.get_active(data.requested_to, tenant_id):
            raise NotFoundError("Requested employee not found or not active")

        if data.target_shift_id is not None:
            target = await self.shifts.get(data.target_shift_id, tenant_id)
            if not target or target.employee_id != data.requested_to:
                raise NotFoundError("Target shift not found or does not belong to requested employee")
        return data.requested_to

    async def _broadcast_recipients(self, tenant_id: int, shift: Shift, requester_id: int) -> List[int]:
        if not shift.role:
            raise ValidationError("Shift has no role to broadcast to")
        candidates = await self.employees.get_active_by_role(tenant_id, shift.role, exclude_id=requester_id)
        if not candidates:
            raise NotFoundError(f"No active employees found with role '{shift.role}'")
        return [employee.id for employee in candidates]

    # endregion

    # region ---------- Transitions ----------

    async def approve_swap_request(self, tenant_id: int, swap_request_id: int, actor: Actor) -> ShiftSwapRequest:
        """
        Approve a pending request and move the shifts in one transaction:
        a two-way swap exchanges the two assignees, a one-way swap hands the
        source shift to the requestee.
        """
        require_capability(actor, Capability.APPROVE_SWAPS)
        try:
            swap_request = await self.get_swap_request(swap_request_id, tenant_id)
            self._ensure_pending(swap_request, "approved")

            now = utc_now()
            won = await self.swaps.transition_if_pending(
                swap_request_id, tenant_id,
                status=SwapRequestStatus.APPROVED,
                approved_by=actor.user_id,
                approved_at=now,
                updated_by=actor.user_id,
            )
            if not won:
                raise StateConflictError("Only pending swap requests can be approved")

            source = await self.shifts.get_for_update(swap_request.shift_id, tenant_id)
            if not source:
                raise NotFoundError("Original shift not found")
            if source.employee_id != swap_request.requested_by:
                raise StateConflictError("Shift is no longer assigned to the requesting employee")
            await self._ensure_schedule_not_locked(source, tenant_id)

            swapped = [source]
            if swap_request.target_shift_id is not None:
                target = await self.shifts.get_for_update(swap_request.target_shift_id, tenant_id)
                if not target:
                    raise NotFoundError("Target shift not found")
                if target.employee_id != swap_request.requested_to:
                    raise StateConflictError("Target shift is no longer assigned to the requested employee")
                await self._ensure_schedule_not_locked(target, tenant_id)

                source.employee_id, target.employee_id = target.employee_id, source.employee_id
                swapped.append(target)
            else:
                source.employee_id = swap_request.requested_to

            for shift in swapped:
                shift.assignment_status = AssignmentStatus.SWAPPED
                shift.updated_by = actor.user_id
            await self.shifts.flush()

            for schedule_id in sorted({shift.schedule_id for shift in swapped}):
                for employee_id in (swap_request.requested_by, swap_request.requested_to):
                    await self.shift_service.refresh_employee_conflicts(schedule_id, tenant_id, employee_id)

            superseded = 0
            if settings.AUTO_REJECT_SIBLING_SWAPS:
                superseded = await self._reject_siblings(
                    tenant_id, swap_request, [shift.id for shift in swapped], actor, now
                )

            await self.session.commit()

        except HTTPException as e:
            await self.session.rollback()
            logger.warning(f"Approval of swap request {swap_request_id} rejected: {e.detail}")
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error approving swap request {swap_request_id}: {e}")
            raise ServiceUnavailableError("Error approving swap request")

        await self.session.refresh(swap_request)
        logger.info(
            f"Swap request approved: {swap_request_id} (tenant {tenant_id}) by user {actor.user_id}, "
            f"{superseded} sibling request(s) superseded"
        )
        return swap_request

    async def reject_swap_request(
        self, tenant_id: int, swap_request_id: int, actor: Actor, rejection_reason: Optional[str]
    ) -> ShiftSwapRequest:
        require_capability(actor, Capability.APPROVE_SWAPS)
        try:
            if not rejection_reason or not rejection_reason.strip():
                raise ValidationError("Rejection reason is required")

            swap_request = await self.get_swap_request(swap_request_id, tenant_id)
            self._ensure_pending(swap_request, "rejected")

            won = await self.swaps.transition_if_pending(
                swap_request_id, tenant_id,
                status=SwapRequestStatus.REJECTED,
                rejected_by=actor.user_id,
                rejected_at=utc_now(),
                rejection_reason=rejection_reason.strip(),
                updated_by=actor.user_id,
            )
            if not won:
                raise StateConflictError("Only pending swap requests can be rejected")

            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error rejecting swap request {swap_request_id}: {e}")
            raise ServiceUnavailableError("Error rejecting swap request")

        await self.session.refresh(swap_request)
        logger.info(f"Swap request rejected: {swap_request_id} (tenant {tenant_id}) by user {actor.user_id}")
        return swap_request

    async def cancel_swap_request(self, tenant_id: int, swap_request_id: int, actor: Actor) -> ShiftSwapRequest:
        require_capability(actor, Capability.REQUEST_SWAPS)
        try:
            swap_request = await self.get_swap_request(swap_request_id, tenant_id)
            self._ensure_pending(swap_request, "cancelled")
            if actor.employee_id is None or swap_request.requested_by != actor.employee_id:
                raise PermissionDeniedError("Only the requester can cancel a swap request")

            won = await self.swaps.transition_if_pending(
                swap_request_id, tenant_id,
                status=SwapRequestStatus.CANCELLED,
                cancelled_by=actor.employee_id,
                cancelled_at=utc_now(),
                updated_by=actor.user_id,
            )
            if not won:
                raise StateConflictError("Only pending swap requests can be cancelled")

            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error cancelling swap request {swap_request_id}: {e}")
            raise ServiceUnavailableError("Error cancelling swap request")

        await self.session.refresh(swap_request)
        logger.info(f"Swap request cancelled: {swap_request_id} (tenant {tenant_id}) by employee {actor.employee_id}")
        return swap_request

    # endregion

    async def _reject_siblings(
        self, tenant_id: int, approved: ShiftSwapRequest, shift_ids: List[int], actor: Actor, now
    ) -> int:
        siblings = await self.swaps.list_pending_for_shifts(tenant_id, shift_ids, exclude_id=approved.id)
        superseded = 0
        for sibling in siblings:
            if await self.swaps.transition_if_pending(
                sibling.id, tenant_id,
                status=SwapRequestStatus.REJECTED,
                rejected_by=actor.user_id,
                rejected_at=now,
                rejection_reason=f"Superseded by approved swap request #{approved.id}",
                updated_by=actor.user_id,
            ):
                superseded += 1
        return superseded

    async def _ensure_schedule_not_locked(self, shift: Shift, tenant_id: int) -> None:
        schedule = await self.schedules.get(shift.schedule_id, tenant_id)
        if schedule and schedule.status == ScheduleStatus.LOCKED:
            raise StateConflictError("Cannot swap shifts in a locked schedule")

    @staticmethod
    def _ensure_pending(swap_request: ShiftSwapRequest, action: str) -> None:
        if swap_request.status != SwapRequestStatus.PENDING:
            raise StateConflictError(f"Only pending swap requests can be {action}")
