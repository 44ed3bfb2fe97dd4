import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import Actor, Capability, require_capability
from app.core.config import settings
from app.core.exceptions import NotFoundError, ServiceUnavailableError, StateConflictError, ValidationError
from app.models.scheduling.schedule import Schedule
from app.models.scheduling.shift import Shift
from app.models.shared.enums import AssignmentStatus, ScheduleStatus
from app.repositories.schedule_repository import ScheduleRepository
from app.repositories.shift_repository import ShiftRepository
from app.schemas.scheduling.schedule_schema import (
    ScheduleCopy, ScheduleCreate, ScheduleDetail, SchedulePublishResult, ScheduleResponse,
    ScheduleSummary, ScheduleUpdate
)
from app.schemas.scheduling.shift_schema import ShiftResponse
from app.services.scheduling.shift_service import ShiftService
from app.utils.date_time_serializer import utc_now
from app.utils.validators.validation_utils import validate_date_range

logger = logging.getLogger(__name__)


class ScheduleService:
    """
    Owns the schedule lifecycle:

        draft -> published -> locked
        locked -> published   (unlock, reason required)
        published -> draft    (unpublish)

    Only drafts can be deleted. At most one published schedule may cover any
    given day for a tenant (or department, when configured).
    """

    def __init__(
        self,
        session: AsyncSession,
        schedule_repository: Optional[ScheduleRepository] = None,
        shift_repository: Optional[ShiftRepository] = None,
        shift_service: Optional[ShiftService] = None,
    ):
        self.session = session
        self.schedules = schedule_repository or ScheduleRepository(session)
        self.shifts = shift_repository or ShiftRepository(session)
        self.shift_service = shift_service or ShiftService(
            session, shift_repository=self.shifts, schedule_repository=self.schedules
        )

    # region ---------- Queries ----------

    async def get_schedules(
        self,
        tenant_id: int,
        status: Optional[ScheduleStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        department_id: Optional[int] = None,
    ) -> List[ScheduleSummary]:
        schedules = await self.schedules.list(
            tenant_id, status=status, start_date=start_date, end_date=end_date, department_id=department_id
        )
        counts = await self.schedules.get_shift_counts([s.id for s in schedules])
        return [self._summary(s, *counts.get(s.id, (0, 0))) for s in schedules]

    async def get_schedule(self, schedule_id: int, tenant_id: int) -> ScheduleDetail:
        schedule = await self._get_or_404(schedule_id, tenant_id)
        shifts = await self.shifts.list_for_schedule(schedule_id, tenant_id)
        return ScheduleDetail(
            **ScheduleResponse.model_validate(schedule, from_attributes=True).model_dump(),
            shift_count=len(shifts),
            conflict_count=sum(1 for s in shifts if s.has_conflicts),
            shifts=[ShiftResponse.model_validate(s, from_attributes=True) for s in shifts],
        )

    # endregion

    # region ---------- CRUD ----------

    async def create_schedule(self, tenant_id: int, data: ScheduleCreate, actor: Actor) -> Schedule:
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            validate_date_range(data.start_date, data.end_date)
            await self._ensure_no_published_overlap(
                tenant_id, data.start_date, data.end_date, department_id=data.department_id,
                message="A published schedule already exists for overlapping dates",
            )

            schedule = Schedule(
                tenant_id=tenant_id,
                title=data.title,
                start_date=data.start_date,
                end_date=data.end_date,
                department_id=data.department_id,
                location=data.location,
                notes=data.notes,
                status=ScheduleStatus.DRAFT,
                created_by=actor.user_id,
            )
            self.schedules.add(schedule)
            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating schedule for tenant {tenant_id}: {e}")
            raise ServiceUnavailableError("Error creating schedule")

        await self.session.refresh(schedule)
        logger.info(f"Schedule created: {schedule.id} '{schedule.title}' (tenant {tenant_id}) by user {actor.user_id}")
        return schedule

    async def update_schedule(self, schedule_id: int, tenant_id: int, data: ScheduleUpdate, actor: Actor) -> Schedule:
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            schedule = await self._get_or_404(schedule_id, tenant_id)
            if schedule.status == ScheduleStatus.LOCKED:
                raise StateConflictError("Cannot update locked schedule. Unlock it first.")

            fields = {k: v for k, v in data.model_dump(exclude_unset=True).items()}
            if "title" in fields and not (fields["title"] or "").strip():
                raise ValidationError("Schedule title is required")
            for key in ("start_date", "end_date"):
                if key in fields and fields[key] is None:
                    fields.pop(key)

            start_date = fields.get("start_date", schedule.start_date)
            end_date = fields.get("end_date", schedule.end_date)
            validate_date_range(start_date, end_date)

            department_id = fields.get("department_id", schedule.department_id)
            dates_moved = start_date != schedule.start_date or end_date != schedule.end_date
            department_moved = (
                settings.SCHEDULE_OVERLAP_PER_DEPARTMENT and department_id != schedule.department_id
            )
            if schedule.status == ScheduleStatus.PUBLISHED and (dates_moved or department_moved):
                await self._ensure_no_published_overlap(
                    tenant_id, start_date, end_date,
                    department_id=department_id,
                    exclude_id=schedule_id,
                    message="Another published schedule exists for overlapping dates",
                )

            for field, value in fields.items():
                setattr(schedule, field, value)
            schedule.updated_by = actor.user_id
            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error updating schedule")

        await self.session.refresh(schedule)
        logger.info(f"Schedule updated: {schedule_id} (tenant {tenant_id}) by user {actor.user_id}")
        return schedule

    async def delete_schedule(self, schedule_id: int, tenant_id: int, actor: Actor) -> Dict[str, Any]:
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            schedule = await self._get_or_404(schedule_id, tenant_id)
            if schedule.status != ScheduleStatus.DRAFT:
                raise StateConflictError("Cannot delete published or locked schedule")

            schedule.deleted_at = utc_now()
            schedule.updated_by = actor.user_id
            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error deleting schedule")

        logger.info(f"Schedule soft deleted: {schedule_id} (tenant {tenant_id}) by user {actor.user_id}")
        return {"success": True, "message": "Schedule deleted"}

    # endregion

    # region ---------- Lifecycle transitions ----------

    async def publish_schedule(self, schedule_id: int, tenant_id: int, actor: Actor) -> SchedulePublishResult:
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            schedule = await self._get_or_404(schedule_id, tenant_id)
            if schedule.status != ScheduleStatus.DRAFT:
                raise StateConflictError("Only draft schedules can be published")

            conflict_count = await self.shifts.count_conflicted(schedule_id, tenant_id)
            if conflict_count > 0:
                raise StateConflictError(f"Cannot publish schedule with {conflict_count} unresolved conflicts")

            await self._ensure_no_published_overlap(
                tenant_id, schedule.start_date, schedule.end_date,
                department_id=schedule.department_id, exclude_id=schedule_id,
                message="Another published schedule exists for overlapping dates",
            )

            schedule.status = ScheduleStatus.PUBLISHED
            schedule.published_at = utc_now()
            schedule.published_by = actor.user_id
            await self.session.commit()

        except HTTPException as e:
            await self.session.rollback()
            logger.warning(f"Publish rejected for schedule {schedule_id}: {e.detail}")
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error publishing schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error publishing schedule")

        await self.session.refresh(schedule)
        assigned = [s for s in await self.shifts.list_for_schedule(schedule_id, tenant_id) if s.employee_id]
        logger.info(f"Schedule published: {schedule_id} (tenant {tenant_id}) by user {actor.user_id}")
        return SchedulePublishResult(
            schedule=ScheduleResponse.model_validate(schedule, from_attributes=True),
            notifications_sent=len(assigned),
        )

    async def unpublish_schedule(self, schedule_id: int, tenant_id: int, actor: Actor) -> Schedule:
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            schedule = await self._get_or_404(schedule_id, tenant_id)
            if schedule.status != ScheduleStatus.PUBLISHED:
                raise StateConflictError("Only published schedules can be unpublished")

            schedule.status = ScheduleStatus.DRAFT
            schedule.published_at = None
            schedule.published_by = None
            schedule.updated_by = actor.user_id
            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error unpublishing schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error unpublishing schedule")

        await self.session.refresh(schedule)
        logger.info(f"Schedule unpublished: {schedule_id} (tenant {tenant_id}) by user {actor.user_id}")
        return schedule

    async def lock_schedule(self, schedule_id: int, tenant_id: int, actor: Actor, reason: Optional[str] = None) -> Schedule:
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            schedule = await self._get_or_404(schedule_id, tenant_id)
            if schedule.status != ScheduleStatus.PUBLISHED:
                raise StateConflictError("Only published schedules can be locked")

            schedule.status = ScheduleStatus.LOCKED
            schedule.locked_at = utc_now()
            schedule.locked_by = actor.user_id
            schedule.lock_reason = reason.strip() if reason and reason.strip() else None
            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error locking schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error locking schedule")

        await self.session.refresh(schedule)
        logger.info(f"Schedule locked: {schedule_id} (tenant {tenant_id}) by user {actor.user_id}, reason: {reason}")
        return schedule

    async def unlock_schedule(self, schedule_id: int, tenant_id: int, actor: Actor, reason: Optional[str]) -> Schedule:
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            schedule = await self._get_or_404(schedule_id, tenant_id)
            if schedule.status != ScheduleStatus.LOCKED:
                raise StateConflictError("Only locked schedules can be unlocked")
            if not reason or not reason.strip():
                raise StateConflictError("Unlock reason is required")

            schedule.status = ScheduleStatus.PUBLISHED
            schedule.locked_at = None
            schedule.locked_by = None
            schedule.unlocked_at = utc_now()
            schedule.unlocked_by = actor.user_id
            schedule.unlock_reason = reason.strip()
            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error unlocking schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error unlocking schedule")

        await self.session.refresh(schedule)
        logger.info(f"Schedule unlocked: {schedule_id} (tenant {tenant_id}) by user {actor.user_id}, reason: {reason}")
        return schedule

    async def copy_schedule(self, schedule_id: int, tenant_id: int, data: ScheduleCopy, actor: Actor) -> ScheduleSummary:
        """
        Duplicate a schedule into a new draft over the target range. Each shift moves
        by the distance between the source and target start dates. Conflicts are not
        carried over; they are recomputed against the new schedule's shifts.
        """
        require_capability(actor, Capability.MANAGE_SCHEDULES)
        try:
            source = await self._get_or_404(schedule_id, tenant_id)
            validate_date_range(data.target_start_date, data.target_end_date)
            await self._ensure_no_published_overlap(
                tenant_id, data.target_start_date, data.target_end_date,
                department_id=source.department_id,
                message="A published schedule already exists for overlapping dates",
            )

            new_schedule = Schedule(
                tenant_id=tenant_id,
                title=f"{source.title} (copied)",
                start_date=data.target_start_date,
                end_date=data.target_end_date,
                department_id=source.department_id,
                location=source.location,
                notes=source.notes,
                status=ScheduleStatus.DRAFT,
                copied_from_id=source.id,
                created_by=actor.user_id,
            )
            self.schedules.add(new_schedule)
            await self.schedules.flush()

            offset = data.target_start_date - source.start_date
            source_shifts = await self.shifts.list_for_schedule(schedule_id, tenant_id)
            assigned_employees = set()
            for shift in source_shifts:
                employee_id = shift.employee_id if data.copy_assignments else None
                self.shifts.add(Shift(
                    tenant_id=tenant_id,
                    schedule_id=new_schedule.id,
                    start_time=shift.start_time + offset,
                    end_time=shift.end_time + offset,
                    break_minutes=shift.break_minutes,
                    role=shift.role,
                    location=shift.location,
                    work_center=shift.work_center,
                    employee_id=employee_id,
                    assignment_status=AssignmentStatus.ASSIGNED if employee_id else AssignmentStatus.UNASSIGNED,
                    has_conflicts=False,
                    conflict_details=[],
                    color=shift.color,
                    notes=shift.notes,
                    created_by=actor.user_id,
                ))
                if employee_id is not None:
                    assigned_employees.add(employee_id)
            await self.shifts.flush()

            conflict_count = 0
            for employee_id in sorted(assigned_employees):
                conflict_count += await self.shift_service.refresh_employee_conflicts(
                    new_schedule.id, tenant_id, employee_id
                )

            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error copying schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error copying schedule")

        await self.session.refresh(new_schedule)
        logger.info(
            f"Schedule copied: {schedule_id} -> {new_schedule.id} with {len(source_shifts)} shifts "
            f"(tenant {tenant_id}) by user {actor.user_id}"
        )
        return self._summary(new_schedule, len(source_shifts), conflict_count)

    # endregion

    async def _get_or_404(self, schedule_id: int, tenant_id: int) -> Schedule:
        schedule = await self.schedules.get(schedule_id, tenant_id)
        if not schedule:
            raise NotFoundError("Schedule not found")
        return schedule

    async def _ensure_no_published_overlap(
        self,
        tenant_id: int,
        start_date: date,
        end_date: date,
        message: str,
        department_id: Optional[int] = None,
        exclude_id: Optional[int] = None,
    ) -> None:
        overlapping = await self.schedules.find_overlapping_published(
            tenant_id, start_date, end_date, exclude_id=exclude_id, department_id=department_id
        )
        if overlapping:
            logger.warning(f"Schedule range {start_date}..{end_date} overlaps published schedule {overlapping.id}")
            raise StateConflictError(message)

    @staticmethod
    def _summary(schedule: Schedule, shift_count: int, conflict_count: int) -> ScheduleSummary:
        return ScheduleSummary(
            **ScheduleResponse.model_validate(schedule, from_attributes=True).model_dump(),
            shift_count=shift_count,
            conflict_count=conflict_count,
        )
