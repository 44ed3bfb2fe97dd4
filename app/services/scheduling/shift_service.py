import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import Actor, Capability, require_capability
from app.core.exceptions import NotFoundError, ServiceUnavailableError, StateConflictError
from app.models.scheduling.schedule import Schedule
from app.models.scheduling.shift import Shift
from app.models.shared.enums import AssignmentStatus, ScheduleStatus
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.schedule_repository import ScheduleRepository
from app.repositories.shift_repository import ShiftRepository
from app.schemas.scheduling.shift_schema import (
    ConflictDetail, ScheduleConflictSummary, ShiftConflicts, ShiftCreate, ShiftDuplicate, ShiftUpdate
)
from app.services.scheduling.conflict_detection_service import ConflictDetectionService
from app.utils.date_time_serializer import to_utc_naive, utc_now
from app.utils.validators.validation_utils import validate_shift_window

logger = logging.getLogger(__name__)


class ShiftService:
    def __init__(
        self,
        session: AsyncSession,
        shift_repository: Optional[ShiftRepository] = None,
        schedule_repository: Optional[ScheduleRepository] = None,
        employee_repository: Optional[EmployeeRepository] = None,
        conflict_service: Optional[ConflictDetectionService] = None,
    ):
        self.session = session
        self.shifts = shift_repository or ShiftRepository(session)
        self.schedules = schedule_repository or ScheduleRepository(session)
        self.employees = employee_repository or EmployeeRepository(session)
        self.conflict_service = conflict_service or ConflictDetectionService()

    # region ---------- Queries ----------

    async def get_shift(self, shift_id: int, tenant_id: int) -> Shift:
        shift = await self.shifts.get(shift_id, tenant_id)
        if not shift:
            raise NotFoundError("Shift not found")
        return shift

    async def get_shifts_for_schedule(
        self,
        schedule_id: int,
        tenant_id: int,
        employee_id: Optional[int] = None,
        role: Optional[str] = None,
        has_conflicts: Optional[bool] = None,
    ) -> List[Shift]:
        await self._get_schedule(schedule_id, tenant_id)
        return await self.shifts.list_for_schedule(
            schedule_id, tenant_id, employee_id=employee_id, role=role, has_conflicts=has_conflicts
        )

    async def get_all_conflicts_for_schedule(self, schedule_id: int, tenant_id: int) -> ScheduleConflictSummary:
        """Summarise every conflicted shift in a schedule and whether it can be published"""
        await self._get_schedule(schedule_id, tenant_id)
        conflicted = await self.shifts.list_for_schedule(schedule_id, tenant_id, has_conflicts=True)
        names = await self.employees.get_names(
            list({s.employee_id for s in conflicted if s.employee_id is not None})
        )

        entries = []
        by_employee: Dict[int, int] = defaultdict(int)
        for shift in conflicted:
            details = [ConflictDetail.model_validate(c) for c in (shift.conflict_details or [])]
            entries.append(ShiftConflicts(
                shift_id=shift.id,
                employee_id=shift.employee_id,
                employee_name=names.get(shift.employee_id),
                conflicts=details,
            ))
            if shift.employee_id is not None:
                by_employee[shift.employee_id] += len(details)

        total = sum(len(entry.conflicts) for entry in entries)
        return ScheduleConflictSummary(
            schedule_id=schedule_id,
            conflicts=entries,
            total_conflicts=total,
            conflicts_by_employee=dict(by_employee),
            can_publish=total == 0,
        )

    # endregion

    # region ---------- Mutations ----------

    async def create_shift(self, schedule_id: int, tenant_id: int, data: ShiftCreate, actor: Actor) -> Shift:
        require_capability(actor, Capability.MANAGE_SHIFTS)
        try:
            await self._get_mutable_schedule(schedule_id, tenant_id, "create shifts in")

            start_time = to_utc_naive(data.start_time)
            end_time = to_utc_naive(data.end_time)
            validate_shift_window(start_time, end_time)
            if data.employee_id is not None:
                await self._ensure_employee(data.employee_id, tenant_id)

            shift = Shift(
                tenant_id=tenant_id,
                schedule_id=schedule_id,
                start_time=start_time,
                end_time=end_time,
                break_minutes=data.break_minutes or 0,
                role=data.role,
                location=data.location,
                work_center=data.work_center,
                employee_id=data.employee_id,
                assignment_status=AssignmentStatus.ASSIGNED if data.employee_id else AssignmentStatus.UNASSIGNED,
                has_conflicts=False,
                conflict_details=[],
                color=data.color,
                notes=data.notes,
                created_by=actor.user_id,
            )
            self.shifts.add(shift)
            await self.shifts.flush()

            if shift.employee_id is not None:
                await self.refresh_employee_conflicts(schedule_id, tenant_id, shift.employee_id)

            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating shift in schedule {schedule_id}: {e}")
            raise ServiceUnavailableError("Error creating shift")

        await self.session.refresh(shift)
        logger.info(f"Shift created: {shift.id} in schedule {schedule_id} (tenant {tenant_id}) by user {actor.user_id}")
        return shift

    async def update_shift(self, shift_id: int, tenant_id: int, data: ShiftUpdate, actor: Actor) -> Shift:
        require_capability(actor, Capability.MANAGE_SHIFTS)
        try:
            shift = await self.get_shift(shift_id, tenant_id)
            await self._get_mutable_schedule(shift.schedule_id, tenant_id, "update shifts in")

            fields: Dict[str, Any] = data.model_dump(exclude_unset=True)
            for key in ("start_time", "end_time"):
                if fields.get(key) is not None:
                    fields[key] = to_utc_naive(fields[key])
                else:
                    fields.pop(key, None)
            # Not nullable; an explicit null leaves the stored value alone
            if fields.get("break_minutes", 0) is None:
                fields.pop("break_minutes")

            validate_shift_window(
                fields.get("start_time", shift.start_time),
                fields.get("end_time", shift.end_time),
            )

            previous_employee_id = shift.employee_id
            if "employee_id" in fields:
                new_employee_id = fields["employee_id"]
                if new_employee_id is not None and new_employee_id != previous_employee_id:
                    await self._ensure_employee(new_employee_id, tenant_id)
                fields["assignment_status"] = (
                    AssignmentStatus.ASSIGNED if new_employee_id is not None else AssignmentStatus.UNASSIGNED
                )

            for field, value in fields.items():
                setattr(shift, field, value)
            shift.updated_by = actor.user_id

            if shift.employee_id is None:
                self.conflict_service.clear(shift)
            await self.shifts.flush()

            for employee_id in {previous_employee_id, shift.employee_id} - {None}:
                await self.refresh_employee_conflicts(shift.schedule_id, tenant_id, employee_id)

            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating shift {shift_id}: {e}")
            raise ServiceUnavailableError("Error updating shift")

        await self.session.refresh(shift)
        logger.info(f"Shift updated: {shift_id} (tenant {tenant_id}) by user {actor.user_id}")
        return shift

    async def delete_shift(self, shift_id: int, tenant_id: int, actor: Actor) -> Dict[str, Any]:
        require_capability(actor, Capability.MANAGE_SHIFTS)
        try:
            shift = await self.get_shift(shift_id, tenant_id)
            await self._get_mutable_schedule(shift.schedule_id, tenant_id, "delete shifts in")

            shift.deleted_at = utc_now()
            shift.updated_by = actor.user_id
            self.conflict_service.clear(shift)
            await self.shifts.flush()

            if shift.employee_id is not None:
                await self.refresh_employee_conflicts(shift.schedule_id, tenant_id, shift.employee_id)

            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting shift {shift_id}: {e}")
            raise ServiceUnavailableError("Error deleting shift")

        logger.info(f"Shift soft deleted: {shift_id} (tenant {tenant_id}) by user {actor.user_id}")
        return {"success": True, "message": "Shift deleted"}

    async def duplicate_shift(self, shift_id: int, tenant_id: int, data: ShiftDuplicate, actor: Actor) -> Shift:
        """
        Clone a shift onto another day of the same schedule, keeping its time of day.
        An end time-of-day at or before the start time-of-day means the shift runs
        past midnight, so the copy ends on the following day.
        """
        require_capability(actor, Capability.MANAGE_SHIFTS)
        try:
            source = await self.get_shift(shift_id, tenant_id)
            await self._get_mutable_schedule(source.schedule_id, tenant_id, "duplicate shifts in")

            start_time = datetime.combine(data.target_date, source.start_time.time())
            end_time = datetime.combine(data.target_date, source.end_time.time())
            if source.end_time.time() <= source.start_time.time():
                end_time += timedelta(days=1)
            validate_shift_window(start_time, end_time)

            employee_id = source.employee_id if data.preserve_assignment else None
            shift = Shift(
                tenant_id=tenant_id,
                schedule_id=source.schedule_id,
                start_time=start_time,
                end_time=end_time,
                break_minutes=source.break_minutes,
                role=source.role,
                location=source.location,
                work_center=source.work_center,
                employee_id=employee_id,
                assignment_status=AssignmentStatus.ASSIGNED if employee_id else AssignmentStatus.UNASSIGNED,
                has_conflicts=False,
                conflict_details=[],
                color=source.color,
                notes=source.notes,
                created_by=actor.user_id,
            )
            self.shifts.add(shift)
            await self.shifts.flush()

            if employee_id is not None:
                await self.refresh_employee_conflicts(source.schedule_id, tenant_id, employee_id)

            await self.session.commit()

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error duplicating shift {shift_id}: {e}")
            raise ServiceUnavailableError("Error duplicating shift")

        await self.session.refresh(shift)
        logger.info(
            f"Shift duplicated: {shift_id} -> {shift.id} on {data.target_date} "
            f"(tenant {tenant_id}) by user {actor.user_id}"
        )
        return shift

    # endregion

    async def refresh_employee_conflicts(self, schedule_id: int, tenant_id: int, employee_id: int) -> int:
        """
        Re-run conflict detection over every live shift the employee holds in the
        schedule. Runs inside the caller's transaction and does not commit.
        """
        employee_shifts = await self.shifts.list_for_employee(schedule_id, tenant_id, employee_id)
        flagged = self.conflict_service.apply_to_all(employee_shifts)
        await self.shifts.flush()
        if flagged:
            logger.info(f"Employee {employee_id} has {flagged} conflicting shift(s) in schedule {schedule_id}")
        return flagged

    async def _get_schedule(self, schedule_id: int, tenant_id: int) -> Schedule:
        schedule = await self.schedules.get(schedule_id, tenant_id)
        if not schedule:
            raise NotFoundError("Schedule not found")
        return schedule

    async def _get_mutable_schedule(self, schedule_id: int, tenant_id: int, action: str) -> Schedule:
        schedule = await self._get_schedule(schedule_id, tenant_id)
        if schedule.status == ScheduleStatus.LOCKED:
            logger.warning(f"Rejected attempt to {action} locked schedule {schedule_id}")
            raise StateConflictError(f"Cannot {action} a locked schedule")
        return schedule

    async def _ensure_employee(self, employee_id: int, tenant_id: int) -> None:
        if not await self.employees.get_active(employee_id, tenant_id):
            raise NotFoundError(f"Employee {employee_id} not found or not active")
