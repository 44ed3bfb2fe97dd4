from datetime import date
from typing import Dict, List, Optional, Tuple
from sqlalchemy import and_, case, func, or_, select

from app.core.config import settings
from app.models.scheduling.schedule import Schedule
from app.models.scheduling.shift import Shift
from app.models.shared.enums import ScheduleStatus
from app.repositories.base_repository import TenantRepository


class ScheduleRepository(TenantRepository[Schedule]):
    model = Schedule

    async def list(
        self,
        tenant_id: int,
        status: Optional[ScheduleStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        department_id: Optional[int] = None,
    ) -> List[Schedule]:
        query = self._live(tenant_id)
        if status:
            query = query.where(Schedule.status == status)
        if department_id is not None:
            query = query.where(Schedule.department_id == department_id)
        if start_date:
            query = query.where(Schedule.end_date >= start_date)
        if end_date:
            query = query.where(Schedule.start_date <= end_date)

        result = await self.session.execute(
            query.order_by(Schedule.start_date.desc(), Schedule.id.desc())
        )
        return list(result.scalars().all())

    async def find_overlapping_published(
        self,
        tenant_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
        department_id: Optional[int] = None,
    ) -> Optional[Schedule]:
        """
        First published schedule whose range starts-within, ends-within or sits inside
        [start_date, end_date]. Boundaries are inclusive: sharing a single day counts.
        """
        query = self._live(tenant_id).where(
            Schedule.status == ScheduleStatus.PUBLISHED,
            or_(
                and_(Schedule.start_date <= start_date, Schedule.end_date >= start_date),
                and_(Schedule.start_date <= end_date, Schedule.end_date >= end_date),
                and_(Schedule.start_date >= start_date, Schedule.end_date <= end_date),
            ),
        )
        if exclude_id is not None:
            query = query.where(Schedule.id != exclude_id)
        if settings.SCHEDULE_OVERLAP_PER_DEPARTMENT:
            if department_id is None:
                query = query.where(Schedule.department_id.is_(None))
            else:
                query = query.where(Schedule.department_id == department_id)

        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def get_shift_counts(self, schedule_ids: List[int]) -> Dict[int, Tuple[int, int]]:
        """Map schedule id -> (shift_count, conflict_count) over non-deleted shifts"""
        if not schedule_ids:
            return {}
        result = await self.session.execute(
            select(
                Shift.schedule_id,
                func.count(Shift.id),
                func.sum(case((Shift.has_conflicts.is_(True), 1), else_=0)),
            )
            .where(Shift.schedule_id.in_(schedule_ids), Shift.deleted_at.is_(None))
            .group_by(Shift.schedule_id)
        )
        return {row[0]: (row[1], int(row[2] or 0)) for row in result.all()}
