from typing import List, Optional
from sqlalchemy import func, select

from app.models.scheduling.shift import Shift
from app.repositories.base_repository import TenantRepository


class ShiftRepository(TenantRepository[Shift]):
    model = Shift

    async def get_for_update(self, shift_id: int, tenant_id: int) -> Optional[Shift]:
        """Load a shift with a row lock held until the transaction ends (no-op on SQLite)"""
        result = await self.session.execute(
            self._live(tenant_id).where(Shift.id == shift_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_for_schedule(
        self,
        schedule_id: int,
        tenant_id: int,
        employee_id: Optional[int] = None,
        role: Optional[str] = None,
        has_conflicts: Optional[bool] = None,
    ) -> List[Shift]:
        query = self._live(tenant_id).where(Shift.schedule_id == schedule_id)
        if employee_id is not None:
            query = query.where(Shift.employee_id == employee_id)
        if role:
            query = query.where(Shift.role == role)
        if has_conflicts is not None:
            query = query.where(Shift.has_conflicts.is_(has_conflicts))

        result = await self.session.execute(query.order_by(Shift.start_time, Shift.id))
        return list(result.scalars().all())

    async def list_for_employee(self, schedule_id: int, tenant_id: int, employee_id: int) -> List[Shift]:
        return await self.list_for_schedule(schedule_id, tenant_id, employee_id=employee_id)

    async def count_conflicted(self, schedule_id: int, tenant_id: int) -> int:
        result = await self.session.scalar(
            select(func.count(Shift.id)).where(
                Shift.schedule_id == schedule_id,
                Shift.tenant_id == tenant_id,
                Shift.deleted_at.is_(None),
                Shift.has_conflicts.is_(True),
            )
        )
        return result or 0
