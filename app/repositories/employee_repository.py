from typing import List, Optional
from sqlalchemy import func, select

from app.models.hr.employee import Employee
from app.models.shared.enums import EmployeeStatus
from app.repositories.base_repository import TenantRepository


class EmployeeRepository(TenantRepository[Employee]):
    model = Employee

    async def get_active(self, employee_id: int, tenant_id: int) -> Optional[Employee]:
        result = await self.session.execute(
            self._live(tenant_id).where(
                Employee.id == employee_id,
                Employee.status == EmployeeStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def get_active_by_role(self, tenant_id: int, role: str, exclude_id: Optional[int] = None) -> List[Employee]:
        """Active employees whose job role matches, compared case-insensitively"""
        query = self._live(tenant_id).where(
            Employee.status == EmployeeStatus.ACTIVE,
            func.lower(Employee.role) == role.strip().lower(),
        )
        if exclude_id is not None:
            query = query.where(Employee.id != exclude_id)
        result = await self.session.execute(query.order_by(Employee.id))
        return list(result.scalars().all())

    async def get_names(self, employee_ids: List[int]) -> dict:
        if not employee_ids:
            return {}
        result = await self.session.execute(
            select(Employee.id, Employee.first_name, Employee.last_name).where(Employee.id.in_(employee_ids))
        )
        return {row.id: f"{row.first_name} {row.last_name}".strip() for row in result}
