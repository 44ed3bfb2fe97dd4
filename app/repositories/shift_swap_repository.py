from typing import List, Optional
from sqlalchemy import or_, update

from app.models.scheduling.shift_swap_request import ShiftSwapRequest
from app.models.shared.enums import SwapRequestStatus
from app.repositories.base_repository import TenantRepository


class ShiftSwapRepository(TenantRepository[ShiftSwapRequest]):
    model = ShiftSwapRequest

    async def list(
        self,
        tenant_id: int,
        status: Optional[SwapRequestStatus] = None,
        employee_id: Optional[int] = None,
        shift_id: Optional[int] = None,
    ) -> List[ShiftSwapRequest]:
        query = self._live(tenant_id)
        if status:
            query = query.where(ShiftSwapRequest.status == status)
        if employee_id is not None:
            query = query.where(
                or_(
                    ShiftSwapRequest.requested_by == employee_id,
                    ShiftSwapRequest.requested_to == employee_id,
                )
            )
        if shift_id is not None:
            query = query.where(
                or_(
                    ShiftSwapRequest.shift_id == shift_id,
                    ShiftSwapRequest.target_shift_id == shift_id,
                )
            )

        result = await self.session.execute(
            query.order_by(ShiftSwapRequest.created_at.desc(), ShiftSwapRequest.id.desc())
        )
        return list(result.scalars().all())

    async def transition_if_pending(self, swap_request_id: int, tenant_id: int, **values) -> bool:
        """
        Move a pending request to a new state. Returns False when another writer
        already moved it, so exactly one concurrent transition can win.
        """
        result = await self.session.execute(
            update(ShiftSwapRequest)
            .where(
                ShiftSwapRequest.id == swap_request_id,
                ShiftSwapRequest.tenant_id == tenant_id,
                ShiftSwapRequest.deleted_at.is_(None),
                ShiftSwapRequest.status == SwapRequestStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    async def list_pending_for_shifts(self, tenant_id: int, shift_ids: List[int], exclude_id: int) -> List[ShiftSwapRequest]:
        result = await self.session.execute(
            self._live(tenant_id).where(
                ShiftSwapRequest.status == SwapRequestStatus.PENDING,
                ShiftSwapRequest.id != exclude_id,
                or_(
                    ShiftSwapRequest.shift_id.in_(shift_ids),
                    ShiftSwapRequest.target_shift_id.in_(shift_ids),
                ),
            )
        )
        return list(result.scalars().all())
