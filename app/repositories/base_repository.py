from typing import Generic, Optional, Type, TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class TenantRepository(Generic[ModelType]):
    """Tenant-scoped access to one soft-deletable table"""

    model: Type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    def _live(self, tenant_id: int):
        return select(self.model).where(
            self.model.tenant_id == tenant_id,
            self.model.deleted_at.is_(None),
        )

    async def get(self, entity_id: int, tenant_id: int) -> Optional[ModelType]:
        result = await self.session.execute(
            self._live(tenant_id).where(self.model.id == entity_id)
        )
        return result.scalar_one_or_none()

    def add(self, entity: ModelType) -> ModelType:
        self.session.add(entity)
        return entity

    async def flush(self) -> None:
        await self.session.flush()
