# schooldesk/services/base_service.py
from typing import Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooldesk.core.errors import NotFoundError

ModelT = TypeVar("ModelT")


class BaseService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_scoped(
        self,
        model: Type[ModelT],
        object_id: int,
        tenant_id: Optional[int],
        label: Optional[str] = None
    ) -> ModelT:
        """Fetch one row of a tenant table or raise NotFoundError"""
        query = select(model).where(model.id == object_id)
        if tenant_id is not None:
            query = query.where(model.tenant_id == tenant_id)
        result = await self.db.execute(query)
        obj = result.scalar_one_or_none()
        if obj is None:
            name = label or model.__name__
            raise NotFoundError(f"{name} not found", details={"id": object_id})
        return obj
