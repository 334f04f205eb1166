from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.domain.entities.user import UserProfile
from dm_service.infrastructure.db.mappers import user as mapper
from dm_service.infrastructure.db.models.user import UserModel


class UserDirectoryRepo:
    """Read-only view of the users table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def lookup(self, user_id: int) -> UserProfile | None:
        result = await self._session.get(UserModel, user_id)
        return mapper.model_to_entity(result) if result else None

    async def lookup_many(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        ids = set(user_ids)
        if not ids:
            return {}
        stmt = select(UserModel).where(UserModel.user_id.in_(ids))
        result = await self._session.execute(stmt)
        return {m.user_id: mapper.model_to_entity(m) for m in result.scalars().all()}
