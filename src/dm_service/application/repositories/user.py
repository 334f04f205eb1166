from __future__ import annotations

from typing import Iterable, Protocol

from dm_service.domain.entities.user import UserProfile


class UserDirectory(Protocol):
    async def lookup(self, user_id: int) -> UserProfile | None: ...

    async def lookup_many(self, user_ids: Iterable[int]) -> dict[int, UserProfile]: ...
