from __future__ import annotations

from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from dm_service.infrastructure.db.repositories.user import UserDirectoryRepo
from dm_service.infrastructure.db.session import AsyncSessionLocal


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.users = UserDirectoryRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()


@asynccontextmanager
async def open_uow() -> AsyncIterator[SqlAlchemyUoW]:
    """Default UowFactory: one session per unit of work."""
    async with AsyncSessionLocal() as session:
        async with SqlAlchemyUoW(session) as uow:
            yield uow
