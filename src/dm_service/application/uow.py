from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from dm_service.application.repositories.message import MessageReader, MessageWriter
from dm_service.application.repositories.user import UserDirectory


class UnitOfWork(Protocol):
    users: UserDirectory
    messages: MessageReader
    messages_w: MessageWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


UowFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
