from __future__ import annotations

import asyncio
import uuid
from typing import Any, Protocol

from dm_service.infrastructure.ws.protocol import WsOutbound


class TextSocket(Protocol):
    async def send_text(self, data: str) -> None: ...


class Connection:
    """One authenticated socket bound to a single identity."""

    def __init__(self, websocket: TextSocket, user_id: int) -> None:
        self.id = uuid.uuid4().hex
        self._ws = websocket
        self._user_id = user_id
        self._send_lock = asyncio.Lock()

    @property
    def user_id(self) -> int:
        return self._user_id

    async def send(self, event_type: str, data: dict[str, Any]) -> None:
        await self.send_raw(WsOutbound(type=event_type, data=data).model_dump_json())

    async def send_raw(self, raw: str) -> None:
        # heartbeat and fan-out tasks may write concurrently
        async with self._send_lock:
            await self._ws.send_text(raw)

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self._user_id})"
