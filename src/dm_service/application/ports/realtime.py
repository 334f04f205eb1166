"""Ports the delivery engine uses to reach live connections."""
from __future__ import annotations

from typing import Any, Protocol

from dm_service.domain.value_objects.conversation_key import ConversationKey


class Endpoint(Protocol):
    """A single live client connection."""

    @property
    def user_id(self) -> int: ...

    async def send(self, event_type: str, data: dict[str, Any]) -> None: ...


class PresenceReader(Protocol):
    async def is_online(self, user_id: int) -> bool: ...


class Fanout(Protocol):
    async def broadcast(
        self,
        key: ConversationKey,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: Endpoint | None = None,
    ) -> int:
        """Push to every subscriber of ``key``. Raise BroadcastFailure on partial failure."""
        ...

    async def send_to_user(self, user_id: int, event_type: str, data: dict[str, Any]) -> int: ...

    async def send_to(self, endpoint: Endpoint, event_type: str, data: dict[str, Any]) -> None: ...
