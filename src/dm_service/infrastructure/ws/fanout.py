"""Outbound fan-out of realtime events to live connections."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable

from dm_service.application.exceptions import BroadcastFailure
from dm_service.application.ports.relay import RelayPublisher
from dm_service.domain.value_objects.conversation_key import ConversationKey, address_of
from dm_service.infrastructure.ws.connection import Connection
from dm_service.infrastructure.ws.presence import PresenceRegistry
from dm_service.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class Broadcaster:
    """Delivers events to local connections and, when a relay is attached, to peer instances."""

    def __init__(self, presence: PresenceRegistry, *, instance_id: str | None = None) -> None:
        self._presence = presence
        self.instance_id = instance_id or uuid.uuid4().hex
        self._relay: RelayPublisher | None = None

    def attach_relay(self, publisher: RelayPublisher) -> None:
        self._relay = publisher

    def detach_relay(self) -> None:
        self._relay = None

    async def broadcast(
        self,
        key: ConversationKey,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: Connection | None = None,
    ) -> int:
        """Push an event to every subscriber of ``key``; return the local delivery count."""
        targets = [c for c in await self._presence.subscribers(key) if c is not exclude]
        delivered, failed = await self._push(targets, event_type, data)
        relayed = await self._publish(
            {"target": "conversation", "members": list(key.members)}, event_type, data,
        )
        if failed or not relayed:
            raise BroadcastFailure(
                f"{event_type} to {key}: {failed} local failure(s), relayed={relayed}",
                failed=failed,
            )
        return delivered

    async def send_to_user(self, user_id: int, event_type: str, data: dict[str, Any]) -> int:
        """Push an event to every live connection of one identity."""
        targets = await self._presence.connections_of(user_id)
        delivered, failed = await self._push(targets, event_type, data)
        relayed = await self._publish({"target": "user", "user_id": user_id}, event_type, data)
        if failed or not relayed:
            raise BroadcastFailure(
                f"{event_type} to user {user_id}: {failed} local failure(s), relayed={relayed}",
                failed=failed,
            )
        return delivered

    async def send_to(self, endpoint: Connection, event_type: str, data: dict[str, Any]) -> None:
        try:
            await endpoint.send(event_type, data)
        except Exception as exc:
            await self._presence.deregister(endpoint)
            raise BroadcastFailure(f"{event_type} to {endpoint!r}: {exc}", failed=1) from exc

    async def on_relay_event(self, event_type: str, envelope: dict[str, Any]) -> None:
        """Deliver an event published by a peer instance to local connections."""
        if envelope.get("origin") == self.instance_id:
            return
        data = envelope.get("data", {})
        if envelope.get("target") == "conversation":
            low, high = envelope["members"]
            targets = await self._presence.subscribers(address_of(low, high))
        elif envelope.get("target") == "user":
            targets = await self._presence.connections_of(int(envelope["user_id"]))
        else:
            logger.warning("Dropping relay event %s with unknown target", event_type)
            return
        _, failed = await self._push(targets, event_type, data)
        if failed:
            logger.warning("Relayed %s reached %d connection(s) less than targeted", event_type, failed)

    async def _push(
        self,
        targets: Iterable[Connection],
        event_type: str,
        data: dict[str, Any],
    ) -> tuple[int, int]:
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        delivered = 0
        dead: list[Connection] = []
        for conn in targets:
            try:
                await conn.send_raw(raw)
                delivered += 1
            except Exception:
                logger.debug("Push of %s to %r failed", event_type, conn, exc_info=True)
                dead.append(conn)
        for conn in dead:
            await self._presence.deregister(conn)
        return delivered, len(dead)

    async def _publish(self, route: dict[str, Any], event_type: str, data: dict[str, Any]) -> bool:
        if self._relay is None:
            return True
        envelope = {
            "event_type": event_type,
            "origin": self.instance_id,
            "data": data,
            **route,
        }
        try:
            await self._relay.publish(envelope)
        except Exception:
            logger.exception("Relay publish of %s failed", event_type)
            return False
        return True
