"""Dispatch table for inbound realtime events."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as PayloadError

from dm_service.application.dto.message import SendMessageDTO
from dm_service.application.dto.payloads import chat_list_payload
from dm_service.application.exceptions import BroadcastFailure, InvalidMessage, PersistenceFailure
from dm_service.application.uow import UowFactory
from dm_service.domain.value_objects.conversation_key import ConversationKey, address_of
from dm_service.infrastructure.ws.connection import Connection
from dm_service.infrastructure.ws.fanout import Broadcaster
from dm_service.infrastructure.ws.presence import PresenceRegistry
from dm_service.infrastructure.ws.protocol import (
    CounterpartPayload,
    SendPayload,
    TypingPayload,
    WsInbound,
)
from dm_service.services import chat_list_service, message_service
from dm_service.services.delivery_engine import DeliveryEngine

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, dict[str, Any]], Awaitable[None]]


class EventRouter:
    """Maps inbound event types to handlers operating on ``(connection, payload)``."""

    def __init__(
        self,
        presence: PresenceRegistry,
        fanout: Broadcaster,
        delivery: DeliveryEngine,
        uow_factory: UowFactory,
        *,
        placeholder_name: str = "User",
    ) -> None:
        self._presence = presence
        self._fanout = fanout
        self._delivery = delivery
        self._uow_factory = uow_factory
        self._placeholder_name = placeholder_name
        self._handlers: dict[str, Handler] = {
            "ping": self._on_ping,
            "join": self._on_join,
            "leave": self._on_leave,
            "typing": self._on_typing,
            "send": self._on_send,
            "mark_read": self._on_mark_read,
            "get_chat_list": self._on_get_chat_list,
            "get_unread_count": self._on_get_unread_count,
        }

    @property
    def event_types(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def handle_frame(self, connection: Connection, raw: str) -> None:
        try:
            msg = WsInbound.model_validate_json(raw)
        except PayloadError:
            await connection.send("error", {"code": "invalid_payload"})
            return
        await self.dispatch(connection, msg)

    async def dispatch(self, connection: Connection, msg: WsInbound) -> None:
        handler = self._handlers.get(msg.type)
        if handler is None:
            await connection.send("error", {"code": "unknown_type", "type": msg.type})
            return
        try:
            await handler(connection, msg.data)
        except PayloadError as exc:
            await connection.send(
                "error",
                {"code": "invalid_data", "type": msg.type, "detail": str(exc)},
            )

    async def _on_ping(self, conn: Connection, data: dict[str, Any]) -> None:
        await conn.send("pong", {})

    async def _on_join(self, conn: Connection, data: dict[str, Any]) -> None:
        counterpart = CounterpartPayload.model_validate(data).counterpart_id
        key = self._key_for(conn, counterpart)
        if key is None:
            await conn.send("error", {"code": "invalid_counterpart", "type": "join"})
            return
        await self._presence.subscribe(conn, key)
        marked = await self._mark_read_on_join(conn, counterpart)
        await self._broadcast(
            key, "user_joined", {"user_id": conn.user_id, "conversation_key": str(key)}, exclude=conn,
        )
        await conn.send(
            "joined",
            {"counterpart_id": counterpart, "conversation_key": str(key), "marked_read": marked},
        )
        logger.debug("User %d joined %s", conn.user_id, key)

    async def _on_leave(self, conn: Connection, data: dict[str, Any]) -> None:
        counterpart = CounterpartPayload.model_validate(data).counterpart_id
        key = self._key_for(conn, counterpart)
        if key is None:
            await conn.send("error", {"code": "invalid_counterpart", "type": "leave"})
            return
        await self._presence.unsubscribe(conn, key)
        await conn.send("left", {"counterpart_id": counterpart, "conversation_key": str(key)})
        logger.debug("User %d left %s", conn.user_id, key)

    async def _on_typing(self, conn: Connection, data: dict[str, Any]) -> None:
        payload = TypingPayload.model_validate(data)
        key = self._key_for(conn, payload.counterpart_id)
        if key is None:
            return
        logger.debug("User %d typing=%s in %s", conn.user_id, payload.is_typing, key)
        await self._broadcast(
            key, "user_typing", {"user_id": conn.user_id, "is_typing": payload.is_typing}, exclude=conn,
        )

    async def _on_send(self, conn: Connection, data: dict[str, Any]) -> None:
        payload = SendPayload.model_validate(data)
        dto = SendMessageDTO(
            sender_id=conn.user_id,
            receiver_id=payload.receiver_id,
            body=payload.body or "",
            client_msg_id=payload.client_msg_id,
        )
        try:
            await self._delivery.send(dto, origin=conn)
        except InvalidMessage as exc:
            await self._fail_send(conn, dto, "invalid_message", exc.detail)
        except PersistenceFailure as exc:
            await self._fail_send(conn, dto, "persistence_failure", exc.detail)

    async def _on_mark_read(self, conn: Connection, data: dict[str, Any]) -> None:
        counterpart = CounterpartPayload.model_validate(data).counterpart_id
        try:
            updated = await self._delivery.mark_read(conn.user_id, counterpart)
        except Exception:
            logger.exception("mark_read failed for user %d / %d", conn.user_id, counterpart)
            await conn.send("error", {"code": "mark_read_failed", "counterpart_id": counterpart})
            return
        await conn.send("marked_read", {"counterpart_id": counterpart, "updated": updated})

    async def _on_get_chat_list(self, conn: Connection, data: dict[str, Any]) -> None:
        try:
            async with self._uow_factory() as uow:
                entries = await chat_list_service.chat_list(
                    conn.user_id, uow, placeholder_name=self._placeholder_name,
                )
        except Exception:
            logger.exception("Chat list query failed for user %d", conn.user_id)
            await conn.send("error", {"code": "chat_list_failed"})
            return
        await conn.send("chat_list", chat_list_payload(conn.user_id, entries))

    async def _on_get_unread_count(self, conn: Connection, data: dict[str, Any]) -> None:
        counterpart = CounterpartPayload.model_validate(data).counterpart_id
        try:
            async with self._uow_factory() as uow:
                count = await message_service.unread_count(conn.user_id, counterpart, uow)
        except Exception:
            logger.exception("Unread count query failed for user %d", conn.user_id)
            await conn.send("error", {"code": "unread_count_failed", "counterpart_id": counterpart})
            return
        await conn.send("unread_count", {"counterpart_id": counterpart, "count": count})

    @staticmethod
    def _key_for(conn: Connection, counterpart: int) -> ConversationKey | None:
        if counterpart == conn.user_id:
            return None
        return address_of(conn.user_id, counterpart)

    async def _mark_read_on_join(self, conn: Connection, counterpart: int) -> int:
        """Best effort: a failure here must not block the join."""
        try:
            return await self._delivery.mark_read(conn.user_id, counterpart)
        except Exception:
            logger.exception("mark_read failed for user %d / %d", conn.user_id, counterpart)
            return 0

    async def _broadcast(self, key: ConversationKey, event_type: str, data: dict[str, Any], *, exclude: Connection) -> None:
        try:
            await self._fanout.broadcast(key, event_type, data, exclude=exclude)
        except BroadcastFailure as exc:
            logger.info("%s fan-out incomplete: %s", event_type, exc.detail)

    @staticmethod
    async def _fail_send(conn: Connection, dto: SendMessageDTO, code: str, detail: str) -> None:
        logger.info("Send from %d rejected (%s): %s", dto.sender_id, code, detail)
        await conn.send(
            "message_failed",
            {"client_msg_id": dto.client_msg_id, "code": code, "detail": detail},
        )
