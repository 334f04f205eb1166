"""Send and read paths of the message delivery state machine.

A message is persisted as ``sent``; it becomes ``delivered`` when the receiver
is online at send time and ``read`` when the receiver marks the conversation
read. Persistence is the source of truth: anything that fails after the
append (status update, fan-out, acknowledgement) is logged and never rolls
the message back.
"""
from __future__ import annotations

import asyncio
import logging

from dm_service.application.dto.message import DeliveryResult, SendMessageDTO
from dm_service.application.dto.payloads import chat_list_payload, message_payload
from dm_service.application.exceptions import BroadcastFailure, PersistenceFailure
from dm_service.application.policies.message_rules import assert_sendable
from dm_service.application.ports.clock import Clock, SystemClock
from dm_service.application.ports.realtime import Endpoint, Fanout, PresenceReader
from dm_service.application.uow import UowFactory
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.enums import MessageStatus
from dm_service.services import chat_list_service, message_service

logger = logging.getLogger(__name__)


class DeliveryEngine:
    def __init__(
        self,
        uow_factory: UowFactory,
        presence: PresenceReader,
        fanout: Fanout,
        *,
        clock: Clock | None = None,
        max_body_length: int = 4000,
        placeholder_name: str = "User",
    ) -> None:
        self._uow_factory = uow_factory
        self._presence = presence
        self._fanout = fanout
        self._clock = clock or SystemClock()
        self._max_body_length = max_body_length
        self._placeholder_name = placeholder_name

    async def send(self, dto: SendMessageDTO, *, origin: Endpoint | None = None) -> DeliveryResult:
        """Persist, resolve delivery status, fan out and acknowledge one message.

        Raises InvalidMessage before touching the log and PersistenceFailure if
        the append cannot be committed.
        """
        assert_sendable(dto.sender_id, dto.receiver_id, dto.body, self._max_body_length)

        # a sender disconnecting mid-send must not cancel the durable write
        message = await asyncio.shield(self._persist(dto))

        online = await self._presence.is_online(dto.receiver_id)
        if online:
            message = await self._mark_delivered(message)

        broadcast_ok = await self._fan_out(message)
        if origin is not None:
            broadcast_ok = await self._acknowledge(origin, message, dto.client_msg_id) and broadcast_ok

        await self.notify_chat_lists(dto.sender_id, dto.receiver_id)
        return DeliveryResult(message=message, recipient_online=online, broadcast_ok=broadcast_ok)

    async def mark_read(self, reader_id: int, other_id: int) -> int:
        """Advance every non-read message from ``other_id`` to ``reader_id`` to ``read``."""
        async with self._uow_factory() as uow:
            updated = await message_service.mark_read(reader_id, other_id, uow)
        if updated:
            logger.debug("User %d read %d message(s) from %d", reader_id, updated, other_id)
            await self.notify_chat_lists(reader_id)
        return updated

    async def notify_chat_lists(self, *user_ids: int) -> None:
        """Push a fresh chat list to every online user in ``user_ids``."""
        for user_id in dict.fromkeys(user_ids):
            if not await self._presence.is_online(user_id):
                continue
            try:
                async with self._uow_factory() as uow:
                    entries = await chat_list_service.chat_list(
                        user_id, uow, placeholder_name=self._placeholder_name,
                    )
                await self._fanout.send_to_user(
                    user_id, "chat_list_updated", chat_list_payload(user_id, entries),
                )
            except BroadcastFailure as exc:
                logger.warning("chat_list_updated push incomplete: %s", exc.detail)
            except Exception:
                logger.exception("Failed to refresh chat list for user %d", user_id)

    async def _persist(self, dto: SendMessageDTO) -> Message:
        try:
            async with self._uow_factory() as uow:
                return await message_service.append_message(dto, self._clock.now(), uow)
        except Exception as exc:
            logger.exception(
                "Persisting message %d -> %d failed", dto.sender_id, dto.receiver_id,
            )
            raise PersistenceFailure(
                "Message could not be stored", client_msg_id=dto.client_msg_id,
            ) from exc

    async def _mark_delivered(self, message: Message) -> Message:
        try:
            async with self._uow_factory() as uow:
                return await message_service.advance_status(message, MessageStatus.DELIVERED, uow)
        except Exception:
            logger.exception("Could not mark message %d delivered", message.id)
            return message

    async def _fan_out(self, message: Message) -> bool:
        try:
            await self._fanout.broadcast(
                message.conversation_key, "new_message", message_payload(message),
            )
        except BroadcastFailure as exc:
            logger.warning("new_message %d fan-out incomplete: %s", message.id, exc.detail)
            return False
        return True

    async def _acknowledge(self, origin: Endpoint, message: Message, client_msg_id: str | None) -> bool:
        try:
            await self._fanout.send_to(
                origin,
                "message_ack",
                {
                    "client_msg_id": client_msg_id,
                    "message_id": message.id,
                    "status": message.status.value,
                },
            )
        except BroadcastFailure as exc:
            logger.info("Ack for message %d not delivered: %s", message.id, exc.detail)
            return False
        return True
