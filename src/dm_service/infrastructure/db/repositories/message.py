from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import and_, case, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from dm_service.application.dto.chat_list import ConversationSummary
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.enums import MessageStatus
from dm_service.infrastructure.db.mappers import message as mapper
from dm_service.infrastructure.db.models.message import MessageModel


def _between(user_a: int, user_b: int):
    return or_(
        and_(MessageModel.sender_id == user_a, MessageModel.receiver_id == user_b),
        and_(MessageModel.sender_id == user_b, MessageModel.receiver_id == user_a),
    )


def counterpart_of(user_id: int):
    """SQL twin of ConversationKey.counterpart_of: the other party of each row."""
    return case(
        (MessageModel.sender_id == user_id, MessageModel.receiver_id),
        else_=MessageModel.sender_id,
    )


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def query_range(self, user_a: int, user_b: int, limit: int) -> list[Message]:
        recent = (
            select(MessageModel)
            .where(_between(user_a, user_b))
            .order_by(MessageModel.sent_at.desc(), MessageModel.id.desc())
            .limit(limit)
            .subquery()
        )
        window = aliased(MessageModel, recent)
        stmt = select(window).order_by(window.sent_at.asc(), window.id.asc())
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def query_conversation_summaries(self, user_id: int) -> list[ConversationSummary]:
        other = counterpart_of(user_id)
        ranked = (
            select(
                other.label("counterpart_id"),
                MessageModel.id.label("message_id"),
                MessageModel.body.label("body"),
                MessageModel.sent_at.label("sent_at"),
                func.row_number()
                .over(
                    partition_by=other,
                    order_by=(MessageModel.sent_at.desc(), MessageModel.id.desc()),
                )
                .label("rn"),
            )
            .where(or_(MessageModel.sender_id == user_id, MessageModel.receiver_id == user_id))
            .cte("ranked_messages")
        )
        unread = (
            select(
                MessageModel.sender_id.label("counterpart_id"),
                func.count().label("unread_count"),
            )
            .where(
                MessageModel.receiver_id == user_id,
                MessageModel.status != MessageStatus.READ.value,
            )
            .group_by(MessageModel.sender_id)
            .cte("unread_counts")
        )
        stmt = (
            select(
                ranked.c.counterpart_id,
                ranked.c.message_id,
                ranked.c.body,
                ranked.c.sent_at,
                func.coalesce(unread.c.unread_count, 0).label("unread_count"),
            )
            .select_from(
                ranked.outerjoin(unread, ranked.c.counterpart_id == unread.c.counterpart_id)
            )
            .where(ranked.c.rn == 1)
            .order_by(ranked.c.sent_at.desc(), ranked.c.message_id.desc())
        )
        result = await self._session.execute(stmt)
        return [
            ConversationSummary(
                counterpart_id=row.counterpart_id,
                last_message=row.body,
                last_message_time=row.sent_at,
                last_message_id=row.message_id,
                unread_count=int(row.unread_count),
            )
            for row in result.all()
        ]

    async def count_unread(self, receiver_id: int, sender_id: int) -> int:
        stmt = select(func.count()).where(
            MessageModel.receiver_id == receiver_id,
            MessageModel.sender_id == sender_id,
            MessageModel.status != MessageStatus.READ.value,
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        sender_id: int,
        receiver_id: int,
        body: str,
        sent_at: datetime | None = None,
    ) -> Message:
        values: dict[str, Any] = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "body": body,
            "status": MessageStatus.SENT.value,
        }
        if sent_at is not None:
            values["sent_at"] = sent_at
        stmt = insert(MessageModel).values(**values).returning(MessageModel)
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def update_status(self, message_id: int, status: MessageStatus) -> bool:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.status.in_([s.value for s in status.predecessors()]),
            )
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def batch_mark_read(self, receiver_id: int, sender_id: int) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.receiver_id == receiver_id,
                MessageModel.sender_id == sender_id,
                MessageModel.status != MessageStatus.READ.value,
            )
            .values(status=MessageStatus.READ.value)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount
