from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from dm_service.infrastructure.db.base import Base


class MessageModel(Base):
    __tablename__ = "chat_messages"

    # sqlite only autoincrements INTEGER keys
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True,
    )
    # users belongs to the directory; ids are not FK-constrained
    sender_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    receiver_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="sent",
        server_default=text("'sent'"),
    )

    __table_args__ = (
        CheckConstraint("sender_id <> receiver_id", name="ck_message_distinct_parties"),
        CheckConstraint("status IN ('sent', 'delivered', 'read')", name="ck_message_status"),
        CheckConstraint("length(body) > 0", name="ck_message_body"),
        Index("ix_chat_messages_pair_timeline", "sender_id", "receiver_id", "sent_at", "id"),
        Index("ix_chat_messages_unread", "receiver_id", "sender_id", "status"),
    )
