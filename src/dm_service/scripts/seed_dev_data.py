"""Seed development data: users, a conversation between them, and dev tokens."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.dialects.postgresql import insert as pg_insert

from dm_service.application.dto.message import SendMessageDTO
from dm_service.config import settings
from dm_service.infrastructure.auth.hs256_verifier import HS256Verifier
from dm_service.infrastructure.db import models  # noqa: F401
from dm_service.infrastructure.db.base import Base
from dm_service.infrastructure.db.models.user import UserModel
from dm_service.infrastructure.db.session import AsyncSessionLocal, engine
from dm_service.infrastructure.db.uow import SqlAlchemyUoW
from dm_service.services import message_service

logger = logging.getLogger(__name__)

USERS = [
    (1, "Alice", "alice@example.com"),
    (2, "Bob", "bob@example.com"),
    (3, "Carol", "carol@example.com"),
]

CONVERSATION = [
    (1, 2, "Hi Bob!"),
    (2, 1, "Hey Alice, how are you?"),
    (1, 2, "Great, thanks. Lunch tomorrow?"),
    (3, 1, "Alice, did you get my files?"),
]


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await session.execute(
            pg_insert(UserModel)
            .values([{"user_id": uid, "name": name, "email": email} for uid, name, email in USERS])
            .on_conflict_do_nothing()
        )
        await session.commit()

        uow = SqlAlchemyUoW(session)
        start = datetime.now(timezone.utc) - timedelta(minutes=len(CONVERSATION))
        for offset, (sender_id, receiver_id, body) in enumerate(CONVERSATION):
            await message_service.append_message(
                SendMessageDTO(sender_id=sender_id, receiver_id=receiver_id, body=body),
                start + timedelta(minutes=offset),
                uow,
            )
        logger.info("Seeded %d users and %d messages", len(USERS), len(CONVERSATION))

    if settings.JWT_VERIFY_MODE == "hs256":
        issuer = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
        for uid, name, email in USERS:
            token = issuer.issue(uid, settings.JWT_TTL_SECONDS, email=email)
            logger.info("Token for %s (%d): %s", name, uid, token)

    await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
