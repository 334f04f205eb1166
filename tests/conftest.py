"""Shared test fixtures."""
from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Iterable

import jwt
import pytest

from dm_service.application.dto.chat_list import ConversationSummary
from dm_service.config import settings
from dm_service.domain.entities.message import Message
from dm_service.domain.entities.user import UserProfile
from dm_service.domain.value_objects.conversation_key import address_of
from dm_service.domain.value_objects.enums import MessageStatus
from dm_service.infrastructure.auth.hs256_verifier import HS256Verifier
from dm_service.infrastructure.ws.connection import Connection
from dm_service.infrastructure.ws.fanout import Broadcaster
from dm_service.infrastructure.ws.presence import PresenceRegistry
from dm_service.services.delivery_engine import DeliveryEngine

ALICE, BOB, CAROL = 1, 2, 3
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_token(
    sub: Any = ALICE,
    *,
    secret: str | None = None,
    expires_in: int | None = 3600,
    claim: str = "sub",
) -> str:
    payload: dict[str, Any] = {claim: str(sub)}
    if expires_in is not None:
        payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@dataclass
class FakeClock:
    """Advances one second per reading."""

    current: datetime = EPOCH

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@dataclass
class FakeUserDirectory:
    _users: dict[int, UserProfile] = field(default_factory=dict)

    def add(self, user_id: int, name: str, avatar_url: str | None = None) -> None:
        self._users[user_id] = UserProfile(user_id=user_id, name=name, avatar_url=avatar_url)

    async def lookup(self, user_id: int) -> UserProfile | None:
        return self._users.get(user_id)

    async def lookup_many(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        return {uid: self._users[uid] for uid in set(user_ids) if uid in self._users}


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)
    fail_count: bool = False

    async def query_range(self, user_a: int, user_b: int, limit: int) -> list[Message]:
        pair = sorted(
            (m for m in self._messages if {m.sender_id, m.receiver_id} == {user_a, user_b}),
            key=lambda m: (m.sent_at, m.id),
        )
        return pair[-limit:] if limit > 0 else []

    async def query_conversation_summaries(self, user_id: int) -> list[ConversationSummary]:
        latest: dict[int, Message] = {}
        unread: dict[int, int] = {}
        for m in self._messages:
            key = address_of(m.sender_id, m.receiver_id)
            if not key.involves(user_id):
                continue
            other = key.counterpart_of(user_id)
            current = latest.get(other)
            if current is None or (m.sent_at, m.id) > (current.sent_at, current.id):
                latest[other] = m
            if m.receiver_id == user_id and m.status != MessageStatus.READ:
                unread[other] = unread.get(other, 0) + 1
        summaries = [
            ConversationSummary(
                counterpart_id=other,
                last_message=m.body,
                last_message_time=m.sent_at,
                last_message_id=m.id,
                unread_count=unread.get(other, 0),
            )
            for other, m in latest.items()
        ]
        return sorted(summaries, key=lambda s: (s.last_message_time, s.last_message_id), reverse=True)

    async def count_unread(self, receiver_id: int, sender_id: int) -> int:
        if self.fail_count:
            raise RuntimeError("database unavailable")
        return sum(
            1
            for m in self._messages
            if m.receiver_id == receiver_id and m.sender_id == sender_id and m.status != MessageStatus.READ
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    fail_append: bool = False
    fail_update: bool = False
    fail_mark_read: bool = False
    _next_id: int = 1

    async def append(
        self,
        sender_id: int,
        receiver_id: int,
        body: str,
        sent_at: datetime | None = None,
    ) -> Message:
        if self.fail_append:
            raise RuntimeError("database unavailable")
        msg = Message(
            id=self._next_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body,
            sent_at=sent_at or datetime.now(timezone.utc),
            status=MessageStatus.SENT,
        )
        self._next_id += 1
        self._reader._messages.append(msg)
        return msg

    async def update_status(self, message_id: int, status: MessageStatus) -> bool:
        if self.fail_update:
            raise RuntimeError("database unavailable")
        for i, m in enumerate(self._reader._messages):
            if m.id == message_id and m.status in status.predecessors():
                self._reader._messages[i] = replace(m, status=status)
                return True
        return False

    async def batch_mark_read(self, receiver_id: int, sender_id: int) -> int:
        if self.fail_mark_read:
            raise RuntimeError("database unavailable")
        updated = 0
        for i, m in enumerate(self._reader._messages):
            if m.receiver_id == receiver_id and m.sender_id == sender_id and m.status != MessageStatus.READ:
                self._reader._messages[i] = replace(m, status=MessageStatus.READ)
                updated += 1
        return updated


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    users: FakeUserDirectory = field(default_factory=FakeUserDirectory)
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    commits: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    @property
    def stored(self) -> list[Message]:
        return self.messages._messages

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


def make_uow_factory(uow: FakeUoW):
    @asynccontextmanager
    async def factory() -> AsyncIterator[FakeUoW]:
        yield uow

    return factory


class FakeSocket:
    """Collects frames a Connection writes; optionally fails every write."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e["data"] for e in self.events if e["type"] == event_type]

    @property
    def types(self) -> list[str]:
        return [e["type"] for e in self.events]


def make_connection(user_id: int, *, fail: bool = False) -> tuple[Connection, FakeSocket]:
    socket = FakeSocket(fail=fail)
    return Connection(socket, user_id), socket


@pytest.fixture
def uow() -> FakeUoW:
    uow = FakeUoW()
    uow.users.add(ALICE, "Alice", "https://cdn.example.com/alice.png")
    uow.users.add(BOB, "Bob")
    uow.users.add(CAROL, "Carol")
    return uow


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture
def fanout(presence: PresenceRegistry) -> Broadcaster:
    return Broadcaster(presence, instance_id="test-instance")


@pytest.fixture
def engine(uow: FakeUoW, presence: PresenceRegistry, fanout: Broadcaster, clock: FakeClock) -> DeliveryEngine:
    return DeliveryEngine(
        make_uow_factory(uow),
        presence,
        fanout,
        clock=clock,
        max_body_length=settings.MESSAGE_MAX_LENGTH,
    )


@pytest.fixture
def verifier() -> HS256Verifier:
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
