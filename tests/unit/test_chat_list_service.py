from __future__ import annotations

from datetime import timedelta

import pytest

from dm_service.application.dto.message import SendMessageDTO
from dm_service.services import chat_list_service, message_service
from tests.conftest import ALICE, BOB, CAROL, EPOCH, FakeUoW


async def _append(uow: FakeUoW, sender: int, receiver: int, body: str, minute: int) -> None:
    await message_service.append_message(
        SendMessageDTO(sender_id=sender, receiver_id=receiver, body=body),
        EPOCH + timedelta(minutes=minute),
        uow,
    )


@pytest.mark.asyncio
async def test_empty_log_gives_empty_list(uow):
    assert await chat_list_service.chat_list(ALICE, uow) == []


@pytest.mark.asyncio
async def test_last_message_and_unread_per_side(uow):
    await _append(uow, ALICE, BOB, "hi", 1)
    await _append(uow, BOB, ALICE, "yo", 2)

    [alice_view] = await chat_list_service.chat_list(ALICE, uow)
    [bob_view] = await chat_list_service.chat_list(BOB, uow)

    assert alice_view.counterpart_id == BOB
    assert alice_view.name == "Bob"
    assert alice_view.last_message == "yo"
    assert alice_view.last_message_time == EPOCH + timedelta(minutes=2)
    assert alice_view.unread_count == 1

    assert bob_view.counterpart_id == ALICE
    assert bob_view.last_message == "yo"
    assert bob_view.unread_count == 1


@pytest.mark.asyncio
async def test_unread_count_drops_after_mark_read(uow):
    for minute in range(3):
        await _append(uow, BOB, ALICE, f"ping {minute}", minute)

    [before] = await chat_list_service.chat_list(ALICE, uow)
    await message_service.mark_read(ALICE, BOB, uow)
    [after] = await chat_list_service.chat_list(ALICE, uow)

    assert before.unread_count == 3
    assert after.unread_count == 0


@pytest.mark.asyncio
async def test_most_recent_conversation_first(uow):
    await _append(uow, ALICE, BOB, "old", 1)
    await _append(uow, CAROL, ALICE, "new", 2)

    entries = await chat_list_service.chat_list(ALICE, uow)

    assert [e.counterpart_id for e in entries] == [CAROL, BOB]
    assert [e.unread_count for e in entries] == [1, 0]


@pytest.mark.asyncio
async def test_counterpart_profile_fields(uow):
    await _append(uow, ALICE, BOB, "hey", 1)

    [entry] = await chat_list_service.chat_list(BOB, uow)

    assert entry.name == "Alice"
    assert entry.avatar_url == "https://cdn.example.com/alice.png"


@pytest.mark.asyncio
async def test_unknown_counterpart_gets_placeholder(uow):
    await _append(uow, ALICE, 42, "anyone there?", 1)

    [entry] = await chat_list_service.chat_list(ALICE, uow, placeholder_name="Someone")

    assert entry.counterpart_id == 42
    assert entry.name == "Someone"
    assert entry.avatar_url is None
