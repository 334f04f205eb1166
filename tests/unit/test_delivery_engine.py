from __future__ import annotations

import pytest

from dm_service.application.dto.message import SendMessageDTO
from dm_service.application.exceptions import InvalidMessage, PersistenceFailure
from dm_service.config import settings
from dm_service.domain.value_objects.conversation_key import address_of
from dm_service.domain.value_objects.enums import MessageStatus
from tests.conftest import ALICE, BOB, CAROL, make_connection


def _dto(body: str = "hello", sender: int = ALICE, receiver: int = BOB, client_msg_id: str | None = None):
    return SendMessageDTO(sender_id=sender, receiver_id=receiver, body=body, client_msg_id=client_msg_id)


@pytest.mark.asyncio
async def test_offline_receiver_keeps_sent(engine, uow):
    result = await engine.send(_dto())

    assert result.recipient_online is False
    assert result.message.status == MessageStatus.SENT
    assert uow.stored[0].status == MessageStatus.SENT


@pytest.mark.asyncio
async def test_online_receiver_marks_delivered(engine, presence, uow):
    bob, bob_socket = make_connection(BOB)
    await presence.register(bob)

    result = await engine.send(_dto())

    assert result.recipient_online is True
    assert result.message.status == MessageStatus.DELIVERED
    assert uow.stored[0].status == MessageStatus.DELIVERED
    # online but not joined: only the chat list refresh arrives
    assert bob_socket.types == ["chat_list_updated"]


@pytest.mark.asyncio
async def test_receiver_who_disconnected_gets_sent(engine, presence, uow):
    bob, _ = make_connection(BOB)
    await presence.register(bob)
    await presence.deregister(bob)

    result = await engine.send(_dto())

    assert result.message.status == MessageStatus.SENT


@pytest.mark.asyncio
async def test_new_message_reaches_subscribers_only(engine, presence):
    key = address_of(ALICE, BOB)
    alice, alice_socket = make_connection(ALICE)
    bob, bob_socket = make_connection(BOB)
    carol, carol_socket = make_connection(CAROL)
    for conn in (alice, bob, carol):
        await presence.register(conn)
    await presence.subscribe(alice, key)
    await presence.subscribe(bob, key)
    await presence.subscribe(carol, address_of(ALICE, CAROL))

    result = await engine.send(_dto("hi bob"))

    [to_alice] = alice_socket.of_type("new_message")
    [to_bob] = bob_socket.of_type("new_message")
    assert to_alice == to_bob
    assert to_bob["id"] == result.message.id
    assert to_bob["body"] == "hi bob"
    assert to_bob["status"] == "delivered"
    assert to_bob["conversation_key"] == "1-2"
    assert carol_socket.sent == []
    assert result.broadcast_ok is True


@pytest.mark.asyncio
async def test_origin_receives_ack(engine, presence):
    alice, alice_socket = make_connection(ALICE)
    await presence.register(alice)

    result = await engine.send(_dto(client_msg_id="c-1"), origin=alice)

    [ack] = alice_socket.of_type("message_ack")
    assert ack == {"client_msg_id": "c-1", "message_id": result.message.id, "status": "sent"}


@pytest.mark.asyncio
async def test_both_sides_get_chat_list_updates(engine, presence):
    alice, alice_socket = make_connection(ALICE)
    bob, bob_socket = make_connection(BOB)
    await presence.register(alice)
    await presence.register(bob)

    await engine.send(_dto("first"))

    [alice_list] = alice_socket.of_type("chat_list_updated")
    [bob_list] = bob_socket.of_type("chat_list_updated")
    assert alice_list["current_user_id"] == ALICE
    assert alice_list["chats"][0]["counterpart_id"] == BOB
    assert alice_list["chats"][0]["unread_count"] == 0
    assert bob_list["chats"][0]["name"] == "Alice"
    assert bob_list["chats"][0]["last_message"] == "first"
    assert bob_list["chats"][0]["unread_count"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "dto",
    [
        _dto(receiver=ALICE),
        _dto(""),
        _dto("   \n\t"),
        _dto("x" * (settings.MESSAGE_MAX_LENGTH + 1)),
    ],
    ids=["self", "empty", "whitespace", "too-long"],
)
async def test_invalid_message_leaves_no_trace(engine, presence, uow, dto):
    alice, alice_socket = make_connection(ALICE)
    await presence.register(alice)

    with pytest.raises(InvalidMessage):
        await engine.send(dto, origin=alice)

    assert uow.stored == []
    assert alice_socket.sent == []


@pytest.mark.asyncio
async def test_body_at_max_length_accepted(engine, uow):
    await engine.send(_dto("x" * settings.MESSAGE_MAX_LENGTH))

    assert len(uow.stored) == 1


@pytest.mark.asyncio
async def test_persistence_failure_broadcasts_nothing(engine, presence, uow):
    uow.messages_w.fail_append = True
    alice, alice_socket = make_connection(ALICE)
    bob, bob_socket = make_connection(BOB)
    for conn in (alice, bob):
        await presence.register(conn)
        await presence.subscribe(conn, address_of(ALICE, BOB))

    with pytest.raises(PersistenceFailure) as excinfo:
        await engine.send(_dto(client_msg_id="c-7"), origin=alice)

    assert excinfo.value.client_msg_id == "c-7"

    assert alice_socket.sent == []
    assert bob_socket.sent == []


@pytest.mark.asyncio
async def test_status_update_failure_keeps_message_sent(engine, presence, uow):
    uow.messages_w.fail_update = True
    bob, bob_socket = make_connection(BOB)
    await presence.register(bob)
    await presence.subscribe(bob, address_of(ALICE, BOB))

    result = await engine.send(_dto())

    assert result.message.status == MessageStatus.SENT
    assert uow.stored[0].status == MessageStatus.SENT
    assert bob_socket.of_type("new_message")[0]["status"] == "sent"


@pytest.mark.asyncio
async def test_broadcast_failure_is_not_fatal(engine, presence, uow):
    key = address_of(ALICE, BOB)
    alice, alice_socket = make_connection(ALICE)
    bob, _ = make_connection(BOB, fail=True)
    for conn in (alice, bob):
        await presence.register(conn)
        await presence.subscribe(conn, key)

    result = await engine.send(_dto(), origin=alice)

    assert result.broadcast_ok is False
    assert uow.stored[0].id == result.message.id
    assert len(alice_socket.of_type("new_message")) == 1
    assert len(alice_socket.of_type("message_ack")) == 1
    assert await presence.is_online(BOB) is False
    assert await presence.subscribers(key) == (alice,)


@pytest.mark.asyncio
async def test_failed_ack_deregisters_origin(engine, presence, uow):
    alice, _ = make_connection(ALICE, fail=True)
    await presence.register(alice)

    result = await engine.send(_dto(), origin=alice)

    assert result.broadcast_ok is False
    assert len(uow.stored) == 1
    assert await presence.is_online(ALICE) is False


@pytest.mark.asyncio
async def test_mark_read_pushes_reader_chat_list(engine, presence, uow):
    await engine.send(_dto("one"))
    await engine.send(_dto("two"))
    bob, bob_socket = make_connection(BOB)
    await presence.register(bob)

    assert await engine.mark_read(BOB, ALICE) == 2
    [update] = bob_socket.of_type("chat_list_updated")
    assert update["chats"][0]["unread_count"] == 0
    assert {m.status for m in uow.stored} == {MessageStatus.READ}

    assert await engine.mark_read(BOB, ALICE) == 0
    assert len(bob_socket.of_type("chat_list_updated")) == 1


@pytest.mark.asyncio
async def test_sent_at_comes_from_clock(engine, clock):
    first = await engine.send(_dto("a"))
    second = await engine.send(_dto("b"))

    assert first.message.sent_at < second.message.sent_at <= clock.current
