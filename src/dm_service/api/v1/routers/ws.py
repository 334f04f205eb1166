from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from dm_service.api.v1.events import EventRouter
from dm_service.application.exceptions import AuthenticationError
from dm_service.config import settings
from dm_service.infrastructure.ws.connection import Connection
from dm_service.infrastructure.ws.presence import PresenceRegistry
from dm_service.services import auth_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

AUTH_FAILED_CLOSE_CODE = 4001


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    state = websocket.app.state
    credential = auth_service.credential_from(websocket.headers.get("authorization"), token)
    try:
        async with state.uow_factory() as uow:
            principal = await auth_service.authenticate(credential, state.verifier, uow)
    except AuthenticationError as exc:
        logger.info("WS auth rejected: %s", exc.detail)
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Authentication failed")
        return

    presence: PresenceRegistry = state.presence
    await websocket.accept()
    connection = Connection(websocket, principal.user_id)
    await presence.register(connection)
    logger.info("WS connected: user=%d conn=%s", principal.user_id, connection.id)

    heartbeat_task = asyncio.create_task(
        _heartbeat(connection), name=f"ws-heartbeat-{connection.id}",
    )
    try:
        await _read_loop(websocket, connection, state.event_router)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for user %d", principal.user_id)
    finally:
        heartbeat_task.cancel()
        await presence.deregister(connection)
        logger.info("WS disconnected: user=%d conn=%s", principal.user_id, connection.id)


async def _heartbeat(connection: Connection) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await connection.send("pong", {})
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Heartbeat stopped for %r", connection, exc_info=True)


async def _read_loop(ws: WebSocket, connection: Connection, events: EventRouter) -> None:
    # one frame at a time: events from a connection are handled in arrival order
    while True:
        raw = await ws.receive_text()
        await events.handle_frame(connection, raw)
