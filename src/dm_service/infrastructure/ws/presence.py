"""In-process registry of live connections and their conversation subscriptions."""
from __future__ import annotations

import asyncio
import logging

from dm_service.domain.value_objects.conversation_key import ConversationKey
from dm_service.infrastructure.ws.connection import Connection

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Tracks connections per identity and per conversation key.

    A user is online while at least one of their connections is registered.
    Every mutation and every snapshot read happens under one lock, so fan-out
    never observes a half-applied connect, disconnect, join or leave.
    """

    def __init__(self) -> None:
        self._by_user: dict[int, set[Connection]] = {}
        self._by_key: dict[ConversationKey, set[Connection]] = {}
        self._keys_by_conn: dict[Connection, set[ConversationKey]] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection: Connection) -> bool:
        """Add a connection. Return True if its user just came online."""
        async with self._lock:
            conns = self._by_user.setdefault(connection.user_id, set())
            came_online = not conns
            conns.add(connection)
            self._keys_by_conn.setdefault(connection, set())
        logger.debug(
            "Registered %r (user connections=%d)", connection, len(conns),
        )
        return came_online

    async def deregister(self, connection: Connection) -> bool:
        """Drop a connection and all its subscriptions. Return True if its user went offline."""
        async with self._lock:
            for key in self._keys_by_conn.pop(connection, set()):
                self._discard(self._by_key, key, connection)
            went_offline = self._discard(self._by_user, connection.user_id, connection)
        if went_offline:
            logger.debug("User %d is offline", connection.user_id)
        return went_offline

    async def is_online(self, user_id: int) -> bool:
        async with self._lock:
            return bool(self._by_user.get(user_id))

    async def subscribe(self, connection: Connection, key: ConversationKey) -> bool:
        """Join ``connection`` to ``key``. Return False if it was already subscribed."""
        if not key.involves(connection.user_id):
            raise ValueError(f"{connection!r} cannot subscribe to conversation {key}")
        async with self._lock:
            keys = self._keys_by_conn.get(connection)
            if keys is None:
                raise LookupError(f"{connection!r} is not registered")
            if key in keys:
                return False
            keys.add(key)
            self._by_key.setdefault(key, set()).add(connection)
            return True

    async def unsubscribe(self, connection: Connection, key: ConversationKey) -> bool:
        async with self._lock:
            keys = self._keys_by_conn.get(connection)
            if not keys or key not in keys:
                return False
            keys.discard(key)
            self._discard(self._by_key, key, connection)
            return True

    async def subscribers(self, key: ConversationKey) -> tuple[Connection, ...]:
        async with self._lock:
            return tuple(self._by_key.get(key, ()))

    async def connections_of(self, user_id: int) -> tuple[Connection, ...]:
        async with self._lock:
            return tuple(self._by_user.get(user_id, ()))

    async def subscriptions_of(self, connection: Connection) -> frozenset[ConversationKey]:
        async with self._lock:
            return frozenset(self._keys_by_conn.get(connection, ()))

    async def online_users(self) -> list[int]:
        async with self._lock:
            return sorted(self._by_user)

    @staticmethod
    def _discard(table: dict, slot: object, connection: Connection) -> bool:
        """Remove ``connection`` from ``table[slot]``; drop the slot once empty."""
        conns = table.get(slot)
        if not conns:
            return False
        conns.discard(connection)
        if conns:
            return False
        del table[slot]
        return True
