"""Redis Pub/Sub relay that carries fan-out events between service instances."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from dm_service.infrastructure.bus.serializer import decode_envelope, encode_envelope

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 5

OnRelayEvent = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisRelayPublisher:
    """Implements application.ports.relay.RelayPublisher on one channel."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def publish(self, envelope: dict[str, Any]) -> None:
        receivers = await self._redis.publish(self._channel, encode_envelope(envelope))
        logger.debug(
            "Relayed %s to %d instance(s)", envelope.get("event_type"), receivers,
        )


class RedisRelaySubscriber:
    """Background task feeding envelopes from peer instances into ``callback``.

    The subscription is re-established after connection errors; a malformed
    envelope or a failing callback only drops that one event.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnRelayEvent,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-relay-subscriber")
        logger.info("Relay subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Relay subscriber stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._consume()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Relay subscription lost, reconnecting in %ds", RECONNECT_DELAY_SECONDS,
                )
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)

    async def _consume(self) -> None:
        async with self._redis.pubsub(ignore_subscribe_messages=True) as pubsub:
            await pubsub.subscribe(self._channel)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                await self._deliver(message["data"])

    async def _deliver(self, raw: str | bytes) -> None:
        try:
            envelope = decode_envelope(raw)
        except ValueError:
            logger.warning("Dropping malformed relay envelope", exc_info=True)
            return
        try:
            await self._callback(envelope["event_type"], envelope)
        except Exception:
            logger.exception("Relay event %s could not be delivered", envelope["event_type"])
