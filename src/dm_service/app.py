from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dm_service.api.deps import build_verifier
from dm_service.api.middleware.correlation_id import CorrelationIdMiddleware
from dm_service.api.middleware.metrics import RequestTimingMiddleware
from dm_service.api.v1.events import EventRouter
from dm_service.api.v1.routers import health, messages, ws
from dm_service.application.exceptions import (
    AuthenticationError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from dm_service.application.ports.auth import TokenVerifier
from dm_service.application.ports.clock import Clock
from dm_service.application.uow import UowFactory
from dm_service.config import settings
from dm_service.infrastructure.bus.redis_pubsub import RedisRelayPublisher, RedisRelaySubscriber
from dm_service.infrastructure.db.session import dispose_engine
from dm_service.infrastructure.db.uow import open_uow
from dm_service.infrastructure.ws.fanout import Broadcaster
from dm_service.infrastructure.ws.presence import PresenceRegistry
from dm_service.services.delivery_engine import DeliveryEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle: the optional cross-instance relay and the DB pool."""
    if settings.REDIS_FANOUT_ENABLED:
        await _start_relay(app)
    try:
        yield
    finally:
        await _stop_relay(app)
        await dispose_engine()


async def _start_relay(app: FastAPI) -> None:
    app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    fanout: Broadcaster = app.state.fanout
    fanout.attach_relay(RedisRelayPublisher(app.state.redis, settings.REDIS_PUBSUB_CHANNEL))
    app.state.relay_subscriber = RedisRelaySubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        fanout.on_relay_event,
    )
    await app.state.relay_subscriber.start()
    logger.info("Fan-out relay enabled (instance=%s)", fanout.instance_id)


async def _stop_relay(app: FastAPI) -> None:
    subscriber: RedisRelaySubscriber | None = getattr(app.state, "relay_subscriber", None)
    if subscriber is not None:
        await subscriber.stop()
        app.state.relay_subscriber = None
    app.state.fanout.detach_relay()
    if app.state.redis is not None:
        await app.state.redis.aclose()
        app.state.redis = None
        logger.info("Redis connection pool closed")


def create_app(
    *,
    uow_factory: UowFactory | None = None,
    verifier: TokenVerifier | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Direct Messaging Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)
    _wire_services(app, uow_factory or open_uow, verifier or build_verifier(settings), clock)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _wire_services(
    app: FastAPI,
    uow_factory: UowFactory,
    verifier: TokenVerifier,
    clock: Clock | None,
) -> None:
    presence = PresenceRegistry()
    fanout = Broadcaster(presence)
    delivery = DeliveryEngine(
        uow_factory,
        presence,
        fanout,
        clock=clock,
        max_body_length=settings.MESSAGE_MAX_LENGTH,
        placeholder_name=settings.PLACEHOLDER_NAME,
    )
    app.state.uow_factory = uow_factory
    app.state.verifier = verifier
    app.state.presence = presence
    app.state.fanout = fanout
    app.state.delivery = delivery
    app.state.event_router = EventRouter(
        presence,
        fanout,
        delivery,
        uow_factory,
        placeholder_name=settings.PLACEHOLDER_NAME,
    )
    app.state.redis = None


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(_req: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(PersistenceFailure)
    async def _persistence(_req: Request, exc: PersistenceFailure) -> JSONResponse:
        content: dict[str, str | None] = {"detail": exc.detail}
        if exc.client_msg_id is not None:
            content["client_msg_id"] = exc.client_msg_id
        return JSONResponse(status_code=503, content=content)
