"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dm_service.application.dto.principal import Principal
from dm_service.application.ports.auth import TokenVerifier
from dm_service.application.uow import UnitOfWork
from dm_service.config import Settings
from dm_service.infrastructure.auth.hs256_verifier import HS256Verifier
from dm_service.infrastructure.auth.jwks_verifier import JWKSVerifier
from dm_service.services import auth_service
from dm_service.services.delivery_engine import DeliveryEngine

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_uow(request: Request) -> AsyncIterator[UnitOfWork]:
    async with request.app.state.uow_factory() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def build_verifier(settings: Settings) -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, require_exp=settings.JWT_REQUIRE_EXP)
    return HS256Verifier(
        settings.JWT_SECRET,
        settings.JWT_ALGORITHM,
        require_exp=settings.JWT_REQUIRE_EXP,
    )


def get_verifier(request: Request) -> TokenVerifier:
    return request.app.state.verifier


async def get_current_principal(
    uow: UoWDep,
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    jwt_cookie: Annotated[str | None, Cookie(alias="jwt")] = None,
) -> Principal:
    token = credentials.credentials if credentials else jwt_cookie
    return await auth_service.authenticate(token, verifier, uow)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_delivery_engine(request: Request) -> DeliveryEngine:
    return request.app.state.delivery


DeliveryDep = Annotated[DeliveryEngine, Depends(get_delivery_engine)]
