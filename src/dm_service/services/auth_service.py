from __future__ import annotations

import logging

from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import Unauthenticated, UnknownIdentity
from dm_service.application.ports.auth import TokenVerifier
from dm_service.application.uow import UnitOfWork

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def credential_from(authorization: str | None, *fallbacks: str | None) -> str | None:
    """Pick the bearer token from an Authorization header, else the first non-empty fallback."""
    if authorization and authorization.lower().startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip()
        if token:
            return token
    for candidate in fallbacks:
        if candidate:
            return candidate
    return None


async def authenticate(
    credential: str | None,
    verifier: TokenVerifier,
    uow: UnitOfWork,
) -> Principal:
    """Verify a credential and resolve its identity against the user directory.

    Raises Unauthenticated, InvalidCredential or UnknownIdentity; nothing is
    registered anywhere until this returns.
    """
    if not credential:
        raise Unauthenticated("No credential provided")
    claims = await verifier.verify(credential)
    profile = await uow.users.lookup(claims.user_id)
    if profile is None:
        logger.info("Token for unknown user %d rejected", claims.user_id)
        raise UnknownIdentity("User not found")
    return Principal(user_id=profile.user_id, name=profile.name, email=claims.email)
