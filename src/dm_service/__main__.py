"""Entrypoint: python -m dm_service"""
from __future__ import annotations

import logging

import uvicorn

from dm_service.api.middleware.correlation_id import CorrelationIdFilter
from dm_service.config import settings


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s [rid=%(rid)s]: %(message)s",
        handlers=[handler],
    )


def main() -> None:
    configure_logging()
    uvicorn.run(
        "dm_service.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
