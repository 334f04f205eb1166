from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_FANOUT_ENABLED: bool = True
    REDIS_PUBSUB_CHANNEL: str = "dm.fanout"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None
    JWT_REQUIRE_EXP: bool = True
    JWT_TTL_SECONDS: int = 7 * 24 * 3600

    CORS_ORIGINS: list[str] = ["*"]

    WS_HEARTBEAT_SECONDS: int = 30

    LOG_LEVEL: str = "INFO"

    HISTORY_DEFAULT_LIMIT: int = 100
    HISTORY_MAX_LIMIT: int = 500
    MESSAGE_MAX_LENGTH: int = 4000
    PLACEHOLDER_NAME: str = "User"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
