from __future__ import annotations

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from dm_service.infrastructure.db.base import Base


class UserModel(Base):
    """Directory table. Owned by the auth service; this service only reads it."""

    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    profile_picture: Mapped[str | None] = mapped_column(String(512), nullable=True)
