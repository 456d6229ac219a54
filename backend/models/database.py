"""SQLAlchemy models and async engine manager for BedHeat."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models."""


def utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    """A signed-in user and the device API credentials issued to them."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), primary_key=True)
    device_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token: Mapped[str] = mapped_column(Text(), nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text(), nullable=False)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    temperature_profile: Mapped[TemperatureProfile | None] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )
    schedules: Mapped[list[SleepSchedule]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class TemperatureProfile(Base):
    __tablename__ = "user_temperature_profiles"

    email: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.email", ondelete="CASCADE"), primary_key=True
    )
    timezone: Mapped[str] = mapped_column(String(50), nullable=False)
    preheat_time: Mapped[str] = mapped_column(String(5), default="21:00")  # HH:MM
    preheat_level: Mapped[int] = mapped_column(Integer(), default=10)  # -10..10
    preheat_only: Mapped[bool] = mapped_column(Boolean(), default=False)
    active_schedule_id: Mapped[int | None] = mapped_column(
        Integer(), ForeignKey("sleep_schedules.id", ondelete="SET NULL")
    )

    # Override bookkeeping; written only by the reconciliation run.
    schedule_overridden_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_commanded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_commanded_level: Mapped[int | None] = mapped_column(Integer())
    manual_level_override_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user: Mapped[User] = relationship(back_populates="temperature_profile")


class SleepSchedule(Base):
    __tablename__ = "sleep_schedules"

    id: Mapped[int] = mapped_column(Integer(), primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.email", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # [{"time": "HH:MM", "level": int | null}, ...]
    phases: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, default=list)
    allow_manual_override: Mapped[bool] = mapped_column(Boolean(), default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user: Mapped[User] = relationship(back_populates="schedules")


# ============================================================================
# Global engine and session management
# ============================================================================

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


_db_logger = logging.getLogger(__name__)


def get_engine() -> AsyncEngine:
    """Get the global async engine."""
    global _engine
    if _engine is None:
        from backend.config import get_settings

        settings = get_settings()

        _db_logger.info(
            "Creating engine -> %s:%s/%s",
            settings.db_host,
            settings.db_port,
            settings.db_name,
        )

        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            future=True,
            pool_size=5,
            max_overflow=10,
        )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the global session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def init_db() -> None:
    """Initialize database - create all tables."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
