"""Persistence models for the Bronze raw store."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import JSON, Boolean, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from gitpulse.bronze.errors import TimezoneAwareRequiredError
from gitpulse.common.time import utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class Base(DeclarativeBase):
    """Base declarative class for Bronze models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_field("stored datetime")
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class RawEventRecord(Base):
    """Insert-once record of a fetched GitHub event."""

    __tablename__ = "raw_events"
    __table_args__ = (
        Index("ix_raw_events_kind_time", "kind", "created_at"),
        Index("ix_raw_events_actor", "actor_id"),
        Index("ix_raw_events_parent", "parent_id"),
    )

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32))
    actor_id: Mapped[str | None] = mapped_column(String(64), default=None)
    repo_id: Mapped[str | None] = mapped_column(String(64), default=None)
    parent_id: Mapped[str | None] = mapped_column(String(160), default=None)
    created_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    received_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    is_private: Mapped[bool | None] = mapped_column(Boolean(), default=None)
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)


class RawUserRecord(Base):
    """Latest GitHub profile per account, keyed by platform node id."""

    __tablename__ = "raw_users"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    login: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    fetched_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    last_synced_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)


class RawRepoRecord(Base):
    """Latest GitHub repository metadata, keyed by platform node id."""

    __tablename__ = "raw_repos"

    repo_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), index=True)
    owner_login: Mapped[str | None] = mapped_column(String(255), default=None)
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    is_private: Mapped[bool | None] = mapped_column(Boolean(), default=None)
    fetched_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)


async def init_bronze_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
