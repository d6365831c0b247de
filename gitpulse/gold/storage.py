"""Gold layer tables for curated profiles, repositories and activity counters."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ

from sqlalchemy import (
    CheckConstraint,
    Date,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from gitpulse.bronze.storage import Base, UTCDateTime
from gitpulse.common.time import utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class UserProfileRecord(Base):
    """Denormalised profile of a tracked account."""

    __tablename__ = "user_profiles"
    __table_args__ = (UniqueConstraint("login", name="uq_user_profiles_login"),)

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    login: Mapped[str | None] = mapped_column(String(255), default=None)
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    avatar_url: Mapped[str | None] = mapped_column(Text(), default=None)
    html_url: Mapped[str | None] = mapped_column(Text(), default=None)
    company: Mapped[str | None] = mapped_column(String(255), default=None)
    location: Mapped[str | None] = mapped_column(String(255), default=None)
    bio: Mapped[str | None] = mapped_column(Text(), default=None)
    blog: Mapped[str | None] = mapped_column(Text(), default=None)
    twitter_username: Mapped[str | None] = mapped_column(String(255), default=None)
    account_type: Mapped[str | None] = mapped_column(String(32), default=None)
    public_repos: Mapped[int | None] = mapped_column(Integer(), default=None)
    followers: Mapped[int | None] = mapped_column(Integer(), default=None)
    following: Mapped[int | None] = mapped_column(Integer(), default=None)
    gh_created_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


class CuratedRepositoryRecord(Base):
    """Denormalised repository row."""

    __tablename__ = "curated_repositories"
    __table_args__ = (Index("ix_curated_repositories_owner", "owner_user_id"),)

    repo_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_user_id: Mapped[str | None] = mapped_column(String(64), default=None)
    repo_name: Mapped[str | None] = mapped_column(String(255), default=None)
    full_name: Mapped[str | None] = mapped_column(String(255), default=None)
    description: Mapped[str | None] = mapped_column(Text(), default=None)
    html_url: Mapped[str | None] = mapped_column(Text(), default=None)
    visibility: Mapped[str] = mapped_column(String(16), default="public")
    default_branch: Mapped[str | None] = mapped_column(String(255), default=None)
    fork_count: Mapped[int | None] = mapped_column(Integer(), default=None)
    parent_repo_id: Mapped[str | None] = mapped_column(String(64), default=None)
    last_activity: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


class UserActivityRecord(Base):
    """Per-day activity counter for one user, repository and activity type."""

    __tablename__ = "user_activity"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_user_activity_count_non_negative"),
        Index("ix_user_activity_repo_day", "repo_id", "day"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    day: Mapped[dt.date] = mapped_column(Date(), primary_key=True)
    repo_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    activity_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    count: Mapped[int] = mapped_column(Integer(), default=0, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


async def init_gold_storage(engine: AsyncEngine) -> None:
    """Create Gold tables if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all,
            tables=[
                UserProfileRecord.__table__,
                CuratedRepositoryRecord.__table__,
                UserActivityRecord.__table__,
            ],
        )
