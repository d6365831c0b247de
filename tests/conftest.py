"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gitpulse.bronze import init_bronze_storage
from gitpulse.gold import init_gold_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _init_all_storage(engine: AsyncEngine) -> None:
    """Initialise bronze and gold storage layers."""
    await init_bronze_storage(engine)
    await init_gold_storage(engine)


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine and initialise all storage layers."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'gitpulse_test.db'}"
    )
    try:
        await _init_all_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()
