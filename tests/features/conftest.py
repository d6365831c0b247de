"""Shared fixtures for BDD feature tests.

Feature steps are synchronous and drive async code through ``run_async``,
so each step runs on its own event loop. The engine therefore uses
``NullPool`` so no connection outlives the loop that opened it.
"""

from __future__ import annotations

import typing as typ

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from gitpulse.bronze import init_bronze_storage
from gitpulse.gold import init_gold_storage
from tests.helpers import run_async

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def feature_session_factory(
    tmp_path: Path,
) -> typ.Iterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory over a freshly initialised sqlite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'gitpulse_feature.db'}",
        poolclass=NullPool,
    )

    async def _init() -> None:
        await init_bronze_storage(engine)
        await init_gold_storage(engine)

    run_async(_init)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        run_async(engine.dispose)
