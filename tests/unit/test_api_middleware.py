"""Unit tests for gitpulse.api.middleware.StorageLifecycle.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_middleware.py

"""

from __future__ import annotations

import typing as typ
from unittest import mock

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from gitpulse.api.middleware import StorageLifecycle

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.asyncio
async def test_startup_creates_bronze_and_gold_tables(tmp_path: Path) -> None:
    """process_startup creates every table on an empty database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mw.db'}")
    lifecycle = StorageLifecycle(engine)

    await lifecycle.process_startup({}, {})

    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync: set(inspect(sync).get_table_names()))
    await engine.dispose()
    assert {"raw_events", "user_profiles", "user_activity"} <= tables, (
        "expected bronze and gold tables"
    )


@pytest.mark.asyncio
async def test_shutdown_closes_client_and_engine() -> None:
    """process_shutdown releases the GitHub client and the engine."""
    engine = mock.MagicMock()
    engine.dispose = mock.AsyncMock()
    github_client = mock.MagicMock()
    github_client.aclose = mock.AsyncMock()

    await StorageLifecycle(engine, github_client).process_shutdown({}, {})

    github_client.aclose.assert_awaited_once()
    engine.dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_shutdown_without_client_disposes_engine() -> None:
    """A lifecycle without a GitHub client still disposes the engine."""
    engine = mock.MagicMock()
    engine.dispose = mock.AsyncMock()

    await StorageLifecycle(engine).process_shutdown({}, {})

    engine.dispose.assert_awaited_once()
