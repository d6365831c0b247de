"""ASGI lifespan middleware owning the runtime's long-lived resources.

On startup the Bronze and Gold tables are created if absent; on shutdown the
GitHub HTTP client is closed and the engine disposed.

Usage
-----
Attach the middleware when wiring the runtime::

    app.add_middleware(StorageLifecycle(engine, github_client))

"""

from __future__ import annotations

import typing as typ

from gitpulse.bronze.storage import init_bronze_storage
from gitpulse.gold.storage import init_gold_storage
from gitpulse.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from gitpulse.github.client import GitHubRestClient

__all__ = ["StorageLifecycle"]

logger = get_logger(__name__)


class StorageLifecycle:
    """Falcon middleware initialising storage and releasing clients.

    Parameters
    ----------
    engine
        Async engine shared by every store.
    github_client
        REST client to close on shutdown, if any.

    """

    def __init__(
        self,
        engine: AsyncEngine,
        github_client: GitHubRestClient | None = None,
    ) -> None:
        """Store the resources managed across the application lifespan."""
        self._engine = engine
        self._github_client = github_client

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Create the Bronze and Gold tables if they are absent."""
        await init_bronze_storage(self._engine)
        await init_gold_storage(self._engine)
        log_info(logger, "Storage initialised")

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Close the GitHub client and dispose of the engine."""
        if self._github_client is not None:
            await self._github_client.aclose()
        await self._engine.dispose()
        log_info(logger, "Runtime resources released")
