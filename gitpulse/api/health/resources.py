"""Liveness and readiness probe resources.

Both probes are stateless and registered whether or not a pipeline service
is wired in.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe reporting whether pipeline endpoints are mounted."""

    def __init__(self, *, pipeline_enabled: bool = False) -> None:
        """Record whether the pipeline endpoints are available."""
        self._pipeline_enabled = pipeline_enabled

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready."""
        resp.media = {"status": "ready", "pipeline": self._pipeline_enabled}
        resp.status = HTTPStatus.OK
