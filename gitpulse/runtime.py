"""gitpulse runtime entrypoint.

This module provides the ASGI application factory served by Granian. It
delegates to :func:`gitpulse.api.app.create_app` while keeping the
``gitpulse.runtime:create_app`` entrypoint stable.

When ``GITPULSE_DATABASE_URL`` is set, the runtime wires the GitHub client and
the pipeline service so the app exposes ``/pipeline/*``; a missing or empty
``GITPULSE_GITHUB_TOKEN`` is then fatal. Otherwise it starts in health-only
mode.

Configuration is driven by environment variables:

- ``GITPULSE_HOST``: Bind address (default ``0.0.0.0``)
- ``GITPULSE_PORT``: Listen port (default ``8080``)
- ``GITPULSE_LOG_LEVEL``: Log level (default ``INFO``)
- ``GITPULSE_DATABASE_URL``: Database connection URL (optional; enables
  pipeline endpoints when set)

Run the service directly with ``python -m gitpulse.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from gitpulse.github.errors import GitHubConfigError
from gitpulse.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)
from gitpulse.pipeline.errors import PipelineConfigError

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid GITPULSE_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    Raises
    ------
    SystemExit
        If ``GITPULSE_DATABASE_URL`` is set but the GitHub or pipeline
        configuration is missing or invalid.

    """
    from gitpulse.api.app import create_app as _create_api_app

    database_url = os.environ.get("GITPULSE_DATABASE_URL")

    if database_url is None:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from gitpulse.api.app import AppDependencies
    from gitpulse.api.factory import build_pipeline_service
    from gitpulse.api.middleware import StorageLifecycle
    from gitpulse.github.client import GitHubClientConfig, GitHubRestClient
    from gitpulse.pipeline.config import PipelineConfig

    try:
        github_config = GitHubClientConfig.from_env()
        pipeline_config = PipelineConfig.from_env()
    except (GitHubConfigError, PipelineConfigError) as exc:
        log_error(logger, "Cannot start pipeline runtime: %s", exc)
        raise SystemExit(1) from exc

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    github_client = GitHubRestClient(github_config)
    service = build_pipeline_service(session_factory, github_client, pipeline_config)

    app = _create_api_app(AppDependencies(pipeline_service=service))
    app.add_middleware(StorageLifecycle(engine, github_client))
    return app


def main() -> None:
    """Start the gitpulse runtime server using Granian.

    Reads ``GITPULSE_HOST``, ``GITPULSE_PORT``, and ``GITPULSE_LOG_LEVEL`` from
    the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("GITPULSE_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("GITPULSE_PORT", "8080"))
    log_level_str = os.environ.get("GITPULSE_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid GITPULSE_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting gitpulse runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "gitpulse.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
