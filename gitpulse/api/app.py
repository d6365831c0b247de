"""Application factory for the gitpulse Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when a pipeline service is supplied,
the pipeline run, report and removal endpoints.

Usage
-----
Create a health-only app::

    app = create_app()

Create a full app::

    from gitpulse.api.app import AppDependencies, create_app

    app = create_app(AppDependencies(pipeline_service=service))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from gitpulse.api.errors import handle_invalid_input
from gitpulse.api.health.resources import HealthResource, ReadyResource
from gitpulse.pipeline.errors import InvalidInputError

if typ.TYPE_CHECKING:
    from gitpulse.pipeline.service import PipelineService

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    pipeline_service
        Service behind ``/pipeline/*``. When ``None`` only the health
        endpoints are registered.

    """

    pipeline_service: PipelineService | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only health
        endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()
    service = dependencies.pipeline_service if dependencies is not None else None

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(pipeline_enabled=service is not None))

    if service is not None:
        from gitpulse.api.pipeline.resources import (
            RemovalResource,
            ReportResource,
            RunResource,
        )

        app.add_route("/pipeline/runs", RunResource(service))
        app.add_route("/pipeline/reports", ReportResource(service))
        app.add_route("/pipeline/removals", RemovalResource(service))

    app.add_error_handler(InvalidInputError, handle_invalid_input)

    return app
