"""Resources for pipeline runs, activity reports and account removals.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/pipeline/runs", RunResource(service))
    app.add_route("/pipeline/reports", ReportResource(service))
    app.add_route("/pipeline/removals", RemovalResource(service))

All three endpoints accept ``{"accounts": ["login", ...]}``.
"""

from __future__ import annotations

import typing as typ

import falcon

from gitpulse.pipeline.errors import InvalidInputError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from gitpulse.pipeline.service import PipelineService

__all__ = ["RemovalResource", "ReportResource", "RunResource"]


async def _accounts_from(req: Request) -> list[object]:
    """Return the ``accounts`` list from the request body.

    Raises
    ------
    InvalidInputError
        If the body is not an object or ``accounts`` is not a list.

    """
    body = await req.get_media(default_when_empty=None)
    if not isinstance(body, dict):
        raise InvalidInputError.not_a_login_list()
    accounts = body.get("accounts")
    if not isinstance(accounts, list):
        raise InvalidInputError.not_a_login_list()
    return accounts


class RunResource:
    """``POST /pipeline/runs`` runs the pipeline for the given accounts."""

    def __init__(self, service: PipelineService) -> None:
        """Bind the pipeline service."""
        self._service = service

    async def on_post(self, req: Request, resp: Response) -> None:
        """Run the pipeline and return its result.

        Parameters
        ----------
        req
            Falcon request carrying ``{"accounts": [...]}``.
        resp
            Falcon response populated with the serialised result.

        """
        accounts = await _accounts_from(req)
        result = await self._service.run(accounts)
        resp.media = result.to_dict()
        resp.status = falcon.HTTP_200


class ReportResource:
    """``POST /pipeline/reports`` returns the stored activity report.

    Nothing is fetched from GitHub; the report reflects the last runs.
    """

    def __init__(self, service: PipelineService) -> None:
        """Bind the pipeline service."""
        self._service = service

    async def on_post(self, req: Request, resp: Response) -> None:
        """Build the activity report for the given accounts."""
        accounts = await _accounts_from(req)
        report = await self._service.report(accounts)
        resp.media = report.to_dict()
        resp.status = falcon.HTTP_200


class RemovalResource:
    """``POST /pipeline/removals`` deletes stored data for accounts."""

    def __init__(self, service: PipelineService) -> None:
        """Bind the pipeline service."""
        self._service = service

    async def on_post(self, req: Request, resp: Response) -> None:
        """Remove the accounts and report removed, not-found and failed."""
        accounts = await _accounts_from(req)
        result = await self._service.remove_accounts(accounts)
        resp.media = result.to_dict()
        resp.status = falcon.HTTP_200
