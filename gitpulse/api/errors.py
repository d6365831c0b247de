"""Falcon error handlers for the API layer.

Usage
-----
Register error handlers on the Falcon app::

    from gitpulse.api.errors import handle_invalid_input
    from gitpulse.pipeline.errors import InvalidInputError

    app.add_error_handler(InvalidInputError, handle_invalid_input)

"""

from __future__ import annotations

import typing as typ

import falcon

from gitpulse.pipeline.errors import InvalidInputError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["InvalidInputError", "handle_invalid_input"]


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The validation exception containing reason and optional field.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media
