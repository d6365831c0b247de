"""Unit tests for gitpulse.api.errors error handlers.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_errors.py

"""

from __future__ import annotations

import falcon.asgi
import falcon.testing
import pytest

from gitpulse.api.errors import InvalidInputError, handle_invalid_input


class _BadRequestResource:
    """Resource that raises InvalidInputError without a field."""

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        msg = "invalid parameter"
        raise InvalidInputError(msg)


class _EmptyAccountsResource:
    """Resource that raises the empty-accounts error."""

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        raise InvalidInputError.empty_accounts()


@pytest.fixture
def client() -> falcon.testing.TestClient:
    """Build a test client with the error handler registered."""
    app = falcon.asgi.App()
    app.add_route("/bad-request", _BadRequestResource())
    app.add_route("/empty", _EmptyAccountsResource())
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    return falcon.testing.TestClient(app)


class TestInvalidInputError:
    """Tests for InvalidInputError and its handler."""

    def test_returns_400(self, client: falcon.testing.TestClient) -> None:
        """Handler maps InvalidInputError to HTTP 400."""
        result = client.simulate_get("/bad-request")
        assert result.status == falcon.HTTP_400, "expected HTTP 400"

    def test_omits_field_when_absent(self, client: falcon.testing.TestClient) -> None:
        """Errors without a field produce only title and description."""
        result = client.simulate_get("/bad-request")
        assert result.json == {
            "title": "Invalid input",
            "description": "invalid parameter",
        }

    def test_includes_field(self, client: falcon.testing.TestClient) -> None:
        """The offending field is reported alongside the reason."""
        result = client.simulate_get("/empty")
        assert result.json["field"] == "accounts", "expected accounts field"
        assert "at least one account" in result.json["description"]

    def test_message_prefixes_field(self) -> None:
        """str() of the error names the field."""
        err = InvalidInputError.not_a_login_list()
        assert str(err) == "accounts: must be a list of login strings"
