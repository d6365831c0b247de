"""Unit tests for gitpulse.api.app application factory.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_app.py

"""

from __future__ import annotations

import datetime as dt
from unittest import mock

import falcon.asgi
import falcon.testing
import pytest

from gitpulse.api.app import AppDependencies, create_app
from gitpulse.gold import ActivityReport, ActivityTotals
from gitpulse.pipeline import (
    PipelineResult,
    PipelineService,
    RemovalResult,
    SyncMode,
)

NOW = dt.datetime(2024, 7, 2, 12, 0, tzinfo=dt.UTC)


def _result() -> PipelineResult:
    since = NOW - dt.timedelta(days=180)
    return PipelineResult(
        mode=SyncMode.INITIAL,
        accounts=("octocat",),
        excluded_accounts=(),
        repositories=("octo/reef",),
        failed_repositories=(),
        since=since,
        until=NOW,
        windows={"octocat": since},
        events_written=3,
    )


@pytest.fixture
def service() -> mock.MagicMock:
    """Pipeline service double returning canned results."""
    double = mock.MagicMock()
    double.run = mock.AsyncMock(return_value=_result())
    double.remove_accounts = mock.AsyncMock(
        return_value=RemovalResult(removed=("octocat",), not_found=("ghost",))
    )
    double.report = mock.AsyncMock(
        return_value=ActivityReport(
            accounts=(),
            missing_accounts=("ghost",),
            totals=ActivityTotals(commits=4),
            total_repos=0,
            since=dt.date(2024, 1, 4),
            until=NOW.date(),
            min_fork_count=3,
        )
    )
    return double


@pytest.fixture
def health_client() -> falcon.testing.TestClient:
    """Build a test client for health-only mode."""
    return falcon.testing.TestClient(create_app())


@pytest.fixture
def full_client(service: mock.MagicMock) -> falcon.testing.TestClient:
    """Build a test client with the pipeline endpoints."""
    return falcon.testing.TestClient(
        create_app(AppDependencies(pipeline_service=service))
    )


class TestCreateAppHealthOnly:
    """Tests for create_app() without a pipeline service."""

    def test_returns_falcon_app(self) -> None:
        """create_app() returns a Falcon ASGI App."""
        assert isinstance(create_app(), falcon.asgi.App), "expected Falcon ASGI App"

    def test_health_and_ready(self, health_client: falcon.testing.TestClient) -> None:
        """Probes answer and report the pipeline as disabled."""
        health = health_client.simulate_get("/health")
        ready = health_client.simulate_get("/ready")

        assert health.status == falcon.HTTP_200, "expected HTTP 200 from /health"
        assert health.json == {"status": "ok"}
        assert ready.json == {"status": "ready", "pipeline": False}

    def test_pipeline_routes_not_registered(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Without a service the pipeline endpoints return 404."""
        result = health_client.simulate_post("/pipeline/runs", json={"accounts": []})
        assert result.status == falcon.HTTP_404, "expected HTTP 404"


class TestPipelineEndpoints:
    """Tests for the run, report and removal resources."""

    def test_ready_reports_pipeline(
        self, full_client: falcon.testing.TestClient
    ) -> None:
        """/ready advertises the mounted pipeline."""
        assert full_client.simulate_get("/ready").json == {
            "status": "ready",
            "pipeline": True,
        }

    def test_run_returns_serialised_result(
        self, full_client: falcon.testing.TestClient, service: mock.MagicMock
    ) -> None:
        """POST /pipeline/runs forwards accounts and returns the result."""
        result = full_client.simulate_post(
            "/pipeline/runs", json={"accounts": ["octocat"]}
        )

        assert result.status == falcon.HTTP_200
        assert result.json["accounts"] == ["octocat"]
        assert result.json["until"] == "2024-07-02T12:00:00Z"
        service.run.assert_awaited_once_with(["octocat"])

    def test_removal_returns_outcomes(
        self, full_client: falcon.testing.TestClient
    ) -> None:
        """POST /pipeline/removals reports removed and not-found accounts."""
        result = full_client.simulate_post(
            "/pipeline/removals", json={"accounts": ["octocat", "ghost"]}
        )

        assert result.status == falcon.HTTP_200
        assert result.json == {
            "removed": ["octocat"],
            "not_found": ["ghost"],
            "failed": [],
        }

    def test_report_returns_summary_without_running(
        self, full_client: falcon.testing.TestClient, service: mock.MagicMock
    ) -> None:
        """POST /pipeline/reports answers from stored rows only."""
        result = full_client.simulate_post(
            "/pipeline/reports", json={"accounts": ["ghost"]}
        )

        assert result.status == falcon.HTTP_200
        assert result.json["users"] == []
        assert result.json["summary"]["commits"] == 4
        assert result.json["summary"]["missing_users"] == ["ghost"]
        assert result.json["summary"]["since"] == "2024-01-04"
        service.report.assert_awaited_once_with(["ghost"])
        service.run.assert_not_awaited()

    def test_report_rejects_malformed_bodies(
        self, full_client: falcon.testing.TestClient
    ) -> None:
        """The report endpoint shares the accounts validation."""
        result = full_client.simulate_post("/pipeline/reports", json={"logins": []})

        assert result.status == falcon.HTTP_400
        assert result.json["field"] == "accounts"

    @pytest.mark.parametrize(
        "body",
        [None, [], {"accounts": "octocat"}, {"logins": ["octocat"]}],
    )
    def test_malformed_bodies_are_rejected(
        self, full_client: falcon.testing.TestClient, body: object
    ) -> None:
        """Bodies without an accounts list are a 400."""
        result = full_client.simulate_post("/pipeline/runs", json=body)

        assert result.status == falcon.HTTP_400
        assert result.json["field"] == "accounts"


def test_empty_account_list_is_bad_request() -> None:
    """The run endpoint answers 400 before any pipeline work starts."""
    ingestion = mock.MagicMock()
    ingestion.ingest = mock.AsyncMock()
    service = PipelineService(
        ingestion, mock.MagicMock(), mock.MagicMock(), mock.MagicMock()
    )
    client = falcon.testing.TestClient(
        create_app(AppDependencies(pipeline_service=service))
    )

    result = client.simulate_post("/pipeline/runs", json={"accounts": ["  ", ""]})

    assert result.status == falcon.HTTP_400
    assert result.json == {
        "title": "Invalid input",
        "description": "at least one account login is required",
        "field": "accounts",
    }
    ingestion.ingest.assert_not_awaited()
