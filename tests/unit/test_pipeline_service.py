"""Unit tests for the pipeline run and removal entry points."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from gitpulse.bronze import RawEventStore, RawMemoryStore
from gitpulse.github import IngestionOrchestrator, RateLimitedClient, RetryPolicy
from gitpulse.gold import ActivityType, CuratedWriter
from gitpulse.pipeline import (
    InvalidInputError,
    PipelineService,
    SyncMode,
    normalise_accounts,
)
from gitpulse.silver import SilverOrchestrator
from tests.unit.github_fakes import (
    T0,
    FakeGitHubClient,
    RecordingSleep,
    commit_payload,
    issue_comment_payload,
    issue_payload,
    pull_listing_payload,
    review_comment_payload,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

NOW = T0 + dt.timedelta(days=1)


def _seeded_client() -> FakeGitHubClient:
    client = FakeGitHubClient()
    octo = client.add_user("octocat", 1)
    repo = client.add_repo("octo", "reef", 10, touched_by=("octocat",))
    repo.metadata["forks_count"] = 4
    repo.issues = [
        issue_payload(100, 1, octo, T0),
        pull_listing_payload(200, 2, octo, T0, merged_at=T0),
    ]
    repo.pull_commits[2] = [commit_payload("pr-sha", octo, T0)]
    repo.issue_comments = [issue_comment_payload(300, octo, T0, number=1)]
    repo.review_comments = [review_comment_payload(400, octo, T0, number=2)]
    repo.commits = [commit_payload("direct-sha", octo, T0)]
    return client


def _service(
    factory: async_sessionmaker[AsyncSession],
    client: FakeGitHubClient,
    *,
    store: RawEventStore | None = None,
) -> PipelineService:
    store = store or RawEventStore(factory)
    caller = RateLimitedClient(RetryPolicy(max_attempts=2), sleep=RecordingSleep())
    ingestion = IngestionOrchestrator(
        client, caller, store, clock=lambda: NOW, sleep=RecordingSleep()
    )
    return PipelineService(
        ingestion,
        SilverOrchestrator(store, clock=lambda: NOW),
        store,
        CuratedWriter(factory),
        clock=lambda: NOW,
    )


async def _counts(factory: async_sessionmaker[AsyncSession]) -> dict[str, int]:
    counters = await CuratedWriter(factory).activities_for("1")
    return {str(c.activity_type): c.count for c in counters}


class TestNormaliseAccounts:
    """Tests for account list validation."""

    def test_trims_and_dedupes(self) -> None:
        """Whitespace is trimmed and first-seen order kept."""
        assert normalise_accounts([" octocat", "hubot ", "octocat", ""]) == [
            "octocat",
            "hubot",
        ]

    @pytest.mark.parametrize("accounts", [[], ["", "   "]])
    def test_rejects_empty_lists(self, accounts: list[object]) -> None:
        """An empty selection is a caller error."""
        with pytest.raises(InvalidInputError, match="at least one account"):
            normalise_accounts(accounts)

    def test_rejects_non_strings(self) -> None:
        """Only login strings are accepted."""
        with pytest.raises(InvalidInputError) as excinfo:
            normalise_accounts(["octocat", 42])
        assert excinfo.value.field == "accounts"


@pytest.mark.asyncio
async def test_run_builds_curated_activity(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A first run ingests, normalises and writes one counter per type."""
    service = _service(session_factory, _seeded_client())

    result = await service.run(["octocat"])

    assert result.mode is SyncMode.INITIAL
    assert result.accounts == ("octocat",)
    assert result.until == NOW
    assert NOW - result.since >= dt.timedelta(days=150)
    assert result.curated_counts == {"profiles": 1, "repositories": 1, "activities": 5}
    assert await _counts(session_factory) == {
        str(ActivityType.COMMIT): 2,
        str(ActivityType.ISSUE): 1,
        str(ActivityType.ISSUE_COMMENT): 1,
        str(ActivityType.PR): 1,
        str(ActivityType.PR_COMMENT): 1,
    }


@pytest.mark.asyncio
async def test_rerun_is_incremental_and_does_not_double_count(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A second run over an overlapping window leaves counters unchanged."""
    service = _service(session_factory, _seeded_client())
    await service.run(["octocat"])
    before = await _counts(session_factory)

    again = await service.run(["octocat"])

    assert again.mode is SyncMode.INCREMENTAL
    assert NOW - again.windows["octocat"] <= dt.timedelta(hours=72)
    assert again.events_written == 0
    assert await _counts(session_factory) == before


@pytest.mark.asyncio
async def test_degraded_refetch_does_not_lower_counters(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A fresh process seeing less data keeps the stored maxima."""
    await _service(session_factory, _seeded_client()).run(["octocat"])
    before = await _counts(session_factory)
    degraded = FakeGitHubClient()
    degraded.add_user("octocat", 1)
    fresh_store = RawEventStore(session_factory, RawMemoryStore())

    await _service(session_factory, degraded, store=fresh_store).run(["octocat"])

    assert await _counts(session_factory) == before


@pytest.mark.asyncio
async def test_remove_accounts_reports_each_outcome(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Known accounts are removed and unknown ones reported as not found."""
    service = _service(session_factory, _seeded_client())
    await service.run(["octocat"])

    result = await service.remove_accounts(["octocat", "ghost"])

    assert result.to_dict() == {
        "removed": ["octocat"],
        "not_found": ["ghost"],
        "failed": [],
    }
    assert await _counts(session_factory) == {}
    assert await CuratedWriter(session_factory).known_logins(["octocat"]) == set()


@pytest.mark.asyncio
async def test_remove_unknown_account_changes_nothing(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Removing a login that was never synced deletes nothing."""
    service = _service(session_factory, _seeded_client())
    await service.run(["octocat"])
    before = await _counts(session_factory)

    result = await service.remove_accounts(["ghost"])

    assert result.not_found == ("ghost",)
    assert result.removed == ()
    assert await _counts(session_factory) == before


@pytest.mark.asyncio
async def test_removal_failure_is_isolated(
    session_factory: async_sessionmaker[AsyncSession],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A storage error for one account is reported as failed."""
    store = RawEventStore(session_factory)
    service = _service(session_factory, _seeded_client(), store=store)
    await service.run(["octocat"])

    async def broken(user_id: str) -> int:
        msg = f"cannot delete {user_id}"
        raise RuntimeError(msg)

    monkeypatch.setattr(store, "remove_account_data", broken)

    result = await service.remove_accounts(["octocat"])

    assert result.failed == ("octocat",)
    assert result.removed == ()


@pytest.mark.asyncio
async def test_result_serialises_timestamps(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """to_dict renders ISO timestamps and the bundle report."""
    result = await _service(session_factory, _seeded_client()).run(["octocat"])

    payload = result.to_dict()

    assert payload["mode"] == "initial"
    assert payload["until"] == "2024-07-02T12:00:00Z"
    assert payload["windows"] == {"octocat": payload["since"]}
    assert payload["report"]["bundle"]["commits"] == 2
    assert payload["report"]["curated"]["activities"] == 5


@pytest.mark.asyncio
async def test_run_reports_activity_for_resolved_accounts(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """The run result carries the activity report of its accounts."""
    result = await _service(session_factory, _seeded_client()).run(["octocat"])

    assert result.activity is not None
    (account,) = result.activity.accounts
    assert account.profile.login == "octocat"
    assert [repo.full_name for repo in account.repositories] == ["octo/reef"]
    assert account.summary.commits == 2
    assert account.summary.pull_requests == 1
    assert account.summary.issues == 1
    assert account.summary.issue_comments == 1
    assert account.summary.pr_comments == 1
    payload = result.to_dict()["report"]["activity"]
    assert payload["summary"]["total_repos"] == 1
    assert payload["summary"]["until"] == "2024-07-02"


@pytest.mark.asyncio
async def test_report_reads_curated_rows_without_fetching(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A report after a run makes no GitHub calls."""
    client = _seeded_client()
    service = _service(session_factory, client)
    await service.run(["octocat"])
    calls_after_run = len(client.calls)

    report = await service.report([" octocat ", "ghost"])

    assert len(client.calls) == calls_after_run
    assert report.missing_accounts == ("ghost",)
    assert report.accounts[0].summary.commits == 2


@pytest.mark.asyncio
async def test_report_rejects_empty_account_lists(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Reports validate their account list like runs do."""
    service = _service(session_factory, _seeded_client())

    with pytest.raises(InvalidInputError):
        await service.report(["", " "])
