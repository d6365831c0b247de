"""Pipeline entry points: run ingestion end to end, or remove accounts.

``PipelineService.run`` resolves per-account watermarks, ingests into Bronze,
normalises the window into a Silver bundle, folds it into activity counters,
writes the curated rows and reports on them. ``report`` reads the activity
report without fetching anything. ``remove_accounts`` deletes everything
stored for each account, isolating failures per account.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from gitpulse.common.time import to_iso, utcnow
from gitpulse.gold.aggregation import ActivityAggregator
from gitpulse.gold.reports import ActivityReportService

from .errors import InvalidInputError
from .observability import PipelineEventLogger
from .watermarks import SyncMode, WatermarkPolicy

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from gitpulse.bronze.services import RawEventStore
    from gitpulse.github.ingestion import IngestionOrchestrator
    from gitpulse.gold.reports import ActivityReport
    from gitpulse.gold.services import CuratedWriter
    from gitpulse.silver.orchestrator import SilverOrchestrator


def normalise_accounts(account_ids: cabc.Iterable[object]) -> list[str]:
    """Trim logins and drop blanks and duplicates, keeping first-seen order.

    Raises
    ------
    InvalidInputError
        If an entry is not a string or nothing remains after trimming.

    """
    logins: list[str] = []
    for raw in account_ids:
        if not isinstance(raw, str):
            raise InvalidInputError.not_a_login_list()
        login = raw.strip()
        if login and login not in logins:
            logins.append(login)
    if not logins:
        raise InvalidInputError.empty_accounts()
    return logins


@dc.dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of one pipeline run."""

    mode: SyncMode
    accounts: tuple[str, ...]
    excluded_accounts: tuple[str, ...]
    repositories: tuple[str, ...]
    failed_repositories: tuple[str, ...]
    since: dt.datetime
    until: dt.datetime
    windows: dict[str, dt.datetime]
    events_written: int = 0
    events_existing: int = 0
    bundle_counts: dict[str, int] = dc.field(default_factory=dict)
    curated_counts: dict[str, int] = dc.field(default_factory=dict)
    activity: ActivityReport | None = None

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping with ISO 8601 timestamps."""
        return {
            "mode": str(self.mode),
            "accounts": list(self.accounts),
            "excluded_accounts": list(self.excluded_accounts),
            "repositories": list(self.repositories),
            "failed_repositories": list(self.failed_repositories),
            "since": to_iso(self.since),
            "until": to_iso(self.until),
            "windows": {login: to_iso(since) for login, since in self.windows.items()},
            "events_written": self.events_written,
            "events_existing": self.events_existing,
            "report": {
                "bundle": dict(self.bundle_counts),
                "curated": dict(self.curated_counts),
                "activity": (
                    self.activity.to_dict() if self.activity is not None else None
                ),
            },
        }


@dc.dataclass(frozen=True, slots=True)
class RemovalResult:
    """Outcome of a removal request, per account."""

    removed: tuple[str, ...] = ()
    not_found: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, list[str]]:
        """Return a JSON-ready mapping."""
        return {
            "removed": list(self.removed),
            "not_found": list(self.not_found),
            "failed": list(self.failed),
        }


class PipelineService:
    """Coordinate ingestion, normalisation, aggregation and curated writes."""

    def __init__(  # noqa: PLR0913
        self,
        ingestion: IngestionOrchestrator,
        silver: SilverOrchestrator,
        store: RawEventStore,
        writer: CuratedWriter,
        *,
        aggregator: ActivityAggregator | None = None,
        reports: ActivityReportService | None = None,
        policy: WatermarkPolicy | None = None,
        event_logger: PipelineEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Wire the pipeline stages together."""
        self._ingestion = ingestion
        self._silver = silver
        self._store = store
        self._writer = writer
        self._aggregator = aggregator or ActivityAggregator()
        self._reports = reports or ActivityReportService(
            writer.session_factory, clock=clock
        )
        self._policy = policy or WatermarkPolicy()
        self._events = event_logger or PipelineEventLogger()
        self._clock = clock

    async def run(self, account_ids: cabc.Iterable[object]) -> PipelineResult:
        """Ingest, normalise, aggregate and persist activity for accounts.

        Parameters
        ----------
        account_ids
            GitHub logins to sync. Blank entries and duplicates are ignored.

        Returns
        -------
        PipelineResult
            The resolved window, the accounts and repositories processed,
            bundle and curated counts, and the activity report for the
            resolved accounts.

        Raises
        ------
        InvalidInputError
            If no login remains after trimming.

        """
        logins = normalise_accounts(account_ids)
        started_at = self._clock()
        known = await self._writer.known_logins(logins)
        last_synced = await self._store.last_synced(logins)
        windows = self._policy.resolve(
            logins, known=known, last_synced=last_synced, now=started_at
        )
        mode = self._policy.mode(logins, known)
        self._events.log_run_started(mode, logins)

        ingested = await self._ingestion.ingest(windows)
        since = min(windows.values())
        until = self._clock()
        bundle = self._silver.build_bundle(since=since, until=until)
        curated = self._aggregator.to_curated(bundle)
        await self._writer.write(curated)
        await self._store.mark_synced(ingested.accounts, until)
        activity = await self._reports.build(ingested.accounts, now=until)

        result = PipelineResult(
            mode=mode,
            accounts=ingested.accounts,
            excluded_accounts=ingested.excluded_accounts,
            repositories=ingested.repositories,
            failed_repositories=ingested.failed_repositories,
            since=since,
            until=until,
            windows=windows,
            events_written=ingested.events_written,
            events_existing=ingested.events_existing,
            bundle_counts=bundle.counts(),
            curated_counts=curated.counts(),
            activity=activity,
        )
        self._events.log_run_completed(result, self._clock() - started_at)
        return result

    async def report(self, account_ids: cabc.Iterable[object]) -> ActivityReport:
        """Return the activity report for accounts without fetching anything.

        Raises
        ------
        InvalidInputError
            If no login remains after trimming.

        """
        logins = normalise_accounts(account_ids)
        return await self._reports.build(logins, now=self._clock())

    async def remove_accounts(
        self, account_ids: cabc.Iterable[object]
    ) -> RemovalResult:
        """Delete raw and curated data for each account.

        Accounts without a curated profile are reported as not found. A
        failure while removing one account is logged and reported; the
        remaining accounts are still processed.

        Raises
        ------
        InvalidInputError
            If no login remains after trimming.

        """
        logins = normalise_accounts(account_ids)
        known = await self._writer.known_logins(logins)
        removed: list[str] = []
        not_found: list[str] = []
        failed: list[str] = []
        for login in logins:
            if login not in known:
                not_found.append(login)
                continue
            try:
                raw_user = await self._store.find_user_by_login(login)
                user_id = (
                    raw_user.user_id
                    if raw_user is not None
                    else await self._writer.user_id_for_login(login)
                )
                if user_id is None:
                    not_found.append(login)
                    continue
                await self._store.remove_account_data(user_id)
                await self._writer.remove_account(user_id, login)
            except Exception as exc:
                self._events.log_removal_failed(login, exc)
                failed.append(login)
                continue
            removed.append(login)

        result = RemovalResult(
            removed=tuple(removed), not_found=tuple(not_found), failed=tuple(failed)
        )
        self._events.log_removal_completed(result)
        return result
