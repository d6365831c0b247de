"""Account-driven GitHub ingestion into the Bronze store.

One pass takes the tracked logins with their ``since`` watermarks and:

1. fetches each account's profile, excluding accounts GitHub cannot resolve;
2. discovers the repositories those accounts touched;
3. fetches repository metadata in small batches;
4. runs four sequential fetch phases per repository (issues and pull requests,
   issue comments, review comments, direct commits) with a bounded number of
   repositories in flight.

Every fetched item goes through :class:`~gitpulse.bronze.RawEventStore`, so
re-running an overlapping window is safe: event writes are insert-once.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import re
import typing as typ

from gitpulse.bronze.models import RawItem, RawItemKind, RawRepo, RawUser, make_event_id
from gitpulse.common.time import parse_iso, utcnow
from gitpulse.logging import get_logger, log_warning

from .discovery import RepoDiscovery
from .errors import GitHubAPIError, GitHubResponseShapeError
from .models import RepoRef, RepoTarget
from .observability import IngestionEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from gitpulse.bronze.services import RawEventStore

    from .client import GitHubActivityClient
    from .models import JSONObject
    from .retry import RateLimitedClient

logger = get_logger(__name__)

_ISSUE_NUMBER_RE = re.compile(r"/issues/(\d+)$")
_PULL_NUMBER_RE = re.compile(r"/pulls/(\d+)$")

_LOOKUP_ERRORS = (GitHubAPIError, GitHubResponseShapeError)


@dataclasses.dataclass(frozen=True, slots=True)
class IngestionConfig:
    """Runtime knobs for one ingestion pass."""

    metadata_batch_size: int = 3
    metadata_batch_delay_s: float = 0.5
    repo_concurrency: int = 4
    organizations: tuple[str, ...] = ()


@dataclasses.dataclass(slots=True)
class RepoIngestionStats:
    """Counters for one repository; mutated while its phases run."""

    issues: int = 0
    pull_requests: int = 0
    issue_comments: int = 0
    review_comments: int = 0
    commits: int = 0
    written: int = 0
    existing: int = 0
    failed_phases: list[str] = dataclasses.field(default_factory=list)

    def record(self, kind: RawItemKind, *, inserted: bool) -> None:
        """Count one event of ``kind``."""
        match kind:
            case RawItemKind.ISSUE:
                self.issues += 1
            case RawItemKind.PULL_REQUEST:
                self.pull_requests += 1
            case RawItemKind.ISSUE_COMMENT:
                self.issue_comments += 1
            case RawItemKind.PR_REVIEW_COMMENT:
                self.review_comments += 1
            case RawItemKind.COMMIT:
                self.commits += 1
        if inserted:
            self.written += 1
        else:
            self.existing += 1


@dataclasses.dataclass(frozen=True, slots=True)
class IngestionResult:
    """Summary of one ingestion pass."""

    accounts: tuple[str, ...] = ()
    users: dict[str, str] = dataclasses.field(default_factory=dict)
    excluded_accounts: tuple[str, ...] = ()
    repositories: tuple[str, ...] = ()
    failed_repositories: tuple[str, ...] = ()
    events_written: int = 0
    events_existing: int = 0
    kind_counts: dict[str, int] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(slots=True)
class _RepoContext:
    target: RepoTarget
    repo_id: str
    is_private: bool | None
    tracked: frozenset[str]
    now: dt.datetime
    numbers: dict[int, str] = dataclasses.field(default_factory=dict)
    stats: RepoIngestionStats = dataclasses.field(default_factory=RepoIngestionStats)

    @property
    def owner(self) -> str:
        return self.target.ref.owner

    @property
    def name(self) -> str:
        return self.target.ref.name

    @property
    def slug(self) -> str:
        return self.target.ref.slug

    def is_tracked(self, account: object) -> bool:
        if not isinstance(account, dict):
            return False
        login = account.get("login")
        return isinstance(login, str) and login.lower() in self.tracked


def _id_text(value: object) -> str | None:
    return None if value is None else str(value)


def _account_id(account: object) -> str | None:
    if isinstance(account, dict):
        return _id_text(account.get("id"))
    return None


def _commit_date(commit: JSONObject) -> dt.datetime | None:
    detail = commit.get("commit")
    if not isinstance(detail, dict):
        return None
    for role in ("committer", "author"):
        signature = detail.get(role)
        if isinstance(signature, dict):
            moment = parse_iso(signature.get("date"))
            if moment is not None:
                return moment
    return None


def _lacks_merge_info(item: JSONObject) -> bool:
    link = item.get("pull_request")
    return not isinstance(link, dict) or "merged_at" not in link


class IngestionOrchestrator:
    """Drive discovery and per-repository fetches for tracked accounts."""

    def __init__(
        self,
        client: GitHubActivityClient,
        caller: RateLimitedClient,
        store: RawEventStore,
        *,
        discovery: RepoDiscovery | None = None,
        config: IngestionConfig | None = None,
        event_logger: IngestionEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Bind the GitHub client, retry wrapper and Bronze store."""
        self._client = client
        self._caller = caller
        self._store = store
        self._events = event_logger or IngestionEventLogger()
        self._discovery = discovery or RepoDiscovery(
            client, caller, event_logger=self._events
        )
        self._config = config or IngestionConfig()
        self._clock = clock
        self._sleep = sleep

    async def ingest(self, windows: cabc.Mapping[str, dt.datetime]) -> IngestionResult:
        """Ingest activity for every login in ``windows`` since its watermark.

        Parameters
        ----------
        windows
            Mapping of tracked login to the ``since`` watermark to fetch from.

        Returns
        -------
        IngestionResult
            Accounts ingested and excluded, repositories processed and failed,
            and event counters.

        """
        started_at = self._clock()
        self._events.log_run_started(list(windows), started_at)

        users, excluded = await self._fetch_profiles(windows, started_at)
        active = {login: since for login, since in windows.items() if login in users}
        if not active:
            result = IngestionResult(excluded_accounts=tuple(excluded))
            self._events.log_run_completed(result, self._clock() - started_at)
            return result

        targets = await self._discover(active)
        contexts, failed = await self._fetch_metadata(targets, started_at)

        semaphore = asyncio.Semaphore(max(1, self._config.repo_concurrency))

        async def bounded(context: _RepoContext) -> RepoIngestionStats:
            async with semaphore:
                return await self._ingest_repo(context)

        outcomes = await asyncio.gather(
            *(bounded(context) for context in contexts), return_exceptions=True
        )

        processed: list[str] = []
        written = existing = 0
        kind_counts = dict.fromkeys((str(kind) for kind in RawItemKind), 0)
        for context, outcome in zip(contexts, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                failed.append(context.slug)
                continue
            processed.append(context.slug)
            written += outcome.written
            existing += outcome.existing
            kind_counts[RawItemKind.ISSUE] += outcome.issues
            kind_counts[RawItemKind.PULL_REQUEST] += outcome.pull_requests
            kind_counts[RawItemKind.ISSUE_COMMENT] += outcome.issue_comments
            kind_counts[RawItemKind.PR_REVIEW_COMMENT] += outcome.review_comments
            kind_counts[RawItemKind.COMMIT] += outcome.commits

        result = IngestionResult(
            accounts=tuple(sorted(active)),
            users=users,
            excluded_accounts=tuple(excluded),
            repositories=tuple(processed),
            failed_repositories=tuple(sorted(failed)),
            events_written=written,
            events_existing=existing,
            kind_counts=kind_counts,
        )
        self._events.log_run_completed(result, self._clock() - started_at)
        return result

    async def _fetch_profiles(
        self, windows: cabc.Mapping[str, dt.datetime], now: dt.datetime
    ) -> tuple[dict[str, str], list[str]]:
        """Upsert each account's profile; return ``login -> user_id`` and exclusions."""
        users: dict[str, str] = {}
        excluded: list[str] = []
        for login in sorted(windows):
            try:
                payload = await self._caller.call(
                    functools.partial(self._client.get_user, login),
                    description=f"get user {login}",
                )
                user_id = _id_text(payload.get("id"))
                if user_id is None:
                    raise GitHubResponseShapeError.missing("id")
            except _LOOKUP_ERRORS as exc:
                self._events.log_account_excluded(login, exc)
                excluded.append(login)
                continue
            await self._store.upsert_user(
                RawUser(
                    user_id=user_id,
                    login=payload.get("login") or login,
                    payload=payload,
                    name=payload.get("name"),
                    fetched_at=now,
                )
            )
            users[login] = user_id
        return users, excluded

    async def _discover(
        self, active: dict[str, dt.datetime]
    ) -> dict[RepoRef, RepoTarget]:
        targets = await self._discovery.build_repo_account_map(active)
        if not self._config.organizations:
            return targets

        earliest = min(active.values())
        everyone = frozenset(active)
        for org in self._config.organizations:
            try:
                refs = await self._discovery.discover_organization_repos(org, earliest)
            except _LOOKUP_ERRORS as exc:
                self._events.log_discovery_failed(org, "organization", exc)
                continue
            for ref in refs:
                current = targets.get(ref)
                since = earliest if current is None else min(current.since, earliest)
                targets[ref] = RepoTarget(ref=ref, accounts=everyone, since=since)
        return dict(sorted(targets.items()))

    async def _fetch_metadata(
        self, targets: dict[RepoRef, RepoTarget], now: dt.datetime
    ) -> tuple[list[_RepoContext], list[str]]:
        """Fetch metadata in batches; repos whose fetch fails are dropped."""
        ordered = list(targets.values())
        size = max(1, self._config.metadata_batch_size)
        contexts: list[_RepoContext] = []
        failed: list[str] = []
        for start in range(0, len(ordered), size):
            if start:
                await self._sleep(self._config.metadata_batch_delay_s)
            batch = ordered[start : start + size]
            outcomes = await asyncio.gather(
                *(self._fetch_repo(target, now) for target in batch),
                return_exceptions=True,
            )
            for target, outcome in zip(batch, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    self._events.log_repo_skipped(target.ref.slug, outcome)
                    failed.append(target.ref.slug)
                else:
                    contexts.append(outcome)
        return contexts, failed

    async def _fetch_repo(self, target: RepoTarget, now: dt.datetime) -> _RepoContext:
        ref = target.ref
        payload = await self._caller.call(
            functools.partial(self._client.get_repo, ref.owner, ref.name),
            description=f"get repo {ref.slug}",
        )
        repo_id = _id_text(payload.get("id"))
        if repo_id is None:
            raise GitHubResponseShapeError.missing("id")
        owner = payload.get("owner")
        is_private = payload.get("private")
        await self._store.upsert_repo(
            RawRepo(
                repo_id=repo_id,
                full_name=payload.get("full_name") or ref.slug,
                payload=payload,
                owner_login=owner.get("login") if isinstance(owner, dict) else None,
                name=payload.get("name") or ref.name,
                is_private=is_private if isinstance(is_private, bool) else None,
                fetched_at=now,
            )
        )
        return _RepoContext(
            target=target,
            repo_id=repo_id,
            is_private=is_private if isinstance(is_private, bool) else None,
            tracked=frozenset(login.lower() for login in target.accounts),
            now=now,
        )

    async def _ingest_repo(self, ctx: _RepoContext) -> RepoIngestionStats:
        started_at = self._clock()
        try:
            # Number map and issues first: comment parents resolve through it.
            await self._phase(ctx, "issue_numbers", self._map_issue_numbers)
            await self._phase(ctx, "issues", self._ingest_issues)
            await self._phase(ctx, "issue_comments", self._ingest_issue_comments)
            await self._phase(ctx, "review_comments", self._ingest_review_comments)
            await self._phase(ctx, "commits", self._ingest_commits)
        except Exception as exc:
            self._events.log_repo_failed(ctx.slug, exc, self._clock() - started_at)
            raise
        self._events.log_repo_completed(ctx.slug, ctx.stats, self._clock() - started_at)
        return ctx.stats

    async def _phase(
        self,
        ctx: _RepoContext,
        phase: str,
        run: cabc.Callable[[_RepoContext], cabc.Awaitable[None]],
    ) -> None:
        try:
            await run(ctx)
        except Exception as exc:
            ctx.stats.failed_phases.append(phase)
            self._events.log_phase_failed(ctx.slug, phase, exc)

    async def _write(
        self,
        ctx: _RepoContext,
        kind: RawItemKind,
        native_id: str,
        payload: JSONObject,
        *,
        actor_id: str | None,
        parent_id: str | None,
        created_at: dt.datetime | None,
    ) -> None:
        inserted = await self._store.upsert_event(
            RawItem(
                id=make_event_id(kind, native_id),
                kind=kind,
                received_at=ctx.now,
                payload=payload,
                actor_id=actor_id,
                repo_id=ctx.repo_id,
                parent_id=parent_id,
                created_at=created_at,
                is_private=ctx.is_private,
            )
        )
        ctx.stats.record(kind, inserted=inserted)

    # Phase a: issues and pull requests

    async def _map_issue_numbers(self, ctx: _RepoContext) -> None:
        """Map every issue and PR number in the window to its listing id.

        The listing is unfiltered so comments on issues opened by untracked
        accounts resolve without a per-number lookup.
        """
        items = await self._caller.call(
            functools.partial(
                self._client.list_issues_for_repo,
                ctx.owner,
                ctx.name,
                since=ctx.target.since,
            ),
            description=f"list issue numbers for {ctx.slug}",
            empty_result=list,
        )
        for item in items:
            native_id = _id_text(item.get("id"))
            number = item.get("number")
            if native_id is not None and isinstance(number, int):
                ctx.numbers[number] = native_id

    async def _ingest_issues(self, ctx: _RepoContext) -> None:
        for login in sorted(ctx.target.accounts):
            items = await self._caller.call(
                functools.partial(
                    self._client.list_issues_for_repo,
                    ctx.owner,
                    ctx.name,
                    since=ctx.target.since,
                    creator=login,
                ),
                description=f"list issues for {ctx.slug} by {login}",
                empty_result=list,
            )
            for item in items:
                await self._ingest_issue_item(ctx, item)

    async def _ingest_issue_item(self, ctx: _RepoContext, item: JSONObject) -> None:
        native_id = _id_text(item.get("id"))
        if native_id is None:
            return
        number = item.get("number")
        if isinstance(number, int):
            ctx.numbers[number] = native_id

        if item.get("pull_request") is None:
            await self._write(
                ctx,
                RawItemKind.ISSUE,
                native_id,
                item,
                actor_id=_account_id(item.get("user")),
                parent_id=native_id,
                created_at=parse_iso(item.get("created_at")),
            )
            return

        payload = {**item, "_repo_owner": ctx.owner, "_repo_name": ctx.name}
        if isinstance(number, int) and _lacks_merge_info(item):
            payload["merged_at"] = await self._lookup_merged_at(ctx, number)
        await self._write(
            ctx,
            RawItemKind.PULL_REQUEST,
            native_id,
            payload,
            actor_id=_account_id(item.get("user")),
            parent_id=native_id,
            created_at=parse_iso(item.get("created_at")),
        )
        if isinstance(number, int):
            await self._ingest_pull_commits(ctx, number, native_id)

    async def _lookup_merged_at(self, ctx: _RepoContext, number: int) -> str | None:
        try:
            pull = await self._caller.call(
                functools.partial(self._client.get_pull, ctx.owner, ctx.name, number),
                description=f"get pull {ctx.slug}#{number}",
            )
        except _LOOKUP_ERRORS as exc:
            log_warning(
                logger, "Merge state unavailable for %s#%d: %s", ctx.slug, number, exc
            )
            return None
        merged_at = pull.get("merged_at")
        return merged_at if isinstance(merged_at, str) else None

    async def _ingest_pull_commits(
        self, ctx: _RepoContext, number: int, pr_id: str
    ) -> None:
        commits = await self._caller.call(
            functools.partial(
                self._client.list_pull_commits, ctx.owner, ctx.name, number
            ),
            description=f"list commits for {ctx.slug}#{number}",
            empty_result=list,
        )
        for commit in commits:
            sha = commit.get("sha")
            if not isinstance(sha, str) or not ctx.is_tracked(commit.get("author")):
                continue
            await self._write(
                ctx,
                RawItemKind.COMMIT,
                sha,
                commit,
                actor_id=_account_id(commit.get("author")),
                parent_id=pr_id,
                created_at=_commit_date(commit),
            )

    # Phases b and c: comments

    async def _ingest_issue_comments(self, ctx: _RepoContext) -> None:
        comments = await self._caller.call(
            functools.partial(
                self._client.list_issue_comments_for_repo,
                ctx.owner,
                ctx.name,
                since=ctx.target.since,
            ),
            description=f"list issue comments for {ctx.slug}",
            empty_result=list,
        )
        await self._ingest_comments(
            ctx, comments, RawItemKind.ISSUE_COMMENT, "issue_url", _ISSUE_NUMBER_RE
        )

    async def _ingest_review_comments(self, ctx: _RepoContext) -> None:
        comments = await self._caller.call(
            functools.partial(
                self._client.list_review_comments_for_repo,
                ctx.owner,
                ctx.name,
                since=ctx.target.since,
            ),
            description=f"list review comments for {ctx.slug}",
            empty_result=list,
        )
        await self._ingest_comments(
            ctx,
            comments,
            RawItemKind.PR_REVIEW_COMMENT,
            "pull_request_url",
            _PULL_NUMBER_RE,
        )

    async def _ingest_comments(
        self,
        ctx: _RepoContext,
        comments: list[JSONObject],
        kind: RawItemKind,
        url_field: str,
        pattern: re.Pattern[str],
    ) -> None:
        for comment in comments:
            native_id = _id_text(comment.get("id"))
            if native_id is None or not ctx.is_tracked(comment.get("user")):
                continue
            parent_id = await self._resolve_parent(ctx, comment.get(url_field), pattern)
            await self._write(
                ctx,
                kind,
                native_id,
                comment,
                actor_id=_account_id(comment.get("user")),
                parent_id=parent_id,
                created_at=parse_iso(comment.get("created_at")),
            )

    async def _resolve_parent(
        self, ctx: _RepoContext, url: object, pattern: re.Pattern[str]
    ) -> str | None:
        """Map a comment's parent URL to the issue-listing id of its parent.

        Misses fall back to ``get_issue`` for both feeds, since a pull request
        viewed as an issue carries the same id the issue listing reports. Any
        lookup failure yields ``None``.
        """
        match = pattern.search(url) if isinstance(url, str) else None
        if match is None:
            return None
        number = int(match.group(1))
        cached = ctx.numbers.get(number)
        if cached is not None:
            return cached
        try:
            issue = await self._caller.call(
                functools.partial(
                    self._client.get_issue, ctx.owner, ctx.name, number
                ),
                description=f"get issue {ctx.slug}#{number}",
            )
        except _LOOKUP_ERRORS as exc:
            log_warning(
                logger, "Parent unresolved for %s#%d: %s", ctx.slug, number, exc
            )
            return None
        parent_id = _id_text(issue.get("id"))
        if parent_id is not None:
            ctx.numbers[number] = parent_id
        return parent_id

    # Phase d: direct commits

    async def _ingest_commits(self, ctx: _RepoContext) -> None:
        for login in sorted(ctx.target.accounts):
            commits = await self._caller.call(
                functools.partial(
                    self._client.list_repo_commits,
                    ctx.owner,
                    ctx.name,
                    since=ctx.target.since,
                    until=ctx.now,
                    author=login,
                ),
                description=f"list commits for {ctx.slug} by {login}",
                empty_result=list,
            )
            for commit in commits:
                sha = commit.get("sha")
                if not isinstance(sha, str) or not ctx.is_tracked(commit.get("author")):
                    continue
                await self._write(
                    ctx,
                    RawItemKind.COMMIT,
                    sha,
                    commit,
                    actor_id=_account_id(commit.get("author")),
                    parent_id=None,
                    created_at=_commit_date(commit),
                )
