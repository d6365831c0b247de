"""Repository discovery for tracked accounts.

Discovery answers "which repositories did this account touch since its
watermark?" with two independent GitHub searches: issues and pull requests
*involving* the account, and commits *authored* by it. Results for all
accounts are inverted into one repository map so a repository shared by
several tracked accounts is fetched once, from the earliest of their
watermarks.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from gitpulse.common.slug import slug_from_api_url, slug_from_html_url
from gitpulse.common.time import parse_iso, utc_day
from gitpulse.logging import get_logger, log_info

from .errors import GitHubAPIError, GitHubErrorKind, GitHubResponseShapeError
from .models import RepoRef, RepoTarget
from .observability import IngestionEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .client import GitHubActivityClient
    from .models import JSONObject
    from .retry import RateLimitedClient

logger = get_logger(__name__)


def issue_search_query(login: str, since: dt.datetime) -> str:
    """Return the search query for issues and PRs involving ``login``."""
    return f"involves:{login} created:>={utc_day(since).isoformat()}"


def commit_search_query(login: str, since: dt.datetime) -> str:
    """Return the search query for commits authored by ``login``."""
    return f"author:{login} committer-date:>={utc_day(since).isoformat()}"


def _repo_from_issue_hit(hit: JSONObject) -> RepoRef | None:
    parsed = slug_from_api_url(hit.get("repository_url"))
    return RepoRef(*parsed) if parsed else None


def _repo_from_commit_hit(hit: JSONObject) -> RepoRef | None:
    repository = hit.get("repository")
    if isinstance(repository, dict):
        full_name = repository.get("full_name")
        if isinstance(full_name, str) and full_name.count("/") == 1:
            owner, name = full_name.split("/")
            return RepoRef(owner, name)
    parsed = slug_from_html_url(hit.get("html_url"))
    return RepoRef(*parsed) if parsed else None


@dataclasses.dataclass(frozen=True, slots=True)
class DiscoveryConfig:
    """Deadline for the discovery join, in seconds.

    Accounts still searching when it passes are cancelled and contribute
    nothing; accounts that finished keep their repositories.
    """

    timeout_s: float = 300.0


class RepoDiscovery:
    """Find the repositories each tracked account contributed to."""

    def __init__(
        self,
        client: GitHubActivityClient,
        caller: RateLimitedClient,
        *,
        config: DiscoveryConfig | None = None,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Bind the GitHub client, retry wrapper and observability sink."""
        self._client = client
        self._caller = caller
        self._config = config or DiscoveryConfig()
        self._events = event_logger or IngestionEventLogger()

    async def discover_repos_for_account(
        self, login: str, since: dt.datetime
    ) -> set[RepoRef]:
        """Return repositories ``login`` touched on or after ``since``.

        The two searches fail independently; a failure is logged and the
        other search's repositories are still returned. A query GitHub rejects
        as invalid counts as "no results".
        """
        repos: set[RepoRef] = set()
        issue_hits = await self._search(
            login,
            "issues",
            issue_search_query(login, since),
            self._client.search_issues,
        )
        repos.update(r for r in map(_repo_from_issue_hit, issue_hits) if r)
        commit_hits = await self._search(
            login,
            "commits",
            commit_search_query(login, since),
            self._client.search_commits,
        )
        repos.update(r for r in map(_repo_from_commit_hit, commit_hits) if r)
        log_info(
            logger,
            "Discovered %d repositories for %s (issue hits=%d, commit hits=%d)",
            len(repos),
            login,
            len(issue_hits),
            len(commit_hits),
        )
        return repos

    async def build_repo_account_map(
        self, windows: cabc.Mapping[str, dt.datetime]
    ) -> dict[RepoRef, RepoTarget]:
        """Run discovery for every account and invert it per repository.

        Parameters
        ----------
        windows
            Mapping of tracked login to its ``since`` watermark.

        Returns
        -------
        dict[RepoRef, RepoTarget]
            Repositories in slug order, each with its contributing accounts
            and the earliest of their watermarks.

        """
        logins = sorted(windows)
        if not logins:
            return {}
        tasks = {
            login: asyncio.create_task(
                self.discover_repos_for_account(login, windows[login]),
                name=f"discover:{login}",
            )
            for login in logins
        }
        try:
            _done, pending = await asyncio.wait(
                tasks.values(), timeout=self._config.timeout_s
            )
        finally:
            for task in tasks.values():
                if not task.done():
                    task.cancel()
        if pending:
            await asyncio.wait(pending)

        contributors: dict[RepoRef, set[str]] = {}
        for login, task in tasks.items():
            if task.cancelled():
                msg = f"discovery exceeded {self._config.timeout_s}s"
                self._events.log_discovery_failed(login, "all", TimeoutError(msg))
                continue
            outcome = task.exception()
            if outcome is not None:
                if not isinstance(outcome, Exception):
                    raise outcome
                self._events.log_discovery_failed(login, "all", outcome)
                continue
            for repo in task.result():
                contributors.setdefault(repo, set()).add(login)

        return {
            repo: RepoTarget(
                ref=repo,
                accounts=frozenset(accounts),
                since=min(windows[login] for login in accounts),
            )
            for repo, accounts in sorted(contributors.items())
        }

    async def discover_organization_repos(
        self, org: str, since: dt.datetime
    ) -> set[RepoRef]:
        """Return repositories of ``org`` pushed on or after ``since``."""
        listing = await self._caller.call(
            lambda: self._client.list_org_repos(org),
            description=f"list repositories for {org}",
            empty_result=list,
        )
        repos: set[RepoRef] = set()
        for item in listing:
            pushed_at = parse_iso(item.get("pushed_at"))
            if pushed_at is not None and pushed_at < since:
                continue
            full_name = item.get("full_name")
            if isinstance(full_name, str) and full_name.count("/") == 1:
                owner, name = full_name.split("/")
                repos.add(RepoRef(owner, name))
        return repos

    async def _search(
        self,
        login: str,
        search: str,
        query: str,
        operation: cabc.Callable[[str], cabc.Awaitable[list[JSONObject]]],
    ) -> list[JSONObject]:
        try:
            return await self._caller.call(
                lambda: operation(query),
                description=f"search {search} for {login}",
                empty_result=list,
            )
        except GitHubAPIError as exc:
            if exc.kind is GitHubErrorKind.VALIDATION:
                log_info(logger, "GitHub rejected %s search for %s", search, login)
            else:
                self._events.log_discovery_failed(login, search, exc)
            return []
        except GitHubResponseShapeError as exc:
            self._events.log_discovery_failed(login, search, exc)
            return []
