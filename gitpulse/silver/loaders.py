"""Per-kind Silver loaders over the Bronze mirror.

Each loader selects the raw rows of its kind inside a :class:`LoadWindow`,
maps every row and folds the results by logical id through the kind's merge
function. Rows are visited in ``(created_at, id)`` order so two loads over an
unchanged snapshot produce identical entities.

Loaders only read the in-process mirror and perform no I/O, so they are
plain functions.
"""

from __future__ import annotations

import dataclasses
import typing as typ

import msgspec

from gitpulse.bronze.models import RawItemKind, make_event_id
from gitpulse.logging import get_logger, log_warning
from gitpulse.silver.errors import PayloadDecodeError
from gitpulse.silver.mappers import (
    fold_by_id,
    is_merged_pull_request,
    map_comment,
    map_commit,
    map_issue,
    map_pull_request,
    map_repository,
    map_user,
    merge_comment,
    merge_commit,
    merge_issue,
    merge_pull_request,
    merge_repository,
    merge_user,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from gitpulse.bronze.models import RawItem
    from gitpulse.bronze.services import RawEventStore
    from gitpulse.silver.models import (
        Comment,
        Commit,
        Issue,
        PullRequest,
        Repository,
        User,
    )

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class LoadWindow:
    """Half-open time window ``[since, until)`` plus optional narrowing."""

    since: dt.datetime
    until: dt.datetime | None = None
    repo_id: str | None = None
    author_ids: frozenset[str] | None = None
    limit: int | None = None

    def contains(self, moment: dt.datetime | None) -> bool:
        """Return True when ``moment`` falls inside the window."""
        if moment is None or moment < self.since:
            return False
        return self.until is None or moment < self.until

    def admits_event(self, item: RawItem) -> bool:
        """Apply the time, repository and author filters to a raw event."""
        if not self.contains(item.created_at):
            return False
        if self.repo_id is not None and item.repo_id != self.repo_id:
            return False
        return not self.author_ids or item.actor_id in self.author_ids

    def truncate[E](self, entities: list[E]) -> list[E]:
        """Apply ``limit`` when one is set."""
        if self.limit is not None and self.limit > 0:
            return entities[: self.limit]
        return entities


def _map_all[E](
    rows: cabc.Iterable[RawItem], mapper: cabc.Callable[[RawItem], E | None]
) -> list[E]:
    entities: list[E] = []
    for row in rows:
        try:
            entity = mapper(row)
        except PayloadDecodeError as exc:
            log_warning(logger, "Skipping raw event %s: %s", row.id, exc)
            continue
        if entity is not None:
            entities.append(entity)
    return entities


class _EventLoader:
    kinds: typ.ClassVar[frozenset[RawItemKind]]

    def __init__(self, store: RawEventStore) -> None:
        self._store = store

    def rows(self, window: LoadWindow) -> list[RawItem]:
        """Return this loader's raw rows inside ``window``, in stable order."""
        return [
            item
            for item in self._store.get_events()
            if item.kind in self.kinds and window.admits_event(item)
        ]


class IssueLoader(_EventLoader):
    """Load deduplicated issues."""

    kinds = frozenset({RawItemKind.ISSUE})

    def load(self, window: LoadWindow) -> list[Issue]:
        """Map and fold issues in ``window``."""
        issues = _map_all(self.rows(window), map_issue)
        return window.truncate(fold_by_id(issues, lambda i: i.issue_id, merge_issue))


class PullRequestLoader(_EventLoader):
    """Load deduplicated pull requests with their attached commit SHAs."""

    kinds = frozenset({RawItemKind.PULL_REQUEST})

    def load(self, window: LoadWindow) -> list[PullRequest]:
        """Map and fold pull requests in ``window`` and attach commits."""
        prs = fold_by_id(
            _map_all(self.rows(window), map_pull_request),
            lambda pr: pr.pr_id,
            merge_pull_request,
        )
        attached = self._commit_shas({pr.pr_id for pr in prs})
        linked = [
            merge_pull_request(
                pr, msgspec.structs.replace(pr, commits=attached[pr.pr_id])
            )
            if attached.get(pr.pr_id)
            else pr
            for pr in prs
        ]
        return window.truncate(linked)

    def _commit_shas(self, pr_ids: set[str]) -> dict[str, tuple[str, ...]]:
        shas: dict[str, list[str]] = {}
        for item in self._store.get_events():
            if item.kind is not RawItemKind.COMMIT or item.parent_id not in pr_ids:
                continue
            try:
                commit = map_commit(item)
            except PayloadDecodeError:
                continue
            if commit is not None and commit.parent_pr_id is not None:
                shas.setdefault(commit.parent_pr_id, []).append(commit.commit_id)
        return {pr_id: tuple(dict.fromkeys(values)) for pr_id, values in shas.items()}


class CommentLoader(_EventLoader):
    """Load deduplicated issue comments and review comments."""

    kinds = frozenset({RawItemKind.ISSUE_COMMENT, RawItemKind.PR_REVIEW_COMMENT})

    def load(self, window: LoadWindow) -> list[Comment]:
        """Map and fold comments from both feeds in ``window``."""
        comments = _map_all(self.rows(window), map_comment)
        return window.truncate(
            fold_by_id(
                comments,
                lambda c: f"{c.parent_type}:{c.comment_id}",
                merge_comment,
            )
        )


class CommitLoader(_EventLoader):
    """Load deduplicated commits that count as integrated work.

    Direct pushes always qualify; a commit linked to a pull request only
    qualifies once that pull request's raw payload records a merge.
    """

    kinds = frozenset({RawItemKind.COMMIT})

    def load(self, window: LoadWindow) -> list[Commit]:
        """Map and fold eligible commits in ``window``."""
        merged = self._merged_pr_ids()
        eligible = [
            item
            for item in self.rows(window)
            if item.parent_id is None or item.parent_id in merged
        ]
        commits = _map_all(eligible, map_commit)
        return window.truncate(
            fold_by_id(commits, lambda c: c.commit_id, merge_commit)
        )

    def _merged_pr_ids(self) -> set[str]:
        merged: set[str] = set()
        events = {item.id: item for item in self._store.get_events()}
        for item in events.values():
            if item.kind is not RawItemKind.COMMIT or item.parent_id is None:
                continue
            pr_item = events.get(
                make_event_id(RawItemKind.PULL_REQUEST, item.parent_id)
            )
            if pr_item is None:
                continue
            try:
                if is_merged_pull_request(pr_item):
                    merged.add(item.parent_id)
            except PayloadDecodeError as exc:
                log_warning(logger, "Skipping raw event %s: %s", pr_item.id, exc)
        return merged


class UserLoader:
    """Load deduplicated user profiles.

    Profiles are snapshots rather than activity, so only the window's lower
    bound applies to them.
    """

    def __init__(self, store: RawEventStore) -> None:
        """Bind the Bronze store to read from."""
        self._store = store

    def load(self, window: LoadWindow) -> list[User]:
        """Map and fold users fetched on or after ``window.since``."""
        users: list[User] = []
        for raw in self._store.get_users():
            if raw.fetched_at is not None and raw.fetched_at < window.since:
                continue
            if window.author_ids and raw.user_id not in window.author_ids:
                continue
            try:
                user = map_user(raw)
            except PayloadDecodeError as exc:
                log_warning(logger, "Skipping raw user %s: %s", raw.user_id, exc)
                continue
            if user is not None:
                users.append(user)
        return window.truncate(fold_by_id(users, lambda u: u.user_id, merge_user))


class RepositoryLoader:
    """Load deduplicated repositories."""

    def __init__(self, store: RawEventStore) -> None:
        """Bind the Bronze store to read from."""
        self._store = store

    def load(self, window: LoadWindow) -> list[Repository]:
        """Map and fold repositories fetched on or after ``window.since``."""
        repos: list[Repository] = []
        for raw in self._store.get_repos():
            if raw.fetched_at is not None and raw.fetched_at < window.since:
                continue
            if window.repo_id is not None and raw.repo_id != window.repo_id:
                continue
            try:
                repo = map_repository(raw)
            except PayloadDecodeError as exc:
                log_warning(logger, "Skipping raw repo %s: %s", raw.repo_id, exc)
                continue
            if repo is not None:
                repos.append(repo)
        return window.truncate(
            fold_by_id(repos, lambda r: r.repo_id, merge_repository)
        )
