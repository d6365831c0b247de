"""Canonical Silver entities.

Entities are immutable msgspec structs rebuilt on every normalisation run;
they have no persisted identity of their own. Every entity exposes a stable
logical id and a freshness signal (``updated_at`` falling back to
``created_at``) used by the merge functions.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import enum

import msgspec


class IssueState(enum.StrEnum):
    """Issue lifecycle states."""

    OPEN = "open"
    CLOSED = "closed"


class ParentType(enum.StrEnum):
    """Kind of entity a comment belongs to."""

    ISSUE = "Issue"
    PR = "PR"


class Visibility(enum.StrEnum):
    """Repository visibility."""

    PUBLIC = "public"
    PRIVATE = "private"


class User(msgspec.Struct, frozen=True, kw_only=True):
    """A GitHub account profile."""

    user_id: str
    login: str | None = None
    name: str | None = None
    avatar_url: str | None = None
    html_url: str | None = None
    email: str | None = None
    company: str | None = None
    location: str | None = None
    bio: str | None = None
    blog: str | None = None
    twitter_username: str | None = None
    public_repos: int | None = None
    followers: int | None = None
    following: int | None = None
    site_admin: bool | None = None
    account_type: str | None = None
    fetched_at: dt.datetime | None = None
    gh_created_at: dt.datetime | None = None
    gh_updated_at: dt.datetime | None = None


class Repository(msgspec.Struct, frozen=True, kw_only=True):
    """A GitHub repository."""

    repo_id: str
    owner_user_id: str | None = None
    repo_name: str | None = None
    full_name: str | None = None
    description: str | None = None
    html_url: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    default_branch: str | None = None
    fork_count: int | None = None
    parent_repo_id: str | None = None
    last_activity: dt.datetime | None = None
    fetched_at: dt.datetime | None = None
    gh_created_at: dt.datetime | None = None


class Issue(msgspec.Struct, frozen=True, kw_only=True):
    """An issue snapshot."""

    issue_id: str
    repo_id: str | None = None
    author_user_id: str | None = None
    assigned_user_id: str | None = None
    state: IssueState = IssueState.OPEN
    created_at: dt.datetime | None = None
    closed_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    title: str | None = None
    body: str | None = None


class PullRequest(msgspec.Struct, frozen=True, kw_only=True):
    """A pull request snapshot with the SHAs of its attached commits."""

    pr_id: str
    repo_id: str | None = None
    author_user_id: str | None = None
    created_at: dt.datetime | None = None
    merged_at: dt.datetime | None = None
    closed_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    title: str | None = None
    body: str | None = None
    commits: tuple[str, ...] = ()


class Comment(msgspec.Struct, frozen=True, kw_only=True):
    """An issue comment or pull request review comment."""

    comment_id: str
    parent_type: ParentType
    repo_id: str | None = None
    parent_id: str | None = None
    author_user_id: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    body: str | None = None


class Commit(msgspec.Struct, frozen=True, kw_only=True):
    """A commit; ``parent_pr_id`` is set when it arrived through a PR."""

    commit_id: str
    repo_id: str | None = None
    author_user_id: str | None = None
    parent_pr_id: str | None = None
    created_at: dt.datetime | None = None
    message: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class SilverBundle:
    """Deduplicated canonical entities for one time window."""

    users: tuple[User, ...] = ()
    repos: tuple[Repository, ...] = ()
    issues: tuple[Issue, ...] = ()
    prs: tuple[PullRequest, ...] = ()
    comments: tuple[Comment, ...] = ()
    commits: tuple[Commit, ...] = ()

    def counts(self) -> dict[str, int]:
        """Return the number of entities per kind."""
        return {
            "users": len(self.users),
            "repos": len(self.repos),
            "issues": len(self.issues),
            "prs": len(self.prs),
            "comments": len(self.comments),
            "commits": len(self.commits),
        }
