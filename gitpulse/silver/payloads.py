"""Typed variants of the GitHub REST payloads kept in Bronze.

Each raw kind decodes into one msgspec struct with explicit optional fields.
Fields GitHub may omit default to ``None`` and unknown keys are ignored, so
schema growth upstream does not break decoding; a field of the wrong type
does, and surfaces as :class:`~gitpulse.silver.errors.PayloadDecodeError`.
"""

from __future__ import annotations

import typing as typ

import msgspec

from gitpulse.silver.errors import PayloadDecodeError


class AccountRef(msgspec.Struct, frozen=True):
    """Embedded ``user``, ``assignee``, ``author`` or ``owner`` object."""

    id: int | str | None = None
    login: str | None = None


class PullRequestLink(msgspec.Struct, frozen=True):
    """``pull_request`` marker carried by issue-listing entries for PRs."""

    url: str | None = None
    merged_at: str | None = None


class IssuePayload(msgspec.Struct, frozen=True):
    """Issue as returned by the issues listing and ``GET /issues/{n}``."""

    id: int | str | None = None
    number: int | None = None
    state: str | None = None
    title: str | None = None
    body: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None
    user: AccountRef | None = None
    assignee: AccountRef | None = None
    pull_request: PullRequestLink | None = None


class PullRequestPayload(IssuePayload, frozen=True):
    """Pull request from either the issues listing or the pulls API."""

    merged_at: str | None = None

    @property
    def merged_at_value(self) -> str | None:
        """Return ``merged_at`` from whichever shape carried it."""
        if self.merged_at:
            return self.merged_at
        if self.pull_request is not None:
            return self.pull_request.merged_at
        return None


class IssueCommentPayload(msgspec.Struct, frozen=True):
    """Comment from the repository issue-comments feed."""

    id: int | str | None = None
    body: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    user: AccountRef | None = None
    issue_url: str | None = None


class ReviewCommentPayload(msgspec.Struct, frozen=True):
    """Comment from the repository pull-request review-comments feed."""

    id: int | str | None = None
    body: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    user: AccountRef | None = None
    pull_request_url: str | None = None


class CommitSignature(msgspec.Struct, frozen=True):
    """Git author or committer block."""

    name: str | None = None
    email: str | None = None
    date: str | None = None


class CommitDetail(msgspec.Struct, frozen=True):
    """The nested ``commit`` object of a REST commit."""

    message: str | None = None
    author: CommitSignature | None = None
    committer: CommitSignature | None = None


class CommitPayload(msgspec.Struct, frozen=True):
    """Commit from the repository or pull-request commit listings."""

    sha: str | None = None
    commit: CommitDetail | None = None
    author: AccountRef | None = None
    html_url: str | None = None


class UserPayload(msgspec.Struct, frozen=True):
    """Profile from ``GET /users/{login}``."""

    id: int | str | None = None
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
    type: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ParentRepoRef(msgspec.Struct, frozen=True):
    """``parent`` object present on forks."""

    id: int | str | None = None
    full_name: str | None = None


class RepoPayload(msgspec.Struct, frozen=True):
    """Repository from ``GET /repos/{owner}/{name}``."""

    id: int | str | None = None
    name: str | None = None
    full_name: str | None = None
    owner: AccountRef | None = None
    private: bool | None = None
    description: str | None = None
    html_url: str | None = None
    default_branch: str | None = None
    forks_count: int | None = None
    parent: ParentRepoRef | None = None
    pushed_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


def decode_payload[PayloadT: msgspec.Struct](
    payload: typ.Mapping[str, typ.Any], model: type[PayloadT]
) -> PayloadT:
    """Decode a Bronze payload into the provided msgspec struct."""
    try:
        return msgspec.convert(payload, type=model)
    except msgspec.ValidationError as exc:
        raise PayloadDecodeError.invalid_payload(model.__name__, str(exc)) from exc
