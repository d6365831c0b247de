"""Pure Bronze-to-Silver mapping and merge functions.

``map_*`` turns one raw row into one canonical entity, returning ``None`` when
the row is of another kind or carries no resolvable id. ``merge_*`` reconciles
two snapshots of the same logical entity:

* the snapshot with the later ``updated_at ?? created_at`` wins; ties and
  missing timestamps favour the incoming (second) snapshot;
* text fields never regress to ``None``: a null on the winning side is filled
  from the other snapshot;
* for pull requests, a snapshot with attached commits beats one without,
  whatever the timestamps say.
"""

from __future__ import annotations

import typing as typ

import msgspec

from gitpulse.bronze.errors import InvalidEventIdError
from gitpulse.bronze.models import RawItem, RawItemKind, native_id_of
from gitpulse.common.time import parse_iso
from gitpulse.silver.models import (
    Comment,
    Commit,
    Issue,
    IssueState,
    ParentType,
    PullRequest,
    Repository,
    User,
    Visibility,
)
from gitpulse.silver.payloads import (
    AccountRef,
    CommitPayload,
    IssueCommentPayload,
    IssuePayload,
    PullRequestPayload,
    RepoPayload,
    ReviewCommentPayload,
    UserPayload,
    decode_payload,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from gitpulse.bronze.models import RawRepo, RawUser


def _text(value: object) -> str | None:
    return None if value is None else str(value)


def _account_id(account: AccountRef | None) -> str | None:
    if account is None or account.id is None:
        return None
    return str(account.id)


def _entity_id(item: RawItem, payload_id: object) -> str | None:
    """Return the native id of ``item``, falling back to the payload id."""
    try:
        return native_id_of(item.id)
    except InvalidEventIdError:
        return _text(payload_id)


def _freshness(entity: Issue | PullRequest | Comment) -> dt.datetime | None:
    return entity.updated_at or entity.created_at


def _incoming_wins(
    previous: dt.datetime | None, incoming: dt.datetime | None
) -> bool:
    if previous is None or incoming is None:
        return True
    return incoming >= previous


def _fill_text[S: msgspec.Struct](
    winner: S, other: S, fields: tuple[str, ...]
) -> S:
    """Copy ``other``'s value into any of ``fields`` that is null on ``winner``."""
    updates = {
        name: getattr(other, name)
        for name in fields
        if getattr(winner, name) is None and getattr(other, name) is not None
    }
    return msgspec.structs.replace(winner, **updates) if updates else winner


def fold_by_id[E](
    entities: cabc.Iterable[E],
    key: cabc.Callable[[E], str],
    merge: cabc.Callable[[E, E], E],
) -> list[E]:
    """Collapse entities sharing a key through ``merge``, in first-seen order."""
    folded: dict[str, E] = {}
    for entity in entities:
        entity_key = key(entity)
        previous = folded.get(entity_key)
        folded[entity_key] = entity if previous is None else merge(previous, entity)
    return list(folded.values())


# Issues


def map_issue(item: RawItem) -> Issue | None:
    """Map an ``issue`` raw row to an :class:`Issue`."""
    if item.kind is not RawItemKind.ISSUE:
        return None
    payload = decode_payload(item.payload, IssuePayload)
    issue_id = _entity_id(item, payload.id)
    if issue_id is None:
        return None
    return Issue(
        issue_id=issue_id,
        repo_id=item.repo_id,
        author_user_id=_account_id(payload.user) or item.actor_id,
        assigned_user_id=_account_id(payload.assignee),
        state=IssueState.CLOSED if payload.state == "closed" else IssueState.OPEN,
        created_at=item.created_at or parse_iso(payload.created_at),
        closed_at=parse_iso(payload.closed_at),
        updated_at=parse_iso(payload.updated_at),
        title=payload.title,
        body=payload.body,
    )


def merge_issue(prev: Issue, next_: Issue) -> Issue:
    """Merge two snapshots of the same issue."""
    if _incoming_wins(_freshness(prev), _freshness(next_)):
        return _fill_text(next_, prev, ("title", "body"))
    return _fill_text(prev, next_, ("title", "body"))


# Pull requests


def map_pull_request(item: RawItem) -> PullRequest | None:
    """Map a ``pull_request`` raw row to a :class:`PullRequest`."""
    if item.kind is not RawItemKind.PULL_REQUEST:
        return None
    payload = decode_payload(item.payload, PullRequestPayload)
    pr_id = _entity_id(item, payload.id)
    if pr_id is None:
        return None
    return PullRequest(
        pr_id=pr_id,
        repo_id=item.repo_id,
        author_user_id=_account_id(payload.user) or item.actor_id,
        created_at=item.created_at or parse_iso(payload.created_at),
        merged_at=parse_iso(payload.merged_at_value),
        closed_at=parse_iso(payload.closed_at),
        updated_at=parse_iso(payload.updated_at),
        title=payload.title,
        body=payload.body,
    )


def merge_pull_request(prev: PullRequest, next_: PullRequest) -> PullRequest:
    """Merge two pull request snapshots, protecting attached commits."""
    if bool(prev.commits) != bool(next_.commits):
        next_wins = bool(next_.commits)
    else:
        next_wins = _incoming_wins(_freshness(prev), _freshness(next_))
    kept = ("title", "body", "merged_at", "closed_at")
    if next_wins:
        return _fill_text(next_, prev, kept)
    return _fill_text(prev, next_, kept)


def is_merged_pull_request(item: RawItem) -> bool:
    """Return True when a ``pull_request`` raw row records a merge."""
    if item.kind is not RawItemKind.PULL_REQUEST:
        return False
    payload = decode_payload(item.payload, PullRequestPayload)
    return payload.merged_at_value is not None


# Comments


def map_issue_comment(item: RawItem) -> Comment | None:
    """Map an ``issue_comment`` raw row; its parent is always an issue."""
    if item.kind is not RawItemKind.ISSUE_COMMENT:
        return None
    payload = decode_payload(item.payload, IssueCommentPayload)
    return _comment(item, payload, ParentType.ISSUE)


def map_review_comment(item: RawItem) -> Comment | None:
    """Map a ``pr_review_comment`` raw row; its parent is always a PR."""
    if item.kind is not RawItemKind.PR_REVIEW_COMMENT:
        return None
    payload = decode_payload(item.payload, ReviewCommentPayload)
    return _comment(item, payload, ParentType.PR)


def map_comment(item: RawItem) -> Comment | None:
    """Map a comment from either feed; the feed decides the parent type."""
    if item.kind is RawItemKind.PR_REVIEW_COMMENT:
        return map_review_comment(item)
    return map_issue_comment(item)


def _comment(
    item: RawItem,
    payload: IssueCommentPayload | ReviewCommentPayload,
    parent_type: ParentType,
) -> Comment | None:
    comment_id = _entity_id(item, payload.id)
    if comment_id is None:
        return None
    return Comment(
        comment_id=comment_id,
        parent_type=parent_type,
        repo_id=item.repo_id,
        parent_id=item.parent_id,
        author_user_id=_account_id(payload.user) or item.actor_id,
        created_at=item.created_at or parse_iso(payload.created_at),
        updated_at=parse_iso(payload.updated_at),
        body=payload.body,
    )


def merge_comment(prev: Comment, next_: Comment) -> Comment:
    """Merge two comment snapshots."""
    if _incoming_wins(_freshness(prev), _freshness(next_)):
        return _fill_text(next_, prev, ("body", "parent_id"))
    return _fill_text(prev, next_, ("body", "parent_id"))


# Commits


def map_commit(item: RawItem) -> Commit | None:
    """Map a ``commit`` raw row; the commit id is its SHA."""
    if item.kind is not RawItemKind.COMMIT:
        return None
    payload = decode_payload(item.payload, CommitPayload)
    sha = _entity_id(item, payload.sha)
    if sha is None:
        return None
    detail = payload.commit
    committed = detail.committer if detail is not None else None
    authored = detail.author if detail is not None else None
    created_at = (
        item.created_at
        or parse_iso(committed.date if committed is not None else None)
        or parse_iso(authored.date if authored is not None else None)
    )
    return Commit(
        commit_id=sha,
        repo_id=item.repo_id,
        author_user_id=_account_id(payload.author) or item.actor_id,
        parent_pr_id=item.parent_id,
        created_at=created_at,
        message=detail.message if detail is not None else None,
    )


def merge_commit(prev: Commit, next_: Commit) -> Commit:
    """Merge two sightings of the same SHA."""
    if _incoming_wins(prev.created_at, next_.created_at):
        return _fill_text(next_, prev, ("message", "parent_pr_id"))
    return _fill_text(prev, next_, ("message", "parent_pr_id"))


# Users and repositories

_USER_TEXT_FIELDS = (
    "login",
    "name",
    "avatar_url",
    "html_url",
    "email",
    "company",
    "location",
    "bio",
    "blog",
    "twitter_username",
)


def map_user(raw: RawUser) -> User | None:
    """Map a Bronze user profile to a :class:`User`."""
    payload = decode_payload(raw.payload, UserPayload)
    user_id = raw.user_id or _text(payload.id)
    if not user_id:
        return None
    return User(
        user_id=user_id,
        login=payload.login or raw.login,
        name=payload.name if payload.name is not None else raw.name,
        avatar_url=payload.avatar_url,
        html_url=payload.html_url,
        email=payload.email,
        company=payload.company,
        location=payload.location,
        bio=payload.bio,
        blog=payload.blog or None,
        twitter_username=payload.twitter_username,
        public_repos=payload.public_repos,
        followers=payload.followers,
        following=payload.following,
        site_admin=payload.site_admin,
        account_type=payload.type,
        fetched_at=raw.fetched_at,
        gh_created_at=parse_iso(payload.created_at),
        gh_updated_at=parse_iso(payload.updated_at),
    )


def merge_user(prev: User, next_: User) -> User:
    """Merge two profile snapshots of the same account."""
    if _incoming_wins(
        prev.gh_updated_at or prev.fetched_at, next_.gh_updated_at or next_.fetched_at
    ):
        return _fill_text(next_, prev, _USER_TEXT_FIELDS)
    return _fill_text(prev, next_, _USER_TEXT_FIELDS)


_REPO_TEXT_FIELDS = (
    "repo_name",
    "full_name",
    "description",
    "html_url",
    "default_branch",
)


def map_repository(raw: RawRepo) -> Repository | None:
    """Map Bronze repository metadata to a :class:`Repository`."""
    payload = decode_payload(raw.payload, RepoPayload)
    repo_id = raw.repo_id or _text(payload.id)
    if not repo_id:
        return None
    is_private = raw.is_private if raw.is_private is not None else payload.private
    return Repository(
        repo_id=repo_id,
        owner_user_id=_account_id(payload.owner),
        repo_name=payload.name or raw.name,
        full_name=payload.full_name or raw.full_name,
        description=payload.description,
        html_url=payload.html_url,
        visibility=Visibility.PRIVATE if is_private else Visibility.PUBLIC,
        default_branch=payload.default_branch,
        fork_count=payload.forks_count,
        parent_repo_id=_text(payload.parent.id) if payload.parent else None,
        last_activity=parse_iso(payload.pushed_at) or parse_iso(payload.updated_at),
        fetched_at=raw.fetched_at,
        gh_created_at=parse_iso(payload.created_at),
    )


def merge_repository(prev: Repository, next_: Repository) -> Repository:
    """Merge two metadata snapshots of the same repository."""
    if _incoming_wins(
        prev.last_activity or prev.fetched_at, next_.last_activity or next_.fetched_at
    ):
        return _fill_text(next_, prev, _REPO_TEXT_FIELDS)
    return _fill_text(prev, next_, _REPO_TEXT_FIELDS)
