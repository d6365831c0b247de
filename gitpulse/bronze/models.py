"""In-process representations of Bronze rows."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from gitpulse.bronze.errors import InvalidEventIdError

if typ.TYPE_CHECKING:
    import datetime as dt

type Payload = dict[str, typ.Any]


class RawItemKind(enum.StrEnum):
    """Kinds of event fetched from GitHub."""

    ISSUE = "issue"
    PULL_REQUEST = "pull_request"
    ISSUE_COMMENT = "issue_comment"
    PR_REVIEW_COMMENT = "pr_review_comment"
    COMMIT = "commit"


def make_event_id(kind: RawItemKind, native_id: object) -> str:
    """Return the stable raw event id for a platform-native id.

    Re-fetching the same remote item always yields the same id, which is what
    makes event writes idempotent.

    >>> make_event_id(RawItemKind.ISSUE, 42)
    'issue:42'

    """
    native = "" if native_id is None else str(native_id).strip()
    if not native:
        raise InvalidEventIdError.empty_native_id(kind)
    return f"{kind}:{native}"


def native_id_of(event_id: str) -> str:
    """Return the platform-native part of a raw event id."""
    _, sep, native = event_id.partition(":")
    if not sep or not native:
        raise InvalidEventIdError.malformed(event_id)
    return native


@dc.dataclass(frozen=True, slots=True)
class RawItem:
    """One immutable fetched event.

    ``parent_id`` is the owning entity: the item itself for issues and pull
    requests, the resolved issue/PR for comments, the pull request for PR
    commits and ``None`` for direct pushes or unresolved parents.
    """

    id: str
    kind: RawItemKind
    received_at: dt.datetime
    payload: Payload
    actor_id: str | None = None
    repo_id: str | None = None
    parent_id: str | None = None
    created_at: dt.datetime | None = None
    is_private: bool | None = None


@dc.dataclass(frozen=True, slots=True)
class RawUser:
    """Latest known GitHub profile for an account."""

    user_id: str
    login: str
    payload: Payload
    name: str | None = None
    fetched_at: dt.datetime | None = None
    last_synced_at: dt.datetime | None = None


@dc.dataclass(frozen=True, slots=True)
class RawRepo:
    """Latest known GitHub metadata for a repository."""

    repo_id: str
    full_name: str
    payload: Payload
    owner_login: str | None = None
    name: str | None = None
    is_private: bool | None = None
    fetched_at: dt.datetime | None = None
