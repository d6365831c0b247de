"""In-process mirror of the Bronze store.

The mirror is constructed explicitly and handed to
:class:`~gitpulse.bronze.services.RawEventStore`; normalisation in the same
process reads from it instead of querying the database. Mutation happens
between awaits on a single event loop, so no locking is needed.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

if typ.TYPE_CHECKING:
    from .models import RawItem, RawRepo, RawUser

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.UTC)


def event_sort_key(item: RawItem) -> tuple[dt.datetime, str]:
    """Order events by creation time, then id; undated events sort first."""
    return (item.created_at or _EPOCH, item.id)


class RawMemoryStore:
    """Dictionary-backed snapshot of raw events, users and repositories."""

    def __init__(self) -> None:
        """Start with an empty snapshot."""
        self._events: dict[str, RawItem] = {}
        self._users: dict[str, RawUser] = {}
        self._repos: dict[str, RawRepo] = {}

    def upsert_event(self, item: RawItem) -> bool:
        """Insert ``item`` unless its id is present; return True if inserted."""
        if item.id in self._events:
            return False
        self._events[item.id] = item
        return True

    def upsert_user(self, user: RawUser) -> None:
        """Store ``user``, replacing any previous snapshot."""
        self._users[user.user_id] = user

    def upsert_repo(self, repo: RawRepo) -> None:
        """Store ``repo``, replacing any previous snapshot."""
        self._repos[repo.repo_id] = repo

    def get_events(self) -> list[RawItem]:
        """Return every event ordered by ``(created_at, id)``."""
        return sorted(self._events.values(), key=event_sort_key)

    def get_users(self) -> list[RawUser]:
        """Return every user ordered by id."""
        return [self._users[key] for key in sorted(self._users)]

    def get_repos(self) -> list[RawRepo]:
        """Return every repository ordered by id."""
        return [self._repos[key] for key in sorted(self._repos)]

    def remove_user_data(self, user_id: str) -> int:
        """Drop a user and the events it actored; return events removed."""
        self._users.pop(user_id, None)
        doomed = [key for key, item in self._events.items() if item.actor_id == user_id]
        for key in doomed:
            del self._events[key]
        return len(doomed)

    def clear(self) -> None:
        """Forget everything."""
        self._events.clear()
        self._users.clear()
        self._repos.clear()

    def __len__(self) -> int:
        """Return the number of mirrored events."""
        return len(self._events)
