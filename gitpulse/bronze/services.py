"""Dual-write store for Bronze raw events, users and repositories."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from gitpulse.bronze.errors import (
    TimezoneAwareRequiredError,
    UnsupportedPayloadTypeError,
)
from gitpulse.bronze.memory import RawMemoryStore
from gitpulse.bronze.models import RawItem, RawItemKind, RawRepo, RawUser
from gitpulse.bronze.storage import RawEventRecord, RawRepoRecord, RawUserRecord
from gitpulse.common.time import utcnow

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from gitpulse.bronze.models import Payload

type JSONValue = (
    dict[str, JSONValue] | list[JSONValue] | str | int | float | bool | None
)


def _normalise_payload(payload: object) -> JSONValue:
    """Deep-copy payload converting datetimes and rejecting unsupported types.

    The stored copy is detached from the caller's object so later mutation of
    an API response cannot leak into an insert-once event.
    """
    match payload:
        case dict():
            return {str(k): _normalise_payload(v) for k, v in payload.items()}
        case list() | tuple():
            return [_normalise_payload(item) for item in payload]
        case dt.datetime():
            if payload.tzinfo is None:
                raise TimezoneAwareRequiredError.for_payload()
            return payload.astimezone(dt.UTC).isoformat()
        case None | bool() | int() | float() | str():
            return payload
        case _:
            raise UnsupportedPayloadTypeError(type(payload).__name__)


def _copy_payload(payload: Payload) -> Payload:
    return typ.cast("Payload", _normalise_payload(payload))


def _require_aware(value: dt.datetime | None, field: str) -> None:
    if value is not None and value.tzinfo is None:
        raise TimezoneAwareRequiredError.for_field(field)


def _item_from_record(record: RawEventRecord) -> RawItem:
    return RawItem(
        id=record.id,
        kind=RawItemKind(record.kind),
        received_at=record.received_at,
        payload=record.payload,
        actor_id=record.actor_id,
        repo_id=record.repo_id,
        parent_id=record.parent_id,
        created_at=record.created_at,
        is_private=record.is_private,
    )


def _user_from_record(record: RawUserRecord) -> RawUser:
    return RawUser(
        user_id=record.user_id,
        login=record.login,
        payload=record.payload,
        name=record.name,
        fetched_at=record.fetched_at,
        last_synced_at=record.last_synced_at,
    )


class RawEventStore:
    """Idempotent Bronze store with an in-process mirror.

    Every write commits to the database first and then updates the mirror
    before returning, so a failed commit never leaves the mirror ahead of the
    durable store. Reads (``get_events`` and friends) serve the mirror.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        mirror: RawMemoryStore | None = None,
    ) -> None:
        """Bind the session factory and the mirror this store keeps in step."""
        self._session_factory = session_factory
        self._mirror = mirror if mirror is not None else RawMemoryStore()

    @property
    def mirror(self) -> RawMemoryStore:
        """Return the in-process mirror."""
        return self._mirror

    async def upsert_event(self, item: RawItem) -> bool:
        """Insert ``item`` if its id is new; return True when inserted.

        A re-write of an existing id is a no-op in the database. The mirror
        then receives the stored (first-written) version so the current run
        still sees the event even when an earlier run persisted it.
        """
        _require_aware(item.created_at, "created_at")
        _require_aware(item.received_at, "received_at")
        stored = dc.replace(item, payload=_copy_payload(item.payload))

        async with self._session_factory() as session:
            existing = await session.get(RawEventRecord, stored.id)
            if existing is not None:
                self._mirror.upsert_event(_item_from_record(existing))
                return False

            session.add(
                RawEventRecord(
                    id=stored.id,
                    kind=str(stored.kind),
                    actor_id=stored.actor_id,
                    repo_id=stored.repo_id,
                    parent_id=stored.parent_id,
                    created_at=stored.created_at,
                    received_at=stored.received_at,
                    is_private=stored.is_private,
                    payload=stored.payload,
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                winner = await session.get(RawEventRecord, stored.id)
                if winner is None:
                    raise
                self._mirror.upsert_event(_item_from_record(winner))
                return False

        self._mirror.upsert_event(stored)
        return True

    async def upsert_user(self, user: RawUser) -> RawUser:
        """Store the latest profile for ``user``; returns the stored snapshot.

        ``last_synced_at`` belongs to the pipeline, not to GitHub, so an
        existing value is kept.
        """
        fetched_at = user.fetched_at or utcnow()
        _require_aware(fetched_at, "fetched_at")
        payload = _copy_payload(user.payload)
        async with self._session_factory() as session, session.begin():
            record = await session.get(RawUserRecord, user.user_id)
            if record is None:
                record = RawUserRecord(
                    user_id=user.user_id,
                    login=user.login,
                    last_synced_at=user.last_synced_at,
                    payload=payload,
                )
                session.add(record)
            record.login = user.login
            record.name = user.name
            record.fetched_at = fetched_at
            record.payload = payload
            stored = dc.replace(
                user,
                payload=payload,
                fetched_at=fetched_at,
                last_synced_at=record.last_synced_at,
            )
        self._mirror.upsert_user(stored)
        return stored

    async def upsert_repo(self, repo: RawRepo) -> RawRepo:
        """Store the latest metadata for ``repo``; returns the stored snapshot."""
        fetched_at = repo.fetched_at or utcnow()
        _require_aware(fetched_at, "fetched_at")
        stored = dc.replace(
            repo, payload=_copy_payload(repo.payload), fetched_at=fetched_at
        )
        async with self._session_factory() as session, session.begin():
            await session.merge(
                RawRepoRecord(
                    repo_id=stored.repo_id,
                    full_name=stored.full_name,
                    owner_login=stored.owner_login,
                    name=stored.name,
                    is_private=stored.is_private,
                    fetched_at=fetched_at,
                    payload=stored.payload,
                )
            )
        self._mirror.upsert_repo(stored)
        return stored

    def get_events(self) -> list[RawItem]:
        """Return the mirrored events ordered by ``(created_at, id)``."""
        return self._mirror.get_events()

    def get_users(self) -> list[RawUser]:
        """Return the mirrored users."""
        return self._mirror.get_users()

    def get_repos(self) -> list[RawRepo]:
        """Return the mirrored repositories."""
        return self._mirror.get_repos()

    async def remove_account_data(self, user_id: str) -> int:
        """Delete a user and every event it actored; return events deleted."""
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(RawEventRecord).where(RawEventRecord.actor_id == user_id)
            )
            await session.execute(
                delete(RawUserRecord).where(RawUserRecord.user_id == user_id)
            )
            deleted = result.rowcount or 0
        self._mirror.remove_user_data(user_id)
        return deleted

    async def find_user_by_login(self, login: str) -> RawUser | None:
        """Return the stored profile for ``login`` if one exists."""
        async with self._session_factory() as session:
            record = await session.scalar(
                select(RawUserRecord)
                .where(RawUserRecord.login == login)
                .order_by(RawUserRecord.fetched_at.desc())
                .limit(1)
            )
        return None if record is None else _user_from_record(record)

    async def last_synced(
        self, logins: cabc.Iterable[str]
    ) -> dict[str, dt.datetime]:
        """Return ``last_synced_at`` for the logins that have one."""
        wanted = set(logins)
        if not wanted:
            return {}
        async with self._session_factory() as session:
            rows = await session.execute(
                select(RawUserRecord.login, RawUserRecord.last_synced_at).where(
                    RawUserRecord.login.in_(wanted),
                    RawUserRecord.last_synced_at.is_not(None),
                )
            )
            return {login: synced for login, synced in rows.all()}

    async def mark_synced(self, logins: cabc.Iterable[str], at: dt.datetime) -> None:
        """Advance ``last_synced_at`` to ``at``; never moves it backwards."""
        _require_aware(at, "last_synced_at")
        wanted = set(logins)
        if not wanted:
            return
        async with self._session_factory() as session, session.begin():
            records = await session.scalars(
                select(RawUserRecord).where(RawUserRecord.login.in_(wanted))
            )
            for record in records:
                if record.last_synced_at is None or record.last_synced_at < at:
                    record.last_synced_at = at
