"""Persist curated profiles, repositories and activity counters."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import delete, select

from gitpulse.logging import get_logger, log_info

from .aggregation import ActivityCounter, ActivityType
from .storage import CuratedRepositoryRecord, UserActivityRecord, UserProfileRecord

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from gitpulse.silver.models import Repository, User

    from .aggregation import CuratedBundle

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class CuratedWriteStats:
    """Outcome of one :meth:`CuratedWriter.write` call."""

    profiles: int = 0
    repositories: int = 0
    activities_inserted: int = 0
    activities_raised: int = 0
    activities_unchanged: int = 0

    def as_dict(self) -> dict[str, int]:
        """Return the stats as a plain mapping."""
        return dc.asdict(self)


def _profile_record(user: User) -> UserProfileRecord:
    return UserProfileRecord(
        user_id=user.user_id,
        login=user.login,
        name=user.name,
        avatar_url=user.avatar_url,
        html_url=user.html_url,
        company=user.company,
        location=user.location,
        bio=user.bio,
        blog=user.blog,
        twitter_username=user.twitter_username,
        account_type=user.account_type,
        public_repos=user.public_repos,
        followers=user.followers,
        following=user.following,
        gh_created_at=user.gh_created_at,
    )


def _repository_record(repo: Repository) -> CuratedRepositoryRecord:
    return CuratedRepositoryRecord(
        repo_id=repo.repo_id,
        owner_user_id=repo.owner_user_id,
        repo_name=repo.repo_name,
        full_name=repo.full_name,
        description=repo.description,
        html_url=repo.html_url,
        visibility=str(repo.visibility),
        default_branch=repo.default_branch,
        fork_count=repo.fork_count,
        parent_repo_id=repo.parent_repo_id,
        last_activity=repo.last_activity,
    )


class CuratedWriter:
    """Write a :class:`CuratedBundle` to the Gold tables.

    Profiles and repositories are replaced by primary key. Activity counters
    use max-on-conflict: the stored count becomes ``max(stored, folded)``, so
    re-running an overlapping window neither double counts nor lets a
    degraded re-fetch lower a counter.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Bind the session factory used for every write."""
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Return the session factory bound to the Gold tables."""
        return self._session_factory

    async def write(self, curated: CuratedBundle) -> CuratedWriteStats:
        """Persist ``curated`` in one transaction and return what changed."""
        inserted = raised = unchanged = 0
        async with self._session_factory() as session, session.begin():
            for user in curated.profiles:
                await self._release_login(session, user)
                await session.merge(_profile_record(user))
            for repo in curated.repositories:
                await session.merge(_repository_record(repo))
            for counter in curated.activities:
                record = await session.get(
                    UserActivityRecord,
                    (
                        counter.user_id,
                        counter.day,
                        counter.repo_id,
                        str(counter.activity_type),
                    ),
                )
                if record is None:
                    session.add(
                        UserActivityRecord(
                            user_id=counter.user_id,
                            day=counter.day,
                            repo_id=counter.repo_id,
                            activity_type=str(counter.activity_type),
                            count=counter.count,
                        )
                    )
                    inserted += 1
                elif counter.count > record.count:
                    record.count = counter.count
                    raised += 1
                else:
                    unchanged += 1

        stats = CuratedWriteStats(
            profiles=len(curated.profiles),
            repositories=len(curated.repositories),
            activities_inserted=inserted,
            activities_raised=raised,
            activities_unchanged=unchanged,
        )
        log_info(logger, "Curated write complete: %s", stats.as_dict())
        return stats

    @staticmethod
    async def _release_login(session: AsyncSession, user: User) -> None:
        # Logins are unique but can move between accounts after a rename.
        if user.login is None:
            return
        await session.execute(
            delete(UserProfileRecord).where(
                UserProfileRecord.login == user.login,
                UserProfileRecord.user_id != user.user_id,
            )
        )

    async def known_logins(self, logins: cabc.Iterable[str]) -> set[str]:
        """Return the subset of ``logins`` that already have a profile."""
        wanted = set(logins)
        if not wanted:
            return set()
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(UserProfileRecord.login).where(
                    UserProfileRecord.login.in_(wanted)
                )
            )
            return {login for login in rows if login is not None}

    async def user_id_for_login(self, login: str) -> str | None:
        """Return the ``user_id`` of the profile holding ``login``."""
        async with self._session_factory() as session:
            return await session.scalar(
                select(UserProfileRecord.user_id).where(
                    UserProfileRecord.login == login
                )
            )

    async def remove_account(self, user_id: str, login: str | None = None) -> int:
        """Delete the profile and activity of an account.

        Returns the number of activity rows deleted.
        """
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(UserActivityRecord).where(
                    UserActivityRecord.user_id == user_id
                )
            )
            profile_filter = UserProfileRecord.user_id == user_id
            if login is not None:
                profile_filter = profile_filter | (UserProfileRecord.login == login)
            await session.execute(delete(UserProfileRecord).where(profile_filter))
            return result.rowcount or 0

    async def activities_for(self, user_id: str) -> list[ActivityCounter]:
        """Return the stored counters of ``user_id`` ordered by key."""
        async with self._session_factory() as session:
            records = await session.scalars(
                select(UserActivityRecord)
                .where(UserActivityRecord.user_id == user_id)
                .order_by(
                    UserActivityRecord.day,
                    UserActivityRecord.repo_id,
                    UserActivityRecord.activity_type,
                )
            )
            return [
                ActivityCounter(
                    user_id=record.user_id,
                    day=record.day,
                    repo_id=record.repo_id,
                    activity_type=ActivityType(record.activity_type),
                    count=record.count,
                )
                for record in records
            ]
