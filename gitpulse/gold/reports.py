"""Build per-account activity reports from the Gold tables.

The report joins curated profiles, curated repositories and the per-day
activity counters for a trailing window. Only repositories with at least
``min_fork_count`` forks are counted, so personal scratch repositories do not
dominate the totals.

Usage
-----
Create a service and request a report:

>>> service = ActivityReportService(session_factory)
>>> report = await service.build(["octocat", "hubot"])
>>> report.to_dict()["summary"]["total_repos"]
2

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from sqlalchemy import select

from gitpulse.common.time import to_iso, utcnow
from gitpulse.logging import get_logger, log_info

from .aggregation import ActivityType
from .storage import CuratedRepositoryRecord, UserActivityRecord, UserProfileRecord

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

REPORT_LOOKBACK = dt.timedelta(days=180)
MIN_FORK_COUNT = 3


@dc.dataclass(frozen=True, slots=True)
class ReportConfig:
    """Window and repository filter for activity reports.

    Attributes
    ----------
    lookback
        Trailing window ending today; counters on older days are ignored.
    min_fork_count
        Repositories with fewer forks, or an unknown fork count, are left out.

    """

    lookback: dt.timedelta = REPORT_LOOKBACK
    min_fork_count: int = MIN_FORK_COUNT


@dc.dataclass(slots=True)
class ActivityTotals:
    """Summed counters, one field per activity type."""

    commits: int = 0
    pull_requests: int = 0
    issues: int = 0
    pr_comments: int = 0
    issue_comments: int = 0

    def add(self, activity_type: ActivityType, count: int) -> None:
        """Add ``count`` to the field for ``activity_type``."""
        match activity_type:
            case ActivityType.COMMIT:
                self.commits += count
            case ActivityType.PR:
                self.pull_requests += count
            case ActivityType.ISSUE:
                self.issues += count
            case ActivityType.PR_COMMENT:
                self.pr_comments += count
            case ActivityType.ISSUE_COMMENT:
                self.issue_comments += count

    def absorb(self, other: ActivityTotals) -> None:
        """Add every field of ``other`` to this total."""
        self.commits += other.commits
        self.pull_requests += other.pull_requests
        self.issues += other.issues
        self.pr_comments += other.pr_comments
        self.issue_comments += other.issue_comments

    def as_dict(self) -> dict[str, int]:
        """Return the totals as a plain mapping."""
        return dc.asdict(self)


@dc.dataclass(frozen=True, slots=True)
class RepositoryActivity:
    """One account's totals in one repository."""

    repo_id: str
    full_name: str | None
    description: str | None
    url: str | None
    fork_count: int | None
    totals: ActivityTotals

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        return {
            "repo_id": self.repo_id,
            "full_name": self.full_name,
            "description": self.description,
            "url": self.url,
            "fork_count": self.fork_count,
            **self.totals.as_dict(),
        }


@dc.dataclass(frozen=True, slots=True)
class AccountReport:
    """Profile, per-repository activity and totals for one account."""

    profile: UserProfileRecord
    repositories: tuple[RepositoryActivity, ...]
    summary: ActivityTotals

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        profile = self.profile
        created_at = profile.gh_created_at
        return {
            "user": {
                "user_id": profile.user_id,
                "login": profile.login,
                "name": profile.name,
                "avatar_url": profile.avatar_url,
                "html_url": profile.html_url,
                "bio": profile.bio,
                "location": profile.location,
                "company": profile.company,
                "blog": profile.blog,
                "twitter_username": profile.twitter_username,
                "account_type": profile.account_type,
                "public_repos": profile.public_repos,
                "followers": profile.followers,
                "following": profile.following,
                "created_at": to_iso(created_at) if created_at else None,
            },
            "repositories": [repo.to_dict() for repo in self.repositories],
            "summary": self.summary.as_dict(),
        }


@dc.dataclass(frozen=True, slots=True)
class ActivityReport:
    """Activity of the requested accounts over one window.

    Attributes
    ----------
    accounts
        One entry per requested login with a curated profile, in request
        order.
    missing_accounts
        Requested logins with no curated profile.
    totals
        Sum over every account and repository in the report.
    total_repos
        Distinct repositories with at least one counted activity.
    since, until
        First and last UTC day of the window, both inclusive.
    min_fork_count
        Fork threshold applied to repositories.

    """

    accounts: tuple[AccountReport, ...]
    missing_accounts: tuple[str, ...]
    totals: ActivityTotals
    total_repos: int
    since: dt.date
    until: dt.date
    min_fork_count: int

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        return {
            "users": [account.to_dict() for account in self.accounts],
            "summary": {
                **self.totals.as_dict(),
                "total_repos": self.total_repos,
                "total_users": len(self.accounts) + len(self.missing_accounts),
                "reported_users": len(self.accounts),
                "missing_users": list(self.missing_accounts),
                "since": self.since.isoformat(),
                "until": self.until.isoformat(),
                "min_fork_count": self.min_fork_count,
            },
        }


class ActivityReportService:
    """Read curated rows and summarise them per account and repository."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        config: ReportConfig | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Bind the session factory, report window and clock."""
        self._session_factory = session_factory
        self._config = config or ReportConfig()
        self._clock = clock

    async def build(
        self, logins: cabc.Sequence[str], *, now: dt.datetime | None = None
    ) -> ActivityReport:
        """Return the activity report for ``logins``.

        Parameters
        ----------
        logins
            Account logins to report on, in the order they should appear.
        now
            End of the window; defaults to the service clock.

        Returns
        -------
        ActivityReport
            Per-account repository activity and the global summary.

        """
        until = (now or self._clock()).astimezone(dt.UTC).date()
        since = until - dt.timedelta(days=self._config.lookback.days)
        wanted = list(dict.fromkeys(logins))

        async with self._session_factory() as session:
            profiles = await self._profiles(session, wanted)
            repos = await self._eligible_repos(session)
            counters = await self._counters(
                session,
                [profile.user_id for profile in profiles.values()],
                list(repos),
                since,
            )

        per_user: dict[str, dict[str, ActivityTotals]] = {}
        for record in counters:
            by_repo = per_user.setdefault(record.user_id, {})
            totals = by_repo.setdefault(record.repo_id, ActivityTotals())
            totals.add(ActivityType(record.activity_type), record.count)

        accounts: list[AccountReport] = []
        grand = ActivityTotals()
        active_repos: set[str] = set()
        for login in wanted:
            profile = profiles.get(login)
            if profile is None:
                continue
            account = _account_report(profile, per_user.get(profile.user_id, {}), repos)
            accounts.append(account)
            grand.absorb(account.summary)
            active_repos.update(repo.repo_id for repo in account.repositories)

        report = ActivityReport(
            accounts=tuple(accounts),
            missing_accounts=tuple(login for login in wanted if login not in profiles),
            totals=grand,
            total_repos=len(active_repos),
            since=since,
            until=until,
            min_fork_count=self._config.min_fork_count,
        )
        log_info(
            logger,
            "Built activity report for %d accounts over %d repositories (%s..%s)",
            len(accounts),
            report.total_repos,
            since.isoformat(),
            until.isoformat(),
        )
        return report

    @staticmethod
    async def _profiles(
        session: AsyncSession, logins: list[str]
    ) -> dict[str, UserProfileRecord]:
        if not logins:
            return {}
        records = await session.scalars(
            select(UserProfileRecord).where(UserProfileRecord.login.in_(logins))
        )
        return {record.login: record for record in records if record.login}

    async def _eligible_repos(
        self, session: AsyncSession
    ) -> dict[str, CuratedRepositoryRecord]:
        records = await session.scalars(
            select(CuratedRepositoryRecord).where(
                CuratedRepositoryRecord.fork_count >= self._config.min_fork_count
            )
        )
        return {record.repo_id: record for record in records}

    @staticmethod
    async def _counters(
        session: AsyncSession,
        user_ids: list[str],
        repo_ids: list[str],
        since: dt.date,
    ) -> list[UserActivityRecord]:
        if not user_ids or not repo_ids:
            return []
        records = await session.scalars(
            select(UserActivityRecord)
            .where(
                UserActivityRecord.user_id.in_(user_ids),
                UserActivityRecord.repo_id.in_(repo_ids),
                UserActivityRecord.day >= since,
            )
            .order_by(UserActivityRecord.user_id, UserActivityRecord.repo_id)
        )
        return list(records)


def _account_report(
    profile: UserProfileRecord,
    by_repo: dict[str, ActivityTotals],
    repos: dict[str, CuratedRepositoryRecord],
) -> AccountReport:
    repositories = sorted(
        (
            RepositoryActivity(
                repo_id=repo_id,
                full_name=repos[repo_id].full_name,
                description=repos[repo_id].description,
                url=repos[repo_id].html_url,
                fork_count=repos[repo_id].fork_count,
                totals=totals,
            )
            for repo_id, totals in by_repo.items()
        ),
        key=lambda repo: (repo.full_name or "", repo.repo_id),
    )
    summary = ActivityTotals()
    for repo in repositories:
        summary.absorb(repo.totals)
    return AccountReport(
        profile=profile, repositories=tuple(repositories), summary=summary
    )
