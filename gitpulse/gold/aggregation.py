"""Fold canonical entities into per-day activity counters.

Each issue, pull request, comment and commit with an author, a repository and
a creation time contributes exactly one to the bucket
``(user_id, UTC day, repo_id, activity_type)``. Entities missing any of those
are skipped.
"""

from __future__ import annotations

import collections
import dataclasses
import enum
import typing as typ

from gitpulse.common.time import utc_day
from gitpulse.logging import get_logger, log_debug
from gitpulse.silver.models import ParentType

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from gitpulse.silver.models import Repository, SilverBundle, User

logger = get_logger(__name__)


class ActivityType(enum.StrEnum):
    """Kinds of countable contribution."""

    ISSUE = "issue"
    PR = "pr"
    ISSUE_COMMENT = "issue_comment"
    PR_COMMENT = "pr_comment"
    COMMIT = "commit"


type ActivityKey = tuple[str, dt.date, str, ActivityType]


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class ActivityCounter:
    """Number of contributions of one type by one user to one repo on one day."""

    user_id: str
    day: dt.date
    repo_id: str
    activity_type: ActivityType
    count: int = 0

    @property
    def key(self) -> ActivityKey:
        """Return the persistence key."""
        return (self.user_id, self.day, self.repo_id, self.activity_type)


@dataclasses.dataclass(frozen=True, slots=True)
class CuratedBundle:
    """Rows ready for the curated store."""

    profiles: tuple[User, ...] = ()
    repositories: tuple[Repository, ...] = ()
    activities: tuple[ActivityCounter, ...] = ()

    def counts(self) -> dict[str, int]:
        """Return the number of rows per curated table."""
        return {
            "profiles": len(self.profiles),
            "repositories": len(self.repositories),
            "activities": len(self.activities),
        }


def _bucket(
    author: str | None,
    repo_id: str | None,
    created_at: dt.datetime | None,
    activity_type: ActivityType,
) -> ActivityKey | None:
    if not author or not repo_id or created_at is None:
        return None
    return (author, utc_day(created_at), repo_id, activity_type)


class ActivityAggregator:
    """Turn a :class:`SilverBundle` into activity counters and curated rows."""

    def fold(self, bundle: SilverBundle) -> list[ActivityCounter]:
        """Return one counter per persistence key, ordered by key.

        The first pass counts each entity kind separately; the second re-keys
        the combined counters by persistence key and sums them, so no key is
        emitted twice.
        """
        partials: list[ActivityCounter] = []
        for buckets in self._first_pass(bundle):
            partials.extend(
                ActivityCounter(*key, count=count) for key, count in buckets.items()
            )

        totals: collections.Counter[ActivityKey] = collections.Counter()
        for counter in partials:
            totals[counter.key] += counter.count
        folded = sorted(
            ActivityCounter(*key, count=count) for key, count in totals.items()
        )
        log_debug(
            logger,
            "Folded %d partial counters into %d activity rows",
            len(partials),
            len(folded),
        )
        return folded

    def to_curated(self, bundle: SilverBundle) -> CuratedBundle:
        """Return profiles, repositories and activity counters for ``bundle``."""
        return CuratedBundle(
            profiles=tuple(sorted(bundle.users, key=lambda user: user.user_id)),
            repositories=tuple(sorted(bundle.repos, key=lambda repo: repo.repo_id)),
            activities=tuple(self.fold(bundle)),
        )

    def _first_pass(
        self, bundle: SilverBundle
    ) -> cabc.Iterator[collections.Counter[ActivityKey]]:
        yield self._count(
            _bucket(i.author_user_id, i.repo_id, i.created_at, ActivityType.ISSUE)
            for i in bundle.issues
        )
        yield self._count(
            _bucket(pr.author_user_id, pr.repo_id, pr.created_at, ActivityType.PR)
            for pr in bundle.prs
        )
        yield self._count(
            _bucket(
                c.author_user_id,
                c.repo_id,
                c.created_at,
                ActivityType.PR_COMMENT
                if c.parent_type is ParentType.PR
                else ActivityType.ISSUE_COMMENT,
            )
            for c in bundle.comments
        )
        yield self._count(
            _bucket(c.author_user_id, c.repo_id, c.created_at, ActivityType.COMMIT)
            for c in bundle.commits
        )

    @staticmethod
    def _count(
        keys: cabc.Iterable[ActivityKey | None],
    ) -> collections.Counter[ActivityKey]:
        return collections.Counter(key for key in keys if key is not None)
