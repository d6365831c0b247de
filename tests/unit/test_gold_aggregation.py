"""Unit tests for folding Silver entities into activity counters."""

from __future__ import annotations

import datetime as dt

from gitpulse.gold import ActivityAggregator, ActivityCounter, ActivityType
from gitpulse.silver import (
    Comment,
    Commit,
    Issue,
    ParentType,
    PullRequest,
    Repository,
    SilverBundle,
    User,
)

DAY = dt.date(2024, 1, 7)
NOON = dt.datetime(2024, 1, 7, 12, 0, tzinfo=dt.UTC)


def _commit(sha: str, **overrides: object) -> Commit:
    fields: dict[str, object] = {
        "commit_id": sha,
        "repo_id": "r1",
        "author_user_id": "u1",
        "created_at": NOON,
    }
    fields.update(overrides)
    return Commit(**fields)  # type: ignore[arg-type]


def test_same_bucket_commits_sum_into_one_counter() -> None:
    """Three commits on one day to one repo become a single count of three."""
    bundle = SilverBundle(
        commits=(
            _commit("a"),
            _commit("b", created_at=NOON.replace(hour=0)),
            _commit("c", created_at=NOON.replace(hour=23, minute=59)),
        )
    )

    counters = ActivityAggregator().fold(bundle)

    assert counters == [
        ActivityCounter("u1", DAY, "r1", ActivityType.COMMIT, count=3)
    ]


def test_buckets_split_on_utc_day() -> None:
    """Commits either side of UTC midnight land on different days."""
    late = dt.datetime(2024, 1, 7, 23, 30, tzinfo=dt.timezone(dt.timedelta(hours=-2)))
    bundle = SilverBundle(commits=(_commit("a"), _commit("b", created_at=late)))

    counters = ActivityAggregator().fold(bundle)

    assert [(c.day, c.count) for c in counters] == [
        (DAY, 1),
        (dt.date(2024, 1, 8), 1),
    ]


def test_comment_parent_type_selects_activity_type() -> None:
    """Issue-parent comments count as issue_comment, PR-parent as pr_comment."""
    bundle = SilverBundle(
        comments=(
            Comment(
                comment_id="1",
                parent_type=ParentType.ISSUE,
                repo_id="r1",
                author_user_id="u1",
                created_at=NOON,
            ),
            Comment(
                comment_id="1",
                parent_type=ParentType.PR,
                repo_id="r1",
                author_user_id="u1",
                created_at=NOON,
            ),
        )
    )

    types = {c.activity_type for c in ActivityAggregator().fold(bundle)}

    assert types == {ActivityType.ISSUE_COMMENT, ActivityType.PR_COMMENT}


def test_end_to_end_bundle_yields_one_counter_per_type() -> None:
    """A complete small bundle produces five single-count activities."""
    bundle = SilverBundle(
        users=(User(user_id="u1", login="octocat"),),
        repos=(Repository(repo_id="r1", full_name="octo/reef"),),
        issues=(
            Issue(issue_id="i1", repo_id="r1", author_user_id="u1", created_at=NOON),
        ),
        prs=(
            PullRequest(
                pr_id="p1",
                repo_id="r1",
                author_user_id="u1",
                created_at=NOON,
                merged_at=NOON,
                commits=("c1",),
            ),
        ),
        comments=(
            Comment(
                comment_id="m1",
                parent_type=ParentType.ISSUE,
                parent_id="i1",
                repo_id="r1",
                author_user_id="u1",
                created_at=NOON,
            ),
            Comment(
                comment_id="m2",
                parent_type=ParentType.PR,
                parent_id="p1",
                repo_id="r1",
                author_user_id="u1",
                created_at=NOON,
            ),
        ),
        commits=(_commit("c1", parent_pr_id="p1"),),
    )

    curated = ActivityAggregator().to_curated(bundle)

    assert len(curated.profiles) == 1
    assert len(curated.repositories) == 1
    assert len(curated.activities) == 5
    assert {a.activity_type for a in curated.activities} == set(ActivityType)
    assert all(a.count == 1 for a in curated.activities)
    assert curated.counts() == {"profiles": 1, "repositories": 1, "activities": 5}


def test_empty_and_incomplete_bundles_fold_to_nothing() -> None:
    """Entities missing author, repository or timestamp are skipped."""
    bundle = SilverBundle(
        issues=(Issue(issue_id="i1"),),
        prs=(PullRequest(pr_id="p1", repo_id="r1", created_at=NOON),),
        commits=(_commit("c1", created_at=None), _commit("c2", repo_id=None)),
    )

    aggregator = ActivityAggregator()

    assert aggregator.fold(bundle) == []
    assert aggregator.to_curated(SilverBundle()).counts() == {
        "profiles": 0,
        "repositories": 0,
        "activities": 0,
    }


def test_counters_are_unique_and_sorted_by_key() -> None:
    """No persistence key appears twice and output order is stable."""
    bundle = SilverBundle(
        issues=(
            Issue(issue_id="i2", repo_id="r2", author_user_id="u2", created_at=NOON),
            Issue(issue_id="i1", repo_id="r1", author_user_id="u1", created_at=NOON),
        ),
        commits=(_commit("a"), _commit("b")),
    )

    counters = ActivityAggregator().fold(bundle)
    keys = [c.key for c in counters]

    assert len(keys) == len(set(keys))
    assert keys == sorted(keys)
