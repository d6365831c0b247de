"""Unit tests for the Bronze-to-Silver mapping and merge functions."""

from __future__ import annotations

import datetime as dt

import pytest

from gitpulse.bronze.models import RawItem, RawItemKind, RawRepo, RawUser
from gitpulse.silver import (
    Comment,
    Issue,
    IssueState,
    ParentType,
    PayloadDecodeError,
    PullRequest,
    Visibility,
)
from gitpulse.silver.mappers import (
    fold_by_id,
    is_merged_pull_request,
    map_comment,
    map_commit,
    map_issue,
    map_pull_request,
    map_repository,
    map_user,
    merge_comment,
    merge_issue,
    merge_pull_request,
)
from tests.unit.github_fakes import (
    T0,
    account,
    commit_payload,
    issue_comment_payload,
    issue_payload,
    pull_listing_payload,
    repo_payload,
    review_comment_payload,
    user_payload,
)

T1 = T0 + dt.timedelta(hours=2)
OCTOCAT = account("octocat", 1)


def _raw(
    kind: RawItemKind,
    native_id: str,
    payload: dict[str, object],
    *,
    parent_id: str | None = None,
    created_at: dt.datetime | None = T0,
) -> RawItem:
    return RawItem(
        id=f"{kind}:{native_id}",
        kind=kind,
        received_at=T1,
        payload=payload,
        actor_id="1",
        repo_id="10",
        parent_id=parent_id,
        created_at=created_at,
    )


class TestIssueMapping:
    """Tests for issues and their merge rule."""

    def test_map_issue_reads_typed_payload(self) -> None:
        """Issue fields come from the decoded payload."""
        payload = {
            **issue_payload(100, 1, OCTOCAT, T0, title="Bug"),
            "state": "closed",
            "closed_at": "2024-07-02T00:00:00Z",
            "assignee": account("hubot", 2),
        }

        issue = map_issue(_raw(RawItemKind.ISSUE, "100", payload))

        assert issue == Issue(
            issue_id="100",
            repo_id="10",
            author_user_id="1",
            assigned_user_id="2",
            state=IssueState.CLOSED,
            created_at=T0,
            closed_at=dt.datetime(2024, 7, 2, tzinfo=dt.UTC),
            updated_at=T0,
            title="Bug",
            body=None,
        )

    def test_map_issue_ignores_other_kinds(self) -> None:
        """Mappers return None for rows of another kind."""
        row = _raw(RawItemKind.COMMIT, "abc", commit_payload("abc", OCTOCAT, T0))
        assert map_issue(row) is None

    def test_map_issue_rejects_wrongly_typed_fields(self) -> None:
        """A field of the wrong type is a decode error, not a silent None."""
        row = _raw(RawItemKind.ISSUE, "100", {"id": 100, "title": ["not", "text"]})
        with pytest.raises(PayloadDecodeError):
            map_issue(row)

    def test_merge_never_regresses_text_to_none(self) -> None:
        """A newer snapshot with a null body keeps the older body."""
        older = Issue(issue_id="1", body="details", updated_at=T0)
        newer = Issue(
            issue_id="1", body=None, state=IssueState.CLOSED, updated_at=T1
        )

        merged = merge_issue(older, newer)

        assert merged.body == "details"
        assert merged.state is IssueState.CLOSED

    def test_merge_prefers_fresher_snapshot_regardless_of_order(self) -> None:
        """The later updated_at wins even when it arrives first."""
        older = Issue(issue_id="1", title="old", updated_at=T0)
        newer = Issue(issue_id="1", title="new", updated_at=T1)

        assert merge_issue(newer, older).title == "new"
        assert merge_issue(older, newer).title == "new"

    def test_fold_by_id_keeps_first_seen_order(self) -> None:
        """Folding collapses duplicates without reordering keys."""
        issues = [
            Issue(issue_id="2", updated_at=T0),
            Issue(issue_id="1", updated_at=T0),
            Issue(issue_id="2", title="later", updated_at=T1),
        ]

        folded = fold_by_id(issues, lambda i: i.issue_id, merge_issue)

        assert [(i.issue_id, i.title) for i in folded] == [("2", "later"), ("1", None)]


class TestPullRequestMapping:
    """Tests for pull requests and merge detection."""

    def test_merged_at_comes_from_listing_marker(self) -> None:
        """The issue-listing pull_request marker carries merged_at."""
        payload = pull_listing_payload(200, 2, OCTOCAT, T0, merged_at=T1)
        row = _raw(RawItemKind.PULL_REQUEST, "200", payload)

        pr = map_pull_request(row)

        assert pr is not None
        assert pr.merged_at == T1
        assert is_merged_pull_request(row)

    def test_top_level_merged_at_wins(self) -> None:
        """A merged_at copied from the pulls API is honoured."""
        payload = {
            **pull_listing_payload(200, 2, OCTOCAT, T0, include_merge_field=False),
            "merged_at": "2024-07-03T00:00:00Z",
        }
        row = _raw(RawItemKind.PULL_REQUEST, "200", payload)

        assert is_merged_pull_request(row)

    def test_open_pull_request_is_not_merged(self) -> None:
        """A null merged_at means not merged."""
        row = _raw(
            RawItemKind.PULL_REQUEST, "200", pull_listing_payload(200, 2, OCTOCAT, T0)
        )
        assert not is_merged_pull_request(row)
        assert not is_merged_pull_request(
            _raw(RawItemKind.ISSUE, "1", issue_payload(1, 1, OCTOCAT, T0))
        )

    def test_snapshot_with_commits_wins(self) -> None:
        """Attached commits outrank a fresher snapshot without them."""
        with_commits = PullRequest(pr_id="1", commits=("abc",), updated_at=T0)
        fresher = PullRequest(pr_id="1", title="renamed", updated_at=T1)

        merged = merge_pull_request(with_commits, fresher)

        assert merged.commits == ("abc",)
        assert merged.title == "renamed", "null fields still fill from the loser"


class TestCommentMapping:
    """Tests for the two comment feeds."""

    def test_feed_decides_parent_type(self) -> None:
        """Issue-comment rows map to Issue parents, review rows to PR parents."""
        issue_row = _raw(
            RawItemKind.ISSUE_COMMENT,
            "300",
            issue_comment_payload(300, OCTOCAT, T0, number=1),
            parent_id="100",
        )
        review_row = _raw(
            RawItemKind.PR_REVIEW_COMMENT,
            "400",
            review_comment_payload(400, OCTOCAT, T0, number=2),
            parent_id="200",
        )

        issue_comment = map_comment(issue_row)
        review_comment = map_comment(review_row)

        assert issue_comment is not None
        assert review_comment is not None
        assert issue_comment.parent_type is ParentType.ISSUE
        assert issue_comment.parent_id == "100"
        assert review_comment.parent_type is ParentType.PR
        assert review_comment.parent_id == "200"

    def test_merge_keeps_resolved_parent(self) -> None:
        """A later snapshot without a parent keeps the resolved one."""
        resolved = Comment(
            comment_id="1", parent_type=ParentType.ISSUE, parent_id="100", created_at=T0
        )
        orphan = Comment(comment_id="1", parent_type=ParentType.ISSUE, created_at=T1)

        assert merge_comment(resolved, orphan).parent_id == "100"


class TestCommitAndProfileMapping:
    """Tests for commits, users and repositories."""

    def test_map_commit_uses_sha_and_parent_pr(self) -> None:
        """Commit ids are SHAs and PR links come from the raw parent."""
        row = _raw(
            RawItemKind.COMMIT,
            "abc",
            commit_payload("abc", OCTOCAT, T0),
            parent_id="200",
            created_at=None,
        )

        commit = map_commit(row)

        assert commit is not None
        assert commit.commit_id == "abc"
        assert commit.parent_pr_id == "200"
        assert commit.created_at == T0, "falls back to the committer date"

    def test_map_user_copies_profile(self) -> None:
        """User profiles keep GitHub's descriptive fields."""
        raw = RawUser(
            user_id="1",
            login="octocat",
            payload=user_payload("octocat", 1, company="GitHub", followers=5),
            fetched_at=T1,
        )

        user = map_user(raw)

        assert user is not None
        assert (user.login, user.company, user.followers) == ("octocat", "GitHub", 5)
        assert user.gh_created_at == dt.datetime(2020, 1, 1, tzinfo=dt.UTC)

    def test_map_repository_marks_private(self) -> None:
        """Visibility follows the private flag."""
        raw = RawRepo(
            repo_id="10",
            full_name="octo/reef",
            payload=repo_payload("octo", "reef", 10, private=True),
            is_private=True,
        )

        repo = map_repository(raw)

        assert repo is not None
        assert repo.visibility is Visibility.PRIVATE
        assert repo.owner_user_id == "100"
        assert repo.last_activity == T0
