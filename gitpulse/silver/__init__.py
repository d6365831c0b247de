"""Silver layer: canonical entities normalised from Bronze raw rows."""

from __future__ import annotations

from .errors import PayloadDecodeError, PayloadDecodeReason
from .loaders import (
    CommentLoader,
    CommitLoader,
    IssueLoader,
    LoadWindow,
    PullRequestLoader,
    RepositoryLoader,
    UserLoader,
)
from .models import (
    Comment,
    Commit,
    Issue,
    IssueState,
    ParentType,
    PullRequest,
    Repository,
    SilverBundle,
    User,
    Visibility,
)
from .orchestrator import SilverOrchestrator

__all__ = [
    "Comment",
    "CommentLoader",
    "Commit",
    "CommitLoader",
    "Issue",
    "IssueLoader",
    "IssueState",
    "LoadWindow",
    "ParentType",
    "PayloadDecodeError",
    "PayloadDecodeReason",
    "PullRequest",
    "PullRequestLoader",
    "Repository",
    "RepositoryLoader",
    "SilverBundle",
    "SilverOrchestrator",
    "User",
    "UserLoader",
    "Visibility",
]
