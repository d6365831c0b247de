"""Observability primitives for GitHub ingestion health.

Provides structured logging and error categorisation for discovery and
ingestion. Events are emitted as ``[event.type] key=value`` log lines suitable
for parsing by log aggregators.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from gitpulse.logging import get_logger, log_error, log_info, log_warning
from gitpulse.silver.errors import PayloadDecodeError

from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubErrorKind,
    GitHubResponseShapeError,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from .ingestion import IngestionResult, RepoIngestionStats

logger = get_logger(__name__)


class IngestionEventType(enum.StrEnum):
    """Structured log event types for ingestion observability."""

    RUN_STARTED = "ingestion.run.started"
    RUN_COMPLETED = "ingestion.run.completed"
    ACCOUNT_EXCLUDED = "ingestion.account.excluded"
    DISCOVERY_FAILED = "ingestion.discovery.failed"
    REPO_SKIPPED = "ingestion.repo.skipped"
    REPO_COMPLETED = "ingestion.repo.completed"
    REPO_FAILED = "ingestion.repo.failed"
    PHASE_FAILED = "ingestion.phase.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_API_KIND_CATEGORY: dict[GitHubErrorKind, ErrorCategory] = {
    GitHubErrorKind.TRANSIENT: ErrorCategory.TRANSIENT,
    GitHubErrorKind.RATE_LIMITED: ErrorCategory.RATE_LIMITED,
    GitHubErrorKind.UNAUTHORIZED: ErrorCategory.CONFIGURATION,
}

_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (PayloadDecodeError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
    (TimeoutError, ErrorCategory.TRANSIENT),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorise an exception for alert routing."""
    if isinstance(exc, GitHubAPIError):
        return _API_KIND_CATEGORY.get(exc.kind, ErrorCategory.CLIENT_ERROR)

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class IngestionEventLogger:
    """Emit structured ingestion events via femtologging.

    Success is logged at INFO, skipped units at WARNING and failures at
    ERROR together with their :class:`ErrorCategory`.
    """

    def log_run_started(
        self, accounts: typ.Collection[str], started_at: dt.datetime
    ) -> None:
        """Log the start of an ingestion pass."""
        log_info(
            logger,
            "[%s] accounts=%d started_at=%s",
            IngestionEventType.RUN_STARTED,
            len(accounts),
            started_at.isoformat(),
        )

    def log_run_completed(
        self, result: IngestionResult, duration: dt.timedelta
    ) -> None:
        """Log a completed ingestion pass with its counters."""
        log_info(
            logger,
            "[%s] duration_seconds=%.3f repos_processed=%d repos_failed=%d "
            "events_written=%d events_existing=%d excluded_accounts=%d",
            IngestionEventType.RUN_COMPLETED,
            duration.total_seconds(),
            len(result.repositories),
            len(result.failed_repositories),
            result.events_written,
            result.events_existing,
            len(result.excluded_accounts),
        )

    def log_account_excluded(self, login: str, error: BaseException) -> None:
        """Log an account dropped because its profile could not be fetched."""
        log_warning(
            logger,
            "[%s] login=%s error_category=%s error_message=%s",
            IngestionEventType.ACCOUNT_EXCLUDED,
            login,
            categorize_error(error),
            str(error),
        )

    def log_discovery_failed(
        self, login: str, search: str, error: BaseException
    ) -> None:
        """Log a discovery search that failed for one account."""
        log_warning(
            logger,
            "[%s] login=%s search=%s error_category=%s error_message=%s",
            IngestionEventType.DISCOVERY_FAILED,
            login,
            search,
            categorize_error(error),
            str(error),
        )

    def log_repo_skipped(self, repo_slug: str, error: BaseException) -> None:
        """Log a repository excluded after its metadata fetch failed."""
        log_warning(
            logger,
            "[%s] repo_slug=%s error_category=%s error_message=%s",
            IngestionEventType.REPO_SKIPPED,
            repo_slug,
            categorize_error(error),
            str(error),
        )

    def log_repo_completed(
        self, repo_slug: str, stats: RepoIngestionStats, duration: dt.timedelta
    ) -> None:
        """Log per-repository ingestion counters."""
        log_info(
            logger,
            "[%s] repo_slug=%s duration_seconds=%.3f issues=%d pull_requests=%d "
            "issue_comments=%d review_comments=%d commits=%d",
            IngestionEventType.REPO_COMPLETED,
            repo_slug,
            duration.total_seconds(),
            stats.issues,
            stats.pull_requests,
            stats.issue_comments,
            stats.review_comments,
            stats.commits,
        )

    def log_repo_failed(
        self, repo_slug: str, error: BaseException, duration: dt.timedelta
    ) -> None:
        """Log a repository whose ingestion aborted."""
        log_error(
            logger,
            "[%s] repo_slug=%s duration_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            IngestionEventType.REPO_FAILED,
            repo_slug,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_phase_failed(
        self, repo_slug: str, phase: str, error: BaseException
    ) -> None:
        """Log one fetch phase that failed while the repository continued."""
        log_warning(
            logger,
            "[%s] repo_slug=%s phase=%s error_type=%s error_category=%s "
            "error_message=%s",
            IngestionEventType.PHASE_FAILED,
            repo_slug,
            phase,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )
