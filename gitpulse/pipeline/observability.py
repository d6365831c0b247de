"""Structured lifecycle events for pipeline runs and account removals."""

from __future__ import annotations

import enum
import typing as typ

from gitpulse.github.observability import categorize_error
from gitpulse.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    import datetime as dt

    from .service import PipelineResult, RemovalResult

logger = get_logger(__name__)


class PipelineEventType(enum.StrEnum):
    """Structured log event types for the pipeline entry points."""

    RUN_STARTED = "pipeline.run.started"
    RUN_COMPLETED = "pipeline.run.completed"
    REMOVAL_COMPLETED = "pipeline.removal.completed"
    REMOVAL_FAILED = "pipeline.removal.failed"


class PipelineEventLogger:
    """Emit pipeline events as ``[event.type] key=value`` log lines."""

    def log_run_started(self, mode: str, accounts: typ.Collection[str]) -> None:
        """Log the start of a run."""
        log_info(
            logger,
            "[%s] mode=%s accounts=%d",
            PipelineEventType.RUN_STARTED,
            mode,
            len(accounts),
        )

    def log_run_completed(
        self, result: PipelineResult, duration: dt.timedelta
    ) -> None:
        """Log a completed run with its headline counters."""
        log_info(
            logger,
            "[%s] mode=%s duration_seconds=%.3f accounts=%d excluded=%d "
            "repositories=%d activities=%d",
            PipelineEventType.RUN_COMPLETED,
            result.mode,
            duration.total_seconds(),
            len(result.accounts),
            len(result.excluded_accounts),
            len(result.repositories),
            result.curated_counts.get("activities", 0),
        )

    def log_removal_completed(self, result: RemovalResult) -> None:
        """Log the outcome of a removal request."""
        log_info(
            logger,
            "[%s] removed=%d not_found=%d failed=%d",
            PipelineEventType.REMOVAL_COMPLETED,
            len(result.removed),
            len(result.not_found),
            len(result.failed),
        )

    def log_removal_failed(self, login: str, error: BaseException) -> None:
        """Log one account whose removal failed."""
        log_error(
            logger,
            "[%s] login=%s error_type=%s error_category=%s error_message=%s",
            PipelineEventType.REMOVAL_FAILED,
            login,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )
