"""femtologging helpers shared by the gitpulse services.

Every module obtains a logger through :func:`get_logger` and emits
pre-formatted messages through the ``log_*`` helpers, so percent-style
templates are rendered once, before the record reaches femtologging.

Two kinds of line go through here. Structured lifecycle events from
``gitpulse.github.observability`` and ``gitpulse.pipeline.observability``
use ``[event.type] key=value`` templates so runs, repositories and
removals can be grepped and alerted on. Free-form lines from the retry
wrapper, Silver loaders, the activity report and the API lifespan use
plain templates. The runtime reads ``GITPULSE_LOG_LEVEL`` once at start-up
and passes it to :func:`configure_logging`.

Example:
>>> from gitpulse.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Fetched %d repositories", 3)

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger


class LogLevel(enum.StrEnum):
    """Log levels understood by femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` for a raw level string.

    Unknown or empty values fall back to ``INFO`` and set ``invalid`` so the
    caller can warn about the misconfiguration.
    """
    if not level:
        return ("INFO", True)

    candidate = level.strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return ("INFO", True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install the femtologging root handler at ``level``.

    Parameters
    ----------
    level : str
        Raw level string, typically read from ``GITPULSE_LOG_LEVEL``.
    force : bool, optional
        Replace an existing handler configuration.

    Returns
    -------
    tuple[str, bool]
        The level actually applied and whether the input was invalid.

    """
    applied, invalid = normalize_log_level(level)
    basicConfig(level=applied, force=force)
    return (applied, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Render ``template`` with percent-style ``args``."""
    return template % args if args else template


class _SupportsLog(typ.Protocol):
    """Structural type of a femtologging logger."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def _emit(
    logger: _SupportsLog,
    level: str,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    logger.log(
        level,
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_debug(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a DEBUG message, such as per-bundle aggregation detail."""
    _emit(logger, "DEBUG", template, args, exc_info)


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an INFO message: run, repository and report milestones."""
    _emit(logger, "INFO", template, args, exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message for a skipped unit that does not abort the run.

    Excluded accounts, failed discovery searches, unresolved comment parents
    and retries that degraded to an empty result all land here.
    """
    _emit(logger, "WARNING", template, args, exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message for a failed repository, phase or loader.

    Pass the exception as ``exc_info`` so the traceback travels with the
    structured line.
    """
    _emit(logger, "ERROR", template, args, exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log ``message`` at ERROR with ``exc`` attached as exc_info.

    Parameters
    ----------
    logger : _SupportsLog
        Logger receiving the record.
    message : str
        Pre-formatted description of the failure.
    exc : BaseException
        The exception to attach.

    """
    logger.log("ERROR", message, exc_info=exc, stack_info=False)


__all__ = [
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
