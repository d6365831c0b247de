"""Rate-limit-aware retry around GitHub API calls.

:class:`RateLimitedClient` runs an operation up to ``max_attempts`` times.
Rate-limited responses wait for the full server-provided reset hint when
one is present, however far away. Transient server errors back off
exponentially up to a ceiling and, once attempts are exhausted, degrade to an
operation-specific empty result so one flaky page does not abort a whole
ingestion pass. Every other failure is logged and propagated immediately.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from gitpulse.common.time import utcnow
from gitpulse.logging import get_logger, log_error, log_warning

from .errors import GitHubAPIError, GitHubErrorKind

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and delay bounds in seconds."""

    max_attempts: int = 5
    base_delay: float = 2.0
    max_delay: float = 60.0

    def backoff(self, attempt: int) -> float:
        """Return the exponential delay after the given 1-based attempt."""
        return min(self.max_delay, self.base_delay * 2 ** (attempt - 1))


class RateLimitedClient:
    """Retry GitHub operations according to a :class:`RetryPolicy`.

    ``sleep`` and ``clock`` are injectable so callers can observe delays
    without waiting on them.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Store the retry policy and timing collaborators."""
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock

    @property
    def policy(self) -> RetryPolicy:
        """Return the active retry policy."""
        return self._policy

    async def call[T](
        self,
        operation: cabc.Callable[[], cabc.Awaitable[T]],
        *,
        description: str,
        empty_result: cabc.Callable[[], T] | None = None,
    ) -> T:
        """Run ``operation`` with retries and return its result.

        Parameters
        ----------
        operation
            Zero-argument coroutine factory; invoked once per attempt.
        description
            Human-readable name of the call used in log messages.
        empty_result
            Factory for the value returned when transient server errors
            exhaust the attempt budget. When ``None`` the final error is
            raised instead.

        Raises
        ------
        GitHubAPIError
            For non-retryable failures, for rate limits that outlast the
            attempt budget, and for exhausted transient failures without an
            ``empty_result``.

        """
        attempt = 1
        while True:
            try:
                return await operation()
            except GitHubAPIError as exc:
                if not exc.retryable:
                    log_warning(
                        logger,
                        "%s failed without retry (kind=%s status=%s): %s",
                        description,
                        exc.kind,
                        exc.status_code,
                        exc,
                    )
                    raise
                if attempt >= self._policy.max_attempts:
                    return self._exhausted(exc, description, empty_result)
                delay = self.delay_for(exc, attempt)
                log_warning(
                    logger,
                    "%s attempt %d/%d hit %s; retrying in %.1fs",
                    description,
                    attempt,
                    self._policy.max_attempts,
                    exc.kind,
                    delay,
                )
                await self._sleep(delay)
                attempt += 1

    def delay_for(self, exc: GitHubAPIError, attempt: int) -> float:
        """Return the wait before the attempt following ``attempt``."""
        if exc.kind is GitHubErrorKind.RATE_LIMITED:
            hinted = self._reset_wait(exc)
            if hinted is not None:
                return hinted
        return self._policy.backoff(attempt)

    def _reset_wait(self, exc: GitHubAPIError) -> float | None:
        if exc.reset_at is not None:
            return max(0.0, (exc.reset_at - self._clock()).total_seconds())
        if exc.retry_after is not None:
            return max(0.0, exc.retry_after)
        return None

    def _exhausted[T](
        self,
        exc: GitHubAPIError,
        description: str,
        empty_result: cabc.Callable[[], T] | None,
    ) -> T:
        if exc.kind is GitHubErrorKind.TRANSIENT and empty_result is not None:
            log_error(
                logger,
                "%s still failing after %d attempts; treating as empty: %s",
                description,
                self._policy.max_attempts,
                exc,
            )
            return empty_result()
        log_error(
            logger,
            "%s gave up after %d attempts: %s",
            description,
            self._policy.max_attempts,
            exc,
        )
        raise exc
