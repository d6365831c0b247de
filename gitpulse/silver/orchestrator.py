"""Assemble a deduplicated Silver bundle from the Bronze mirror."""

from __future__ import annotations

import datetime as dt
import typing as typ

from gitpulse.common.time import utcnow
from gitpulse.logging import get_logger, log_error, log_info

from .loaders import (
    CommentLoader,
    CommitLoader,
    IssueLoader,
    LoadWindow,
    PullRequestLoader,
    RepositoryLoader,
    UserLoader,
)
from .models import SilverBundle

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from gitpulse.bronze.services import RawEventStore

logger = get_logger(__name__)

DEFAULT_LOOKBACK = dt.timedelta(days=180)


def _run_isolated(
    name: str,
    load: cabc.Callable[[LoadWindow], cabc.Sequence[typ.Any]],
    window: LoadWindow,
) -> tuple[typ.Any, ...]:
    """Run one loader; a failure is logged and yields no entities."""
    try:
        return tuple(load(window))
    except Exception as exc:  # noqa: BLE001 - one loader must not sink the bundle
        log_error(
            logger,
            "Silver loader %s failed (%s): %s",
            name,
            type(exc).__name__,
            exc,
            exc_info=exc,
        )
        return ()


class SilverOrchestrator:
    """Run the six entity loaders and join their results.

    Loaders are read-only and independent, so each runs in isolation: a
    failing loader contributes an empty tuple and its siblings are
    unaffected. They read the in-process mirror without I/O and therefore
    run one after another on the caller's thread.
    """

    def __init__(
        self,
        store: RawEventStore,
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        default_lookback: dt.timedelta = DEFAULT_LOOKBACK,
    ) -> None:
        """Bind the loaders to ``store``."""
        self._clock = clock
        self._default_lookback = default_lookback
        self._loaders: dict[str, cabc.Callable[[LoadWindow], typ.Any]] = {
            "users": UserLoader(store).load,
            "repos": RepositoryLoader(store).load,
            "issues": IssueLoader(store).load,
            "prs": PullRequestLoader(store).load,
            "comments": CommentLoader(store).load,
            "commits": CommitLoader(store).load,
        }

    def build_bundle(
        self,
        *,
        since: dt.datetime | None = None,
        until: dt.datetime | None = None,
        limit: int | None = None,
    ) -> SilverBundle:
        """Return canonical entities created in ``[since, until)``.

        Parameters
        ----------
        since
            Lower bound; defaults to the default lookback before now.
        until
            Exclusive upper bound; defaults to now.
        limit
            Optional cap on the number of entities per kind.

        Returns
        -------
        SilverBundle
            One deduplicated entity per logical id and kind.

        """
        now = self._clock()
        window = LoadWindow(
            since=since if since is not None else now - self._default_lookback,
            until=until if until is not None else now,
            limit=limit,
        )
        bundle = SilverBundle(
            **{
                name: _run_isolated(name, load, window)
                for name, load in self._loaders.items()
            }
        )
        log_info(
            logger,
            "Built silver bundle for %s..%s: %s",
            window.since.isoformat(),
            window.until.isoformat() if window.until else "now",
            bundle.counts(),
        )
        return bundle
