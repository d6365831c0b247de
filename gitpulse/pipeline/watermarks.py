"""Per-account ``since`` watermarks."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_RESYNC_OVERLAP = dt.timedelta(days=1)


class SyncMode(enum.StrEnum):
    """Whether a run fetched new accounts, known accounts, or both."""

    INITIAL = "initial"
    INCREMENTAL = "incremental"
    MIXED = "mixed"


@dc.dataclass(frozen=True, slots=True)
class WatermarkPolicy:
    """Choose how far back each account's fetch reaches.

    Accounts absent from curated storage get ``initial_lookback``. Known
    accounts get ``resync_lookback``, widened to one day before their last
    successful sync when that is older, and never beyond ``initial_lookback``.
    """

    initial_lookback: dt.timedelta = dt.timedelta(days=180)
    resync_lookback: dt.timedelta = dt.timedelta(hours=48)

    def resolve(
        self,
        logins: cabc.Iterable[str],
        *,
        known: cabc.Container[str],
        last_synced: cabc.Mapping[str, dt.datetime],
        now: dt.datetime,
    ) -> dict[str, dt.datetime]:
        """Return ``login -> since`` for every login."""
        floor = now - self.initial_lookback
        windows: dict[str, dt.datetime] = {}
        for login in logins:
            if login not in known:
                windows[login] = floor
                continue
            since = now - self.resync_lookback
            synced = last_synced.get(login)
            if synced is not None:
                since = min(since, synced - _RESYNC_OVERLAP)
            windows[login] = max(since, floor)
        return windows

    @staticmethod
    def mode(logins: cabc.Collection[str], known: cabc.Container[str]) -> SyncMode:
        """Classify a run by how many of its accounts are already known."""
        known_count = sum(1 for login in logins if login in known)
        if known_count == 0:
            return SyncMode.INITIAL
        if known_count == len(logins):
            return SyncMode.INCREMENTAL
        return SyncMode.MIXED
