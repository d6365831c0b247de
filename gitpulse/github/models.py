"""Value types shared by discovery and ingestion."""

from __future__ import annotations

import dataclasses
import typing as typ

from gitpulse.common.slug import repo_slug

if typ.TYPE_CHECKING:
    import datetime as dt

type JSONObject = dict[str, typ.Any]


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class RepoRef:
    """A repository addressed by owner and name."""

    owner: str
    name: str

    @property
    def slug(self) -> str:
        """Return the ``owner/name`` slug."""
        return repo_slug(self.owner, self.name)


@dataclasses.dataclass(frozen=True, slots=True)
class RepoTarget:
    """A repository scheduled for one ingestion pass.

    ``accounts`` are the tracked logins that touched the repository and
    ``since`` is the earliest of their watermarks.
    """

    ref: RepoRef
    accounts: frozenset[str]
    since: dt.datetime
