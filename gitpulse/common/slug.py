"""Repository slug utilities.

Repository slugs are GitHub identifiers in ``owner/name`` format. They are not
filesystem paths, even though they use ``/`` as a separator, so they are parsed
with these helpers rather than ``pathlib``. The URL helpers recover slugs from
the ``repository_url`` and ``html_url`` fields of search results.
"""

from __future__ import annotations

import re

_HTML_URL_RE = re.compile(r"^https://github\.com/([^/]+)/([^/]+)")


def repo_slug(owner: str, name: str) -> str:
    """Build a repository slug from owner and name.

    Examples
    --------
    >>> repo_slug("octo", "reef")
    'octo/reef'

    """
    return f"{owner}/{name}"


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Parse a repository slug into ``(owner, name)``.

    Raises
    ------
    ValueError
        If the slug is not in ``owner/name`` format.

    Examples
    --------
    >>> parse_repo_slug("octo/reef")
    ('octo', 'reef')

    """
    owner, sep, name = slug.partition("/")
    if not sep or not owner or not name or "/" in name:
        msg = f"Invalid repository slug: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)
    return owner, name


def slug_from_api_url(url: str | None) -> tuple[str, str] | None:
    """Return ``(owner, name)`` from the last two segments of an API URL.

    >>> slug_from_api_url("https://api.github.com/repos/octo/reef")
    ('octo', 'reef')

    """
    if not url:
        return None
    segments = [segment for segment in url.rstrip("/").split("/") if segment]
    if len(segments) < 2:  # noqa: PLR2004 - owner and name
        return None
    return segments[-2], segments[-1]


def slug_from_html_url(url: str | None) -> tuple[str, str] | None:
    """Return ``(owner, name)`` from a ``https://github.com/...`` URL."""
    if not url:
        return None
    match = _HTML_URL_RE.match(url)
    if match is None:
        return None
    return match.group(1), match.group(2)
