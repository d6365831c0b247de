"""GitHub REST client used by discovery and ingestion."""

from __future__ import annotations

import dataclasses
import os
import typing as typ

import httpx

from gitpulse.common.time import to_iso

from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import JSONObject

_HTTP_ERROR_STATUS_THRESHOLD = 400
_PER_PAGE = 100
_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 20.0


class GitHubActivityClient(typ.Protocol):
    """Capabilities the ingestion pipeline needs from GitHub."""

    async def get_repo(self, owner: str, name: str) -> JSONObject:
        """Return repository metadata."""
        ...

    async def get_user(self, login: str) -> JSONObject:
        """Return a user profile by login."""
        ...

    async def list_org_repos(self, org: str) -> list[JSONObject]:
        """Return the repositories of an organisation."""
        ...

    async def list_repo_commits(
        self,
        owner: str,
        name: str,
        *,
        since: dt.datetime,
        until: dt.datetime | None = None,
        author: str | None = None,
    ) -> list[JSONObject]:
        """Return commits on the default branch in a time range."""
        ...

    async def list_issues_for_repo(
        self,
        owner: str,
        name: str,
        *,
        since: dt.datetime,
        creator: str | None = None,
    ) -> list[JSONObject]:
        """Return issues and pull requests updated since a timestamp."""
        ...

    async def get_issue(self, owner: str, name: str, number: int) -> JSONObject:
        """Return one issue (or pull request viewed as an issue)."""
        ...

    async def get_pull(self, owner: str, name: str, number: int) -> JSONObject:
        """Return one pull request."""
        ...

    async def list_issue_comments_for_repo(
        self, owner: str, name: str, *, since: dt.datetime
    ) -> list[JSONObject]:
        """Return issue comments updated since a timestamp."""
        ...

    async def list_review_comments_for_repo(
        self, owner: str, name: str, *, since: dt.datetime
    ) -> list[JSONObject]:
        """Return pull request review comments updated since a timestamp."""
        ...

    async def list_pull_commits(
        self, owner: str, name: str, number: int
    ) -> list[JSONObject]:
        """Return the commits attached to a pull request."""
        ...

    async def search_issues(self, query: str) -> list[JSONObject]:
        """Return issue and pull request search hits."""
        ...

    async def search_commits(self, query: str) -> list[JSONObject]:
        """Return commit search hits."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubClientConfig:
    """Configuration for the GitHub REST API client."""

    token: str
    api_url: str = _DEFAULT_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = "gitpulse/0.1"

    @classmethod
    def from_env(cls) -> GitHubClientConfig:
        """Build configuration from ``GITPULSE_GITHUB_*`` variables."""
        token = os.environ.get("GITPULSE_GITHUB_TOKEN", "").strip()
        if not token:
            raise GitHubConfigError.missing_token()
        api_url = os.environ.get("GITPULSE_GITHUB_API_URL", "").strip()
        timeout_raw = os.environ.get("GITPULSE_GITHUB_TIMEOUT_S", "").strip()
        timeout_s = _DEFAULT_TIMEOUT_S
        if timeout_raw:
            try:
                timeout_s = float(timeout_raw)
            except ValueError as exc:
                raise GitHubConfigError.invalid_timeout(timeout_raw) from exc
            if timeout_s <= 0:
                raise GitHubConfigError.invalid_timeout(timeout_raw)
        return cls(
            token=token,
            api_url=(api_url or _DEFAULT_API_URL).rstrip("/"),
            timeout_s=timeout_s,
        )


def _since_params(
    since: dt.datetime, until: dt.datetime | None = None
) -> dict[str, str]:
    params = {"since": to_iso(since)}
    if until is not None:
        params["until"] = to_iso(until)
    return params


class GitHubRestClient:
    """GitHub REST implementation of :class:`GitHubActivityClient`.

    List endpoints follow ``Link: rel="next"`` headers until exhausted and
    return the concatenated items.
    """

    def __init__(
        self,
        config: GitHubClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._headers = {
            "Authorization": f"Bearer {config.token}",
            "User-Agent": config.user_agent,
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def get_repo(self, owner: str, name: str) -> JSONObject:
        """Return repository metadata."""
        return await self._get_object(f"/repos/{owner}/{name}")

    async def get_user(self, login: str) -> JSONObject:
        """Return a user profile by login."""
        return await self._get_object(f"/users/{login}")

    async def list_org_repos(self, org: str) -> list[JSONObject]:
        """Return the repositories of an organisation."""
        return await self._paginate(
            f"/orgs/{org}/repos", {"type": "all", "sort": "pushed"}
        )

    async def list_repo_commits(
        self,
        owner: str,
        name: str,
        *,
        since: dt.datetime,
        until: dt.datetime | None = None,
        author: str | None = None,
    ) -> list[JSONObject]:
        """Return commits on the default branch in a time range."""
        params = _since_params(since, until)
        if author:
            params["author"] = author
        return await self._paginate(f"/repos/{owner}/{name}/commits", params)

    async def list_issues_for_repo(
        self,
        owner: str,
        name: str,
        *,
        since: dt.datetime,
        creator: str | None = None,
    ) -> list[JSONObject]:
        """Return issues and pull requests updated since a timestamp."""
        params = {"state": "all", **_since_params(since)}
        if creator:
            params["creator"] = creator
        return await self._paginate(f"/repos/{owner}/{name}/issues", params)

    async def get_issue(self, owner: str, name: str, number: int) -> JSONObject:
        """Return one issue (or pull request viewed as an issue)."""
        return await self._get_object(f"/repos/{owner}/{name}/issues/{number}")

    async def get_pull(self, owner: str, name: str, number: int) -> JSONObject:
        """Return one pull request."""
        return await self._get_object(f"/repos/{owner}/{name}/pulls/{number}")

    async def list_issue_comments_for_repo(
        self, owner: str, name: str, *, since: dt.datetime
    ) -> list[JSONObject]:
        """Return issue comments updated since a timestamp."""
        return await self._paginate(
            f"/repos/{owner}/{name}/issues/comments", _since_params(since)
        )

    async def list_review_comments_for_repo(
        self, owner: str, name: str, *, since: dt.datetime
    ) -> list[JSONObject]:
        """Return pull request review comments updated since a timestamp."""
        return await self._paginate(
            f"/repos/{owner}/{name}/pulls/comments", _since_params(since)
        )

    async def list_pull_commits(
        self, owner: str, name: str, number: int
    ) -> list[JSONObject]:
        """Return the commits attached to a pull request."""
        return await self._paginate(
            f"/repos/{owner}/{name}/pulls/{number}/commits", {}
        )

    async def search_issues(self, query: str) -> list[JSONObject]:
        """Return issue and pull request search hits."""
        return await self._paginate("/search/issues", {"q": query}, items_key="items")

    async def search_commits(self, query: str) -> list[JSONObject]:
        """Return commit search hits."""
        return await self._paginate(
            "/search/commits", {"q": query}, items_key="items"
        )

    async def _request(
        self, url: str, params: dict[str, str] | None
    ) -> httpx.Response:
        """Issue a GET and raise :class:`GitHubAPIError` on failure."""
        try:
            response = await self._client.get(
                url, params=params, headers=self._headers
            )
        except httpx.TransportError as exc:
            raise GitHubAPIError.transport_error(exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.from_response(response)
        return response

    async def _get_object(self, path: str) -> JSONObject:
        response = await self._request(f"{self._config.api_url}{path}", None)
        payload = response.json()
        if not isinstance(payload, dict):
            raise GitHubResponseShapeError.missing(path)
        return payload

    async def _paginate(
        self,
        path: str,
        params: dict[str, str],
        *,
        items_key: str | None = None,
    ) -> list[JSONObject]:
        """Collect every page of a list endpoint."""
        items: list[JSONObject] = []
        url: str | None = f"{self._config.api_url}{path}"
        page_params: dict[str, str] | None = {**params, "per_page": str(_PER_PAGE)}
        while url is not None:
            response = await self._request(url, page_params)
            items.extend(_page_items(response.json(), path, items_key))
            url = response.links.get("next", {}).get("url")
            # next links already embed the query string
            page_params = None
        return items


def _page_items(
    payload: object, path: str, items_key: str | None
) -> list[JSONObject]:
    if items_key is not None:
        if not isinstance(payload, dict):
            raise GitHubResponseShapeError.missing(items_key)
        payload = payload.get(items_key)
    if not isinstance(payload, list):
        raise GitHubResponseShapeError.not_a_list(path)
    return [item for item in payload if isinstance(item, dict)]
