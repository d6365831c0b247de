"""GitHub API errors and their retry classification."""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ

if typ.TYPE_CHECKING:
    import httpx

_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_HTTP_UNPROCESSABLE = 422
_HTTP_TOO_MANY_REQUESTS = 429
_HTTP_SERVER_ERROR_THRESHOLD = 500


class GitHubErrorKind(enum.StrEnum):
    """Retry classification for GitHub failures."""

    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    CLIENT = "client"

    @property
    def retryable(self) -> bool:
        """Return True for kinds the rate-limited caller retries."""
        return self in {GitHubErrorKind.RATE_LIMITED, GitHubErrorKind.TRANSIENT}


def _classify(
    status_code: int | None, message: str, *, exhausted: bool
) -> GitHubErrorKind:
    if status_code is None or status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
        return GitHubErrorKind.TRANSIENT
    if status_code == _HTTP_TOO_MANY_REQUESTS:
        return GitHubErrorKind.RATE_LIMITED
    rate_limit_message = "rate limit" in message.lower()
    if status_code == _HTTP_FORBIDDEN and (exhausted or rate_limit_message):
        return GitHubErrorKind.RATE_LIMITED
    if status_code in {_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN}:
        return GitHubErrorKind.UNAUTHORIZED
    if status_code == _HTTP_NOT_FOUND:
        return GitHubErrorKind.NOT_FOUND
    if status_code == _HTTP_UNPROCESSABLE:
        return GitHubErrorKind.VALIDATION
    return GitHubErrorKind.CLIENT


def _header_int(response: httpx.Response, name: str) -> int | None:
    raw = response.headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _response_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return ""


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an error response or cannot be reached.

    ``reset_at`` carries the ``x-ratelimit-reset`` hint and ``retry_after`` the
    ``retry-after`` hint in seconds; either may be ``None``.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: GitHubErrorKind,
        status_code: int | None = None,
        reset_at: dt.datetime | None = None,
        retry_after: float | None = None,
    ) -> None:
        """Initialise with a message, classification and optional hints."""
        self.kind = kind
        self.status_code = status_code
        self.reset_at = reset_at
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Return True when the rate-limited caller should retry."""
        return self.kind.retryable

    @classmethod
    def http_error(cls, status_code: int, message: str = "") -> GitHubAPIError:
        """Return an error for a non-2xx status without header hints."""
        detail = f": {message}" if message else ""
        return cls(
            f"GitHub REST HTTP {status_code}{detail}",
            kind=_classify(status_code, message, exhausted=False),
            status_code=status_code,
        )

    @classmethod
    def from_response(cls, response: httpx.Response) -> GitHubAPIError:
        """Build an error from a non-2xx response, capturing rate-limit hints."""
        message = _response_message(response)
        remaining = _header_int(response, "x-ratelimit-remaining")
        reset_epoch = _header_int(response, "x-ratelimit-reset")
        retry_after = _header_int(response, "retry-after")
        kind = _classify(response.status_code, message, exhausted=remaining == 0)
        is_server_error = response.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        if retry_after is not None and not is_server_error:
            kind = GitHubErrorKind.RATE_LIMITED
        detail = f": {message}" if message else ""
        return cls(
            f"GitHub REST HTTP {response.status_code}{detail}",
            kind=kind,
            status_code=response.status_code,
            reset_at=(
                dt.datetime.fromtimestamp(reset_epoch, tz=dt.UTC)
                if reset_epoch is not None and kind is GitHubErrorKind.RATE_LIMITED
                else None
            ),
            retry_after=float(retry_after) if retry_after is not None else None,
        )

    @classmethod
    def transport_error(cls, exc: Exception) -> GitHubAPIError:
        """Return a transient error for network-level failures."""
        return cls(
            f"GitHub REST transport error: {type(exc).__name__}: {exc}",
            kind=GitHubErrorKind.TRANSIENT,
        )


class GitHubResponseShapeError(RuntimeError):
    """Raised when GitHub responses are missing expected fields."""

    @classmethod
    def missing(cls, field: str) -> GitHubResponseShapeError:
        """Return an error for a missing response field."""
        return cls(f"GitHub REST response missing expected field: {field}")

    @classmethod
    def not_a_list(cls, path: str) -> GitHubResponseShapeError:
        """Return an error when a list endpoint returns something else."""
        return cls(f"GitHub REST response for {path} is not a list")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls("GITPULSE_GITHUB_TOKEN is required for GitHub API")

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")

    @classmethod
    def invalid_timeout(cls, value: str) -> GitHubConfigError:
        """Return an error for an unparsable request timeout."""
        return cls(
            f"GITPULSE_GITHUB_TIMEOUT_S must be a positive number, got {value!r}"
        )
