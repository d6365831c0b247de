"""GitHub client, discovery and ingestion primitives."""

from __future__ import annotations

from .client import GitHubActivityClient, GitHubClientConfig, GitHubRestClient
from .discovery import DiscoveryConfig, RepoDiscovery
from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubErrorKind,
    GitHubResponseShapeError,
)
from .ingestion import (
    IngestionConfig,
    IngestionOrchestrator,
    IngestionResult,
    RepoIngestionStats,
)
from .models import RepoRef, RepoTarget
from .observability import (
    ErrorCategory,
    IngestionEventLogger,
    IngestionEventType,
    categorize_error,
)
from .retry import RateLimitedClient, RetryPolicy

__all__ = [
    "DiscoveryConfig",
    "ErrorCategory",
    "GitHubAPIError",
    "GitHubActivityClient",
    "GitHubClientConfig",
    "GitHubConfigError",
    "GitHubErrorKind",
    "GitHubResponseShapeError",
    "GitHubRestClient",
    "IngestionConfig",
    "IngestionEventLogger",
    "IngestionEventType",
    "IngestionOrchestrator",
    "IngestionResult",
    "RateLimitedClient",
    "RepoDiscovery",
    "RepoIngestionStats",
    "RepoRef",
    "RepoTarget",
    "RetryPolicy",
    "categorize_error",
]
