"""Configuration for pipeline runs.

Usage
-----
Create a configuration with defaults:

>>> config = PipelineConfig()
>>> config.initial_lookback_days
180

Or load from environment variables:

>>> import os
>>> os.environ["GITPULSE_REPO_CONCURRENCY"] = "8"
>>> PipelineConfig.from_env().repo_concurrency
8

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os

from gitpulse.github.ingestion import IngestionConfig
from gitpulse.github.retry import RetryPolicy
from gitpulse.gold.reports import ReportConfig

from .errors import PipelineConfigError


@dc.dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Knobs for watermarks, fetch pacing and retries.

    Attributes
    ----------
    initial_lookback_days
        Lookback for accounts with no curated profile yet.
    resync_lookback_hours
        Lookback for accounts already present in curated storage.
    metadata_batch_size
        Repositories whose metadata is fetched together.
    metadata_batch_delay_s
        Pause between metadata batches.
    repo_concurrency
        Repositories ingested at the same time.
    retry_max_attempts, retry_base_delay_s, retry_max_delay_s
        Retry budget and backoff bounds for GitHub calls.
    organizations
        Organisations whose recently pushed repositories are always ingested.
    report_lookback_days
        Trailing window of the activity report.
    report_min_forks
        Fork count a repository needs to appear in the activity report.

    """

    initial_lookback_days: int = 180
    resync_lookback_hours: int = 48
    metadata_batch_size: int = 3
    metadata_batch_delay_s: float = 0.5
    repo_concurrency: int = 4
    retry_max_attempts: int = 5
    retry_base_delay_s: float = 2.0
    retry_max_delay_s: float = 60.0
    organizations: tuple[str, ...] = ()
    report_lookback_days: int = 180
    report_min_forks: int = 3

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise PipelineConfigError.not_an_integer(env_var, raw) from exc
        if value < 1:
            raise PipelineConfigError.not_positive(env_var, value)
        return value

    @staticmethod
    def _parse_positive_float(env_var: str, default: float) -> float:
        """Read a positive float env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise PipelineConfigError.not_a_number(env_var, raw) from exc
        if value <= 0:
            raise PipelineConfigError.not_positive(env_var, value)
        return value

    @classmethod
    def from_env(cls) -> PipelineConfig:
        """Create configuration from ``GITPULSE_*`` environment variables.

        Raises
        ------
        PipelineConfigError
            If a numeric variable does not parse or is not positive.

        """
        raw_orgs = os.environ.get("GITPULSE_ORGANIZATIONS", "")
        organizations = tuple(
            dict.fromkeys(org.strip() for org in raw_orgs.split(",") if org.strip())
        )
        return cls(
            initial_lookback_days=cls._parse_positive_int(
                "GITPULSE_INITIAL_LOOKBACK_DAYS", 180
            ),
            resync_lookback_hours=cls._parse_positive_int(
                "GITPULSE_RESYNC_LOOKBACK_HOURS", 48
            ),
            metadata_batch_size=cls._parse_positive_int(
                "GITPULSE_METADATA_BATCH_SIZE", 3
            ),
            metadata_batch_delay_s=cls._parse_positive_float(
                "GITPULSE_METADATA_BATCH_DELAY_S", 0.5
            ),
            repo_concurrency=cls._parse_positive_int("GITPULSE_REPO_CONCURRENCY", 4),
            retry_max_attempts=cls._parse_positive_int(
                "GITPULSE_RETRY_MAX_ATTEMPTS", 5
            ),
            retry_base_delay_s=cls._parse_positive_float(
                "GITPULSE_RETRY_BASE_DELAY_S", 2.0
            ),
            retry_max_delay_s=cls._parse_positive_float(
                "GITPULSE_RETRY_MAX_DELAY_S", 60.0
            ),
            organizations=organizations,
            report_lookback_days=cls._parse_positive_int(
                "GITPULSE_REPORT_LOOKBACK_DAYS", 180
            ),
            report_min_forks=cls._parse_positive_int("GITPULSE_REPORT_MIN_FORKS", 3),
        )

    def retry_policy(self) -> RetryPolicy:
        """Return the retry policy for GitHub calls."""
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_s,
            max_delay=self.retry_max_delay_s,
        )

    def ingestion_config(self) -> IngestionConfig:
        """Return the ingestion pacing settings."""
        return IngestionConfig(
            metadata_batch_size=self.metadata_batch_size,
            metadata_batch_delay_s=self.metadata_batch_delay_s,
            repo_concurrency=self.repo_concurrency,
            organizations=self.organizations,
        )

    def report_config(self) -> ReportConfig:
        """Return the activity report window and repository filter."""
        return ReportConfig(
            lookback=dt.timedelta(days=self.report_lookback_days),
            min_fork_count=self.report_min_forks,
        )
