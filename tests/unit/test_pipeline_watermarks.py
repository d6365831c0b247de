"""Unit tests for watermark resolution and pipeline configuration."""

from __future__ import annotations

import datetime as dt

import pytest

from gitpulse.pipeline import (
    PipelineConfig,
    PipelineConfigError,
    PipelineConfigReason,
    SyncMode,
    WatermarkPolicy,
)

NOW = dt.datetime(2024, 7, 1, 12, 0, tzinfo=dt.UTC)


class TestWatermarkPolicy:
    """Tests for per-account lookbacks."""

    def test_new_accounts_get_long_lookback(self) -> None:
        """Accounts without a curated profile reach back at least 150 days."""
        windows = WatermarkPolicy().resolve(
            ["newbie"], known=set(), last_synced={}, now=NOW
        )
        assert NOW - windows["newbie"] >= dt.timedelta(days=150)

    def test_known_accounts_get_short_lookback(self) -> None:
        """Recently synced accounts reach back no more than 72 hours."""
        windows = WatermarkPolicy().resolve(
            ["octocat"],
            known={"octocat"},
            last_synced={"octocat": NOW - dt.timedelta(hours=6)},
            now=NOW,
        )
        assert NOW - windows["octocat"] <= dt.timedelta(hours=72)
        assert windows["octocat"] == NOW - dt.timedelta(hours=48)

    def test_stale_known_account_widens_to_last_sync(self) -> None:
        """A long gap since the last sync widens the window to cover it."""
        synced = NOW - dt.timedelta(days=10)
        windows = WatermarkPolicy().resolve(
            ["octocat"], known={"octocat"}, last_synced={"octocat": synced}, now=NOW
        )
        assert windows["octocat"] == synced - dt.timedelta(days=1)

    def test_widened_window_is_capped(self) -> None:
        """The widened window never exceeds the initial lookback."""
        policy = WatermarkPolicy(initial_lookback=dt.timedelta(days=30))
        synced = NOW - dt.timedelta(days=400)
        windows = policy.resolve(
            ["octocat"], known={"octocat"}, last_synced={"octocat": synced}, now=NOW
        )
        assert windows["octocat"] == NOW - dt.timedelta(days=30)

    @pytest.mark.parametrize(
        ("known", "mode"),
        [
            (set(), SyncMode.INITIAL),
            ({"a", "b"}, SyncMode.INCREMENTAL),
            ({"a"}, SyncMode.MIXED),
        ],
    )
    def test_mode(self, known: set[str], mode: SyncMode) -> None:
        """Runs are classified by how many accounts are known."""
        assert WatermarkPolicy.mode(["a", "b"], known) is mode


class TestPipelineConfig:
    """Tests for environment-driven pipeline settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset variables fall back to defaults."""
        for name in (
            "GITPULSE_INITIAL_LOOKBACK_DAYS",
            "GITPULSE_REPO_CONCURRENCY",
            "GITPULSE_ORGANIZATIONS",
        ):
            monkeypatch.delenv(name, raising=False)

        config = PipelineConfig.from_env()

        assert config.initial_lookback_days == 180
        assert config.repo_concurrency == 4
        assert config.organizations == ()

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Variables override defaults and feed the derived settings."""
        monkeypatch.setenv("GITPULSE_RETRY_MAX_ATTEMPTS", "3")
        monkeypatch.setenv("GITPULSE_RETRY_MAX_DELAY_S", "7.5")
        monkeypatch.setenv("GITPULSE_METADATA_BATCH_SIZE", "2")
        monkeypatch.setenv("GITPULSE_ORGANIZATIONS", "octo, acme ,octo,")

        config = PipelineConfig.from_env()

        assert config.retry_policy().max_attempts == 3
        assert config.retry_policy().max_delay == 7.5
        assert config.ingestion_config().metadata_batch_size == 2
        assert config.ingestion_config().organizations == ("octo", "acme")

    def test_report_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Report window and fork threshold come from the environment."""
        monkeypatch.delenv("GITPULSE_REPORT_LOOKBACK_DAYS", raising=False)
        monkeypatch.setenv("GITPULSE_REPORT_MIN_FORKS", "5")

        report = PipelineConfig.from_env().report_config()

        assert report.lookback == dt.timedelta(days=180)
        assert report.min_fork_count == 5

    @pytest.mark.parametrize(
        ("name", "raw", "reason"),
        [
            ("GITPULSE_REPO_CONCURRENCY", "many", PipelineConfigReason.NOT_AN_INTEGER),
            ("GITPULSE_REPO_CONCURRENCY", "0", PipelineConfigReason.NOT_POSITIVE),
            ("GITPULSE_RETRY_BASE_DELAY_S", "fast", PipelineConfigReason.NOT_A_NUMBER),
            ("GITPULSE_RETRY_BASE_DELAY_S", "-1", PipelineConfigReason.NOT_POSITIVE),
        ],
    )
    def test_invalid_values(
        self,
        monkeypatch: pytest.MonkeyPatch,
        name: str,
        raw: str,
        reason: PipelineConfigReason,
    ) -> None:
        """Bad values raise PipelineConfigError with a reason code."""
        monkeypatch.setenv(name, raw)

        with pytest.raises(PipelineConfigError) as excinfo:
            PipelineConfig.from_env()

        assert excinfo.value.reason is reason
