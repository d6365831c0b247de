"""Factory assembling a ``PipelineService`` from its collaborators.

Usage
-----
Build a service for the API layer::

    from gitpulse.api.factory import build_pipeline_service

    service = build_pipeline_service(session_factory, github_client, config)

"""

from __future__ import annotations

import datetime as dt
import typing as typ

from gitpulse.bronze.services import RawEventStore
from gitpulse.github.ingestion import IngestionOrchestrator
from gitpulse.github.observability import IngestionEventLogger
from gitpulse.github.retry import RateLimitedClient
from gitpulse.gold.reports import ActivityReportService
from gitpulse.gold.services import CuratedWriter
from gitpulse.pipeline.service import PipelineService
from gitpulse.pipeline.watermarks import WatermarkPolicy
from gitpulse.silver.orchestrator import SilverOrchestrator

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from gitpulse.bronze.memory import RawMemoryStore
    from gitpulse.github.client import GitHubActivityClient
    from gitpulse.pipeline.config import PipelineConfig

__all__ = ["build_pipeline_service"]


def build_pipeline_service(
    session_factory: async_sessionmaker[AsyncSession],
    github_client: GitHubActivityClient,
    config: PipelineConfig,
    *,
    mirror: RawMemoryStore | None = None,
) -> PipelineService:
    """Build a ``PipelineService`` wired to one database and GitHub client.

    Parameters
    ----------
    session_factory
        Async session factory shared by the Bronze store and curated writer.
    github_client
        GitHub capability client.
    config
        Watermark, pacing, retry and report settings.
    mirror
        In-process Bronze mirror; a fresh one is created when omitted.

    Returns
    -------
    PipelineService
        Service ready to run, report on or remove accounts.

    """
    store = RawEventStore(session_factory, mirror)
    caller = RateLimitedClient(config.retry_policy())
    initial_lookback = dt.timedelta(days=config.initial_lookback_days)
    ingestion = IngestionOrchestrator(
        github_client,
        caller,
        store,
        config=config.ingestion_config(),
        event_logger=IngestionEventLogger(),
    )
    return PipelineService(
        ingestion,
        SilverOrchestrator(store, default_lookback=initial_lookback),
        store,
        CuratedWriter(session_factory),
        reports=ActivityReportService(
            session_factory, config=config.report_config()
        ),
        policy=WatermarkPolicy(
            initial_lookback=initial_lookback,
            resync_lookback=dt.timedelta(hours=config.resync_lookback_hours),
        ),
    )
