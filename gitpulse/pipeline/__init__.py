"""Pipeline entry points tying ingestion, normalisation and aggregation."""

from __future__ import annotations

from .config import PipelineConfig
from .errors import InvalidInputError, PipelineConfigError, PipelineConfigReason
from .observability import PipelineEventLogger, PipelineEventType
from .service import (
    PipelineResult,
    PipelineService,
    RemovalResult,
    normalise_accounts,
)
from .watermarks import SyncMode, WatermarkPolicy

__all__ = [
    "InvalidInputError",
    "PipelineConfig",
    "PipelineConfigError",
    "PipelineConfigReason",
    "PipelineEventLogger",
    "PipelineEventType",
    "PipelineResult",
    "PipelineService",
    "RemovalResult",
    "SyncMode",
    "WatermarkPolicy",
    "normalise_accounts",
]
