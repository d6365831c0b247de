"""Gold layer: activity counters, curated rows and activity reports."""

from __future__ import annotations

from .aggregation import (
    ActivityAggregator,
    ActivityCounter,
    ActivityType,
    CuratedBundle,
)
from .reports import (
    AccountReport,
    ActivityReport,
    ActivityReportService,
    ActivityTotals,
    ReportConfig,
    RepositoryActivity,
)
from .services import CuratedWriter, CuratedWriteStats
from .storage import (
    CuratedRepositoryRecord,
    UserActivityRecord,
    UserProfileRecord,
    init_gold_storage,
)

__all__ = [
    "AccountReport",
    "ActivityAggregator",
    "ActivityCounter",
    "ActivityReport",
    "ActivityReportService",
    "ActivityTotals",
    "ActivityType",
    "CuratedBundle",
    "CuratedRepositoryRecord",
    "CuratedWriteStats",
    "CuratedWriter",
    "ReportConfig",
    "RepositoryActivity",
    "UserActivityRecord",
    "UserProfileRecord",
    "init_gold_storage",
]
