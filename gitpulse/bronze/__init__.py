"""Bronze layer primitives: raw event storage and its in-process mirror."""

from __future__ import annotations

from .errors import (
    InvalidEventIdError,
    TimezoneAwareRequiredError,
    UnsupportedPayloadTypeError,
)
from .memory import RawMemoryStore
from .models import RawItem, RawItemKind, RawRepo, RawUser, make_event_id, native_id_of
from .services import RawEventStore
from .storage import (
    RawEventRecord,
    RawRepoRecord,
    RawUserRecord,
    init_bronze_storage,
)

__all__ = [
    "InvalidEventIdError",
    "RawEventRecord",
    "RawEventStore",
    "RawItem",
    "RawItemKind",
    "RawMemoryStore",
    "RawRepo",
    "RawRepoRecord",
    "RawUser",
    "RawUserRecord",
    "TimezoneAwareRequiredError",
    "UnsupportedPayloadTypeError",
    "init_bronze_storage",
    "make_event_id",
    "native_id_of",
]
