"""Shared Bronze-layer error types."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when datetime inputs lack timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_payload(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating payload timestamps were naive."""
        return cls("payload datetime values")

    @classmethod
    def for_field(cls, field: str) -> TimezoneAwareRequiredError:
        """Return an error naming the naive datetime field."""
        return cls(field)


class UnsupportedPayloadTypeError(ValueError):
    """Raised when payload contains non JSON-serialisable types."""

    def __init__(self, type_name: str) -> None:
        """Record the offending type name for diagnostics."""
        super().__init__(f"payload contains unsupported type {type_name}")


class InvalidEventIdError(ValueError):
    """Raised when a raw event id cannot be built or parsed."""

    @classmethod
    def empty_native_id(cls, kind: str) -> InvalidEventIdError:
        """Return an error for a missing platform-native id."""
        return cls(f"{kind} events require a non-empty native id")

    @classmethod
    def malformed(cls, event_id: str) -> InvalidEventIdError:
        """Return an error for ids not shaped ``kind:native``."""
        return cls(f"raw event id {event_id!r} is not of the form 'kind:native_id'")
