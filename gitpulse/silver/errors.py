"""Shared Silver-layer error types."""

from __future__ import annotations

import enum


class PayloadDecodeReason(enum.StrEnum):
    """Machine-readable reasons for payload decode failures."""

    INVALID_PAYLOAD = "invalid_payload"


class PayloadDecodeError(Exception):
    """Raised when a raw payload cannot be decoded into its typed variant."""

    def __init__(
        self,
        message: str,
        reason: PayloadDecodeReason | str | None = None,
    ) -> None:
        """Store a machine-readable reason for programmatic handling."""
        super().__init__(message)
        self.reason = reason

    @classmethod
    def invalid_payload(cls, model: str, message: str) -> PayloadDecodeError:
        """Create an error when a payload fails validation."""
        return cls(
            f"{model}: {message}",
            reason=PayloadDecodeReason.INVALID_PAYLOAD,
        )
