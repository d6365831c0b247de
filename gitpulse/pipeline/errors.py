"""Errors raised by the pipeline entry points."""

from __future__ import annotations

import enum


class InvalidInputError(Exception):
    """Raised for caller mistakes that map to HTTP 400.

    Only intentional validation failures use this type, so genuine
    programming errors still surface as unhandled 500s.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialise with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)

    @classmethod
    def empty_accounts(cls, field: str = "accounts") -> InvalidInputError:
        """Build the error for an empty or blank account list."""
        return cls("at least one account login is required", field=field)

    @classmethod
    def not_a_login_list(cls, field: str = "accounts") -> InvalidInputError:
        """Build the error for a body whose accounts are not strings."""
        return cls("must be a list of login strings", field=field)


class PipelineConfigReason(enum.StrEnum):
    """Reason codes for :class:`PipelineConfigError`."""

    NOT_AN_INTEGER = "not_an_integer"
    NOT_A_NUMBER = "not_a_number"
    NOT_POSITIVE = "not_positive"


class PipelineConfigError(ValueError):
    """Raised when a ``GITPULSE_*`` pipeline setting is invalid."""

    def __init__(self, message: str, reason: PipelineConfigReason) -> None:
        """Store the reason code alongside the message."""
        super().__init__(message)
        self.reason = reason

    @classmethod
    def not_an_integer(cls, env_var: str, raw: str) -> PipelineConfigError:
        """Build the error for a non-integer value."""
        return cls(
            f"{env_var} must be an integer, got: {raw!r}",
            PipelineConfigReason.NOT_AN_INTEGER,
        )

    @classmethod
    def not_a_number(cls, env_var: str, raw: str) -> PipelineConfigError:
        """Build the error for a non-numeric value."""
        return cls(
            f"{env_var} must be a number, got: {raw!r}",
            PipelineConfigReason.NOT_A_NUMBER,
        )

    @classmethod
    def not_positive(cls, env_var: str, value: float) -> PipelineConfigError:
        """Build the error for a zero or negative value."""
        return cls(
            f"{env_var} must be positive, got: {value}",
            PipelineConfigReason.NOT_POSITIVE,
        )
