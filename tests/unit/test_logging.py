"""Unit tests for the femtologging helpers.

Run with:
    pytest tests/unit/test_logging.py
"""

from __future__ import annotations

import pytest

from gitpulse.logging import (
    configure_logging,
    format_log_message,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
)


class _FakeLogger:
    """Collects log calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None, bool]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        self.calls.append((level, message, exc_info, stack_info))
        return message


@pytest.mark.parametrize(
    ("raw", "expected", "invalid"),
    [
        ("debug", "DEBUG", False),
        ("  Warning ", "WARNING", False),
        (None, "INFO", True),
        ("", "INFO", True),
        ("chatty", "INFO", True),
    ],
)
def test_normalize_log_level(raw: str | None, expected: str, *, invalid: bool) -> None:
    """Known levels are upper-cased; everything else falls back to INFO."""
    level, flagged = normalize_log_level(raw)
    assert level == expected, f"expected {raw!r} to normalise to {expected}"
    assert flagged is invalid, f"expected invalid={invalid} for {raw!r}"


def test_format_log_message_without_args_keeps_template() -> None:
    """A template with no args is returned untouched, percent signs included."""
    assert format_log_message("100% done") == "100% done"


@pytest.mark.parametrize(
    ("helper", "level"),
    [
        (log_debug, "DEBUG"),
        (log_info, "INFO"),
        (log_warning, "WARNING"),
        (log_error, "ERROR"),
    ],
)
def test_helpers_format_and_set_level(helper: object, level: str) -> None:
    """Each helper renders the template and emits its own level."""
    logger = _FakeLogger()

    helper(logger, "synced %s (%d repos)", "octocat", 3)  # type: ignore[operator]

    assert logger.calls == [(level, "synced octocat (3 repos)", None, False)]


def test_log_warning_forwards_exc_info() -> None:
    """exc_info reaches the underlying logger."""
    logger = _FakeLogger()
    exc = ValueError("boom")

    log_warning(logger, "warning: %s", "oops", exc_info=exc)

    assert logger.calls == [("WARNING", "warning: oops", exc, False)]


def test_log_exception_passes_exc_info() -> None:
    """log_exception attaches the exception at ERROR."""
    logger = _FakeLogger()
    exc = RuntimeError("boom")

    log_exception(logger, "failed", exc)

    assert logger.calls == [("ERROR", "failed", exc, False)]


@pytest.mark.parametrize(
    ("raw", "applied", "invalid"),
    [("DEBUG", "DEBUG", False), ("nope", "INFO", True)],
)
def test_configure_logging(
    monkeypatch: pytest.MonkeyPatch, raw: str, applied: str, *, invalid: bool
) -> None:
    """configure_logging installs the normalised level."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr("gitpulse.logging.basicConfig", fake_basic_config)

    level, flagged = configure_logging(raw)

    assert (level, flagged) == (applied, invalid)
    assert captured == {"level": applied, "force": False}, (
        "expected basicConfig to receive the applied level without force"
    )
