"""
Error taxonomy for scenario runs.

Configuration errors are fatal and raised before any scenario runs.
Everything else happens inside a scenario and is classified so the retry
loop and the reports can tell a slow page from a broken assertion or a
crashed browser.
"""

from __future__ import annotations

from enum import Enum

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError


# Fragments Playwright uses when the browser, context or page went away
# underneath a running scenario.
_INFRASTRUCTURE_MARKERS = (
    "target closed",
    "target page, context or browser has been closed",
    "browser has been closed",
    "browser closed",
    "page crashed",
    "connection closed",
)


class ConfigurationError(ValueError):
    """Raised when the run configuration holds a malformed value."""


class FailureKind(str, Enum):
    """Category of a scenario-local failure."""

    TIMEOUT = "timeout"
    ASSERTION = "assertion"
    SCRIPT = "script"
    INFRASTRUCTURE = "infrastructure"


def _is_scenario_timeout(exc: BaseException) -> bool:
    """pytest-timeout fails the test with a message starting with 'Timeout'."""
    return isinstance(exc, pytest.fail.Exception) and str(exc).startswith("Timeout")


def classify_failure(exc: BaseException) -> FailureKind:
    """
    Map an exception raised by a scenario to its failure category.

    Args:
        exc: The exception that ended the scenario attempt.

    Returns:
        The matching :class:`FailureKind`.
    """
    if isinstance(exc, PlaywrightTimeoutError) or _is_scenario_timeout(exc):
        return FailureKind.TIMEOUT
    if isinstance(exc, AssertionError):
        return FailureKind.ASSERTION
    if isinstance(exc, PlaywrightError):
        message = str(exc).lower()
        if any(marker in message for marker in _INFRASTRUCTURE_MARKERS):
            return FailureKind.INFRASTRUCTURE
    return FailureKind.SCRIPT
