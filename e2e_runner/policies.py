"""
Artifact capture and retry policies.

A capture policy answers two questions for every scenario attempt:

1. Before the attempt: should the artifact be recorded at all?
2. After the attempt: should the recorded artifact be kept?

Keeping both answers in one place makes the "artifact exists iff the
policy matches the outcome" rule easy to test without a browser.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from e2e_runner.errors import ConfigurationError, FailureKind


class CapturePolicy(str, Enum):
    """When a trace, video or screenshot is persisted."""

    ON = "on"
    OFF = "off"
    ON_FIRST_RETRY = "on-first-retry"
    RETAIN_ON_FAILURE = "retain-on-failure"
    ONLY_ON_FAILURE = "only-on-failure"

    @classmethod
    def parse(cls, value: str | bool, field_name: str) -> "CapturePolicy":
        """
        Parse a policy value from configuration.

        Accepts the canonical names plus ``always``/``never`` and YAML
        booleans (``true`` → on, ``false`` → off).

        Raises:
            ConfigurationError: If the value is not a known policy.
        """
        if isinstance(value, bool):
            return cls.ON if value else cls.OFF
        if not isinstance(value, str):
            raise ConfigurationError(
                f"{field_name} must be a string, got {type(value).__name__}"
            )
        normalized = value.strip().lower()
        normalized = _ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            allowed = ", ".join(policy.value for policy in cls)
            raise ConfigurationError(
                f"{field_name} must be one of: {allowed} (got {value!r})"
            ) from exc

    def should_record(self, attempt: int) -> bool:
        """Return True when the artifact must be captured during this attempt."""
        if self is CapturePolicy.OFF:
            return False
        if self is CapturePolicy.ON_FIRST_RETRY:
            return attempt == 1
        return True

    def should_keep(self, failed: bool, attempt: int) -> bool:
        """
        Return True when a captured artifact survives the attempt.

        Args:
            failed: Whether the attempt ended in failure.
            attempt: Zero-based attempt number (0 is the first run).
        """
        if self is CapturePolicy.ON:
            return True
        if self is CapturePolicy.OFF:
            return False
        if self is CapturePolicy.ON_FIRST_RETRY:
            return attempt == 1
        return failed


_ALIASES = {
    "always": CapturePolicy.ON.value,
    "never": CapturePolicy.OFF.value,
}

# Screenshots are taken once at the end of a scenario, so "retain" and
# "first retry" variants make no sense for them.
SCREENSHOT_POLICIES = frozenset(
    {CapturePolicy.ON, CapturePolicy.OFF, CapturePolicy.ONLY_ON_FAILURE}
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often a failing scenario is re-executed.

    Attributes:
        retries: Re-executions after the first failed attempt.
        retry_infrastructure_errors: Whether browser crashes and closed
            targets consume retries.
    """

    retries: int
    retry_infrastructure_errors: bool = False

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def should_retry(self, attempt: int, failure_kind: FailureKind | None) -> bool:
        """
        Decide whether another attempt follows a failed one.

        Args:
            attempt: Zero-based number of the attempt that just failed.
            failure_kind: Classification of that failure, if known.
        """
        if attempt + 1 >= self.max_attempts:
            return False
        if failure_kind is FailureKind.INFRASTRUCTURE:
            return self.retry_infrastructure_errors
        return True
