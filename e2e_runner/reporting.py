"""
Machine-readable run report.

:class:`JsonReport` is a pytest plugin object. It folds the phase reports of
every attempt into one final record per scenario and writes them, with a
summary, to a JSON file when the session finishes:

    {
      "summary": {"total": 3, "passed": 2, "failed": 1, ...},
      "scenarios": [
        {"nodeid": "...", "project": "chromium", "outcome": "passed",
         "attempts": 2, "flaky": true, "duration": 4.2, "failure_kind": null}
      ]
    }

HTML and JUnit XML output come from pytest-html and pytest's own
``--junitxml``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import pytest

logger = logging.getLogger(__name__)

RERUN = "rerun"


@dataclass
class ScenarioResult:
    nodeid: str
    project: str | None = None
    outcome: str = "passed"
    attempts: int = 1
    flaky: bool = False
    duration: float = 0.0
    failure_kind: str | None = None
    message: str | None = None


def _user_property(report: pytest.TestReport, name: str) -> Any:
    for key, value in report.user_properties:
        if key == name:
            return value
    return None


class JsonReport:
    """Collects final scenario outcomes and writes them as JSON."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.results: dict[str, ScenarioResult] = {}
        self.exitstatus: int | None = None

    def _result(self, report: pytest.TestReport) -> ScenarioResult:
        result = self.results.get(report.nodeid)
        if result is None:
            result = ScenarioResult(nodeid=report.nodeid)
            self.results[report.nodeid] = result
        return result

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        result = self._result(report)
        result.duration += report.duration
        result.project = _user_property(report, "project") or result.project

        if report.outcome == RERUN:
            result.attempts += 1
            result.flaky = True
            return

        kind = _user_property(report, "failure_kind")
        if report.failed:
            result.outcome = "failed" if report.when == "call" else "error"
            result.failure_kind = kind
            result.message = report.longreprtext.splitlines()[-1] if report.longreprtext else None
        elif report.skipped and result.outcome == "passed":
            result.outcome = "skipped"

    def summary(self) -> dict[str, Any]:
        outcomes = [result.outcome for result in self.results.values()]
        finals = [result for result in self.results.values() if result.outcome == "passed"]
        return {
            "total": len(outcomes),
            "passed": outcomes.count("passed"),
            "failed": outcomes.count("failed"),
            "errors": outcomes.count("error"),
            "skipped": outcomes.count("skipped"),
            "flaky": sum(1 for result in finals if result.flaky),
            "reruns": sum(result.attempts - 1 for result in self.results.values()),
            "duration": round(sum(result.duration for result in self.results.values()), 3),
            "exitstatus": self.exitstatus,
        }

    def to_dict(self) -> dict[str, Any]:
        scenarios = []
        for result in self.results.values():
            data = asdict(result)
            data["duration"] = round(result.duration, 3)
            # A failure that later passed is reported as flaky, not failed
            if result.outcome == "passed":
                data["failure_kind"] = None
            scenarios.append(data)
        return {"summary": self.summary(), "scenarios": scenarios}

    def write(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle, indent=2)
        return self.path

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        self.exitstatus = int(exitstatus)
        path = self.write()
        logger.info(f"JSON report written to {path}")

    def pytest_terminal_summary(self, terminalreporter) -> None:
        terminalreporter.write_sep("-", f"json report: {self.path}")
