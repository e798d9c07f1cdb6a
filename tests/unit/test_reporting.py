"""
Unit tests for the JSON run report.
"""

import json

import pytest

from e2e_runner.reporting import RERUN, JsonReport


pytestmark = pytest.mark.unit

NODEID = "tests/scenarios/basic/test_navigation.py::test_reload[chromium]"


def make_report(outcome="passed", when="call", nodeid=NODEID, duration=1.0, longrepr="", **properties):
    """Build a TestReport the way pytest does for one phase."""
    user_properties = [("project", "chromium"), ("attempt", 0), *properties.items()]
    return pytest.TestReport(
        nodeid=nodeid,
        location=("tests/scenarios/basic/test_navigation.py", 10, "test_reload"),
        keywords={},
        outcome=outcome,
        longrepr=longrepr or None,
        when=when,
        duration=duration,
        user_properties=user_properties,
    )


@pytest.fixture
def report(tmp_path):
    return JsonReport(tmp_path / "out" / "results.json")


class TestOutcomes:
    def test_pass(self, report):
        # Act
        for when in ("setup", "call", "teardown"):
            report.pytest_runtest_logreport(make_report(when=when, duration=0.5))

        # Assert
        result = report.results[NODEID]
        assert result.outcome == "passed"
        assert result.project == "chromium"
        assert result.attempts == 1
        assert result.duration == pytest.approx(1.5)

    def test_failure(self, report):
        # Act
        report.pytest_runtest_logreport(
            make_report("failed", longrepr="Traceback\nAssertionError: boom", failure_kind="assertion")
        )

        # Assert
        result = report.results[NODEID]
        assert result.outcome == "failed"
        assert result.failure_kind == "assertion"
        assert result.message == "AssertionError: boom"

    def test_setup_failure_is_error(self, report):
        report.pytest_runtest_logreport(make_report("failed", when="setup", longrepr="boom"))

        assert report.results[NODEID].outcome == "error"

    def test_skip(self, report):
        report.pytest_runtest_logreport(make_report("skipped", when="setup"))

        assert report.results[NODEID].outcome == "skipped"

    def test_rerun_then_pass_is_flaky(self, report):
        # Act
        report.pytest_runtest_logreport(make_report(RERUN, failure_kind="timeout"))
        report.pytest_runtest_logreport(make_report("passed"))

        # Assert
        result = report.results[NODEID]
        assert result.outcome == "passed"
        assert result.attempts == 2
        assert result.flaky is True


class TestSummary:
    def test_counts(self, report):
        # Arrange
        report.pytest_runtest_logreport(make_report("passed", nodeid="a"))
        report.pytest_runtest_logreport(make_report(RERUN, nodeid="b"))
        report.pytest_runtest_logreport(make_report("passed", nodeid="b"))
        report.pytest_runtest_logreport(make_report(RERUN, nodeid="c"))
        report.pytest_runtest_logreport(make_report("failed", nodeid="c", longrepr="x"))
        report.pytest_runtest_logreport(make_report("skipped", nodeid="d", when="setup"))

        # Act
        summary = report.summary()

        # Assert
        assert summary["total"] == 4
        assert summary["passed"] == 2
        assert summary["failed"] == 1
        assert summary["skipped"] == 1
        assert summary["flaky"] == 1
        assert summary["reruns"] == 2

    def test_flaky_pass_has_no_failure_kind(self, report):
        # Arrange
        report.pytest_runtest_logreport(make_report(RERUN))
        report.pytest_runtest_logreport(make_report("passed"))

        # Act
        scenario = report.to_dict()["scenarios"][0]

        # Assert
        assert scenario["failure_kind"] is None
        assert scenario["flaky"] is True

    def test_write(self, report):
        # Arrange
        report.pytest_runtest_logreport(make_report("passed"))
        report.exitstatus = 0

        # Act
        path = report.write()

        # Assert
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary"]["exitstatus"] == 0
        assert data["scenarios"][0]["nodeid"] == NODEID
