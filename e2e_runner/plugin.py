"""
pytest plugin that runs browser scenarios under the run configuration.

The plugin is registered through the ``pytest11`` entry point, so a plain
``pytest`` invocation picks it up. It owns:

- loading and validating the run configuration before collection
- one parametrized run of every browser scenario per configured project
- focus handling (``@pytest.mark.only``) and the ``forbid_only`` guard
- the per-scenario timeout (via pytest-timeout marks)
- the retry loop, with failure classification
- the Playwright fixtures: ``browser``, ``context``, ``page`` and friends
- artifact capture per attempt

Key Concepts Demonstrated:
- pytest hook implementations and hookwrappers
- Item stash for passing per-attempt state between hooks and fixtures
- Session-scoped parametrization for browser projects
- Function-scoped browser contexts for scenario isolation
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from typing import Any

import pytest
from _pytest.runner import runtestprotocol
from playwright.sync_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    expect,
    sync_playwright,
)

from e2e_runner.artifacts import ArtifactRecorder, scenario_slug
from e2e_runner.config import ProjectConfig, RunConfig, load_config
from e2e_runner.errors import ConfigurationError, FailureKind, classify_failure
from e2e_runner.projects import context_options, launch_options, resolve_browser_name
from e2e_runner.reporting import RERUN, JsonReport
from e2e_runner.target import is_target_reachable

logger = logging.getLogger(__name__)

run_config_key = pytest.StashKey[RunConfig]()
projects_key = pytest.StashKey["tuple[ProjectConfig, ...]"]()
phase_reports_key = pytest.StashKey["dict[str, pytest.TestReport]"]()
attempt_key = pytest.StashKey[int]()
failure_kind_key = pytest.StashKey["FailureKind | None"]()

_REPORT_PROPERTIES = ("attempt", "project", "failure_kind")
_JSON_REPORT_PLUGIN = "e2e-json-report"


# -----------------------------------------------------------------------------
# Options and configuration
# -----------------------------------------------------------------------------

def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("e2e", "configuration-driven browser scenarios")
    group.addoption(
        "--e2e-config",
        default=None,
        help="Run configuration YAML (default: $E2E_RUN_CONFIG or ./run_config.yml)",
    )
    group.addoption(
        "--e2e-project",
        action="append",
        default=[],
        help="Only run the named browser project (repeatable)",
    )
    group.addoption(
        "--e2e-headed",
        action="store_true",
        default=False,
        help="Run browsers headed",
    )
    group.addoption(
        "--e2e-retries",
        type=int,
        default=None,
        help="Override the configured number of retries",
    )
    group.addoption(
        "--e2e-timeout",
        type=int,
        default=None,
        help="Override the per-scenario timeout in milliseconds (0 disables it)",
    )
    group.addoption(
        "--e2e-json-report",
        default=None,
        help="Write a JSON report of final scenario outcomes to this path",
    )


def _option_overrides(config: pytest.Config) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if config.getoption("e2e_retries") is not None:
        overrides["retries"] = config.getoption("e2e_retries")
    if config.getoption("e2e_timeout") is not None:
        overrides["timeout_ms"] = config.getoption("e2e_timeout")
    if config.getoption("e2e_headed"):
        overrides["headless"] = False
    return overrides


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "e2e: browser scenario against the site under test")
    config.addinivalue_line("markers", "only: focus the run on marked scenarios")

    try:
        run_config = load_config(config.getoption("e2e_config"), overrides=_option_overrides(config))
        projects = run_config.select_projects(config.getoption("e2e_project"))
    except ConfigurationError as exc:
        raise pytest.UsageError(f"Invalid run configuration: {exc}") from exc

    config.stash[run_config_key] = run_config
    config.stash[projects_key] = projects
    expect.set_options(timeout=run_config.expect_timeout_ms)

    json_path = config.getoption("e2e_json_report")
    # Under xdist only the controller sees every final report
    if json_path and not hasattr(config, "workerinput"):
        config.pluginmanager.register(JsonReport(json_path), _JSON_REPORT_PLUGIN)


def pytest_unconfigure(config: pytest.Config) -> None:
    report = config.pluginmanager.get_plugin(_JSON_REPORT_PLUGIN)
    if report is not None:
        config.pluginmanager.unregister(report, _JSON_REPORT_PLUGIN)


def pytest_report_header(config: pytest.Config) -> list[str]:
    run_config = config.stash.get(run_config_key, None)
    if run_config is None:
        return []
    projects = ", ".join(project.name for project in config.stash[projects_key])
    return [
        f"e2e: base_url={run_config.base_url} projects={projects} "
        f"retries={run_config.retries} timeout={run_config.timeout_ms}ms"
    ]


# -----------------------------------------------------------------------------
# Collection
# -----------------------------------------------------------------------------

def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    if "browser_project" not in metafunc.fixturenames:
        return
    projects = list(metafunc.config.stash[projects_key])
    metafunc.parametrize(
        "browser_project",
        projects,
        ids=[project.name for project in projects],
        scope="session",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_config = config.stash[run_config_key]

    focused = [item for item in items if item.get_closest_marker("only") is not None]
    if focused:
        if run_config.forbid_only:
            names = "\n".join(f"  {item.nodeid}" for item in focused)
            raise pytest.UsageError(
                f"forbid_only is set but {len(focused)} scenario(s) are marked only:\n{names}"
            )
        deselected = [item for item in items if item.get_closest_marker("only") is None]
        if deselected:
            config.hook.pytest_deselected(items=deselected)
        items[:] = focused

    if run_config.timeout_ms > 0:
        seconds = run_config.timeout_ms / 1000
        for item in items:
            if item.get_closest_marker("timeout") is None:
                item.add_marker(pytest.mark.timeout(seconds))


# -----------------------------------------------------------------------------
# Execution: retries and reports
# -----------------------------------------------------------------------------

def pytest_runtest_protocol(item: pytest.Item, nextitem: pytest.Item | None) -> bool | None:
    run_config = item.config.stash.get(run_config_key, None)
    if run_config is None or run_config.retries == 0:
        return None

    policy = run_config.retry_policy
    item.ihook.pytest_runtest_logstart(nodeid=item.nodeid, location=item.location)

    attempt = 0
    while True:
        item.stash[attempt_key] = attempt
        item.stash[phase_reports_key] = {}
        item.stash[failure_kind_key] = None

        reports = runtestprotocol(item, nextitem=nextitem, log=False)
        failed = any(report.failed for report in reports)
        retry = failed and policy.should_retry(attempt, item.stash[failure_kind_key])

        for report in reports:
            if retry and report.failed:
                report.outcome = RERUN
                item.ihook.pytest_runtest_logreport(report=report)
                break
            item.ihook.pytest_runtest_logreport(report=report)

        if not retry:
            break
        attempt += 1
        logger.info(f"Retrying {item.nodeid} (attempt {attempt + 1} of {policy.max_attempts})")

    item.ihook.pytest_runtest_logfinish(nodeid=item.nodeid, location=item.location)
    return True


def _item_project(item: pytest.Item) -> str | None:
    callspec = getattr(item, "callspec", None)
    if callspec is None:
        return None
    project = callspec.params.get("browser_project")
    return project.name if isinstance(project, ProjectConfig) else None


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    """Remember phase reports and tag each one with attempt, project and failure kind."""
    outcome = yield
    report = outcome.get_result()

    item.stash.setdefault(phase_reports_key, {})[report.when] = report
    if report.failed and call.excinfo is not None and item.stash.get(failure_kind_key, None) is None:
        item.stash[failure_kind_key] = classify_failure(call.excinfo.value)

    properties = [prop for prop in report.user_properties if prop[0] not in _REPORT_PROPERTIES]
    properties.append(("attempt", item.stash.get(attempt_key, 0)))
    project = _item_project(item)
    if project is not None:
        properties.append(("project", project))
    kind = item.stash.get(failure_kind_key, None)
    if kind is not None:
        properties.append(("failure_kind", kind.value))
    report.user_properties = properties


def pytest_report_teststatus(report: pytest.TestReport):
    if report.outcome == RERUN:
        return "rerun", "R", ("RERUN", {"yellow": True})
    return None


def scenario_failed(item: pytest.Item) -> bool:
    """Return True when the current attempt of ``item`` failed setup or call."""
    reports = item.stash.get(phase_reports_key, {})
    return any(report.failed for report in reports.values())


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def run_config(pytestconfig: pytest.Config) -> RunConfig:
    return pytestconfig.stash[run_config_key]


@pytest.fixture(scope="session")
def browser_project(pytestconfig: pytest.Config) -> ProjectConfig:
    """The project a scenario runs under; parametrized per configured project."""
    return pytestconfig.stash[projects_key][0]


@pytest.fixture(scope="session")
def playwright() -> Generator[Playwright, None, None]:
    with sync_playwright() as pw:
        yield pw


@pytest.fixture(scope="session")
def browser_name(playwright: Playwright, browser_project: ProjectConfig) -> str:
    return resolve_browser_name(browser_project, playwright.devices)


@pytest.fixture(scope="session")
def target_url(run_config: RunConfig) -> str | None:
    """Base URL of the site under test; skips the scenario when it is unreachable."""
    if run_config.base_url and not is_target_reachable(run_config.base_url):
        pytest.skip(f"{run_config.base_url} is unreachable")
    return run_config.base_url


@pytest.fixture(scope="session")
def browser(
    playwright: Playwright, browser_name: str, run_config: RunConfig
) -> Generator[Browser, None, None]:
    browser_type = getattr(playwright, browser_name)
    try:
        browser = browser_type.launch(**launch_options(run_config))
    except PlaywrightError as exc:
        if "Executable doesn't exist" in str(exc):
            pytest.skip(f"{browser_name} is not installed; run `playwright install {browser_name}`")
        raise
    logger.info(f"Launched {browser_name} {browser.version}")
    yield browser
    browser.close()


@pytest.fixture(scope="session")
def browser_context_args(
    playwright: Playwright, run_config: RunConfig, browser_project: ProjectConfig
) -> dict[str, Any]:
    return context_options(run_config, browser_project, playwright.devices)


def _apply_timeouts(context: BrowserContext, run_config: RunConfig) -> None:
    context.set_default_timeout(run_config.action_timeout_ms)
    context.set_default_navigation_timeout(run_config.navigation_timeout_ms)


@pytest.fixture
def artifact_recorder(
    request: pytest.FixtureRequest, run_config: RunConfig, browser_project: ProjectConfig
) -> ArtifactRecorder:
    return ArtifactRecorder(
        run_config,
        slug=scenario_slug(request.node.nodeid),
        project=browser_project.name,
        attempt=request.node.stash.get(attempt_key, 0),
    )


@pytest.fixture
def context(
    request: pytest.FixtureRequest,
    browser: Browser,
    browser_context_args: dict[str, Any],
    artifact_recorder: ArtifactRecorder,
    run_config: RunConfig,
    target_url: str | None,
) -> Generator[BrowserContext, None, None]:
    context = browser.new_context(**browser_context_args, **artifact_recorder.context_options())
    _apply_timeouts(context, run_config)
    artifact_recorder.start(context)
    yield context
    artifact_recorder.finish(context, failed=scenario_failed(request.node))


@pytest.fixture
def page(
    request: pytest.FixtureRequest, context: BrowserContext, artifact_recorder: ArtifactRecorder
) -> Generator[Page, None, None]:
    page = context.new_page()
    yield page
    artifact_recorder.capture_screenshot(page, failed=scenario_failed(request.node))
    page.close()


@pytest.fixture
def new_context(
    browser: Browser, browser_context_args: dict[str, Any], run_config: RunConfig
) -> Generator[Callable[..., BrowserContext], None, None]:
    """Factory for extra isolated contexts, closed when the scenario ends."""
    contexts: list[BrowserContext] = []

    def _new_context(**overrides: Any) -> BrowserContext:
        extra = browser.new_context(**{**browser_context_args, **overrides})
        _apply_timeouts(extra, run_config)
        contexts.append(extra)
        return extra

    yield _new_context
    for extra in contexts:
        extra.close()
