"""
Command line entry point: ``e2e-run``.

Loads and validates the run configuration, translates it into pytest
arguments and runs pytest in-process. The configuration is validated here
as well as in the plugin so that a bad file stops the run before any
worker process is started.

Exit codes:

- ``0`` - every scenario passed (after retries)
- ``1`` - at least one scenario failed
- ``4`` - usage or configuration error, nothing was executed
- other values are passed through from pytest

Example:
    e2e-run tests/scenarios/basic --project chromium --reporter list
    CI=1 e2e-run --reporter junit --reporter html
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

import pytest

from e2e_runner.config import REPORTER_KINDS, RunConfig, load_config
from e2e_runner.errors import ConfigurationError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

EXIT_USAGE_ERROR = int(pytest.ExitCode.USAGE_ERROR)

HTML_REPORT = "report.html"
JSON_REPORT = "results.json"
JUNIT_REPORT = "results.xml"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the scenario runner."""
    parser = argparse.ArgumentParser(
        prog="e2e-run",
        description="Run the browser scenarios under the run configuration.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="Scenario files or directories (default: the configured test_dir)",
    )
    parser.add_argument("--config", help="Path to the run configuration YAML")
    parser.add_argument(
        "--project",
        action="append",
        default=[],
        help="Only run the named browser project (repeatable)",
    )
    parser.add_argument("--headed", action="store_true", help="Run browsers headed")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Open the Playwright inspector: one worker, headed, no scenario timeout",
    )
    parser.add_argument("--workers", type=int, help="Override the number of worker lanes")
    parser.add_argument("--retries", type=int, help="Override the number of retries")
    parser.add_argument(
        "--reporter",
        action="append",
        choices=REPORTER_KINDS,
        help="Override the configured reporter (repeatable)",
    )
    parser.add_argument("-k", dest="keyword", help="Only run scenarios matching the expression")
    parser.add_argument("--ci", action="store_true", default=None, help="Force CI mode")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.retries is not None:
        overrides["retries"] = args.retries
    if args.reporter:
        overrides["reporter"] = args.reporter
    if args.headed:
        overrides["headless"] = False
    if args.debug:
        overrides.update({"workers": 1, "headless": False, "timeout_ms": 0})
    return overrides


def _reporter_args(config: RunConfig) -> list[str]:
    output = config.output_path
    args: list[str] = []
    for kind in config.reporter:
        if kind == "list":
            args.append("-v")
        elif kind == "dot":
            args.append("-q")
        elif kind == "html":
            args.extend(["--html", str(output / HTML_REPORT), "--self-contained-html"])
        elif kind == "json":
            args.extend(["--e2e-json-report", str(output / JSON_REPORT)])
        elif kind == "junit":
            args.extend([f"--junitxml={output / JUNIT_REPORT}"])
        # "line" is pytest's default progress output
    return args


def build_pytest_args(
    config: RunConfig, args: argparse.Namespace, config_path: str | None = None
) -> list[str]:
    """
    Translate a validated configuration and CLI flags into pytest arguments.

    Args:
        config: The validated run configuration.
        args: Parsed CLI arguments.
        config_path: Configuration file the plugin should load.

    Returns:
        The pytest argument list.
    """
    pytest_args = list(args.paths) or [config.test_dir]

    if config.workers != 1:
        pytest_args.extend(["-n", str(config.workers) if config.workers else "auto"])
        pytest_args.extend(["--dist", "load" if config.fully_parallel else "loadfile"])

    pytest_args.extend(_reporter_args(config))

    if config_path:
        pytest_args.extend(["--e2e-config", config_path])
    for project in args.project:
        pytest_args.extend(["--e2e-project", project])
    pytest_args.extend(["--e2e-retries", str(config.retries)])
    pytest_args.extend(["--e2e-timeout", str(config.timeout_ms)])
    if not config.headless:
        pytest_args.append("--e2e-headed")
    if args.keyword:
        pytest_args.extend(["-k", args.keyword])
    return pytest_args


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point: validate the configuration, then run pytest.

    Returns:
        pytest's exit code, or ``EXIT_USAGE_ERROR`` (4) for a bad configuration.
    """
    args = parse_args(argv)

    if args.ci:
        os.environ["CI"] = "1"
    if args.debug:
        os.environ["PWDEBUG"] = "1"

    try:
        config = load_config(args.config, ci=args.ci, overrides=_overrides(args))
        config.select_projects(args.project)
    except ConfigurationError as exc:
        print(f"Invalid run configuration: {exc}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    pytest_args = build_pytest_args(config, args, args.config)
    logger.info(f"Running pytest {' '.join(pytest_args)}")
    return int(pytest.main(pytest_args))


if __name__ == "__main__":
    raise SystemExit(main())
