"""
Run configuration module.

This module defines the run configuration for the scenario suite. Values
come from four layers, later layers winning:

1. Environment defaults (local development vs continuous integration).
2. The YAML run configuration file (``run_config.yml`` by default).
3. The file's ``ci`` block, applied only in CI mode.
4. Explicit overrides (command line flags).

The merged mapping is turned into a frozen :class:`RunConfig`. Unknown keys
and malformed values raise :class:`ConfigurationError` at load time, so a bad
configuration never reaches a running scenario.
"""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from e2e_runner.errors import ConfigurationError
from e2e_runner.policies import SCREENSHOT_POLICIES, CapturePolicy, RetryPolicy

logger = logging.getLogger(__name__)

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_CONFIG_FILE = "run_config.yml"
CONFIG_PATH_ENV = "E2E_RUN_CONFIG"
CI_ENV = "CI"

BROWSER_ENGINES = ("chromium", "firefox", "webkit")
REPORTER_KINDS = ("list", "line", "dot", "html", "json", "junit")

_FALSY_ENV_VALUES = {"", "0", "false", "no", "off"}


# Settings shared by every environment
BASE_DEFAULTS: dict[str, Any] = {
    "test_dir": "tests/scenarios",
    "output_dir": "test-results",
    "fully_parallel": True,
    "reporter": "html",
    "base_url": "https://demoqa.com",
    "trace": "retain-on-failure",
    "screenshot": "only-on-failure",
    "video": "retain-on-failure",
    "action_timeout_ms": 30000,
    "navigation_timeout_ms": 60000,
    "expect_timeout_ms": 10000,
    "timeout_ms": 60000,
    "viewport": {"width": 1280, "height": 720},
    "ignore_https_errors": True,
    "headless": True,
    "slow_mo_ms": 0,
    "retry_infrastructure_errors": False,
    "projects": [{"name": "chromium", "device": "Desktop Chrome"}],
}

# Local runs fail fast so the first failure is the one you debug
LOCAL_DEFAULTS: dict[str, Any] = {
    "forbid_only": False,
    "retries": 0,
    "workers": None,
}

# CI runs retry flaky scenarios, serialize lanes and refuse focused runs
CI_DEFAULTS: dict[str, Any] = {
    "forbid_only": True,
    "retries": 2,
    "workers": 1,
}

environment_defaults = {
    "local": LOCAL_DEFAULTS,
    "ci": CI_DEFAULTS,
}


# -----------------------------------------------------------------------------
# Value checks
# -----------------------------------------------------------------------------

def _reject_unknown(data: Mapping[str, Any], allowed: set[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown {where} key(s): {', '.join(unknown)}")


def _require_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be true or false, got {value!r}")
    return value


def _require_int(value: Any, field_name: str, *, minimum: int) -> int:
    # bool is an int subclass; "retries: true" is a typo, not 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{field_name} must be >= {minimum}, got {value}")
    return value


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{field_name} must be a non-empty string, got {value!r}")
    return value


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _require_str(value, field_name)


def _require_base_url(value: Any) -> str | None:
    if value is None:
        return None
    text = _require_str(value, "base_url")
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"base_url must be an http(s) URL, got {value!r}")
    return text.rstrip("/")


def _require_reporters(value: Any) -> tuple[str, ...]:
    kinds = [value] if isinstance(value, str) else value
    if not isinstance(kinds, list) or not kinds:
        raise ConfigurationError(
            f"reporter must be a reporter name or a non-empty list, got {value!r}"
        )
    for kind in kinds:
        if kind not in REPORTER_KINDS:
            allowed = ", ".join(REPORTER_KINDS)
            raise ConfigurationError(f"reporter must be one of: {allowed} (got {kind!r})")
    return tuple(dict.fromkeys(kinds))


# -----------------------------------------------------------------------------
# Typed records
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Viewport:
    """Browser viewport size in CSS pixels."""

    width: int
    height: int

    @classmethod
    def from_mapping(cls, data: Any, field_name: str = "viewport") -> "Viewport | None":
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"{field_name} must be a mapping with width and height")
        _reject_unknown(data, {"width", "height"}, field_name)
        try:
            width, height = data["width"], data["height"]
        except KeyError as exc:
            raise ConfigurationError(f"{field_name} requires width and height") from exc
        return cls(
            width=_require_int(width, f"{field_name}.width", minimum=1),
            height=_require_int(height, f"{field_name}.height", minimum=1),
        )

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class ProjectConfig:
    """
    A named execution profile; every scenario runs once per project.

    Attributes:
        name: Unique project name, used in test ids and artifact paths.
        browser: Browser engine. Falls back to the device's default engine,
            then chromium.
        device: Playwright device descriptor name (e.g. ``Pixel 5``).
        viewport: Viewport override applied after the device descriptor.
        user_agent: User agent override.
        locale: Locale override (e.g. ``fr-FR``).
    """

    name: str
    browser: str | None = None
    device: str | None = None
    viewport: Viewport | None = None
    user_agent: str | None = None
    locale: str | None = None

    @classmethod
    def from_mapping(cls, data: Any, index: int) -> "ProjectConfig":
        where = f"projects[{index}]"
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"{where} must be a mapping")
        _reject_unknown(data, {f.name for f in fields(cls)}, where)
        if "name" not in data:
            raise ConfigurationError(f"{where} requires a name")
        browser = _optional_str(data.get("browser"), f"{where}.browser")
        if browser is not None and browser not in BROWSER_ENGINES:
            allowed = ", ".join(BROWSER_ENGINES)
            raise ConfigurationError(f"{where}.browser must be one of: {allowed} (got {browser!r})")
        return cls(
            name=_require_str(data["name"], f"{where}.name"),
            browser=browser,
            device=_optional_str(data.get("device"), f"{where}.device"),
            viewport=Viewport.from_mapping(data.get("viewport"), f"{where}.viewport"),
            user_agent=_optional_str(data.get("user_agent"), f"{where}.user_agent"),
            locale=_optional_str(data.get("locale"), f"{where}.locale"),
        )


@dataclass(frozen=True)
class RunConfig:
    """
    Fully resolved, immutable run configuration.

    Every field has a value after loading; there is no "unset" state other
    than ``workers=None`` (runner default) and ``viewport=None`` (no fixed
    viewport).
    """

    test_dir: str
    output_dir: str
    fully_parallel: bool
    forbid_only: bool
    retries: int
    workers: int | None
    reporter: tuple[str, ...]
    base_url: str | None
    trace: CapturePolicy
    screenshot: CapturePolicy
    video: CapturePolicy
    action_timeout_ms: int
    navigation_timeout_ms: int
    expect_timeout_ms: int
    timeout_ms: int
    viewport: Viewport | None
    ignore_https_errors: bool
    headless: bool
    slow_mo_ms: int
    retry_infrastructure_errors: bool
    projects: tuple[ProjectConfig, ...] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RunConfig":
        """
        Build a validated configuration from a fully merged mapping.

        Args:
            data: Mapping holding every configuration key.

        Returns:
            The validated configuration.

        Raises:
            ConfigurationError: On unknown keys, missing keys or bad values.
        """
        known = {f.name for f in fields(cls)}
        _reject_unknown(data, known, "configuration")
        missing = sorted(known - set(data))
        if missing:
            raise ConfigurationError(f"Missing configuration key(s): {', '.join(missing)}")

        workers = data["workers"]
        if workers is not None:
            workers = _require_int(workers, "workers", minimum=1)

        screenshot = CapturePolicy.parse(data["screenshot"], "screenshot")
        if screenshot not in SCREENSHOT_POLICIES:
            allowed = ", ".join(sorted(policy.value for policy in SCREENSHOT_POLICIES))
            raise ConfigurationError(f"screenshot must be one of: {allowed} (got {screenshot.value!r})")

        raw_projects = data["projects"]
        if not isinstance(raw_projects, list) or not raw_projects:
            raise ConfigurationError("projects must be a non-empty list")
        projects = tuple(
            ProjectConfig.from_mapping(item, index) for index, item in enumerate(raw_projects)
        )
        names = [project.name for project in projects]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate project name(s): {', '.join(duplicates)}")

        return cls(
            test_dir=_require_str(data["test_dir"], "test_dir"),
            output_dir=_require_str(data["output_dir"], "output_dir"),
            fully_parallel=_require_bool(data["fully_parallel"], "fully_parallel"),
            forbid_only=_require_bool(data["forbid_only"], "forbid_only"),
            retries=_require_int(data["retries"], "retries", minimum=0),
            workers=workers,
            reporter=_require_reporters(data["reporter"]),
            base_url=_require_base_url(data["base_url"]),
            trace=CapturePolicy.parse(data["trace"], "trace"),
            screenshot=screenshot,
            video=CapturePolicy.parse(data["video"], "video"),
            action_timeout_ms=_require_int(data["action_timeout_ms"], "action_timeout_ms", minimum=0),
            navigation_timeout_ms=_require_int(
                data["navigation_timeout_ms"], "navigation_timeout_ms", minimum=0
            ),
            expect_timeout_ms=_require_int(data["expect_timeout_ms"], "expect_timeout_ms", minimum=0),
            timeout_ms=_require_int(data["timeout_ms"], "timeout_ms", minimum=0),
            viewport=Viewport.from_mapping(data["viewport"]),
            ignore_https_errors=_require_bool(data["ignore_https_errors"], "ignore_https_errors"),
            headless=_require_bool(data["headless"], "headless"),
            slow_mo_ms=_require_int(data["slow_mo_ms"], "slow_mo_ms", minimum=0),
            retry_infrastructure_errors=_require_bool(
                data["retry_infrastructure_errors"], "retry_infrastructure_errors"
            ),
            projects=projects,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(self.retries, self.retry_infrastructure_errors)

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    def project(self, name: str) -> ProjectConfig:
        """Return the project called ``name``."""
        for project in self.projects:
            if project.name == name:
                return project
        raise ConfigurationError(f"Unknown project: {name!r}")

    def select_projects(self, names: list[str] | None) -> tuple[ProjectConfig, ...]:
        """
        Narrow the project list to ``names``, preserving configured order.

        An empty or missing filter keeps every project.
        """
        if not names:
            return self.projects
        for name in names:
            self.project(name)
        return tuple(project for project in self.projects if project.name in names)

    def replace(self, **changes: Any) -> "RunConfig":
        """Return a copy with ``changes`` applied and validated again."""
        raw = self.to_mapping()
        _reject_unknown(changes, set(raw), "override")
        raw.update(changes)
        return RunConfig.from_mapping(raw)

    def to_mapping(self) -> dict[str, Any]:
        """Return the configuration as plain, re-loadable data."""
        return {
            "test_dir": self.test_dir,
            "output_dir": self.output_dir,
            "fully_parallel": self.fully_parallel,
            "forbid_only": self.forbid_only,
            "retries": self.retries,
            "workers": self.workers,
            "reporter": list(self.reporter),
            "base_url": self.base_url,
            "trace": self.trace.value,
            "screenshot": self.screenshot.value,
            "video": self.video.value,
            "action_timeout_ms": self.action_timeout_ms,
            "navigation_timeout_ms": self.navigation_timeout_ms,
            "expect_timeout_ms": self.expect_timeout_ms,
            "timeout_ms": self.timeout_ms,
            "viewport": self.viewport.to_dict() if self.viewport else None,
            "ignore_https_errors": self.ignore_https_errors,
            "headless": self.headless,
            "slow_mo_ms": self.slow_mo_ms,
            "retry_infrastructure_errors": self.retry_infrastructure_errors,
            "projects": [_project_to_mapping(project) for project in self.projects],
        }


def _project_to_mapping(project: ProjectConfig) -> dict[str, Any]:
    data: dict[str, Any] = {"name": project.name}
    for key in ("browser", "device", "user_agent", "locale"):
        value = getattr(project, key)
        if value is not None:
            data[key] = value
    if project.viewport is not None:
        data["viewport"] = project.viewport.to_dict()
    return data


# -----------------------------------------------------------------------------
# Loading
# -----------------------------------------------------------------------------

def is_ci(environ: Mapping[str, str] | None = None) -> bool:
    """
    Return True when the ``CI`` environment variable enables CI mode.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.
    """
    environ = os.environ if environ is None else environ
    value = environ.get(CI_ENV)
    if value is None:
        return False
    return value.strip().lower() not in _FALSY_ENV_VALUES


def get_defaults(env: str | None = None) -> dict[str, Any]:
    """
    Get the default settings for the specified environment.

    Args:
        env: Environment name (local, ci). If None, uses the CI variable.

    Returns:
        A fresh mapping of every configuration key.
    """
    if env is None:
        env = "ci" if is_ci() else "local"
    if env not in environment_defaults:
        raise ConfigurationError(f"Unknown environment: {env!r}")
    merged = copy.deepcopy(BASE_DEFAULTS)
    merged.update(copy.deepcopy(environment_defaults[env]))
    return merged


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read run configuration {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Run configuration {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Run configuration {path} must contain a mapping")
    return data


def resolve_config_path(path: str | Path | None = None) -> Path | None:
    """
    Find the configuration file to load.

    Priority: explicit ``path``, the ``E2E_RUN_CONFIG`` variable, then
    ``run_config.yml`` in the working directory when it exists.
    """
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    default = Path.cwd() / DEFAULT_CONFIG_FILE
    return default if default.is_file() else None


def load_config(
    path: str | Path | None = None,
    *,
    ci: bool | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RunConfig:
    """
    Load, merge and validate the run configuration.

    Args:
        path: Explicit YAML file. See :func:`resolve_config_path`.
        ci: Force CI or local mode; None reads the ``CI`` variable.
        overrides: Values that win over every other layer.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file cannot be read or a value is invalid.
    """
    ci_mode = is_ci() if ci is None else ci
    merged = get_defaults("ci" if ci_mode else "local")

    config_path = resolve_config_path(path)
    if config_path is not None:
        file_data = _read_file(config_path)
        ci_block = file_data.pop("ci", None) or {}
        if not isinstance(ci_block, dict):
            raise ConfigurationError("The ci block must be a mapping")
        _reject_unknown(file_data, set(merged), "configuration")
        _reject_unknown(ci_block, set(merged), "ci")
        merged.update(file_data)
        if ci_mode:
            merged.update(ci_block)

    if overrides:
        _reject_unknown(overrides, set(merged), "override")
        merged.update(overrides)

    config = RunConfig.from_mapping(merged)
    logger.info(
        f"Loaded run configuration ({'ci' if ci_mode else 'local'} mode) "
        f"from {config_path or 'built-in defaults'}"
    )
    return config


__all__ = [
    "BROWSER_ENGINES",
    "REPORTER_KINDS",
    "ProjectConfig",
    "RunConfig",
    "Viewport",
    "get_defaults",
    "is_ci",
    "load_config",
    "resolve_config_path",
]
