"""
Browser projects.

A project pairs a browser engine with an optional device descriptor and
context overrides. This module turns a :class:`ProjectConfig` into the
arguments Playwright needs: which engine to launch and which options every
new context gets.

Device names are checked against ``playwright.devices`` at resolution time,
because the descriptor table ships with the installed Playwright version.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from e2e_runner.config import ProjectConfig, RunConfig
from e2e_runner.errors import ConfigurationError

DEFAULT_BROWSER = "chromium"

# Descriptor keys that pick the engine rather than configure a context
_LAUNCH_ONLY_KEYS = ("default_browser_type",)


def device_descriptor(devices: Mapping[str, Mapping[str, Any]], name: str) -> dict[str, Any]:
    """
    Look up a device descriptor by name.

    Raises:
        ConfigurationError: If Playwright does not know the device.
    """
    try:
        return dict(devices[name])
    except KeyError as exc:
        raise ConfigurationError(f"Unknown device descriptor: {name!r}") from exc


def device_context_options(
    devices: Mapping[str, Mapping[str, Any]], name: str
) -> dict[str, Any]:
    """Return the context options of a device descriptor, without its engine choice."""
    descriptor = device_descriptor(devices, name)
    for key in _LAUNCH_ONLY_KEYS:
        descriptor.pop(key, None)
    return descriptor


def resolve_browser_name(
    project: ProjectConfig, devices: Mapping[str, Mapping[str, Any]]
) -> str:
    """Return the engine for ``project``: explicit browser, device default, then chromium."""
    if project.browser:
        return project.browser
    if project.device:
        descriptor = device_descriptor(devices, project.device)
        return descriptor.get("default_browser_type") or DEFAULT_BROWSER
    return DEFAULT_BROWSER


def context_options(
    config: RunConfig,
    project: ProjectConfig,
    devices: Mapping[str, Mapping[str, Any]],
) -> dict[str, Any]:
    """
    Build ``browser.new_context`` keyword arguments for a project.

    Later sources win: global settings, then the device descriptor, then
    the project's own overrides.
    """
    options: dict[str, Any] = {"ignore_https_errors": config.ignore_https_errors}
    if config.base_url:
        options["base_url"] = config.base_url
    if config.viewport is not None:
        options["viewport"] = config.viewport.to_dict()

    if project.device:
        options.update(device_context_options(devices, project.device))

    if project.viewport is not None:
        options["viewport"] = project.viewport.to_dict()
    if project.user_agent:
        options["user_agent"] = project.user_agent
    if project.locale:
        options["locale"] = project.locale
    return options


def launch_options(config: RunConfig) -> dict[str, Any]:
    """Build ``browser_type.launch`` keyword arguments."""
    options: dict[str, Any] = {"headless": config.headless}
    if config.slow_mo_ms:
        options["slow_mo"] = config.slow_mo_ms
    return options
