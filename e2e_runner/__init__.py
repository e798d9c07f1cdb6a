"""
Configuration-driven runner for the DemoQA browser scenario suite.

The package turns a declarative run configuration into pytest behavior:
retries, timeouts, artifact capture, browser projects and reporting.
Scenarios themselves live under ``tests/scenarios``.
"""

from e2e_runner.config import RunConfig, load_config
from e2e_runner.errors import ConfigurationError

__all__ = ["ConfigurationError", "RunConfig", "load_config"]
