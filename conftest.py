"""Root conftest: load the runner plugin when the package is not installed."""

pytest_plugins = ["pytester", "e2e_runner.plugin"]
