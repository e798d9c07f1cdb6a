"""Fixtures for runner unit tests: no browser, no network."""

import pytest

from e2e_runner.config import CI_ENV, CONFIG_PATH_ENV, RunConfig, get_defaults


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate tests from the caller's CI flag, config path and working directory."""
    monkeypatch.delenv(CI_ENV, raising=False)
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def write_config(tmp_path):
    """Write YAML text to a run configuration file and return its path."""

    def _write(text: str, name: str = "run_config.yml"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_config(tmp_path):
    """Build a validated local configuration with ``overrides`` applied."""

    def _make(**overrides) -> RunConfig:
        data = get_defaults("local")
        data["output_dir"] = str(tmp_path / "test-results")
        data.update(overrides)
        return RunConfig.from_mapping(data)

    return _make
