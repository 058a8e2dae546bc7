"""Shared test fixtures for py-chainmon test suite."""

from __future__ import annotations

import pytest

from tests.fakes import RecordingReporter, make_config


@pytest.fixture
def app_config():
    """Provide a wildcard AppConfig with safe defaults."""
    return make_config()


@pytest.fixture
def recorder() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables out of config loading."""
    names = (
        "CHAINMON_CONFIG_PATH",
        "CHAINMON_LOG_LEVEL",
        "MATRIX_USERID",
        "MATRIX_ACCESSTOKEN",
    )
    for name in names:
        monkeypatch.delenv(name, raising=False)
