"""Pytest configuration and fixtures

Provides shared fixtures for all tests, including the local download
stub server and an isolated results directory.
"""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from zipload.fixtures.download_fixture_server import DownloadFixtureServer


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep host environment variables from leaking into CLI defaults."""
    for name in (
        "BASE_URL",
        "ZIPLOAD_MODE",
        "ZIPLOAD_STAGES",
        "ZIPLOAD_TIMEOUT",
        "ZIPLOAD_THINK_TIME",
        "ZIPLOAD_RESULTS_DIR",
        "ZIPLOAD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ZIPLOAD_FIXTURE_HOST", "127.0.0.1")
    monkeypatch.setenv("ZIPLOAD_FIXTURE_EXTERNAL_HOST", "127.0.0.1")


@pytest.fixture
def download_fixture_server():
    """Start the download stub on a free port for the duration of a test."""
    server = DownloadFixtureServer()
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def results_dir(tmp_path):
    return tmp_path / "results"
