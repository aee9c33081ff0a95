"""Local stand-in for the download service, for CI-safe load runs."""

from __future__ import annotations

__all__ = ["DownloadFixtureServer"]

from zipload.fixtures.download_fixture_server import DownloadFixtureServer
