"""Load-testing harness for the zip download service.

This package configures a locust run against ``POST /api/download``,
evaluates thresholds over locust's aggregates and writes timestamped
summary artifacts.
"""

from __future__ import annotations

__all__ = []
