from __future__ import annotations

import threading
from typing import Any, Callable, Mapping

from zipload.core.models import ZIP_CONTENT_TYPE

STATUS_IS_200 = "status is 200"
RESPONSE_IS_ZIP = "response is zip"


def _status_is_200(response: Any) -> bool:
    return response.status_code == 200


def _response_is_zip(response: Any) -> bool:
    return response.headers.get("Content-Type") == ZIP_CONTENT_TYPE


DOWNLOAD_CHECKS: dict[str, Callable[[Any], bool]] = {
    STATUS_IS_200: _status_is_200,
    RESPONSE_IS_ZIP: _response_is_zip,
}


def run_checks(
    response: Any,
    checks: Mapping[str, Callable[[Any], bool]] = DOWNLOAD_CHECKS,
) -> dict[str, bool]:
    """Evaluate each named check against a response.

    ``response`` only needs ``status_code`` and a case-insensitive ``headers``
    mapping, so both requests and httpx responses work.
    """
    return {name: bool(check(response)) for name, check in checks.items()}


class CheckTally:
    """Pass/fail counts per check name, shared by all virtual users."""

    def __init__(self) -> None:
        self._counts: dict[str, list[int]] = {}
        self._lock = threading.Lock()

    def record(self, results: Mapping[str, bool]) -> None:
        with self._lock:
            for name, passed in results.items():
                counts = self._counts.setdefault(name, [0, 0])
                counts[0 if passed else 1] += 1

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def snapshot(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {
                name: {"passes": passes, "fails": fails}
                for name, (passes, fails) in self._counts.items()
            }

    def pass_rate(self) -> float | None:
        """Fraction of all check evaluations that passed, or None when nothing was checked."""
        with self._lock:
            passes = sum(counts[0] for counts in self._counts.values())
            total = passes + sum(counts[1] for counts in self._counts.values())
        return (passes / total) if total else None
