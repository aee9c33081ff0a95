"""Download scenario: virtual users hammering ``POST /api/download``.

Each virtual user posts the same JSON payload, checks that the service
answered ``200`` with an ``application/zip`` body, then waits before the
next iteration. Ramp-up follows the configured stages.

Usage as library::

    from zipload.scenarios.download import DownloadShape, build_user_class

    user_class = build_user_class(config, tally)
    env = Environment(user_classes=[user_class], shape_class=DownloadShape(config.stages))
"""

from __future__ import annotations

from typing import Sequence

from locust import HttpUser, LoadTestShape, constant, task

from zipload.core.checks import CheckTally, run_checks
from zipload.core.models import (
    DEFAULT_STAGES,
    DEFAULT_THINK_TIME_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    DOWNLOAD_PATH,
    LoadTestConfig,
    Stage,
)
from zipload.core.payload import encode_payload
from zipload.core.stages import target_users_at
from zipload.logger import session_logger

JSON_HEADERS = {"Content-Type": "application/json"}


class DownloadUser(HttpUser):
    """Virtual user for the download endpoint.

    Run-specific settings are class attributes filled in by ``build_user_class``.
    """

    abstract = True

    wait_time = constant(DEFAULT_THINK_TIME_SECONDS)
    payload_body: bytes = b""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    check_tally: CheckTally | None = None

    @task
    def download(self) -> None:
        # locust marks transport errors and 4xx/5xx as failures on its own;
        # checks are tallied separately and never change the outcome.
        response = self.client.post(
            DOWNLOAD_PATH,
            data=self.payload_body,
            headers=JSON_HEADERS,
            timeout=self.timeout_seconds,
        )

        results = run_checks(response)
        if self.check_tally is not None:
            self.check_tally.record(results)

        if not all(results.values()):
            session_logger.debug(
                "zipload.check_failed",
                event="zipload.check_failed",
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type"),
                checks=results,
            )


def build_user_class(config: LoadTestConfig, tally: CheckTally) -> type[DownloadUser]:
    """Create a concrete ``DownloadUser`` bound to one run's configuration."""
    return type(
        "ConfiguredDownloadUser",
        (DownloadUser,),
        {
            "host": config.base_url,
            "wait_time": constant(config.think_time_seconds),
            "payload_body": encode_payload(config.urls),
            "timeout_seconds": config.timeout_seconds,
            "check_tally": tally,
        },
    )


class DownloadShape(LoadTestShape):
    """Stage-driven load shape.

    Each stage ramps linearly from the previous target to its own, like:

        0-30s    : 0->10   ramp up
        30-90s   : 10      hold
        90-120s  : 10->20  ramp up
        120-180s : 20      hold
        180-210s : 20->0   ramp down
    """

    # Users added per second when the target jumps.
    spawn_rate: float = 50

    def __init__(self, stages: Sequence[Stage] = DEFAULT_STAGES) -> None:
        super().__init__()
        self.stages = tuple(stages)

    def tick(self) -> tuple[int, float] | None:
        """Return (user_count, spawn_rate) for the current time, or None to stop."""
        users = target_users_at(self.stages, self.get_run_time())
        if users is None:
            return None
        return users, self.spawn_rate
