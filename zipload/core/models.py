from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


DEFAULT_BASE_URL = "http://localhost:8080"
DOWNLOAD_PATH = "/api/download"
ZIP_CONTENT_TYPE = "application/zip"

# Marker entries the download service adds to the archive when fetches fail.
DOWNLOAD_ERRORS_ENTRY = "_download_errors.txt"
ALL_FAILED_ENTRY = "_ALL_DOWNLOADS_FAILED.txt"

DEFAULT_TIMEOUT_SECONDS = 180.0
DEFAULT_THINK_TIME_SECONDS = 1.0

# Exit code used when the run completes but a threshold is crossed.
THRESHOLDS_FAILED_EXIT_CODE = 99

DEFAULT_PAYLOAD_URLS: tuple[str, ...] = tuple(
    f"http://192.168.1.6:4566/my-bucket/test/{i}.pdf" for i in range(1, 11)
)


class Mode(str, Enum):
    """Load test execution mode.

    live: hit the service at BASE_URL with the configured payload
    fixture: start the local download stub and hit it (CI-safe)
    """

    LIVE = "live"
    FIXTURE = "fixture"


@dataclass(frozen=True)
class Stage:
    """A ramp segment: reach ``target`` users linearly over ``duration_seconds``."""

    duration_seconds: float
    target: int

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError("stage duration must be non-negative")
        if self.target < 0:
            raise ValueError("stage target must be non-negative")


DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage(30.0, 10),
    Stage(60.0, 10),
    Stage(30.0, 20),
    Stage(60.0, 20),
    Stage(30.0, 0),
)


@dataclass(frozen=True)
class Threshold:
    """A pass/fail rule over one aggregated metric, e.g. ``p(95)<30000``."""

    metric: str
    expression: str
    aggregate: str
    operator: str
    limit: float
    percentile: float | None = None


@dataclass(frozen=True)
class ThresholdOutcome:
    threshold: Threshold
    observed: float | None
    passed: bool


@dataclass(frozen=True)
class LoadTestConfig:
    mode: Mode
    base_url: str
    urls: tuple[str, ...]
    stages: tuple[Stage, ...]
    thresholds: tuple[Threshold, ...]
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    think_time_seconds: float = DEFAULT_THINK_TIME_SECONDS
    results_dir: str = "results"

    @property
    def total_duration_seconds(self) -> float:
        return sum(stage.duration_seconds for stage in self.stages)

    @property
    def max_users(self) -> int:
        return max((stage.target for stage in self.stages), default=0)


@dataclass
class LoadTestResult:
    started_at_monotonic: float
    ended_at_monotonic: float
    request_count: int
    failure_count: int
    thresholds: list[ThresholdOutcome] = field(default_factory=list)
    checks: dict[str, dict[str, int]] = field(default_factory=dict)
    metrics: dict[str, Any] | None = None
    # locust RequestStats for the run; rendered into the text summary.
    stats: Any = field(default=None, repr=False)

    @property
    def duration_seconds(self) -> float:
        return max(0.0, self.ended_at_monotonic - self.started_at_monotonic)

    @property
    def throughput_rps(self) -> float:
        duration = self.duration_seconds
        return (self.request_count / duration) if duration > 0 else 0.0

    @property
    def thresholds_passed(self) -> bool:
        return all(outcome.passed for outcome in self.thresholds)
