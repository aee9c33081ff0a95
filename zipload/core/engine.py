from __future__ import annotations

import time
from dataclasses import replace

from locust.env import Environment

from zipload.api.report import request_metrics
from zipload.core.checks import CheckTally
from zipload.core.models import LoadTestConfig, LoadTestResult, Mode
from zipload.core.stages import format_stages
from zipload.core.thresholds import evaluate_thresholds
from zipload.exceptions import ConfigurationError
from zipload.fixtures.download_fixture_server import DownloadFixtureServer
from zipload.logger import Logger, session_logger
from zipload.scenarios.download import DownloadShape, build_user_class


class LoadTestRunner:
    """Runs one staged load test in-process with locust's local runner."""

    def __init__(
        self,
        config: LoadTestConfig,
        *,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or session_logger

    @property
    def config(self) -> LoadTestConfig:
        """Effective configuration; in fixture mode this points at the stub after ``run``."""
        return self._config

    def run(self) -> LoadTestResult:
        if not self._config.stages:
            raise ConfigurationError("NO_STAGES", "at least one stage is required")
        if not self._config.urls:
            raise ConfigurationError("EMPTY_PAYLOAD", "urls list must be non-empty")

        fixture_server: DownloadFixtureServer | None = None
        if self._config.mode == Mode.FIXTURE:
            fixture_server = DownloadFixtureServer(logger=self._logger)
            fixture_server.start()
            self._config = replace(
                self._config,
                base_url=fixture_server.base_url,
                urls=fixture_server.file_urls(len(self._config.urls)),
            )

        try:
            return self._run_locust()
        finally:
            if fixture_server is not None:
                fixture_server.stop()

    def _run_locust(self) -> LoadTestResult:
        config = self._config
        tally = CheckTally()

        environment = Environment(
            user_classes=[build_user_class(config, tally)],
            shape_class=DownloadShape(config.stages),
            host=config.base_url,
        )
        runner = environment.create_local_runner()

        self._logger.info(
            "zipload.run_start",
            event="zipload.run_start",
            mode=config.mode.value,
            base_url=config.base_url,
            urls=len(config.urls),
            stages=format_stages(config.stages),
            max_users=config.max_users,
            planned_seconds=config.total_duration_seconds,
            timeout_seconds=config.timeout_seconds,
        )

        started = time.monotonic()
        try:
            runner.start_shape()
            # The runner clears shape_greenlet when the shape finishes.
            shape_greenlet = runner.shape_greenlet
            if shape_greenlet is not None:
                shape_greenlet.join()
        except KeyboardInterrupt:
            self._logger.warning(
                "zipload.interrupted",
                event="zipload.interrupted",
                elapsed_seconds=round(time.monotonic() - started, 1),
            )
        finally:
            runner.quit()
        ended = time.monotonic()

        stats = environment.stats
        outcomes = evaluate_thresholds(
            config.thresholds,
            stats.total,
            check_pass_rate=tally.pass_rate(),
        )

        result = LoadTestResult(
            started_at_monotonic=started,
            ended_at_monotonic=ended,
            request_count=stats.total.num_requests,
            failure_count=stats.total.num_failures,
            thresholds=outcomes,
            checks=tally.snapshot(),
            metrics=request_metrics(stats),
            stats=stats,
        )

        self._logger.info(
            "zipload.run_end",
            event="zipload.run_end",
            request_count=result.request_count,
            failure_count=result.failure_count,
            duration_seconds=round(result.duration_seconds, 2),
            throughput_rps=round(result.throughput_rps, 2),
            thresholds_passed=result.thresholds_passed,
        )
        for outcome in outcomes:
            if not outcome.passed:
                self._logger.warning(
                    "zipload.threshold_failed",
                    event="zipload.threshold_failed",
                    metric=outcome.threshold.metric,
                    expression=outcome.threshold.expression,
                    observed=outcome.observed,
                )

        return result
