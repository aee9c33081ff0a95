from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from zipload.logger import ConsoleLogger, session_logger as logger

from zipload.api.report import build_summary, render_text_summary, write_summary_artifacts
from zipload.core.models import (
    DEFAULT_BASE_URL,
    DEFAULT_PAYLOAD_URLS,
    DEFAULT_STAGES,
    THRESHOLDS_FAILED_EXIT_CODE,
    LoadTestConfig,
    Mode,
)
from zipload.core.payload import load_urls_file
from zipload.core.probe import probe_download
from zipload.core.stages import parse_stages
from zipload.core.thresholds import DEFAULT_THRESHOLDS, parse_threshold_arg
from zipload.core.timeparse import parse_duration_to_seconds
from zipload.exceptions import ConfigurationError, ValidationError, ZiploadError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="zipload: load test for POST /api/download")
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "probe"],
        default="run",
        help="run (default): staged load test; probe: one contract-check request",
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in Mode],
        default=os.environ.get("ZIPLOAD_MODE", Mode.LIVE.value),
        help="live: hit BASE_URL; fixture: start a local download stub and hit it",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=os.environ.get("BASE_URL") or DEFAULT_BASE_URL,
        help=f"Service base URL (env BASE_URL, default {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--urls-file",
        type=str,
        default=None,
        help="JSON file with the payload URLs (list or {\"urls\": [...]}); defaults to the built-in ten",
    )
    parser.add_argument(
        "--stages",
        type=str,
        default=os.environ.get("ZIPLOAD_STAGES"),
        help="Stage list <duration>:<users>,... (e.g. 30s:10,1m:10,30s:0)",
    )
    parser.add_argument(
        "--threshold",
        action="append",
        default=None,
        metavar="METRIC=EXPR",
        help="Threshold such as http_req_duration=p(95)<30000; repeat to add more (replaces defaults)",
    )
    parser.add_argument(
        "--timeout",
        type=str,
        default=os.environ.get("ZIPLOAD_TIMEOUT", "180s"),
        help="Per-request timeout (e.g. 180s, 3m)",
    )
    parser.add_argument(
        "--think-time",
        type=str,
        default=os.environ.get("ZIPLOAD_THINK_TIME", "1s"),
        help="Pause between iterations of each virtual user",
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default=os.environ.get("ZIPLOAD_RESULTS_DIR", "results"),
        help="Directory receiving summary-<timestamp>.json/.txt",
    )
    parser.add_argument(
        "--probe-first",
        action="store_true",
        help="Send one probe request before the load run and abort if it fails",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.environ.get("ZIPLOAD_LOG_LEVEL", "INFO"),
    )
    return parser


def build_config(args: argparse.Namespace) -> LoadTestConfig:
    """Resolve CLI arguments into a ``LoadTestConfig``; raises ``ZiploadError`` on bad input."""
    try:
        timeout_seconds = parse_duration_to_seconds(args.timeout)
        think_time_seconds = parse_duration_to_seconds(args.think_time)
    except ValueError as exc:
        raise ValidationError(
            "INVALID_DURATION",
            str(exc),
            {"timeout": args.timeout, "think_time": args.think_time},
        ) from exc

    if timeout_seconds <= 0:
        raise ValidationError("INVALID_DURATION", "timeout must be > 0", {"timeout": args.timeout})

    urls = load_urls_file(args.urls_file) if args.urls_file else DEFAULT_PAYLOAD_URLS
    stages = parse_stages(args.stages) if args.stages else DEFAULT_STAGES
    thresholds = (
        tuple(parse_threshold_arg(raw) for raw in args.threshold)
        if args.threshold
        else DEFAULT_THRESHOLDS
    )

    return LoadTestConfig(
        mode=Mode(args.mode),
        base_url=args.base_url.strip(),
        urls=tuple(urls),
        stages=stages,
        thresholds=thresholds,
        timeout_seconds=timeout_seconds,
        think_time_seconds=think_time_seconds,
        results_dir=args.results_dir,
    )


def _run_probe(config: LoadTestConfig) -> int:
    """Probe the endpoint once; in fixture mode the stub is started around the probe."""
    from zipload.fixtures.download_fixture_server import DownloadFixtureServer

    async def _probe(base_url: str, urls: tuple[str, ...]) -> int:
        result = await probe_download(
            base_url,
            urls,
            timeout_seconds=config.timeout_seconds,
            logger=logger,
        )
        sys.stdout.write(json.dumps(result.to_dict(), indent=2) + "\n")
        return 0 if result.passed else 1

    if config.mode == Mode.FIXTURE:
        with DownloadFixtureServer(logger=logger) as server:
            return asyncio.run(_probe(server.base_url, server.file_urls(len(config.urls))))

    return asyncio.run(_probe(config.base_url, config.urls))


def _run_load(config: LoadTestConfig) -> int:
    from zipload.core.engine import LoadTestRunner

    runner = LoadTestRunner(config, logger=logger)
    result = runner.run()

    summary = build_summary(runner.config, result)
    text = render_text_summary(summary, result.stats)
    sys.stdout.write(text)
    sys.stdout.flush()

    try:
        json_path, text_path = write_summary_artifacts(config.results_dir, summary, text)
    except OSError as exc:
        raise ConfigurationError(
            "RESULTS_WRITE_FAILED",
            f"cannot write summary artifacts: {exc}",
            {"results_dir": config.results_dir},
        ) from exc

    logger.info(
        "zipload.summary_written",
        event="zipload.summary_written",
        json_path=str(json_path),
        text_path=str(text_path),
    )

    if not result.thresholds_passed:
        return THRESHOLDS_FAILED_EXIT_CODE
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if isinstance(logger, ConsoleLogger):
        logger.set_level(getattr(logging, args.log_level))

    try:
        config = build_config(args)

        if args.command == "probe":
            return _run_probe(config)

        if args.probe_first and _run_probe(config) != 0:
            logger.error(
                "zipload.probe_first_failed",
                event="zipload.probe_first_failed",
                base_url=config.base_url,
                recovery="Ensure the download service is up and answers the payload with a zip",
            )
            return 1

        return _run_load(config)
    except ZiploadError as exc:
        logger.error(
            "zipload.invalid_config",
            event="zipload.invalid_config",
            code=exc.code,
            error=exc.message,
            details=exc.details,
            recovery="Fix the command-line arguments, ZIPLOAD_* environment variables or results directory",
        )
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
