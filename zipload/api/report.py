from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from locust.stats import (
    get_error_report_summary,
    get_percentile_stats_summary,
    get_stats_summary,
)

from zipload.core.models import LoadTestConfig, LoadTestResult, Stage, ThresholdOutcome
from zipload.core.stages import format_stages
from zipload.core.timeparse import format_duration


def summary_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC instant with millisecond precision, ``:`` and ``.`` replaced by ``-``.

    ``2026-10-19T08:15:02.123Z`` becomes ``2026-10-19T08-15-02-123Z``.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def _entry_to_report(entry: Any) -> dict[str, Any]:
    """Flatten a locust ``StatsEntry`` into plain JSON values (times in ms)."""
    return {
        "count": entry.num_requests,
        "failures": entry.num_failures,
        "fail_ratio": round(entry.fail_ratio, 4),
        "avg_ms": round(entry.avg_response_time, 2),
        "min_ms": entry.min_response_time,
        "med_ms": entry.median_response_time,
        "max_ms": entry.max_response_time,
        "p90_ms": entry.get_response_time_percentile(0.90),
        "p95_ms": entry.get_response_time_percentile(0.95),
        "p99_ms": entry.get_response_time_percentile(0.99),
        "avg_content_length": round(entry.avg_content_length, 2),
        "rps": round(entry.total_rps, 3),
    }


def request_metrics(stats: Any) -> dict[str, Any]:
    """Collect locust's aggregates for the run into a JSON-serialisable dict."""
    endpoints = {
        f"{entry.method} {entry.name}": _entry_to_report(entry)
        for entry in sorted(stats.entries.values(), key=lambda e: (e.name, e.method or ""))
    }
    errors = [
        {
            "method": error.method,
            "name": error.name,
            "error": str(error.error),
            "occurrences": error.occurrences,
        }
        for error in sorted(stats.errors.values(), key=lambda e: -e.occurrences)
    ]
    return {
        "total": _entry_to_report(stats.total),
        "endpoints": endpoints,
        "errors": errors,
    }


def _threshold_to_report(outcome: ThresholdOutcome) -> dict[str, Any]:
    return {
        "metric": outcome.threshold.metric,
        "expression": outcome.threshold.expression,
        "observed": outcome.observed,
        "passed": outcome.passed,
    }


def build_summary(config: LoadTestConfig, result: LoadTestResult) -> dict[str, Any]:
    config_payload = {
        "mode": config.mode.value,
        "base_url": config.base_url,
        "urls": list(config.urls),
        "stages": [
            {"duration_seconds": stage.duration_seconds, "target": stage.target}
            for stage in config.stages
        ],
        "timeout_seconds": config.timeout_seconds,
        "think_time_seconds": config.think_time_seconds,
    }
    return {
        "config": config_payload,
        "result": {
            "request_count": result.request_count,
            "failure_count": result.failure_count,
            "duration_seconds": round(result.duration_seconds, 3),
            "throughput_rps": round(result.throughput_rps, 3),
        },
        "metrics": result.metrics,
        "checks": result.checks,
        "thresholds": [_threshold_to_report(outcome) for outcome in result.thresholds],
        "passed": result.thresholds_passed,
    }


def render_text_summary(summary: dict[str, Any], stats: Any | None = None, *, indent: str = " ") -> str:
    """Render the human-readable summary.

    Request tables come straight from locust when ``stats`` is given.
    """
    config = summary["config"]
    result = summary["result"]
    stages = format_stages(
        Stage(s["duration_seconds"], s["target"]) for s in config["stages"]
    )

    lines = [
        "zipload summary",
        "===============",
        f"{indent}target ........: POST {config['base_url'].rstrip('/')}/api/download ({config['mode']})",
        f"{indent}payload .......: {len(config['urls'])} urls",
        f"{indent}stages ........: {stages}",
        f"{indent}duration ......: {format_duration(result['duration_seconds'])}",
        f"{indent}requests ......: {result['request_count']} ({result['throughput_rps']:.2f}/s)",
        f"{indent}failures ......: {result['failure_count']}",
        "",
    ]

    if stats is not None:
        lines.extend(get_stats_summary(stats, False))
        lines.append("")
        lines.extend(get_percentile_stats_summary(stats))
        if stats.errors:
            lines.append("")
            lines.extend(get_error_report_summary(stats))
        lines.append("")

    lines.append("checks")
    if not summary["checks"]:
        lines.append(f"{indent}(none recorded)")
    for name, counts in summary["checks"].items():
        total = counts["passes"] + counts["fails"]
        mark = "PASS" if counts["fails"] == 0 else "FAIL"
        pct = (counts["passes"] / total * 100) if total else 0.0
        lines.append(
            f"{indent}[{mark}] {name}: {pct:.2f}% ({counts['passes']} passed, {counts['fails']} failed)"
        )

    lines.append("")
    lines.append("thresholds")
    for threshold in summary["thresholds"]:
        mark = "PASS" if threshold["passed"] else "FAIL"
        observed = "n/a" if threshold["observed"] is None else f"{threshold['observed']:g}"
        lines.append(f"{indent}[{mark}] {threshold['metric']}: {threshold['expression']} (observed {observed})")

    lines.append("")
    lines.append("result: " + ("PASSED" if summary["passed"] else "THRESHOLDS FAILED"))
    return "\n".join(lines) + "\n"


def write_summary_artifacts(
    results_dir: str | Path,
    summary: dict[str, Any],
    text: str,
    *,
    timestamp: str | None = None,
) -> tuple[Path, Path]:
    """Write ``summary-<ts>.json`` and ``summary-<ts>.txt`` into ``results_dir``."""
    directory = Path(results_dir)
    directory.mkdir(parents=True, exist_ok=True)

    stem = f"summary-{timestamp or summary_timestamp()}"
    candidate = stem
    suffix = 0
    while (directory / f"{candidate}.json").exists() or (directory / f"{candidate}.txt").exists():
        suffix += 1
        candidate = f"{stem}-{suffix}"

    json_path = directory / f"{candidate}.json"
    text_path = directory / f"{candidate}.txt"
    json_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    text_path.write_text(text, encoding="utf-8")
    return json_path, text_path
