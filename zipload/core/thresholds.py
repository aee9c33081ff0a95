"""Threshold rules evaluated over locust's aggregate request stats.

Expressions follow the k6 notation the service's load tests have always
used, e.g. ``http_req_duration: p(95)<30000`` and ``http_req_failed: rate<0.1``.
Values are read from locust; nothing here recomputes statistics.
"""

from __future__ import annotations

import operator
import re
from typing import Any, Callable, Iterable

from zipload.core.models import Threshold, ThresholdOutcome
from zipload.exceptions import ValidationError


HTTP_REQ_DURATION = "http_req_duration"
HTTP_REQ_FAILED = "http_req_failed"
CHECKS = "checks"

_AGGREGATES_BY_METRIC = {
    HTTP_REQ_DURATION: frozenset({"p", "avg", "med", "min", "max"}),
    HTTP_REQ_FAILED: frozenset({"rate"}),
    CHECKS: frozenset({"rate"}),
}

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_EXPRESSION_RE = re.compile(
    r"^(?:p\((?P<pct>\d+(?:\.\d+)?)\)|(?P<agg>avg|med|min|max|rate))"
    r"\s*(?P<op><=|>=|==|!=|<|>)\s*"
    r"(?P<limit>-?\d+(?:\.\d+)?)$"
)


def parse_threshold(metric: str, expression: str) -> Threshold:
    """Parse one threshold expression for ``metric``."""
    metric = metric.strip()
    expression = expression.strip()

    allowed = _AGGREGATES_BY_METRIC.get(metric)
    if allowed is None:
        raise ValidationError(
            "UNKNOWN_METRIC",
            f"unknown threshold metric: {metric}",
            {"supported": sorted(_AGGREGATES_BY_METRIC)},
        )

    match = _EXPRESSION_RE.match(expression)
    if not match:
        raise ValidationError(
            "INVALID_THRESHOLD",
            f"cannot parse threshold expression: {expression}",
            {"metric": metric},
        )

    percentile = None
    if match.group("pct") is not None:
        aggregate = "p"
        percentile = float(match.group("pct"))
        if not 0 < percentile <= 100:
            raise ValidationError(
                "INVALID_THRESHOLD",
                "percentile must be in (0, 100]",
                {"metric": metric, "expression": expression},
            )
    else:
        aggregate = match.group("agg")

    if aggregate not in allowed:
        raise ValidationError(
            "INVALID_THRESHOLD",
            f"aggregate '{aggregate}' is not supported for {metric}",
            {"supported": sorted(allowed)},
        )

    return Threshold(
        metric=metric,
        expression=expression,
        aggregate=aggregate,
        operator=match.group("op"),
        limit=float(match.group("limit")),
        percentile=percentile,
    )


def parse_threshold_arg(raw: str) -> Threshold:
    """Parse the CLI form ``metric=expression`` (``metric:expression`` also accepted)."""
    for sep in ("=", ":"):
        metric, found, expression = raw.partition(sep)
        if found and metric.strip() in _AGGREGATES_BY_METRIC:
            return parse_threshold(metric, expression)
    raise ValidationError(
        "INVALID_THRESHOLD",
        "threshold must be <metric>=<expression>",
        {"threshold": raw},
    )


DEFAULT_THRESHOLDS: tuple[Threshold, ...] = (
    parse_threshold(HTTP_REQ_DURATION, "p(95)<30000"),
    parse_threshold(HTTP_REQ_FAILED, "rate<0.1"),
)


def observed_value(threshold: Threshold, total: Any, check_pass_rate: float | None) -> float | None:
    """Read the value a threshold applies to.

    ``total`` is locust's aggregated ``StatsEntry`` (``environment.stats.total``).
    Returns None when the metric has no samples yet.
    """
    if threshold.metric == CHECKS:
        return check_pass_rate

    if total.num_requests == 0:
        return None

    if threshold.metric == HTTP_REQ_FAILED:
        return float(total.fail_ratio)

    if threshold.aggregate == "p":
        if threshold.percentile is None:
            raise ValidationError(
                "INVALID_THRESHOLD",
                "percentile threshold has no percentile",
                {"metric": threshold.metric, "expression": threshold.expression},
            )
        return float(total.get_response_time_percentile(threshold.percentile / 100.0))
    if threshold.aggregate == "avg":
        return float(total.avg_response_time)
    if threshold.aggregate == "med":
        return float(total.median_response_time)
    if threshold.aggregate == "min":
        return float(total.min_response_time or 0)
    if threshold.aggregate == "max":
        return float(total.max_response_time)

    raise ValidationError("INVALID_THRESHOLD", f"unsupported aggregate: {threshold.aggregate}")


def evaluate_thresholds(
    thresholds: Iterable[Threshold],
    total: Any,
    *,
    check_pass_rate: float | None = None,
) -> list[ThresholdOutcome]:
    outcomes: list[ThresholdOutcome] = []
    for threshold in thresholds:
        value = observed_value(threshold, total, check_pass_rate)
        passed = True if value is None else _OPERATORS[threshold.operator](value, threshold.limit)
        outcomes.append(ThresholdOutcome(threshold=threshold, observed=value, passed=passed))
    return outcomes
