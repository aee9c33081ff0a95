from __future__ import annotations

import math
from typing import Sequence

from zipload.core.models import Stage
from zipload.core.timeparse import parse_duration_to_seconds
from zipload.exceptions import ValidationError


def parse_stages(raw: str) -> tuple[Stage, ...]:
    """Parse a stage list like ``30s:10,1m:10,30s:0``.

    Each entry is ``<duration>:<target users>``.
    """
    stages: list[Stage] = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        duration_text, sep, target_text = entry.partition(":")
        if not sep:
            raise ValidationError(
                "INVALID_STAGE",
                "stage must be <duration>:<target>",
                {"stage": entry},
            )
        try:
            duration = parse_duration_to_seconds(duration_text)
            target = int(target_text.strip())
            stages.append(Stage(duration, target))
        except ValueError as exc:
            raise ValidationError("INVALID_STAGE", str(exc), {"stage": entry}) from exc

    if not stages:
        raise ValidationError("INVALID_STAGE", "at least one stage is required", {"stages": raw})
    return tuple(stages)


def format_stages(stages: Sequence[Stage]) -> str:
    return ",".join(f"{stage.duration_seconds:g}s:{stage.target}" for stage in stages)


def target_users_at(stages: Sequence[Stage], elapsed_seconds: float) -> int | None:
    """Return the user count ``elapsed_seconds`` into the run, or None once all stages are done.

    Each stage ramps linearly from the previous stage's target (0 for the
    first) to its own target. Fractional counts round up.
    """
    previous = 0
    stage_start = 0.0
    for stage in stages:
        stage_end = stage_start + stage.duration_seconds
        if elapsed_seconds < stage_end:
            progress = (elapsed_seconds - stage_start) / stage.duration_seconds
            return max(0, math.ceil(previous + (stage.target - previous) * progress))
        previous = stage.target
        stage_start = stage_end
    return None
