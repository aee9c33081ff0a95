from __future__ import annotations

import re


_PART_RE = re.compile(r"(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)")
_DURATION_RE = re.compile(r"^(?:\d+(?:\.\d+)?(?:ms|s|m|h))+$")

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration_to_seconds(raw: str) -> float:
    """Parse duration strings like '500ms', '30s', '1m', '1h' or '1m30s' into seconds."""
    text = raw.strip()
    if not _DURATION_RE.match(text):
        raise ValueError("duration must match <number><unit>[<number><unit>...] where unit is ms|s|m|h")

    return sum(
        float(match.group("value")) * _UNIT_SECONDS[match.group("unit")]
        for match in _PART_RE.finditer(text)
    )


def format_duration(seconds: float) -> str:
    """Render seconds compactly (``90`` -> ``1m30s``) for logs and summaries."""
    if seconds < 1:
        return f"{int(round(seconds * 1000))}ms"
    whole = int(seconds)
    minutes, secs = divmod(whole, 60)
    hours, minutes = divmod(minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return "".join(parts)
