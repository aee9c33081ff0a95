from __future__ import annotations

import pytest

from zipload.core.timeparse import format_duration, parse_duration_to_seconds


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("500ms", 0.5),
        ("30s", 30.0),
        ("1m", 60.0),
        ("1h", 3600.0),
        ("1m30s", 90.0),
        ("2.5s", 2.5),
        (" 180s ", 180.0),
    ],
)
def test_parse_duration(raw: str, expected: float) -> None:
    assert parse_duration_to_seconds(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "30", "s", "10x", "-5s", "1m 30s"])
def test_parse_duration_rejects_garbage(raw: str) -> None:
    with pytest.raises(ValueError):
        parse_duration_to_seconds(raw)


@pytest.mark.parametrize(
    "seconds,expected",
    [
        (0.25, "250ms"),
        (30, "30s"),
        (90, "1m30s"),
        (210, "3m30s"),
        (3600, "1h"),
    ],
)
def test_format_duration(seconds: float, expected: str) -> None:
    assert format_duration(seconds) == expected
