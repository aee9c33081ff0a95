from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from zipload.exceptions import ResourceNotFoundError, ValidationError


def build_payload(urls: Iterable[str]) -> dict[str, Any]:
    """Build the ``{"urls": [...]}`` request body for ``/api/download``."""
    url_list = [str(url) for url in urls]
    if not url_list:
        raise ValidationError("EMPTY_PAYLOAD", "urls list must be non-empty")
    blank = [index for index, url in enumerate(url_list) if not url.strip()]
    if blank:
        raise ValidationError(
            "BLANK_URL",
            "urls must not contain blank entries",
            {"indexes": blank},
        )
    return {"urls": url_list}


def encode_payload(urls: Iterable[str]) -> bytes:
    return json.dumps(build_payload(urls)).encode("utf-8")


def load_urls_file(path: str) -> tuple[str, ...]:
    """Load payload URLs from a JSON file.

    Accepts either a bare list of strings or an object with a ``urls`` list.
    """
    urls_file = Path(path)
    if not urls_file.exists():
        raise ResourceNotFoundError("URLS_FILE_NOT_FOUND", f"urls file does not exist: {path}")

    try:
        data = json.loads(urls_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError("INVALID_URLS_FILE", f"urls file is not valid JSON: {exc}", {"path": path}) from exc

    if isinstance(data, dict):
        data = data.get("urls")
    if not isinstance(data, list) or not all(isinstance(url, str) for url in data):
        raise ValidationError(
            "INVALID_URLS_FILE",
            "urls file must contain a list of strings or {\"urls\": [...]}",
            {"path": path},
        )

    return tuple(build_payload(data)["urls"])
