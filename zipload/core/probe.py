"""Single-request contract probe for ``POST /api/download``.

Runs one request with httpx before (or instead of) a load run to confirm
that the service answers a valid payload with a zip archive.
"""

from __future__ import annotations

import io
import time
import zipfile
from dataclasses import dataclass, field
from typing import Iterable

import httpx

from zipload.core.checks import run_checks
from zipload.core.models import (
    ALL_FAILED_ENTRY,
    DEFAULT_TIMEOUT_SECONDS,
    DOWNLOAD_ERRORS_ENTRY,
    DOWNLOAD_PATH,
)
from zipload.core.payload import build_payload
from zipload.logger import Logger, session_logger


@dataclass
class ProbeResult:
    url: str
    duration_ms: int
    status_code: int | None = None
    content_type: str | None = None
    checks: dict[str, bool] = field(default_factory=dict)
    zip_entries: list[str] = field(default_factory=list)
    error_type: str | None = None
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.error is None and bool(self.checks) and all(self.checks.values())

    @property
    def has_download_errors(self) -> bool:
        return DOWNLOAD_ERRORS_ENTRY in self.zip_entries

    @property
    def all_downloads_failed(self) -> bool:
        return ALL_FAILED_ENTRY in self.zip_entries

    @property
    def files(self) -> list[str]:
        return [name for name in self.zip_entries if name not in (DOWNLOAD_ERRORS_ENTRY, ALL_FAILED_ENTRY)]

    def to_dict(self) -> dict[str, object]:
        return {
            "url": self.url,
            "duration_ms": self.duration_ms,
            "status_code": self.status_code,
            "content_type": self.content_type,
            "checks": dict(self.checks),
            "passed": self.passed,
            "files": self.files,
            "has_download_errors": self.has_download_errors,
            "all_downloads_failed": self.all_downloads_failed,
            "error_type": self.error_type,
            "error": self.error,
        }


async def probe_download(
    base_url: str,
    urls: Iterable[str],
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
    logger: Logger | None = None,
) -> ProbeResult:
    """POST the payload once and report status, content type and archive contents."""
    log = logger or session_logger
    target = f"{base_url.rstrip('/')}{DOWNLOAD_PATH}"
    payload = build_payload(urls)

    start = time.monotonic()
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers={"User-Agent": "zipload-probe/0.1"},
        ) as client:
            response = await client.post(target, json=payload)
    except Exception as exc:
        duration_ms = int((time.monotonic() - start) * 1000)
        error_type = _classify_exception(exc)
        log.warning(
            "zipload.probe_error",
            event="zipload.probe_error",
            url=target,
            duration_ms=duration_ms,
            error_type=error_type,
            error=str(exc),
            recovery="Check that the download service is running at BASE_URL",
        )
        return ProbeResult(url=target, duration_ms=duration_ms, error_type=error_type, error=str(exc))

    duration_ms = int((time.monotonic() - start) * 1000)
    result = ProbeResult(
        url=target,
        duration_ms=duration_ms,
        status_code=response.status_code,
        content_type=response.headers.get("Content-Type"),
        checks=run_checks(response),
        error_type=_classify_http_error(response.status_code),
    )

    if result.checks.get("response is zip"):
        try:
            result.zip_entries = _zip_entry_names(response.content)
        except zipfile.BadZipFile as exc:
            result.error_type = "invalid_zip"
            result.error = str(exc)

    if result.passed:
        log.info(
            "zipload.probe_ok",
            event="zipload.probe_ok",
            url=target,
            status_code=result.status_code,
            duration_ms=duration_ms,
            files=len(result.files),
            has_download_errors=result.has_download_errors,
        )
    else:
        log.warning(
            "zipload.probe_failed",
            event="zipload.probe_failed",
            url=target,
            status_code=result.status_code,
            content_type=result.content_type,
            duration_ms=duration_ms,
            checks=result.checks,
            error_type=result.error_type,
        )
    return result


def _zip_entry_names(body: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(body)) as archive:
        return archive.namelist()


# ---------------------------------------------------------------------------
# Helpers: error classification
# ---------------------------------------------------------------------------

def _classify_http_error(status_code: int) -> str | None:
    """Map an HTTP status code to a canonical error_type, or None if success."""
    if 200 <= status_code < 400:
        return None
    if status_code == 400:
        return "bad_request"
    if status_code == 404:
        return "not_found"
    if status_code == 413:
        return "payload_too_large"
    if status_code == 429:
        return "rate_limited"
    if 400 <= status_code < 500:
        return "client_error"
    if 500 <= status_code < 600:
        return "server_error"
    return f"http_{status_code}"


def _classify_exception(exc: Exception) -> str:
    """Map a network-level exception to a canonical error_type."""
    if isinstance(exc, httpx.TimeoutException):
        return "network_timeout"
    if isinstance(exc, httpx.ConnectError):
        return "network_connect"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return "network_protocol"
    if isinstance(exc, httpx.HTTPError):
        return "network_error"
    return type(exc).__name__
