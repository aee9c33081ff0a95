from __future__ import annotations

import io
import json
import os
import zipfile
from datetime import datetime, timezone
from pathlib import PurePosixPath
from urllib.parse import parse_qs, urlparse

import httpx

from zipload.core.models import ALL_FAILED_ENTRY, DOWNLOAD_ERRORS_ENTRY
from zipload.exceptions import ConfigurationError
from zipload.logger import Logger, session_logger

# Names starting with this prefix are answered with 404 by /files/.
MISSING_PREFIX = "missing-"


def fixture_file_bytes(name: str) -> bytes:
    """Deterministic body served for ``/files/<name>``."""
    header = f"%PDF-1.4\n% zipload fixture {name}\n".encode("utf-8")
    return header + b"0123456789abcdef" * 256


def _file_name(url: str) -> str:
    return PurePosixPath(urlparse(url).path).name or "download"


def build_download_zip(
    urls: list[str],
    *,
    fetch_timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> bytes:
    """Fetch every URL and pack the bodies into a zip keyed by basename.

    Mirrors the download service: failures are listed in
    ``_download_errors.txt`` and, when nothing could be fetched,
    ``_ALL_DOWNLOADS_FAILED.txt`` is added as well.
    """
    buffer = io.BytesIO()
    failed: list[str] = []
    success_count = 0

    with httpx.Client(timeout=fetch_timeout, transport=transport) as client, zipfile.ZipFile(
        buffer, "w", compression=zipfile.ZIP_DEFLATED
    ) as archive:
        for url in urls:
            name = _file_name(url)
            try:
                response = client.get(url)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                failed.append(f"{name}: {exc}")
                continue

            if response.status_code != 200:
                failed.append(f"{name}: HTTP {response.status_code}")
                continue

            archive.writestr(name, response.content)
            success_count += 1

        if failed:
            lines = [
                "Download Error Report",
                "=====================",
                f"Generated: {datetime.now(timezone.utc).isoformat(timespec='seconds')}",
                "",
                f"Total requested: {len(urls)}",
                f"Successful: {success_count}",
                f"Failed: {len(failed)}",
                "",
                "Failed files:",
            ]
            lines.extend(f"  - {entry}" for entry in failed)
            archive.writestr(DOWNLOAD_ERRORS_ENTRY, "\n".join(lines) + "\n")

        if success_count == 0 and urls:
            archive.writestr(
                ALL_FAILED_ENTRY,
                "ERROR: All file downloads failed. Please check _download_errors.txt for details.\n",
            )

    return buffer.getvalue()


class DownloadFixtureServer:
    """Lightweight HTTP stand-in for the zip download service.

    Routes:
    - ``GET /files/<name>``: deterministic file bytes (404 for ``missing-*``)
    - ``POST /api/download``: JSON ``{"urls": [...]}`` (or form field ``json``),
      answered with a zip attachment built from the fetched URLs

    Addressing:
    - bind_host: where the server binds (0.0.0.0 for Docker mode)
    - external_host: hostname placed into URLs returned by get_url/base_url

    Env defaults:
      ZIPLOAD_FIXTURE_HOST=0.0.0.0
      ZIPLOAD_FIXTURE_EXTERNAL_HOST=127.0.0.1
    """

    def __init__(
        self,
        *,
        port: int = 0,
        logger: Logger | None = None,
    ) -> None:
        self._logger = logger or session_logger
        self.port = port

        self._bind_host = os.environ.get("ZIPLOAD_FIXTURE_HOST", "0.0.0.0")
        self._external_host = os.environ.get("ZIPLOAD_FIXTURE_EXTERNAL_HOST", "127.0.0.1")

        self._server = None
        self._thread = None

    def start(self) -> None:
        import http.server
        import threading

        class Handler(http.server.BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"

            def do_GET(self):  # noqa: N802
                path = urlparse(self.path).path
                if not path.startswith("/files/"):
                    self._send_json(404, {"success": False, "message": "Not found"})
                    return
                name = PurePosixPath(path).name
                if not name or name.startswith(MISSING_PREFIX):
                    self._send_json(404, {"success": False, "message": f"File not found: {name}"})
                    return
                self._send(200, fixture_file_bytes(name), "application/pdf")

            def do_POST(self):  # noqa: N802
                if urlparse(self.path).path != "/api/download":
                    self._send_json(404, {"success": False, "message": "Not found"})
                    return

                try:
                    length = int(self.headers.get("Content-Length") or 0)
                except ValueError:
                    length = -1
                if length < 0:
                    # Body length unknown; the connection cannot be reused.
                    self.close_connection = True
                    self._send_json(400, {"success": False, "message": "Invalid Content-Length header"})
                    return
                raw = self.rfile.read(length) if length else b""
                content_type = self.headers.get("Content-Type", "")

                try:
                    if "application/json" in content_type:
                        data = json.loads(raw.decode("utf-8") or "null")
                    else:
                        form = parse_qs(raw.decode("utf-8"))
                        field = form.get("json", [""])[0]
                        data = json.loads(field) if field else {}
                except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                    label = "Invalid request body" if "application/json" in content_type else "Invalid JSON in form"
                    self._send_json(400, {"success": False, "message": f"{label}: {exc}"})
                    return

                urls = data.get("urls") if isinstance(data, dict) else None
                if not isinstance(urls, list) or not urls or not all(isinstance(u, str) for u in urls):
                    self._send_json(400, {"success": False, "message": "URLs array is required"})
                    return

                body = build_download_zip(urls)
                self._send(
                    200,
                    body,
                    "application/zip",
                    extra_headers={"Content-Disposition": "attachment; filename=download.zip"},
                )

            def _send_json(self, status: int, payload: dict) -> None:
                self._send(status, json.dumps(payload).encode("utf-8"), "application/json")

            def _send(self, status: int, body: bytes, content_type: str, extra_headers: dict | None = None) -> None:
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(body)))
                for key, value in (extra_headers or {}).items():
                    self.send_header(key, value)
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format, *args):  # noqa: A002, ARG002
                # Keep output deterministic and avoid noisy logs.
                pass

        class ReusableHTTPServer(http.server.ThreadingHTTPServer):
            allow_reuse_address = True
            daemon_threads = True

        try:
            self._server = ReusableHTTPServer((self._bind_host, self.port), Handler)
        except OSError as exc:
            raise ConfigurationError(
                "FIXTURE_BIND_FAILED",
                f"cannot start download stub: {exc}",
                {"bind_host": self._bind_host, "port": self.port},
            ) from exc
        self.port = int(self._server.server_port)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        self._logger.info(
            "zipload.fixture_server_started",
            event="zipload.fixture_server_started",
            bind_host=self._bind_host,
            external_host=self._external_host,
            port=self.port,
        )

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

        self._logger.info(
            "zipload.fixture_server_stopped",
            event="zipload.fixture_server_stopped",
            port=self.port,
        )

    def get_url(self, path: str = "") -> str:
        path = path.lstrip("/")
        return f"http://{self._external_host}:{self.port}/{path}"

    @property
    def base_url(self) -> str:
        return f"http://{self._external_host}:{self.port}"

    def file_urls(self, count: int = 10) -> tuple[str, ...]:
        """URLs for ``count`` fixture files, shaped like the default payload."""
        return tuple(self.get_url(f"files/{i}.pdf") for i in range(1, count + 1))

    def __enter__(self) -> "DownloadFixtureServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
        return None
