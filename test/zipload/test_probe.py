"""Tests for the single-request contract probe."""

from __future__ import annotations

import io
import json
import zipfile

import httpx
import pytest

from zipload.core.models import ALL_FAILED_ENTRY, DOWNLOAD_ERRORS_ENTRY
from zipload.core.probe import _classify_exception, _classify_http_error, probe_download

_URLS = ["http://storage/my-bucket/test/1.pdf", "http://storage/my-bucket/test/2.pdf"]


def _zip_bytes(*names: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name in names:
            archive.writestr(name, b"data")
    return buffer.getvalue()


class TestProbeDownload:
    @pytest.mark.asyncio
    async def test_zip_response_passes(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                headers={"Content-Type": "application/zip"},
                content=_zip_bytes("1.pdf", "2.pdf"),
            )

        result = await probe_download(
            "http://service:8080/",
            _URLS,
            transport=httpx.MockTransport(handler),
        )

        assert seen == {
            "method": "POST",
            "path": "/api/download",
            "content_type": "application/json",
            "body": {"urls": _URLS},
        }
        assert result.passed is True
        assert result.url == "http://service:8080/api/download"
        assert result.files == ["1.pdf", "2.pdf"]
        assert result.has_download_errors is False
        assert result.error_type is None

    @pytest.mark.asyncio
    async def test_partial_failures_are_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"Content-Type": "application/zip"},
                content=_zip_bytes("1.pdf", DOWNLOAD_ERRORS_ENTRY),
            )

        result = await probe_download("http://service:8080", _URLS, transport=httpx.MockTransport(handler))

        assert result.passed is True
        assert result.files == ["1.pdf"]
        assert result.has_download_errors is True
        assert result.all_downloads_failed is False

    @pytest.mark.asyncio
    async def test_all_failed_marker(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"Content-Type": "application/zip"},
                content=_zip_bytes(DOWNLOAD_ERRORS_ENTRY, ALL_FAILED_ENTRY),
            )

        result = await probe_download("http://service:8080", _URLS, transport=httpx.MockTransport(handler))

        assert result.all_downloads_failed is True
        assert result.files == []

    @pytest.mark.asyncio
    async def test_bad_request_fails_checks(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"success": False, "message": "URLs array is required"})

        result = await probe_download("http://service:8080", _URLS, transport=httpx.MockTransport(handler))

        assert result.passed is False
        assert result.status_code == 400
        assert result.checks == {"status is 200": False, "response is zip": False}
        assert result.error_type == "bad_request"

    @pytest.mark.asyncio
    async def test_corrupt_zip_fails(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"Content-Type": "application/zip"}, content=b"not a zip")

        result = await probe_download("http://service:8080", _URLS, transport=httpx.MockTransport(handler))

        assert result.passed is False
        assert result.error_type == "invalid_zip"

    @pytest.mark.asyncio
    async def test_connection_error_is_classified(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await probe_download("http://service:8080", _URLS, transport=httpx.MockTransport(handler))

        assert result.passed is False
        assert result.status_code is None
        assert result.error_type == "network_connect"
        assert result.to_dict()["passed"] is False

    @pytest.mark.asyncio
    async def test_against_fixture_server(self, download_fixture_server):
        result = await probe_download(
            download_fixture_server.base_url,
            download_fixture_server.file_urls(3),
            timeout_seconds=10.0,
        )

        assert result.passed is True
        assert result.content_type == "application/zip"
        assert result.files == ["1.pdf", "2.pdf", "3.pdf"]


class TestClassifyHttpError:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (200, None),
            (302, None),
            (400, "bad_request"),
            (404, "not_found"),
            (413, "payload_too_large"),
            (429, "rate_limited"),
            (422, "client_error"),
            (500, "server_error"),
            (504, "server_error"),
        ],
    )
    def test_status_mapping(self, status, expected):
        assert _classify_http_error(status) == expected


class TestClassifyException:
    def test_timeout(self):
        assert _classify_exception(httpx.ReadTimeout("timed out")) == "network_timeout"

    def test_connect_error(self):
        assert _classify_exception(httpx.ConnectError("refused")) == "network_connect"

    def test_protocol_error(self):
        assert _classify_exception(httpx.RemoteProtocolError("bad")) == "network_protocol"

    def test_generic_http_error(self):
        assert _classify_exception(httpx.DecodingError("bad encoding")) == "network_error"

    def test_non_httpx_exception(self):
        assert _classify_exception(RuntimeError("oops")) == "RuntimeError"
