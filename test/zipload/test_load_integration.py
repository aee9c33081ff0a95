"""Integration tests for staged load runs.

These tests drive locust's local runner with short stages, either against
the download stub (fixture mode) or against a misbehaving local service
(live mode), without external network.
"""

from __future__ import annotations

import http.server
import json
import threading
import time

import pytest

from zipload.core.engine import LoadTestRunner
from zipload.core.models import DEFAULT_PAYLOAD_URLS, LoadTestConfig, Mode, Stage
from zipload.core.thresholds import DEFAULT_THRESHOLDS, HTTP_REQ_FAILED
from zipload.run import main


def _fixture_config(**overrides) -> LoadTestConfig:
    values = dict(
        mode=Mode.FIXTURE,
        base_url="http://unused.invalid",
        urls=DEFAULT_PAYLOAD_URLS[:3],
        stages=(Stage(2.0, 2), Stage(1.0, 0)),
        thresholds=DEFAULT_THRESHOLDS,
        timeout_seconds=10.0,
        think_time_seconds=0.2,
    )
    values.update(overrides)
    return LoadTestConfig(**values)


class TestLoadTestRunner:
    def test_fixture_run_passes_thresholds(self):
        runner = LoadTestRunner(_fixture_config())
        result = runner.run()

        assert result.request_count > 0
        assert result.failure_count == 0
        assert result.thresholds_passed is True
        assert result.duration_seconds > 2.0
        assert result.checks["status is 200"]["fails"] == 0
        assert result.checks["response is zip"]["fails"] == 0
        assert 0 < result.checks["response is zip"]["passes"] <= result.request_count
        assert result.metrics["total"]["count"] == result.request_count
        assert "POST /api/download" in result.metrics["endpoints"]

        # Fixture mode rewrites the target to the stub.
        assert runner.config.base_url.startswith("http://127.0.0.1:")
        assert runner.config.urls[0].endswith("/files/1.pdf")


class TestMainLoadRun:
    def test_failed_threshold_exits_99_and_writes_artifacts(self, results_dir, capsys):
        exit_code = main(
            [
                "--mode", "fixture",
                "--stages", "2s:1,1s:0",
                "--think-time", "200ms",
                "--timeout", "10s",
                "--threshold", "http_req_failed=rate<0.1",
                "--threshold", "http_req_duration=max<0",
                "--results-dir", str(results_dir),
            ]
        )

        assert exit_code == 99

        json_files = sorted(results_dir.glob("summary-*.json"))
        text_files = sorted(results_dir.glob("summary-*.txt"))
        assert len(json_files) == 1
        assert len(text_files) == 1
        assert json_files[0].stem == text_files[0].stem

        summary = json.loads(json_files[0].read_text(encoding="utf-8"))
        assert summary["passed"] is False
        assert summary["result"]["request_count"] > 0
        assert [t["passed"] for t in summary["thresholds"]] == [True, False]

        stdout = capsys.readouterr().out
        assert stdout == text_files[0].read_text(encoding="utf-8")
        assert "result: THRESHOLDS FAILED" in stdout


class _MisbehavingDownloadHandler(http.server.BaseHTTPRequestHandler):
    """Answers every download request according to ``server.behaviour``."""

    protocol_version = "HTTP/1.1"

    def do_POST(self):  # noqa: N802
        length = int(self.headers.get("Content-Length") or 0)
        if length:
            self.rfile.read(length)

        behaviour = self.server.behaviour
        if behaviour == "slow":
            time.sleep(1.0)
            self._send(200, b"PK", "application/zip")
        elif behaviour == "server_error":
            self._send(500, b'{"success": false, "message": "boom"}', "application/json")
        else:
            self._send(200, b"not a zip", "text/plain")

    def _send(self, status: int, body: bytes, content_type: str) -> None:
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError):
            # Client gave up (timeout) before the response was written.
            self.close_connection = True

    def log_message(self, format, *args):  # noqa: A002, ARG002
        pass


@pytest.fixture
def misbehaving_service():
    """Start a local download service whose behaviour each test picks."""
    servers = []

    def _start(behaviour: str) -> str:
        server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), _MisbehavingDownloadHandler)
        server.daemon_threads = True
        server.behaviour = behaviour
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_port}"

    yield _start

    for server in servers:
        server.shutdown()
        server.server_close()


def _live_config(base_url: str, **overrides) -> LoadTestConfig:
    values = dict(
        mode=Mode.LIVE,
        base_url=base_url,
        urls=DEFAULT_PAYLOAD_URLS,
        stages=(Stage(1.5, 1),),
        thresholds=DEFAULT_THRESHOLDS,
        timeout_seconds=5.0,
        think_time_seconds=0.1,
    )
    values.update(overrides)
    return LoadTestConfig(**values)


def _failed_rate_outcome(result):
    return next(o for o in result.thresholds if o.threshold.metric == HTTP_REQ_FAILED)


class TestRequestFailureRules:
    def test_failed_check_does_not_fail_request(self, misbehaving_service):
        result = LoadTestRunner(_live_config(misbehaving_service("wrong_type"))).run()

        assert result.request_count > 0
        assert result.failure_count == 0
        assert result.checks["status is 200"]["fails"] == 0
        assert result.checks["response is zip"]["passes"] == 0
        assert result.checks["response is zip"]["fails"] > 0
        assert result.thresholds_passed is True

    def test_server_error_counts_as_failure(self, misbehaving_service):
        result = LoadTestRunner(_live_config(misbehaving_service("server_error"))).run()

        assert result.request_count > 0
        assert result.failure_count == result.request_count
        assert result.checks["status is 200"]["passes"] == 0
        assert _failed_rate_outcome(result).observed == 1.0
        assert result.thresholds_passed is False

    def test_timeout_counts_as_failure(self, misbehaving_service):
        config = _live_config(misbehaving_service("slow"), timeout_seconds=0.3)
        result = LoadTestRunner(config).run()

        assert result.request_count > 0
        assert result.failure_count == result.request_count
        assert result.metrics["errors"]
        assert _failed_rate_outcome(result).passed is False
        assert result.thresholds_passed is False

    def test_unreachable_service_counts_as_failure(self):
        result = LoadTestRunner(_live_config("http://127.0.0.1:9")).run()

        assert result.request_count > 0
        assert result.failure_count == result.request_count
        assert result.thresholds_passed is False
