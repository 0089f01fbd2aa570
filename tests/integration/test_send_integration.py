"""Integration tests for sending requests to a local HTTP server."""

import json
import socket
import threading
import time
from collections.abc import Generator
from http.server import BaseHTTPRequestHandler, HTTPServer
from unittest.mock import patch

import pytest

from http_util.client import HttpClient
from http_util.config import RequestConfig
from http_util.errors import TransportError
from http_util.metrics import ClientMetrics
from http_util.models import Body, ContentType, accept_success_status


def get_server_url(server: HTTPServer, path: str = "/echo") -> str:
    """Get the URL for a test server."""
    host, port = server.server_address[0], server.server_address[1]
    if isinstance(host, bytes):
        host = host.decode("utf-8")
    return f"http://{host}:{port}{path}"


class EchoHandler(BaseHTTPRequestHandler):
    """HTTP handler that echoes the request back as JSON."""

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Suppress log messages during tests."""

    def _echo(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        payload = json.dumps(
            {
                "method": self.command,
                "path": self.path,
                "content_type": self.headers.get("Content-Type"),
                "x_trace": self.headers.get("X-Trace"),
                "body": body.decode("utf-8"),
            }
        ).encode("utf-8")

        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Set-Cookie", "session=abc123; Path=/")
        self.send_header("X-Multi", "one")
        self.send_header("X-Multi", "two")
        self.end_headers()
        self.wfile.write(payload)

    def do_GET(self) -> None:  # noqa: N802
        """Handle GET requests."""
        self._echo()

    def do_POST(self) -> None:  # noqa: N802
        """Handle POST requests."""
        self._echo()


class FlakyHandler(BaseHTTPRequestHandler):
    """HTTP handler that returns 503 for the first N requests."""

    request_count: int = 0
    error_count: int = 2

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Suppress log messages during tests."""

    def do_GET(self) -> None:  # noqa: N802
        """Handle GET requests, returning 503 for first N requests."""
        FlakyHandler.request_count += 1

        if FlakyHandler.request_count <= FlakyHandler.error_count:
            body = b"Service Unavailable"
            self.send_response(503)
        else:
            body = b"OK"
            self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class SlowDripHandler(BaseHTTPRequestHandler):
    """HTTP handler that sends its body one byte at a time."""

    body_bytes: int = 6
    pause_seconds: float = 0.3

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Suppress log messages during tests."""

    def do_GET(self) -> None:  # noqa: N802
        """Handle GET requests with a slowly written body."""
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(SlowDripHandler.body_bytes))
        self.end_headers()
        try:
            for _ in range(SlowDripHandler.body_bytes):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(SlowDripHandler.pause_seconds)
        except (BrokenPipeError, ConnectionResetError):
            pass


def _serve(handler: type[BaseHTTPRequestHandler]) -> Generator[HTTPServer]:
    server = HTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset metrics before each test."""
    ClientMetrics.reset()


@pytest.fixture
def echo_server() -> Generator[HTTPServer]:
    """Start a local echo server."""
    yield from _serve(EchoHandler)


@pytest.fixture
def flaky_server() -> Generator[HTTPServer]:
    """Start a local server that fails before succeeding."""
    FlakyHandler.request_count = 0
    yield from _serve(FlakyHandler)


@pytest.fixture
def closed_port_url() -> str:
    """URL of a local port with nothing listening."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/"


class TestSendToServer:
    """Tests against a real HTTP server."""

    def test_get_with_query_params(self, echo_server: HTTPServer) -> None:
        """Test that query params and headers reach the server."""
        config = RequestConfig(
            url=get_server_url(echo_server),
            query_params={"test": "test"},
            headers={"X-Trace": "t1"},
        )

        response = HttpClient().send(config)

        echoed = response.json()
        assert echoed["method"] == "GET"
        assert echoed["path"] == "/echo?test=test"
        assert echoed["x_trace"] == "t1"
        assert response.headers["x-multi"] == "one;two"
        assert response.headers["content-type"] == "application/json"

    def test_post_urlencoded(self, echo_server: HTTPServer) -> None:
        """Test a urlencoded form post."""
        config = RequestConfig(
            url=get_server_url(echo_server),
            method="POST",
            body=Body(
                content_type=ContentType.FORM_URLENCODED.value,
                data={"job_id": "2"},
            ),
        )

        echoed = config.send().json()

        assert echoed["body"] == "job_id=2"
        assert echoed["content_type"] == "application/x-www-form-urlencoded"

    def test_post_multipart(self, echo_server: HTTPServer) -> None:
        """Test a multipart form post, as in the put_offer_apply example."""
        config = RequestConfig(
            url=get_server_url(echo_server, "/put_offer_apply/"),
            method="POST",
            timeout_seconds=0.5,
            retries=5,
            body=Body(
                content_type=ContentType.FORM_MULTIPART.value,
                data={"job_id": "2"},
            ),
        )

        response = HttpClient().send(config)

        echoed = response.json()
        assert echoed["content_type"] == response.sent_content_type
        assert echoed["content_type"].startswith("multipart/form-data; boundary=")
        assert 'name="job_id"' in echoed["body"]
        assert "\r\n\r\n2\r\n" in echoed["body"]
        assert ClientMetrics.get_instance().http_attempts_total == 1

    def test_cookies_from_server(self, echo_server: HTTPServer) -> None:
        """Test that Set-Cookie from the server is exposed."""
        response = HttpClient().send(RequestConfig(url=get_server_url(echo_server)))

        assert response.cookies == {"session": "abc123"}


class TestRetryAgainstServer:
    """Retry behavior against real sockets."""

    def test_retry_until_success_status(self, flaky_server: HTTPServer) -> None:
        """Test that a status-based retry check recovers after 503s."""
        config = RequestConfig(
            url=get_server_url(flaky_server, "/"),
            retries=3,
            retry_check=accept_success_status,
        )

        response = HttpClient().send(config)

        assert response.status_code == 200
        assert response.text == "OK"
        assert FlakyHandler.request_count == 3

    def test_connection_refused(self, closed_port_url: str) -> None:
        """Test that refused connections are retried then raised."""
        config = RequestConfig(url=closed_port_url, retries=2, timeout_seconds=2.0)

        with patch("http_util.client.time.sleep") as mock_sleep:
            with pytest.raises(TransportError):
                HttpClient().send(config)

        assert mock_sleep.call_count == 2
        assert ClientMetrics.get_instance().http_attempts_total == 3


@pytest.fixture
def slow_server() -> Generator[HTTPServer]:
    """Start a local server that drips its response body."""
    yield from _serve(SlowDripHandler)


class TestAttemptTimeout:
    """The timeout bounds each attempt including the body read."""

    def test_slow_body_times_out(self, slow_server: HTTPServer) -> None:
        """Test that a body trickling in under the read timeout still fails."""
        config = RequestConfig(url=get_server_url(slow_server, "/"), timeout_seconds=0.5)

        started = time.monotonic()
        with pytest.raises(TransportError, match="Request timed out"):
            HttpClient().send(config)
        elapsed = time.monotonic() - started

        assert elapsed < 1.2
        assert ClientMetrics.get_instance().http_failures_total == {"TransportError": 1}
