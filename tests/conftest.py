"""Pytest configuration and fixtures for http-request tests.

This file provides:
- make_response / make_transport_result: Response builders with sensible defaults
- RecordingTransport: In-process transport that records the options it receives
- PortReservation / LocalServer: A threaded HTTP server on localhost for
  integration tests
"""

from __future__ import annotations

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Generator, Mapping

import pytest

from http_request.models import TransportResult
from http_request.response import Response


def make_response(
    headers: list[str] | None = None,
    body: bytes = b"",
    status_code: int = 200,
    error_code: int | None = None,
    error_description: str = "",
) -> Response:
    """Create a Response from header lines and a body.

    Prefer this over constructing Response directly - it renders the header
    block with CRLF line endings and computes header_size.
    """
    header_lines = headers if headers is not None else [f"HTTP/1.1 {status_code} OK"]
    block = ("\r\n".join(header_lines) + "\r\n\r\n").encode("iso-8859-1")
    return Response(block + body, status_code, len(block), error_code, error_description)


def make_transport_result(
    raw: bytes = b"",
    http_status_code: int = 200,
    header_size: int = 0,
    error_code: int | None = None,
    error_description: str = "",
) -> TransportResult:
    return TransportResult(
        raw=raw,
        http_status_code=http_status_code,
        header_size=header_size,
        error_code=error_code,
        error_description=error_description,
    )


class RecordingTransport:
    """Transport double: returns a fixed result and keeps every options mapping sent."""

    def __init__(self, result: TransportResult | None = None) -> None:
        self.result = result or make_transport_result(raw=b"fake", http_status_code=200)
        self.calls: list[dict[Any, Any]] = []

    def send(self, options: Mapping[Any, Any]) -> TransportResult:
        self.calls.append(dict(options))
        return self.result


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


# =============================================================================
# Local HTTP server
# =============================================================================


class PortReservation:
    """Holds a reserved port with socket kept open to prevent races.

    Usage:
        reservation = PortReservation()
        server = LocalServer(reservation)
        server.start()  # calls release() internally, then binds
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))  # Port 0 = OS assigns ephemeral port
        self._port = self._socket.getsockname()[1]
        self._released = False

    @property
    def port(self) -> int:
        return self._port

    def release(self) -> int:
        """Release the socket and return the port for server use.

        Safe to call multiple times - subsequent calls are no-ops.
        """
        if not self._released:
            self._socket.close()
            self._released = True
        return self._port

    def __enter__(self) -> PortReservation:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()


def find_free_port() -> int:
    """Find an available port on localhost.

    A server may still grab the port before the caller binds it; only use
    this where nothing is expected to listen (e.g. connection-refused tests).
    """
    with PortReservation() as reservation:
        return reservation.port


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    """Block until server accepts TCP connections, or timeout expires."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return True
        except (ConnectionRefusedError, socket.timeout, OSError):
            time.sleep(0.1)
    return False


class _Handler(BaseHTTPRequestHandler):
    """Routes used by the integration tests.

    /hello      200 text body with a Set-Cookie header
    /redirect   302 to /hello, with its own Set-Cookie header
    /echo       200 echoing method, selected request headers and the body
    /missing    404
    """

    protocol_version = "HTTP/1.1"

    def log_message(self, format: str, *args: Any) -> None:
        pass

    def _send(self, status: int, body: bytes, headers: list[tuple[str, str]] = ()) -> None:
        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _route(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""

        if self.path == "/hello":
            self._send(200, b"hello world", [
                ("Content-Type", "text/plain; charset=utf-8"),
                ("Set-Cookie", "session=abc123; Path=/; HttpOnly"),
            ])
        elif self.path == "/redirect":
            self._send(302, b"", [
                ("Location", "/hello"),
                ("Set-Cookie", "hop=1; Path=/"),
            ])
        elif self.path == "/echo":
            lines = [
                f"method={self.command}",
                f"cookie={self.headers.get('Cookie', '')}",
                f"x-test={self.headers.get('X-Test', '')}",
                f"authorization={self.headers.get('Authorization', '')}",
                f"body={body.decode('utf-8')}",
            ]
            self._send(200, "\n".join(lines).encode("utf-8"), [("Content-Type", "text/plain")])
        else:
            self._send(404, b"not found", [("Content-Type", "text/plain")])

    do_GET = _route
    do_POST = _route
    do_PUT = _route
    do_DELETE = _route
    do_HEAD = _route
    do_OPTIONS = _route


class LocalServer:
    """Runs a ThreadingHTTPServer on 127.0.0.1 in a background thread."""

    def __init__(self, port: int | PortReservation) -> None:
        if isinstance(port, PortReservation):
            self._reservation = port
            self.port = port.port
        else:
            self._reservation = None
            self.port = port
        self.host = "127.0.0.1"
        self.base_url = f"http://{self.host}:{self.port}"
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start serving.

        Raises:
            RuntimeError: If the server does not accept connections within 10 seconds.
        """
        if self._reservation:
            self._reservation.release()

        self._server = ThreadingHTTPServer((self.host, self.port), _Handler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        if not wait_for_server_ready(self.host, self.port):
            self.stop()
            raise RuntimeError(f"LocalServer failed to start on port {self.port}")

    def stop(self) -> None:
        """Stop the server. Safe to call multiple times."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    def __enter__(self) -> LocalServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


@pytest.fixture(scope="session")
def local_server() -> Generator[LocalServer, None, None]:
    """Session-scoped local HTTP server (see _Handler for routes)."""
    with LocalServer(PortReservation()) as server:
        yield server


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Empty directory for writing YAML config files."""
    directory = tmp_path / "config"
    directory.mkdir()
    return directory


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Automatically apply markers based on test location.

    Enables running subsets via:
        pytest -m integration  # only integration tests
        pytest -m unit         # only unit tests
    """
    for item in items:
        test_path = Path(item.fspath)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
