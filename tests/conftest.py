import gzip
import json
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import pytest

from resty import RawResponse


class EchoHandler(BaseHTTPRequestHandler):
    """Routes under /api/ used by the end-to-end tests."""

    def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length else b""

    def _send(self, status: int, body: bytes = b"", headers: Optional[Dict[str, str]] = None) -> None:
        self.send_response(status)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _send_json(self, status: int, payload: Any, headers: Optional[Dict[str, str]] = None) -> None:
        hdrs = {"Content-Type": "application/json"}
        hdrs.update(headers or {})
        self._send(status, json.dumps(payload).encode("utf-8"), hdrs)

    def _handle(self) -> None:
        body = self._read_body()
        path = urlparse(self.path).path

        if path.startswith("/api/echo"):
            self._send_json(
                200,
                {
                    "method": self.command,
                    "path": self.path,
                    "headers": [[k, v] for k, v in self.headers.items()],
                    "body": body.decode("latin-1"),
                },
            )
        elif path == "/api/text":
            self._send(200, b"not json", {"Content-Type": "text/plain"})
        elif path == "/api/empty":
            self._send(200, b"  \n", {"Content-Type": "application/json"})
        elif path == "/api/xml":
            self._send(
                200,
                b'<?xml version="1.0" encoding="UTF-8"?><users><user id="1">Ada</user></users>',
                {"Content-Type": "application/xml"},
            )
        elif path == "/api/gzip":
            self._send(
                200,
                gzip.compress(json.dumps({"hello": "world"}).encode("utf-8")),
                {"Content-Type": "application/json", "Content-Encoding": "gzip"},
            )
        elif path == "/api/bigint":
            self._send(200, b'{"id": 12345678901234567890, "n": 7}', {"Content-Type": "application/json"})
        elif path == "/api/notfound":
            self._send_json(404, {"error": "not found"})
        elif path == "/api/redirect":
            self._send(302, headers={"Location": "/api/echo"})
        elif path == "/api/see-other":
            self._send(303, headers={"Location": "/api/echo"})
        elif path == "/api/loop":
            self._send(302, headers={"Location": "/api/loop"})
        elif path == "/api/slow":
            time.sleep(1.0)
            self._send(200, b"late")
        else:
            self._send(404)

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_PATCH = _handle
    do_DELETE = _handle
    do_HEAD = _handle
    do_PURGE = _handle

    def log_message(self, format, *args):  # pragma: no cover
        return


class _QuietHTTPServer(HTTPServer):
    def handle_error(self, request, client_address):  # pragma: no cover
        # Clients that time out leave broken pipes behind.
        return


@contextmanager
def run_server():
    server = _QuietHTTPServer(("127.0.0.1", 0), EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    base_url = f"http://127.0.0.1:{server.server_address[1]}"
    try:
        yield base_url
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


@pytest.fixture(scope="session")
def server_url():
    with run_server() as base_url:
        yield base_url


@dataclass
class SentRequest:
    method: str
    url: str
    headers: Dict[str, str]
    content: Any
    options: Dict[str, Any] = field(default_factory=dict)


class RecordingTransport:
    """Stands in for :class:`resty.Transport` and remembers what it was asked to send."""

    def __init__(self, response: Optional[RawResponse] = None) -> None:
        self.calls: List[SentRequest] = []
        self.response = response or RawResponse(
            status_code=200,
            headers={"content-type": "application/json"},
            content=b'{"ok": true}',
        )

    def send(self, method, url, headers, content=None, options=None) -> RawResponse:
        self.calls.append(SentRequest(method, url, dict(headers), content, dict(options or {})))
        return self.response

    @property
    def last(self) -> SentRequest:
        return self.calls[-1]


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()
