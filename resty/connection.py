import socket
import ssl
from functools import lru_cache
from typing import Dict, Optional, Tuple

import h11

from .errors import TransportError
from .logging import get_logger
from .request import Request
from .response import RawResponse
from .timeouts import Timeout

READ_BUFFER_SIZE = 65536

logger = get_logger("connection")


@lru_cache(maxsize=2)
def _get_ssl_context(verify: bool = True) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class Connection:
    """
    Single-use, blocking HTTP/1.1 connection built on sockets + h11.

    One connection carries exactly one request/response cycle and is closed
    afterwards; use it as a context manager so the socket is released on
    every exit path.
    """

    def __init__(
        self,
        addr: Tuple[str, int],
        use_ssl: bool = False,
        timeout: Optional[Timeout] = None,
        verify: bool = True,
    ) -> None:
        self.addr = addr
        self.use_ssl = use_ssl
        self.timeout = timeout or Timeout()
        self.verify = verify
        self.h11_conn = h11.Connection(h11.CLIENT)
        self.closed = False
        self._sock: Optional[socket.socket] = None

    def connect(self) -> None:
        if self._sock is not None:
            return
        host, port = self.addr
        sock = socket.create_connection((host, port), timeout=self.timeout.connect)
        try:
            if self.use_ssl:
                sock = _get_ssl_context(self.verify).wrap_socket(sock, server_hostname=host)
        except BaseException:
            sock.close()
            raise
        self._sock = sock

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def send_request(self, request: Request, read_body: bool = True) -> RawResponse:
        """Send ``request`` and return the parsed response.

        With ``read_body`` false the body is never read off the socket and
        the response content is empty.
        """
        if self.closed:
            raise TransportError("Connection already closed")
        try:
            self.connect()
            self._send_event(
                h11.Request(
                    method=request.method.encode("ascii"),
                    target=request.target.encode("ascii"),
                    headers=request.encoded_headers(),
                )
            )
            if request.body:
                self._send_event(h11.Data(data=request.body))
            self._send_event(h11.EndOfMessage())
            return self._read_response(request, read_body)
        except TransportError:
            self.close()
            raise
        except (OSError, h11.ProtocolError, ValueError) as exc:
            self.close()
            raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc

    def _send_event(self, event: h11.Event) -> None:
        data = self.h11_conn.send(event)
        if data:
            self._sock.settimeout(self.timeout.write)
            self._sock.sendall(data)

    def _read_event(self) -> h11.Event:
        while True:
            event = self.h11_conn.next_event()
            if event is not h11.NEED_DATA:
                return event
            self._sock.settimeout(self.timeout.read)
            # An empty chunk tells h11 the peer closed; it decides whether the
            # body was complete.
            self.h11_conn.receive_data(self._sock.recv(READ_BUFFER_SIZE))

    def _read_response(self, request: Request, read_body: bool) -> RawResponse:
        while True:
            event = self._read_event()
            if isinstance(event, h11.Response):
                break
            if isinstance(event, h11.ConnectionClosed):
                raise TransportError("Connection closed before response")
            # h11.InformationalResponse (100 Continue and friends) is skipped.

        headers: Dict[str, str] = {}
        for name, value in event.headers:
            key = name.decode("latin-1")
            text = value.decode("latin-1")
            # h11 lowercases names; repeated headers are folded.
            headers[key] = f"{headers[key]}, {text}" if key in headers else text

        body = bytearray()
        if read_body:
            while True:
                chunk = self._read_event()
                if isinstance(chunk, h11.Data):
                    body.extend(chunk.data)
                elif isinstance(chunk, (h11.EndOfMessage, h11.ConnectionClosed)):
                    break

        logger.debug("%s %s -> %s (%d bytes)", request.method, request.url, event.status_code, len(body))
        return RawResponse(
            status_code=event.status_code,
            headers=headers,
            content=bytes(body),
            reason=event.reason.decode("latin-1"),
            url=request.url,
        )
