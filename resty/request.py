from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import quote, urlsplit

from .timeouts import Timeout

BodyType = Optional[Union[bytes, bytearray, memoryview, str]]

DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left alone when percent-encoding a request target. "%" is kept so
# already-escaped endpoints pass through unchanged.
_PATH_SAFE = "/%;=:@!$&'()*+,~"
_QUERY_SAFE = _PATH_SAFE + "?"


def split_target(url: str) -> Tuple[str, str, int, str]:
    """Split an absolute URL into ``(scheme, host, port, target)``.

    The target keeps ``;params`` segments and is percent-encoded, so
    non-ASCII endpoints go out as UTF-8 escapes.
    """
    parts = urlsplit(url)
    if parts.scheme not in DEFAULT_PORTS or not parts.hostname:
        raise ValueError(f"Invalid URL: {url}")
    port = parts.port or DEFAULT_PORTS[parts.scheme]
    target = quote(parts.path or "/", safe=_PATH_SAFE)
    if parts.query:
        target += "?" + quote(parts.query, safe=_QUERY_SAFE)
    return parts.scheme, parts.hostname, port, target


def _as_bytes(content: BodyType) -> bytes:
    if content is None:
        return b""
    if isinstance(content, str):
        return content.encode("utf-8")
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    raise TypeError("Unsupported content type")


@dataclass
class Request:
    """One outbound HTTP/1.1 message.

    ``headers`` ends up as the caller's headers plus whatever the wire needs
    and the caller did not set: Host, Accept-Encoding, ``Connection: close``
    (connections are single-use) and Content-Length for bodies.
    """

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    content: BodyType = None
    timeout: Timeout = field(default_factory=Timeout)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.timeout = Timeout.from_value(self.timeout)
        self.scheme, self.host, self.port, self.target = split_target(self.url)
        self.body = _as_bytes(self.content)
        self.headers = self._with_wire_headers(self.headers)

    @property
    def host_header(self) -> str:
        host = self.host.encode("idna").decode("ascii") if not self.host.isascii() else self.host
        if ":" in host:
            host = f"[{host}]"
        if self.port != DEFAULT_PORTS[self.scheme]:
            host = f"{host}:{self.port}"
        return host

    def _with_wire_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        wire = {
            "Host": self.host_header,
            "Accept-Encoding": "gzip, deflate",
            "Connection": "close",
        }
        if self.content is not None:
            wire["Content-Length"] = str(len(self.body))

        present = {name.lower() for name in headers}
        merged = dict(headers)
        for name, value in wire.items():
            if name.lower() not in present:
                merged[name] = value
        return merged

    def encoded_headers(self) -> List[Tuple[bytes, bytes]]:
        return [(k.encode("ascii"), str(v).encode("latin-1")) for k, v in self.headers.items()]
