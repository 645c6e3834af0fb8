import gzip
import re
import zlib
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

# Pre-compiled regex for charset detection
_CHARSET_REGEX = re.compile(r'charset=([^;,\s]+)', re.IGNORECASE)


def _decode_gzip(payload: bytes) -> bytes:
    return gzip.decompress(payload)


def _decode_deflate(payload: bytes) -> bytes:
    """Decode deflate payload with automatic zlib/raw fallback."""
    try:
        return zlib.decompress(payload)
    except zlib.error:
        return zlib.decompress(payload, -zlib.MAX_WBITS)


_DECOMPRESS_HANDLERS: Dict[str, Callable[[bytes], bytes]] = {
    "gzip": _decode_gzip,
    "x-gzip": _decode_gzip,
    "deflate": _decode_deflate,
}


@dataclass
class RawResponse:
    """Status, headers and undecoded body of one HTTP exchange."""

    status_code: int
    headers: Dict[str, str]
    content: bytes = b""
    reason: Optional[str] = None
    url: Optional[str] = None

    _decoded_cache: Optional[bytes] = field(default=None, init=False, repr=False)
    _header_cache: Optional[Dict[str, str]] = field(default=None, init=False, repr=False)

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        if self._header_cache is None:
            self._header_cache = {k.lower(): v for k, v in self.headers.items()}
        return self._header_cache.get(name.lower(), default)

    @property
    def is_redirect(self) -> bool:
        return self.status_code in (301, 302, 303, 307, 308)

    @property
    def encoding(self) -> str:
        """Charset from the Content-Type header, utf-8 when absent."""
        match = _CHARSET_REGEX.search(self.get_header("Content-Type"))
        if match:
            charset_value = match.group(1).strip('"\'').strip()
            if charset_value:
                return charset_value
        return "utf-8"

    @property
    def body(self) -> bytes:
        """Body with any Content-Encoding removed."""
        if self._decoded_cache is not None:
            return self._decoded_cache

        encoding = self.get_header("Content-Encoding").lower().strip()
        data = self.content
        for enc in (e.strip() for e in encoding.split(",") if e.strip()):
            handler = _DECOMPRESS_HANDLERS.get(enc)
            if handler is None:
                continue
            try:
                data = handler(data)
            except (OSError, EOFError, zlib.error):
                data = self.content
                break
        self._decoded_cache = data
        return data

    def text(self) -> str:
        """Body decoded with the declared charset; bad bytes become U+FFFD."""
        try:
            return self.body.decode(self.encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"<RawResponse [{self.status_code}] url={self.url!r} reason={self.reason!r}>"
