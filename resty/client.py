import logging
import re
import threading
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .decoder import decode_response
from .errors import InvalidArgument
from .formdata import MultipartEncoder, build_query, process_data
from .logging import get_logger
from .modes import Mode, require_capability
from .request import BodyType
from .transport import Transport, merge_options

Data = Union[Mapping[str, Any], str, bytes]
Headers = Mapping[str, str]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
RAW_CONTENT_TYPE = "text/plain"

# scheme://host[:port]/path; host is one or more dot-separated labels of
# word characters and hyphens.
_URL_PATTERN = re.compile(
    r"https?://"
    r"[\w\-]+(?:\.[\w\-]+)*"
    r"(?::\d{1,5})?"
    r"/\S+",
    re.IGNORECASE,
)


def _has_header(headers: Headers, name: str) -> bool:
    name = name.lower()
    return any(key.lower() == name for key in headers)


class Client:
    """
    Synchronous REST client bound to one service base URL.

    Verb helpers shape their data into a request body or query string, merge
    per-call headers over the client's default headers and decode the
    response according to the client's mode: parsed JSON, an ElementTree
    element for XML, the raw text when the body does not parse, or ``None``
    for an empty body.

    Header mutation is serialized by an internal lock. Requests never share a
    connection, so one client may issue requests from several threads.

    Example:
        client = Client("https://api.example.com/v1/")
        client.add_header("Authorization", "Bearer token")
        user = client.get("users/42")
        client.post("users", {"name": "Ada"})
    """

    def __init__(
        self,
        base_url: str,
        mode: Union[Mode, int, str] = Mode.JSON,
        *,
        options: Optional[Mapping[str, Any]] = None,
        transport: Optional[Transport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._mode = Mode.coerce(mode)
        require_capability(self._mode)

        if not base_url:
            raise InvalidArgument("REST service URL required.")
        if not isinstance(base_url, str) or not _URL_PATTERN.fullmatch(base_url):
            raise InvalidArgument("Invalid REST service URL.")
        self._base_url = base_url

        merge_options(options)
        self._options: Dict[str, Any] = dict(options or {})
        self.transport = transport or Transport()
        self.logger = logger or get_logger("client")
        self._lock = threading.Lock()
        self._headers: Dict[str, str] = {
            "Content-Type": self.content_type,
            "Accept": self.content_type,
        }

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def content_type(self) -> str:
        """Expected content type of the service's responses."""
        return self._mode.content_type

    @property
    def headers(self) -> Dict[str, str]:
        """Copy of the headers sent with every request."""
        with self._lock:
            return dict(self._headers)

    @property
    def transport_options(self) -> Dict[str, Any]:
        return merge_options(self._options)

    def add_header(self, name: str, value: str) -> "Client":
        """Send ``name: value`` with every request; empty names or values are ignored."""
        if name and value:
            with self._lock:
                self._headers[name] = value
        return self

    def add_headers(self, headers: Headers) -> "Client":
        for name, value in headers.items():
            self.add_header(name, value)
        return self

    def get(self, endpoint: str, data: Optional[Mapping[str, Any]] = None, headers: Optional[Headers] = None) -> Any:
        self._require_endpoint(endpoint)
        if data is not None and not isinstance(data, Mapping):
            raise InvalidArgument("GET data must be a mapping.")
        if data:
            endpoint += ("&" if "?" in endpoint else "?") + build_query(data)
        return self._request(endpoint, "GET", headers)

    def post(self, endpoint: str, data: Optional[Data] = None, headers: Optional[Headers] = None) -> Any:
        self._require_endpoint(endpoint)
        content, call_headers = self._shape_body(data, headers)
        return self._request(endpoint, "POST", call_headers, content=content)

    def head(self, endpoint: str, headers: Optional[Headers] = None) -> Any:
        self._require_endpoint(endpoint)
        return self._request(endpoint, "HEAD", headers, options={"no_body": True})

    def put(self, endpoint: str, data: Optional[Data] = None, headers: Optional[Headers] = None) -> Any:
        self._require_endpoint(endpoint)
        content, call_headers = self._shape_body(data, headers)
        return self._request(endpoint, "PUT", call_headers, content=content)

    def patch(self, endpoint: str, data: Optional[Mapping[str, Any]] = None, headers: Optional[Headers] = None) -> Any:
        self._require_endpoint(endpoint)
        if data is not None and not isinstance(data, Mapping):
            raise InvalidArgument("PATCH data must be a mapping.")
        content = build_query(data or {})
        call_headers = dict(headers or {})
        call_headers["Content-Length"] = str(len(content))
        call_headers["Content-Type"] = FORM_CONTENT_TYPE
        return self._request(endpoint, "PATCH", call_headers, content=content)

    def delete(self, endpoint: str, headers: Optional[Headers] = None) -> Any:
        self._require_endpoint(endpoint)
        return self._request(endpoint, "DELETE", headers)

    def custom_request(
        self,
        endpoint: str,
        method: str,
        data: Optional[Data] = None,
        headers: Optional[Headers] = None,
    ) -> Any:
        """Send ``data`` with an arbitrary HTTP ``method``.

        Strings and bytes are sent verbatim, mappings form-encoded. No
        headers are added on the caller's behalf.
        """
        self._require_endpoint(endpoint)
        if not method or not isinstance(method, str) or not method.strip():
            raise InvalidArgument("Request method required.")
        if data is not None and not isinstance(data, (Mapping, str, bytes, bytearray)):
            raise InvalidArgument("Request data must be a mapping, str or bytes.")
        content: BodyType = None
        if data:
            content = build_query(data) if isinstance(data, Mapping) else data
        return self._request(endpoint, method.strip(), headers, content=content)

    def _request(
        self,
        endpoint: str,
        method: str,
        headers: Optional[Headers] = None,
        options: Optional[Mapping[str, Any]] = None,
        content: BodyType = None,
    ) -> Any:
        self._require_endpoint(endpoint)
        url = f"{self._base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        opts = merge_options(self._options, options)

        # Case-sensitive overlay: a per-call key only replaces the identical default key.
        with self._lock:
            merged_headers = dict(self._headers)
        if headers:
            merged_headers.update(headers)

        method = method.upper()
        self.logger.debug("%s %s", method, url)
        response = self.transport.send(method, url, merged_headers, content=content, options=opts)
        self.logger.debug("%s %s -> %s", method, url, response.status_code)
        return decode_response(response, self._mode)

    @staticmethod
    def _require_endpoint(endpoint: str) -> None:
        if not endpoint or not isinstance(endpoint, str):
            raise InvalidArgument("Endpoint URL required.")

    @staticmethod
    def _shape_body(data: Optional[Data], headers: Optional[Headers]) -> Tuple[BodyType, Dict[str, str]]:
        """Turn POST/PUT data into a body plus the headers it implies."""
        call_headers = dict(headers or {})
        if data is None:
            data = {}

        if isinstance(data, (str, bytes, bytearray)):
            content: BodyType = data
            raw = data.encode("utf-8") if isinstance(data, str) else data
            call_headers["Content-Length"] = str(len(raw))
            if not _has_header(call_headers, "Content-Type"):
                call_headers["Content-Type"] = RAW_CONTENT_TYPE
            return content, call_headers

        if not isinstance(data, Mapping):
            raise InvalidArgument("Request data must be a mapping, str or bytes.")

        payload = process_data(data)
        if isinstance(payload, Mapping):
            encoder = MultipartEncoder(payload)
            content = encoder.encode()
            content_type = encoder.content_type
        else:
            content = payload
            content_type = FORM_CONTENT_TYPE
        call_headers["Content-Length"] = str(len(content))
        call_headers["Content-Type"] = content_type
        return content, call_headers

    def __repr__(self) -> str:
        return f"<Client base_url={self._base_url!r} mode={self._mode.name}>"


__all__ = ["Client"]
