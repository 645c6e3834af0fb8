import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin

from .connection import Connection
from .errors import InvalidArgument, TransportError
from .logging import get_logger
from .request import BodyType, Request
from .response import RawResponse
from .timeouts import Timeout

DEFAULT_OPTIONS: Dict[str, Any] = {
    "follow_redirects": True,
    "max_redirects": 3,
    "no_body": False,
    "timeout": None,
    "verify": True,
}


def merge_options(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Overlay option mappings on :data:`DEFAULT_OPTIONS`, later layers winning."""
    merged = dict(DEFAULT_OPTIONS)
    for layer in layers:
        if not layer:
            continue
        unknown = set(layer) - set(DEFAULT_OPTIONS)
        if unknown:
            raise InvalidArgument(f"Unknown transport option(s): {', '.join(sorted(unknown))}")
        merged.update(layer)
    return merged


class Transport:
    """
    Blocking HTTP/1.1 transport.

    Every hop of a request opens its own :class:`Connection` and closes it
    before returning; nothing is pooled. Redirects are followed according to
    the ``follow_redirects``/``max_redirects`` options.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or get_logger("transport")

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        content: BodyType = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:
        opts = merge_options(options)
        timeout = Timeout.from_value(opts["timeout"])
        current_method = method.upper()
        current_url = url
        current_headers = dict(headers)
        current_content = content
        redirects = 0

        while True:
            try:
                req = Request(
                    method=current_method,
                    url=current_url,
                    headers=current_headers,
                    content=current_content,
                    timeout=timeout,
                )
            except ValueError as exc:
                raise TransportError(str(exc)) from exc

            with Connection(
                (req.host, req.port),
                use_ssl=req.scheme == "https",
                timeout=req.timeout,
                verify=opts["verify"],
            ) as conn:
                resp = conn.send_request(req, read_body=not opts["no_body"])

            location = resp.get_header("Location")
            if not (opts["follow_redirects"] and resp.is_redirect and location):
                return resp

            if redirects >= opts["max_redirects"]:
                raise TransportError(f"Maximum ({opts['max_redirects']}) redirects followed")
            redirects += 1
            next_url = urljoin(current_url, location)
            self.logger.debug("Redirect %s %s -> %s", resp.status_code, current_url, next_url)

            if resp.status_code in (301, 302, 303) and current_method not in ("GET", "HEAD"):
                current_method = "GET"
                current_content = None
                current_headers = {
                    k: v
                    for k, v in current_headers.items()
                    if k.lower() not in ("content-length", "content-type", "transfer-encoding")
                }
            current_url = next_url


__all__ = ["DEFAULT_OPTIONS", "Transport", "merge_options"]
