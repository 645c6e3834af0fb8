"""resty: a small synchronous REST client with JSON/XML response decoding."""

from .client import Client
from .decoder import decode, decode_response
from .errors import (
    RestyError,
    ConfigurationError,
    InvalidArgument,
    TransportError,
)
from .formdata import build_query, process_data
from .modes import Mode
from .response import RawResponse
from .timeouts import Timeout
from .transport import Transport

MODE_JSON = Mode.JSON
MODE_XML = Mode.XML

__all__ = [
    "Client",
    "Mode",
    "MODE_JSON",
    "MODE_XML",
    "RawResponse",
    "Timeout",
    "Transport",
    "RestyError",
    "ConfigurationError",
    "InvalidArgument",
    "TransportError",
    "build_query",
    "decode",
    "decode_response",
    "process_data",
]


__version__ = "1.0.0"
