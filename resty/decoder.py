"""Response body decoding.

Decoding never raises: a body that does not parse for the configured mode is
handed back as text, and a blank body decodes to ``None``.
"""
import json
import xml.etree.ElementTree as ET
from typing import Any, Optional, Tuple, Union

from .logging import get_logger
from .modes import Mode
from .response import RawResponse

logger = get_logger("decoder")

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


def _parse_int(literal: str) -> Union[int, str]:
    # Integers that do not fit a signed 64-bit value stay strings.
    value = int(literal)
    if _INT64_MIN <= value <= _INT64_MAX:
        return value
    return literal


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _as_text(body: Union[str, bytes]) -> str:
    if isinstance(body, str):
        return body
    return bytes(body).decode("utf-8", errors="replace")


def is_empty(body: Optional[Union[str, bytes]]) -> bool:
    """True when ``body`` is missing or only whitespace."""
    return body is None or not body.strip()


def decode_json(body: Union[str, bytes]) -> Tuple[bool, Any]:
    """Parse a JSON body into an ``(ok, value)`` pair."""
    try:
        return True, json.loads(_as_text(body), parse_int=_parse_int, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        logger.debug("Response is not valid JSON: %s", exc)
        return False, None


def decode_xml(body: Union[str, bytes]) -> Tuple[bool, Any]:
    try:
        return True, ET.fromstring(body)
    except (ET.ParseError, ValueError, RecursionError) as exc:
        logger.debug("Response is not valid XML: %s", exc)
        return False, None


_DECODERS = {
    Mode.JSON: decode_json,
    Mode.XML: decode_xml,
}


def decode(body: Optional[Union[str, bytes]], mode: Mode) -> Any:
    """Decode ``body`` for ``mode``.

    Returns the parsed value (``dict``/``list``/scalar for JSON, the root
    :class:`xml.etree.ElementTree.Element` for XML), the body as text when it
    does not parse, or ``None`` when it is blank.
    """
    if is_empty(body):
        return None
    ok, value = _DECODERS[Mode.coerce(mode)](body)
    if ok:
        return value
    return _as_text(body)


def decode_response(response: RawResponse, mode: Mode) -> Any:
    """Decode a transport response for ``mode``.

    XML is parsed from the raw bytes first so the document's own encoding
    declaration applies, then from the charset-decoded text. JSON and the
    fallback use the text decoded with the response charset.
    """
    body = response.body
    if is_empty(body):
        return None
    text = response.text()
    if Mode.coerce(mode) is Mode.XML:
        for candidate in (body, text):
            ok, value = decode_xml(candidate)
            if ok:
                return value
        return text
    ok, value = decode_json(text)
    return value if ok else text


__all__ = ["decode", "decode_json", "decode_response", "decode_xml", "is_empty"]
