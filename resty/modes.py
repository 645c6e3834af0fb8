import enum
import importlib
from typing import Union

from .errors import ConfigurationError, InvalidArgument


class Mode(enum.IntEnum):
    """Response content family a client expects from its service."""

    JSON = 1
    XML = 2

    @property
    def content_type(self) -> str:
        return _CONTENT_TYPES[self]

    @classmethod
    def coerce(cls, value: Union["Mode", int, str, None]) -> "Mode":
        """Resolve a mode from a member, its integer value or its name.

        A falsy value selects JSON.
        """
        if not value:
            return cls.JSON
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidArgument("Unsupported mode.") from None
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise InvalidArgument("Unsupported mode.") from None
        raise InvalidArgument("Unsupported mode.")


_CONTENT_TYPES = {
    Mode.JSON: "application/json",
    Mode.XML: "application/xml",
}

# Module that must be importable for a mode's responses to be decoded.
_DECODER_MODULES = {
    Mode.JSON: "json",
    Mode.XML: "xml.etree.ElementTree",
}


def require_capability(mode: Mode) -> None:
    """Fail fast when the decoder backing ``mode`` cannot be loaded."""
    module_name = _DECODER_MODULES[mode]
    try:
        importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(
            f"{mode.name} mode requires the {module_name!r} module: {exc}"
        ) from exc
