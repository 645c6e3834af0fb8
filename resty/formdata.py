import mimetypes
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote_plus

FormValue = Union[str, bytes]

_DEFAULT_FILE_CONTENT_TYPE = "application/octet-stream"
_TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

# Quoted-string parameters in Content-Disposition, escaped as browsers do.
_PARAM_ESCAPES = str.maketrans({'"': "%22", "\r": "%0D", "\n": "%0A"})


def _escape_param(value: str) -> str:
    return value.translate(_PARAM_ESCAPES)


def is_file_reference(value: Any) -> bool:
    """True for ``"@/path"`` strings naming a regular file that exists."""
    return isinstance(value, str) and value.startswith("@") and os.path.isfile(value[1:])


def build_query(data: Mapping[str, Any]) -> str:
    """Form-encode ``data``.

    Nested mappings and sequences are flattened to ``key[sub]`` and
    ``key[0]`` names, booleans become ``1``/``0`` and ``None`` values are
    left out. Spaces are encoded as ``+``.
    """
    pairs: List[Tuple[str, FormValue]] = []
    for key, value in data.items():
        _flatten(str(key), value, pairs)
    return "&".join(f"{quote_plus(name)}={quote_plus(value)}" for name, value in pairs)


def process_data(data: Mapping[str, Any]) -> Union[str, Mapping[str, Any]]:
    """Prepare a POST/PUT mapping for the wire.

    Returns ``""`` for an empty mapping, the mapping itself when any value
    references an existing file (the whole request becomes multipart), and
    the form-encoded string otherwise.
    """
    if not data:
        return ""
    for value in data.values():
        if is_file_reference(value):
            return data
    return build_query(data)


def _flatten(prefix: str, value: Any, pairs: List[Tuple[str, FormValue]]) -> None:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}[{key}]", item, pairs)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _flatten(f"{prefix}[{index}]", item, pairs)
    elif isinstance(value, bool):
        pairs.append((prefix, "1" if value else "0"))
    elif isinstance(value, (bytes, bytearray)):
        pairs.append((prefix, bytes(value)))
    else:
        pairs.append((prefix, str(value)))


@dataclass
class FilePart:
    field_name: str
    file_name: str
    content_type: str
    path: Path


class MultipartEncoder:
    """In-memory multipart/form-data encoder.

    ``"@/path"`` values naming existing files become file parts; every other
    value is sent as a plain form field.
    """

    def __init__(self, fields: Mapping[str, Any], *, boundary: Optional[str] = None) -> None:
        self.boundary = boundary or uuid.uuid4().hex
        self._boundary_line = f"--{self.boundary}\r\n".encode("ascii")
        self._closing_boundary = f"--{self.boundary}--\r\n".encode("ascii")
        self.content_type = f"multipart/form-data; boundary={self.boundary}"
        self.fields: List[Tuple[str, FormValue]] = []
        self.file_parts: List[FilePart] = []
        for name, value in fields.items():
            if is_file_reference(value):
                self.file_parts.append(self._file_part(str(name), Path(value[1:])))
            else:
                _flatten(str(name), value, self.fields)

    def encode(self) -> bytes:
        body = bytearray()
        for name, value in self.fields:
            body += self._boundary_line
            body += f'Content-Disposition: form-data; name="{_escape_param(name)}"\r\n\r\n'.encode("utf-8")
            body += value if isinstance(value, bytes) else value.encode("utf-8")
            body += b"\r\n"

        for part in self.file_parts:
            body += self._boundary_line
            body += (
                f'Content-Disposition: form-data; name="{_escape_param(part.field_name)}"; '
                f'filename="{_escape_param(part.file_name)}"\r\n'
                f"Content-Type: {part.content_type}\r\n\r\n"
            ).encode("utf-8")
            body += part.path.read_bytes()
            body += b"\r\n"

        body += self._closing_boundary
        return bytes(body)

    @staticmethod
    def _file_part(field_name: str, path: Path) -> FilePart:
        content_type = mimetypes.guess_type(path.name)[0]
        if content_type is None:
            content_type = _TEXT_CONTENT_TYPE if _looks_like_text(path) else _DEFAULT_FILE_CONTENT_TYPE
        return FilePart(
            field_name=field_name,
            file_name=path.name,
            content_type=content_type,
            path=path,
        )


def _looks_like_text(path: Path) -> bool:
    with path.open("rb") as handle:
        sample = handle.read(4096)
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte sequence cut by the sample boundary still counts as text.
        return len(sample) == 4096 and exc.start >= len(sample) - 3
    return True


__all__ = ["MultipartEncoder", "build_query", "is_file_reference", "process_data"]
