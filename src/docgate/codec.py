"""
Serialization codec and content negotiation.

Translates between request/response bytes and plain Python objects for a
small set of formats, and picks a format from a ``Content-Type`` or
``Accept`` header.  Protocol adapters treat it as a black box: they ask for
a format, then hand bytes or objects across.

Formats:
    ======  ==============================================================
    json    ``application/json`` (default)
    yaml    ``application/yaml``, ``application/x-yaml``, ``text/yaml``
    ======  ==============================================================

Examples:
    >>> codec = Codec()
    >>> codec.header_to_serialization_format({"accept": "application/yaml;q=0.9, application/json"}, "accept")
    ExtractedFormat(format=<SerializationFormat.JSON: 'json'>, mime_type='application/json')
    >>> codec.deserialize_object(b'{"a": 1}', SerializationFormat.JSON)
    {'a': 1}
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

import yaml

from docgate.core.errors import CodecError


class SerializationFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


MIME_TYPES: dict[SerializationFormat, str] = {
    SerializationFormat.JSON: "application/json",
    SerializationFormat.YAML: "application/yaml",
}

MIME_TYPE_FORMATS: dict[str, SerializationFormat] = {
    "application/json": SerializationFormat.JSON,
    "text/json": SerializationFormat.JSON,
    "application/yaml": SerializationFormat.YAML,
    "application/x-yaml": SerializationFormat.YAML,
    "text/yaml": SerializationFormat.YAML,
    "text/x-yaml": SerializationFormat.YAML,
}


@dataclass(frozen=True, slots=True)
class ExtractedFormat:
    """Format chosen from a header, with its canonical MIME type."""

    format: SerializationFormat
    mime_type: str


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _yaml_safe(obj: Any) -> Any:
    # SafeDumper only knows plain containers and scalars
    return json.loads(json.dumps(obj, default=_json_default))


def _parse_media_range(value: str) -> tuple[str, float]:
    parts = [p.strip() for p in value.split(";")]
    media_type = parts[0].lower()
    quality = 1.0
    for param in parts[1:]:
        name, _, raw = param.partition("=")
        if name.strip().lower() == "q":
            try:
                quality = float(raw.strip())
            except ValueError:
                quality = 0.0
    return media_type, quality


class Codec:
    """Serializes objects and negotiates formats from HTTP headers.

    Parameters:
        default_format: Format used when a header is absent or names no
            supported type.
    """

    def __init__(self, default_format: SerializationFormat | str = SerializationFormat.JSON):
        self.default_format = SerializationFormat(default_format)

    def serialize_object(self, obj: Any, fmt: SerializationFormat | None = None) -> bytes:
        fmt = fmt or self.default_format
        try:
            if fmt is SerializationFormat.YAML:
                return yaml.safe_dump(_yaml_safe(obj), sort_keys=False, allow_unicode=True).encode("utf-8")
            return json.dumps(obj, default=_json_default).encode("utf-8")
        except (TypeError, ValueError, yaml.YAMLError) as e:
            raise CodecError(f"Cannot serialize object as {fmt.value}: {e}") from e

    def deserialize_object(self, data: bytes, fmt: SerializationFormat | None = None) -> Any:
        fmt = fmt or self.default_format
        try:
            if fmt is SerializationFormat.YAML:
                return yaml.safe_load(data)
            return json.loads(data)
        except (UnicodeDecodeError, ValueError, yaml.YAMLError) as e:
            raise CodecError(f"Cannot deserialize {fmt.value} payload: {e}") from e

    def default(self) -> ExtractedFormat:
        return ExtractedFormat(self.default_format, MIME_TYPES[self.default_format])

    def mime_type_to_format(self, mime_type: str) -> SerializationFormat | None:
        return MIME_TYPE_FORMATS.get(mime_type.strip().lower())

    def header_to_serialization_format(self, headers: Mapping[str, str], key: str) -> ExtractedFormat:
        """Pick a format from header ``key`` (``content-type`` or ``accept``).

        ``Accept`` lists are ranked by q-value, ties keep header order; the
        first supported type wins.  Anything unsupported falls back to the
        default format.
        """
        value = headers.get(key) or headers.get(key.lower())
        if not value:
            return self.default()

        candidates = [_parse_media_range(v) for v in value.split(",") if v.strip()]
        ranked = sorted(enumerate(candidates), key=lambda item: (-item[1][1], item[0]))
        for _, (media_type, quality) in ranked:
            if quality <= 0:
                continue
            fmt = self.mime_type_to_format(media_type)
            if fmt is not None:
                return ExtractedFormat(fmt, MIME_TYPES[fmt])
        return self.default()


__all__ = [
    "Codec",
    "ExtractedFormat",
    "SerializationFormat",
    "MIME_TYPES",
]
