"""Tests for the serialization codec and content negotiation."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
import yaml

from docgate.codec import Codec, ExtractedFormat, SerializationFormat
from docgate.core.errors import CodecError


@pytest.fixture
def codec() -> Codec:
    return Codec()


class TestSerialization:
    def test_json(self, codec):
        out = codec.serialize_object({"a": 1, "when": datetime(2026, 1, 2, tzinfo=UTC)}, SerializationFormat.JSON)
        assert json.loads(out) == {"a": 1, "when": "2026-01-02T00:00:00+00:00"}

    def test_yaml(self, codec):
        out = codec.serialize_object({"results": [{"name": "bolt"}]}, SerializationFormat.YAML)
        assert yaml.safe_load(out) == {"results": [{"name": "bolt"}]}

    def test_default_format_used(self):
        codec = Codec("yaml")
        assert yaml.safe_load(codec.serialize_object({"a": 1})) == {"a": 1}

    def test_unserializable(self, codec):
        with pytest.raises(CodecError):
            codec.serialize_object({"a": object()})

    def test_deserialize(self, codec):
        assert codec.deserialize_object(b'{"a": [1, 2]}', SerializationFormat.JSON) == {"a": [1, 2]}
        assert codec.deserialize_object(b"a: 1\n", SerializationFormat.YAML) == {"a": 1}

    @pytest.mark.parametrize(
        ("data", "fmt"),
        [(b"{not json", SerializationFormat.JSON), (b"a: [1,", SerializationFormat.YAML), (b"\xff\xfe", SerializationFormat.JSON)],
    )
    def test_deserialize_errors(self, codec, data, fmt):
        with pytest.raises(CodecError):
            codec.deserialize_object(data, fmt)


class TestNegotiation:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("application/json", SerializationFormat.JSON),
            ("application/yaml", SerializationFormat.YAML),
            ("text/yaml; charset=utf-8", SerializationFormat.YAML),
            ("application/x-yaml", SerializationFormat.YAML),
            ("application/yaml;q=0.5, application/json;q=0.9", SerializationFormat.JSON),
            ("text/html, application/yaml;q=0.8", SerializationFormat.YAML),
            ("application/json;q=0, application/yaml", SerializationFormat.YAML),
            ("*/*", SerializationFormat.JSON),
            ("text/html", SerializationFormat.JSON),
        ],
    )
    def test_accept(self, codec, header, expected):
        assert codec.header_to_serialization_format({"accept": header}, "accept").format is expected

    def test_missing_header_falls_back(self, codec):
        assert codec.header_to_serialization_format({}, "content-type") == ExtractedFormat(
            SerializationFormat.JSON, "application/json"
        )

    def test_mime_type_is_canonical(self, codec):
        extracted = codec.header_to_serialization_format({"content-type": "text/x-yaml"}, "content-type")
        assert extracted.mime_type == "application/yaml"
