"""Tests for payload normalization and payload descriptions."""

from __future__ import annotations

from typing import Any

import jsonschema
import pytest

from datastore_mcp.connectors.ftp import FtpDataSource
from datastore_mcp.connectors.graphql import GraphQLDataSource
from datastore_mcp.connectors.mongodb import MongoDataSource, MongoPayload
from datastore_mcp.connectors.payload import (
    PayloadDescription,
    normalize_payload,
    parse_payload,
)
from datastore_mcp.connectors.rest import RestDataSource
from datastore_mcp.connectors.s3 import S3DataSource
from datastore_mcp.connectors.sql import SQLPayload
from datastore_mcp.connectors.sqlite import SQLiteDataSource
from datastore_mcp.errors import PayloadError


class TestNormalizePayload:
    def test_object_passes_through(self) -> None:
        payload = normalize_payload({"sql": "SELECT 1"})
        assert payload == {"sql": "SELECT 1"}

    def test_string_is_parsed(self) -> None:
        payload = normalize_payload('{"sql": "SELECT 1", "params": {"a": 1}}')
        assert payload["params"] == {"a": 1}

    @pytest.mark.parametrize("raw", [None, "", "   ", "null"])
    def test_empty_inputs(self, raw: Any) -> None:
        assert dict(normalize_payload(raw)) == {}

    def test_malformed_json(self) -> None:
        with pytest.raises(PayloadError, match="Invalid JSON in payload string"):
            normalize_payload('{"sql": ')

    @pytest.mark.parametrize("raw", ["[1, 2]", '"text"', "42"])
    def test_non_object_json(self, raw: str) -> None:
        with pytest.raises(PayloadError, match="must be a JSON object"):
            normalize_payload(raw)

    def test_unsupported_type(self) -> None:
        with pytest.raises(PayloadError, match="got int"):
            normalize_payload(5)

    def test_result_is_read_only_and_detached(self) -> None:
        original = {"filter": {"a": 1}}
        payload = normalize_payload(original)

        with pytest.raises(TypeError):
            payload["filter"] = {}  # type: ignore[index]

        original["filter"]["a"] = 2
        assert payload["filter"] == {"a": 1}

    def test_nested_values_are_read_only(self) -> None:
        payload = normalize_payload('{"filter": {"tags": ["a"]}, "value": [{"n": 1}]}')

        with pytest.raises(TypeError):
            payload["filter"]["tags"] = []
        with pytest.raises(TypeError):
            payload["value"][0]["n"] = 2
        assert payload["filter"]["tags"] == ("a",)

    def test_parsed_model_gets_mutable_copy(self) -> None:
        payload = normalize_payload(
            {"method": "INSERT", "tableName": "users", "value": [{"name": "x"}]}
        )
        parsed = parse_payload(MongoPayload, payload)

        assert parsed.value == [{"name": "x"}]
        parsed.value[0]["name"] = "y"
        assert payload["value"][0]["name"] == "x"


class TestParsePayload:
    def test_valid(self) -> None:
        parsed = parse_payload(SQLPayload, {"sql": "SELECT 1", "tableName": "users"})
        assert parsed.table_name == "users"

    def test_invalid_points_at_payload_tool(self) -> None:
        with pytest.raises(PayloadError) as excinfo:
            parse_payload(MongoPayload, {"method": "FETCH"})
        message = str(excinfo.value)
        assert "method" in message
        assert "`payload` tool" in message


class TestPayloadDescription:
    def test_sql_fields(self) -> None:
        description = SQLiteDataSource.describe_payload()
        sql = description.field("sql")
        params = description.field("params")
        table = description.field("tableName")

        assert sql is not None and sql.required and sql.type == "string"
        assert params is not None and not params.required and params.type == "object"
        assert table is not None and not table.required
        assert description.field("table_name") is None

    def test_method_enum_rendered(self) -> None:
        description = MongoDataSource.describe_payload()
        method = description.field("method")
        assert method is not None
        assert method.required
        assert method.type == "SELECT|INSERT|UPDATE|DELETE|DELETE_TABLE"

    def test_to_dict(self) -> None:
        rendered = S3DataSource.describe_payload().to_dict()
        assert rendered["maxResults"]["type"] == "integer"
        assert rendered["sourceType"]["type"] == "path|raw"
        assert set(rendered["key"]) == {"type", "required", "description"}

    @pytest.mark.parametrize(
        "source_cls",
        [
            SQLiteDataSource,
            RestDataSource,
            GraphQLDataSource,
            MongoDataSource,
            S3DataSource,
            FtpDataSource,
        ],
    )
    def test_json_schema_is_valid(self, source_cls: Any) -> None:
        description: PayloadDescription = source_cls.describe_payload()
        jsonschema.Draft202012Validator.check_schema(dict(description.json_schema))
        assert description.fields
