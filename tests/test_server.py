"""Tests for the MCP tool surface."""

from __future__ import annotations

from typing import Any

import jsonschema
import pytest
from mcp import types

from datastore_mcp.mcp import DataStoreServer, tool_definitions
from datastore_mcp.models import DescriptorSource, ToolName


def _schemas() -> dict[str, dict[str, Any]]:
    return {tool.name: tool.inputSchema for tool in tool_definitions()}


def test_every_tool_is_advertised() -> None:
    assert set(_schemas()) == {tool.value for tool in ToolName}


@pytest.mark.parametrize("name", sorted(_schemas()))
def test_input_schemas_are_valid(name: str) -> None:
    jsonschema.Draft202012Validator.check_schema(_schemas()[name])


@pytest.mark.parametrize(
    "arguments",
    [
        {"connectionId": "db", "payload": {"sql": "SELECT 1"}},
        {"connectionId": "db", "payload": '{"sql": "SELECT 1"}'},
    ],
)
def test_verb_accepts_object_or_string_payload(arguments: dict[str, Any]) -> None:
    jsonschema.validate(arguments, _schemas()["select"])


def test_verb_requires_connection_and_payload() -> None:
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate({"payload": {}}, _schemas()["delete"])
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate({"connectionId": "db"}, _schemas()["delete"])


def test_schema_tool_payload_is_optional() -> None:
    jsonschema.validate({"connectionId": "db", "tableName": "users"}, _schemas()["schema"])


@pytest.mark.asyncio
async def test_server_routes_through_dispatcher() -> None:
    server = DataStoreServer(load_sources=lambda: [DescriptorSource(name="empty.json")])

    content = await server.dispatcher.call("connections", {})

    assert content == [types.TextContent(type="text", text="[]")]
