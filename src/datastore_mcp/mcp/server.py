"""MCP stdio server exposing the data store tools.

Stdio transport only; stdout carries JSON-RPC, so logging goes to stderr.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from datastore_mcp.config.descriptors import DescriptorLoader
from datastore_mcp.config.settings import Settings
from datastore_mcp.connectors.shutdown import pending_closes
from datastore_mcp.mcp.tools import ToolDispatcher
from datastore_mcp.models import ToolName

logger = logging.getLogger(__name__)

SERVER_NAME = "datastore-mcp"

_CONNECTION_ID: dict[str, Any] = {
    "type": "string",
    "description": "Id of the connection to use, as listed by the connections tool",
}
_PAYLOAD: dict[str, Any] = {
    "type": ["object", "string"],
    "description": "Operation payload as an object or a JSON string; see the payload tool",
}

_VERB_DESCRIPTIONS: dict[ToolName, str] = {
    ToolName.select: "Read data. SQL must consist only of SELECT statements.",
    ToolName.insert: "Create data. SQL must contain an INSERT statement.",
    ToolName.update: "Modify data. SQL must contain an UPDATE statement.",
    ToolName.delete: "Remove data. SQL must contain a DELETE statement.",
    ToolName.mutation: "Run any operation the payload describes, without verb checks.",
}


def tool_definitions() -> list[types.Tool]:
    """Definitions advertised through ``tools/list``."""
    tools = [
        types.Tool(
            name=ToolName.connections.value,
            description="List the configured data store connections.",
            inputSchema={"type": "object", "properties": {}},
        ),
        types.Tool(
            name=ToolName.payload.value,
            description="Describe the payload a connection expects for the data tools.",
            inputSchema={
                "type": "object",
                "properties": {"connectionId": _CONNECTION_ID},
                "required": ["connectionId"],
            },
        ),
        types.Tool(
            name=ToolName.schema.value,
            description="Show tables, collections, keys or other structure of a connection.",
            inputSchema={
                "type": "object",
                "properties": {
                    "connectionId": _CONNECTION_ID,
                    "tableName": {
                        "type": "string",
                        "description": "Optional table, collection, prefix or path to scope to",
                    },
                    "payload": _PAYLOAD,
                },
                "required": ["connectionId"],
            },
        ),
    ]
    for tool, description in _VERB_DESCRIPTIONS.items():
        tools.append(
            types.Tool(
                name=tool.value,
                description=description,
                inputSchema={
                    "type": "object",
                    "properties": {"connectionId": _CONNECTION_ID, "payload": _PAYLOAD},
                    "required": ["connectionId", "payload"],
                },
            )
        )
    return tools


@dataclass
class DataStoreServer:
    """Binds the MCP tool names to a ToolDispatcher."""

    load_sources: DescriptorLoader
    settings: Settings = field(default_factory=Settings)

    _server: Server = field(init=False)
    _dispatcher: ToolDispatcher = field(init=False)

    def __post_init__(self) -> None:
        self._dispatcher = ToolDispatcher(load_sources=self.load_sources, settings=self.settings)
        self._server = Server(SERVER_NAME)
        self._register_handlers()

    @property
    def dispatcher(self) -> ToolDispatcher:
        return self._dispatcher

    def _register_handlers(self) -> None:
        @self._server.list_tools()  # type: ignore[no-untyped-call,untyped-decorator]
        async def list_tools() -> list[types.Tool]:
            return tool_definitions()

        @self._server.call_tool()  # type: ignore[untyped-decorator]
        async def call_tool(
            name: str, arguments: dict[str, Any] | None
        ) -> Sequence[types.TextContent | types.ImageContent | types.EmbeddedResource]:
            try:
                return await self._dispatcher.call(name, arguments)
            except Exception as e:
                logger.error("Tool %s failed: %s", name, e)
                raise

    async def run(self) -> None:
        """Serve over stdio until the client disconnects."""
        try:
            async with stdio_server() as (read, write):
                await self._server.run(read, write, self._server.create_initialization_options())
        finally:
            stragglers = pending_closes()
            if stragglers:
                logger.warning("%d close routine(s) still pending at exit", len(stragglers))
                for task in stragglers:
                    task.cancel()
