"""Tool dispatcher and response envelope.

Every tool call loads a fresh descriptor snapshot, resolves the connection,
applies the access gate, and then runs exactly one connect/use/close cycle
against a new data source instance.

Configuration and access errors propagate to the MCP layer. Payload, intent
and backend errors (and anything unexpected raised by a backend) are rendered
as failure text so one bad request never takes the server down.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from mcp import types

from datastore_mcp.config.descriptors import DescriptorLoader
from datastore_mcp.config.settings import Settings
from datastore_mcp.connectors.interface import DataSource
from datastore_mcp.connectors.payload import normalize_payload
from datastore_mcp.connectors.registry import ConnectionRegistry, create_source, get_source_class
from datastore_mcp.errors import ConfigurationError, PayloadError, RecoverableError
from datastore_mcp.mcp.redaction import redact_options
from datastore_mcp.models import VERB_TOOLS, ActionRequest, ToolName
from datastore_mcp.policy.access import ensure_tool_allowed
from datastore_mcp.policy.truncation import cap_response

logger = logging.getLogger(__name__)

SourceFactory = Callable[..., DataSource]

SCHEMA_FAILURE_PREFIX = "Failed to get schema from data source."


def render_segment(message: Any) -> str:
    """Render one result value as text."""
    if isinstance(message, str):
        return message
    if isinstance(message, bool):
        return "Success" if message else "Failure"
    return json.dumps(message, indent=2, default=str)


def text_response(*messages: Any, max_bytes: int | None = None) -> list[types.TextContent]:
    """Build the response envelope: one text segment per message."""
    segments = []
    for message in messages:
        text = render_segment(message)
        if max_bytes is not None:
            text = cap_response(text, max_bytes=max_bytes)
        segments.append(types.TextContent(type="text", text=text))
    return segments


def failure_message(tool: ToolName, error: BaseException) -> str:
    if tool == ToolName.schema:
        return f"{SCHEMA_FAILURE_PREFIX} {error}"
    return f"Failed to run {tool.value} on data source. {error}"


@dataclass
class ToolDispatcher:
    """Runs one named tool against one connection."""

    load_sources: DescriptorLoader
    settings: Settings = field(default_factory=Settings)
    source_factory: SourceFactory = create_source

    def registry(self) -> ConnectionRegistry:
        """Build a registry from a fresh descriptor snapshot."""
        return ConnectionRegistry.from_sources(self.load_sources())

    def _respond(self, *messages: Any) -> list[types.TextContent]:
        return text_response(*messages, max_bytes=self.settings.limits.response_bytes)

    async def call(self, name: str, arguments: Mapping[str, Any] | None) -> list[types.TextContent]:
        """Route an MCP tool call by name."""
        arguments = arguments or {}
        try:
            tool = ToolName(name)
        except ValueError:
            raise ConfigurationError(f"Unknown tool: {name}") from None

        if tool == ToolName.connections:
            return await self.connections()

        connection_id = arguments.get("connectionId")
        if not isinstance(connection_id, str) or not connection_id.strip():
            raise ConfigurationError(f"The {tool.value} tool requires a `connectionId` string.")

        if tool == ToolName.payload:
            return await self.payload(connection_id)
        if tool == ToolName.schema:
            return await self.schema(
                connection_id, arguments.get("payload"), table_name=arguments.get("tableName")
            )
        return await self.run(tool, connection_id, arguments.get("payload"))

    async def connections(self) -> list[types.TextContent]:
        """List every loaded connection with secrets redacted."""
        registry = self.registry()
        listing = [
            {
                "id": descriptor.id,
                "type": descriptor.type,
                "source": descriptor.source,
                "disallowedTools": sorted(descriptor.disallowed_tools),
                "options": redact_options(descriptor.options),
            }
            for descriptor in registry
        ]
        return self._respond(listing)

    async def payload(self, connection_id: str) -> list[types.TextContent]:
        """Describe the payload shape expected by a connection's variant."""
        descriptor = self.registry().resolve(connection_id)
        ensure_tool_allowed(descriptor, ToolName.payload)
        source_cls = get_source_class(descriptor.type)
        description = source_cls.describe_payload()
        return self._respond(
            {
                "connectionId": descriptor.id,
                "type": source_cls.source_type.value,
                "description": description.title,
                "payload": description.to_dict(),
            }
        )

    async def schema(
        self, connection_id: str, raw_payload: Any = None, *, table_name: Any = None
    ) -> list[types.TextContent]:
        """Return structural metadata for a connection."""
        descriptor = self.registry().resolve(connection_id)
        ensure_tool_allowed(descriptor, ToolName.schema)

        try:
            payload = normalize_payload(raw_payload)
            table = table_name or payload.get("tableName")
            if table is not None and not isinstance(table, str):
                raise PayloadError("`tableName` must be a string.")
            source = self.source_factory(
                descriptor, ActionRequest(descriptor.id, payload), settings=self.settings
            )
            return self._respond(await self._with_connection(source, source.show_schema, table))
        except ConfigurationError:
            raise
        except RecoverableError as e:
            logger.warning("schema on %s failed: %s", connection_id, e)
            return self._respond(failure_message(ToolName.schema, e))
        except Exception as e:
            logger.error("schema on %s raised: %s", connection_id, e, exc_info=True)
            return self._respond(failure_message(ToolName.schema, e))

    async def run(
        self, tool: ToolName, connection_id: str, raw_payload: Any
    ) -> list[types.TextContent]:
        """Run a data verb (select/insert/update/delete/mutation)."""
        if tool not in VERB_TOOLS:
            raise ValueError(f"{tool.value} is not a data verb")

        descriptor = self.registry().resolve(connection_id)
        ensure_tool_allowed(descriptor, tool)
        logger.debug("Running %s on %s", tool.value, descriptor.id)

        try:
            request = ActionRequest(descriptor.id, normalize_payload(raw_payload))
            source = self.source_factory(descriptor, request, settings=self.settings)
            # Reject mismatched payloads before any backend handle exists
            source.ensure_intent(tool)
            return self._respond(await self._with_connection(source, source.run, tool))
        except ConfigurationError:
            raise
        except RecoverableError as e:
            logger.warning("%s on %s failed: %s", tool.value, connection_id, e)
            return self._respond(failure_message(tool, e))
        except Exception as e:
            logger.error("%s on %s raised: %s", tool.value, connection_id, e, exc_info=True)
            return self._respond(failure_message(tool, e))

    async def _with_connection(self, source: DataSource, fn: Any, *args: Any) -> Any:
        try:
            await source.connect()
            return await fn(*args)
        finally:
            await source.close()
