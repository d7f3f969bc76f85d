from __future__ import annotations

import logging

from datastore_mcp.errors import AccessDeniedError
from datastore_mcp.models import ConnectionDescriptor, ToolName

logger = logging.getLogger(__name__)


def is_tool_allowed(descriptor: ConnectionDescriptor, tool: ToolName | str) -> bool:
    name = tool.value if isinstance(tool, ToolName) else tool
    return not descriptor.is_disallowed(name)


def ensure_tool_allowed(descriptor: ConnectionDescriptor, tool: ToolName | str) -> None:
    """Raise AccessDeniedError if ``tool`` is in the connection's deny-list.

    Runs before any backend handle is created.
    """
    name = tool.value if isinstance(tool, ToolName) else tool
    if descriptor.is_disallowed(name):
        logger.info("Blocked %s on connection %s (disallowedTools)", name, descriptor.id)
        raise AccessDeniedError(name, descriptor.id)
