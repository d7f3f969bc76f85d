from datastore_mcp.mcp.server import DataStoreServer, tool_definitions
from datastore_mcp.mcp.tools import ToolDispatcher, text_response

__all__ = ["DataStoreServer", "ToolDispatcher", "text_response", "tool_definitions"]
