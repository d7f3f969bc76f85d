from datastore_mcp.policy.access import ensure_tool_allowed, is_tool_allowed
from datastore_mcp.policy.sql_guard import StatementIntent, StatementKind, classify_sql
from datastore_mcp.policy.truncation import cap_response, cap_text

__all__ = [
    "StatementIntent",
    "StatementKind",
    "cap_response",
    "cap_text",
    "classify_sql",
    "ensure_tool_allowed",
    "is_tool_allowed",
]
