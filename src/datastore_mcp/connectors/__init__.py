from datastore_mcp.connectors.interface import DataSource, MethodDataSource
from datastore_mcp.connectors.payload import (
    PayloadDescription,
    PayloadField,
    normalize_payload,
    parse_payload,
)
from datastore_mcp.connectors.registry import ConnectionRegistry, create_source, get_source_class
from datastore_mcp.connectors.shutdown import safe_close

__all__ = [
    "ConnectionRegistry",
    "DataSource",
    "MethodDataSource",
    "PayloadDescription",
    "PayloadField",
    "create_source",
    "get_source_class",
    "normalize_payload",
    "parse_payload",
    "safe_close",
]
