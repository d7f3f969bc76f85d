from datastore_mcp.models.descriptors import (
    VERB_TOOLS,
    ConnectionDescriptor,
    DescriptorSource,
    SourceType,
    ToolName,
)
from datastore_mcp.models.requests import ActionRequest

__all__ = [
    "VERB_TOOLS",
    "ActionRequest",
    "ConnectionDescriptor",
    "DescriptorSource",
    "SourceType",
    "ToolName",
]
