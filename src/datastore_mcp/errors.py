"""Error taxonomy shared by the registry, the variants and the dispatcher.

Configuration and access errors are fatal for a tool call and propagate to the
MCP layer. Everything deriving from ``RecoverableError`` is caught by the tool
dispatcher and rendered as failure text.
"""

from __future__ import annotations


class DataStoreError(Exception):
    """Base class for all errors raised by datastore-mcp."""


class ConfigurationError(DataStoreError):
    """Unknown connection, unknown source type, or conflicting descriptors."""


class AccessDeniedError(DataStoreError):
    """The requested tool is listed in the connection's ``disallowedTools``."""

    def __init__(self, tool: str, connection_id: str) -> None:
        self.tool = tool
        self.connection_id = connection_id
        super().__init__(
            f"Running the {tool} tool is not allowed for this connection as it is added to "
            "the 'disallowedTools' configuration file. Either remove it from the list or "
            "use a different connection."
        )


class RecoverableError(DataStoreError):
    """A data problem that is reported back to the caller as text."""


class PayloadError(RecoverableError):
    """Missing, invalid or malformed payload."""


class IntentMismatchError(RecoverableError):
    """The payload does not represent the verb of the tool that was called."""


class BackendError(RecoverableError):
    """Driver or network failure while talking to the backend."""
