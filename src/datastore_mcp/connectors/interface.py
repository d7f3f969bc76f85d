"""Data source contract shared by every backend variant.

A DataSource is built for one tool call from one connection descriptor and
one normalized request. It is connected at most once, used for a single verb,
and closed through ``safe_close`` before the call returns.

The public verbs (``select``, ``insert``, ``update``, ``delete``) check the
variant's intent predicate before touching the backend; ``mutation`` runs
whatever the payload asks for.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import cached_property
from typing import Any, ClassVar

from pydantic import BaseModel

from datastore_mcp.config.settings import Settings
from datastore_mcp.connectors.payload import PayloadDescription, parse_payload
from datastore_mcp.connectors.shutdown import CloseRoutine, safe_close
from datastore_mcp.errors import ConfigurationError, IntentMismatchError, PayloadError
from datastore_mcp.models import ActionRequest, ConnectionDescriptor, SourceType, ToolName

logger = logging.getLogger(__name__)

_INTENT_TOOLS: frozenset[ToolName] = frozenset(
    {ToolName.select, ToolName.insert, ToolName.update, ToolName.delete}
)


class DataSource(ABC):
    """Base class for backend variants."""

    source_type: ClassVar[SourceType]
    payload_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        request: ActionRequest,
        *,
        settings: Settings | None = None,
    ) -> None:
        self.descriptor = descriptor
        self.request = request
        self.settings = settings or Settings()
        self._connected = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.descriptor.id!r})"

    @property
    def payload(self) -> Mapping[str, Any]:
        return self.request.payload

    @property
    def options(self) -> Mapping[str, Any]:
        return self.descriptor.options

    @property
    def connected(self) -> bool:
        return self._connected

    @cached_property
    def params(self) -> Any:
        """The payload validated against ``payload_model``."""
        return parse_payload(self.payload_model, self.payload)

    @classmethod
    def describe_payload(cls) -> PayloadDescription:
        return PayloadDescription.from_model(cls.payload_model)

    def option_seconds(self, key: str, default: float) -> float:
        """Read a millisecond timeout option, falling back to ``default`` seconds."""
        value = self.options.get(key)
        if value is None:
            return default
        try:
            return float(value) / 1000.0
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Connection option {key!r} must be a number of milliseconds"
            ) from e

    # Lifecycle

    async def connect(self) -> None:
        if self._connected:
            logger.debug("%r already connected", self)
            return
        await self._connect()
        self._connected = True

    async def close(self) -> None:
        if not self._connected:
            return
        self._connected = False
        await safe_close(
            self._close,
            self._close_fallback(),
            timeout_s=self.settings.timeouts.shutdown_seconds,
            label=repr(self),
        )

    @abstractmethod
    async def _connect(self) -> None: ...

    @abstractmethod
    async def _close(self) -> None: ...

    def _close_fallback(self) -> CloseRoutine | None:
        return None

    # Intent

    @abstractmethod
    def is_select(self) -> bool: ...

    @abstractmethod
    def is_insert(self) -> bool: ...

    @abstractmethod
    def is_update(self) -> bool: ...

    @abstractmethod
    def is_delete(self) -> bool: ...

    @abstractmethod
    def is_mutation(self) -> bool: ...

    def matches_intent(self, tool: ToolName) -> bool:
        if tool == ToolName.select:
            return self.is_select()
        if tool == ToolName.insert:
            return self.is_insert()
        if tool == ToolName.update:
            return self.is_update()
        if tool == ToolName.delete:
            return self.is_delete()
        return True

    def intent_mismatch_message(self, tool: ToolName) -> str:
        return f"The provided payload is not a {tool.value.upper()} operation."

    def ensure_intent(self, tool: ToolName) -> None:
        """Raise IntentMismatchError unless the payload represents ``tool``."""
        if tool in _INTENT_TOOLS and not self.matches_intent(tool):
            raise IntentMismatchError(self.intent_mismatch_message(tool))

    # Verbs

    async def select(self) -> Any:
        self.ensure_intent(ToolName.select)
        return await self._select()

    async def insert(self) -> Any:
        self.ensure_intent(ToolName.insert)
        return await self._insert()

    async def update(self) -> Any:
        self.ensure_intent(ToolName.update)
        return await self._update()

    async def delete(self) -> Any:
        self.ensure_intent(ToolName.delete)
        return await self._delete()

    async def mutation(self) -> Any:
        return await self._mutation()

    async def run(self, tool: ToolName) -> Any:
        """Run the verb named by ``tool``."""
        if tool == ToolName.select:
            return await self.select()
        if tool == ToolName.insert:
            return await self.insert()
        if tool == ToolName.update:
            return await self.update()
        if tool == ToolName.delete:
            return await self.delete()
        if tool == ToolName.mutation:
            return await self.mutation()
        raise ValueError(f"{tool.value} is not a data verb")

    @abstractmethod
    async def _select(self) -> Any: ...

    @abstractmethod
    async def _insert(self) -> Any: ...

    @abstractmethod
    async def _update(self) -> Any: ...

    @abstractmethod
    async def _delete(self) -> Any: ...

    @abstractmethod
    async def _mutation(self) -> Any: ...

    @abstractmethod
    async def show_schema(self, table_name: str | None = None) -> Any:
        """Return structural metadata, scoped to ``table_name`` when given."""


class MethodDataSource(DataSource):
    """Variant whose payload names the operation in a ``method`` field.

    Subclasses map method names to handler coroutine names in ``_handlers``.
    """

    read_methods: ClassVar[frozenset[str]] = frozenset({"SELECT"})
    _handlers: ClassVar[dict[str, str]] = {}

    @property
    def method(self) -> str:
        return str(self.payload.get("method") or "").strip().upper()

    @property
    def write_methods(self) -> frozenset[str]:
        return frozenset(self._handlers) - self.read_methods

    def is_select(self) -> bool:
        return self.method in self.read_methods

    def is_insert(self) -> bool:
        return self.method == "INSERT"

    def is_update(self) -> bool:
        return self.method == "UPDATE"

    def is_delete(self) -> bool:
        return self.method == "DELETE"

    def is_mutation(self) -> bool:
        return self.method in self.write_methods

    async def _dispatch(self) -> Any:
        handler_name = self._handlers.get(self.method)
        if handler_name is None:
            expected = ", ".join(sorted(self._handlers))
            raise PayloadError(
                f"Unsupported method {self.method or '<missing>'!r}; expected one of {expected}."
            )
        handler = getattr(self, handler_name)
        return await handler()

    async def _select(self) -> Any:
        return await self._dispatch()

    async def _insert(self) -> Any:
        return await self._dispatch()

    async def _update(self) -> Any:
        return await self._dispatch()

    async def _delete(self) -> Any:
        return await self._dispatch()

    async def _mutation(self) -> Any:
        return await self._dispatch()
