"""Shared SQLAlchemy plumbing for the relational variants.

Each instance owns one engine with ``NullPool`` and a single checked-out
connection, so nothing is pooled across tool calls. Blocking driver calls run
in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from collections.abc import Mapping
from functools import cached_property
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from datastore_mcp.connectors.interface import DataSource
from datastore_mcp.connectors.shutdown import CloseRoutine
from datastore_mcp.errors import BackendError, ConfigurationError
from datastore_mcp.models import ToolName
from datastore_mcp.policy.sql_guard import StatementIntent, classify_sql

logger = logging.getLogger(__name__)


class SQLPayload(BaseModel):
    """SQL statement to run against a relational connection."""

    model_config = ConfigDict(populate_by_name=True)

    sql: str = Field(
        min_length=1, description="SQL text; several statements may be separated by ;"
    )
    params: dict[str, Any] | None = Field(
        default=None, description="Named bind parameters referenced as :name in the SQL"
    )
    table_name: str | None = Field(
        default=None,
        alias="tableName",
        description="Table the statement targets (informational)",
    )


def _driver_message(error: SQLAlchemyError) -> str:
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)


class SQLDataSource(DataSource):
    """Base for MySQL, Postgres, MSSQL and SQLite."""

    payload_model: ClassVar[type[BaseModel]] = SQLPayload
    dialect: ClassVar[str]
    default_driver: ClassVar[str]
    default_port: ClassVar[int | None] = None

    _engine: Engine | None = None
    _conn: Connection | None = None

    # Intent

    @cached_property
    def intent(self) -> StatementIntent:
        return classify_sql(str(self.payload.get("sql") or ""), dialect=self.dialect)

    def is_select(self) -> bool:
        return self.intent.is_select

    def is_insert(self) -> bool:
        return self.intent.is_insert

    def is_update(self) -> bool:
        return self.intent.is_update

    def is_delete(self) -> bool:
        return self.intent.is_delete

    def is_mutation(self) -> bool:
        return self.intent.is_mutation

    def intent_mismatch_message(self, tool: ToolName) -> str:
        return f"The provided SQL query is not a {tool.value.upper()} statement."

    # Connection

    def build_url(self) -> URL:
        """Build the SQLAlchemy URL from ``url`` or the discrete connection options."""
        opts = self.options
        if opts.get("url"):
            try:
                return make_url(str(opts["url"]))
            except Exception as e:
                raise ConfigurationError(
                    f"Connection {self.descriptor.id!r} has an invalid url: {e}"
                ) from e

        host = opts.get("host") or opts.get("server")
        if not host:
            raise ConfigurationError(
                f"Connection {self.descriptor.id!r} needs either a url or a host option."
            )
        port = opts.get("port", self.default_port)
        return URL.create(
            str(opts.get("driver") or self.default_driver),
            username=opts.get("user") or opts.get("username"),
            password=opts.get("password"),
            host=str(host),
            port=int(port) if port is not None else None,
            database=opts.get("database"),
            query=self.url_query(),
        )

    def url_query(self) -> Mapping[str, str]:
        query = self.options.get("query") or {}
        return {str(k): str(v) for k, v in dict(query).items()}

    def connect_args(self, timeout_s: float) -> dict[str, Any]:
        """Driver-specific connect arguments carrying the connect timeout."""
        return {}

    def _open(self) -> None:
        timeout_s = self.option_seconds(
            "connectTimeout", self.settings.timeouts.connect_seconds
        )
        engine = create_engine(
            self.build_url(), poolclass=NullPool, connect_args=self.connect_args(timeout_s)
        )
        try:
            self._conn = engine.connect()
        except Exception:
            engine.dispose()
            raise
        self._engine = engine

    async def _connect(self) -> None:
        try:
            await asyncio.to_thread(self._open)
        except SQLAlchemyError as e:
            raise BackendError(
                f"Could not connect to {self.descriptor.id!r}: {_driver_message(e)}"
            ) from e

    def _shutdown(self) -> None:
        if self._conn is not None:
            self._conn.close()
        if self._engine is not None:
            self._engine.dispose()

    async def _close(self) -> None:
        await asyncio.to_thread(self._shutdown)

    def _close_fallback(self) -> CloseRoutine | None:
        conn = self._conn
        if conn is None:
            return None
        return lambda: asyncio.to_thread(conn.invalidate)

    @property
    def connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError(f"{self!r} is not connected")
        return self._conn

    # Execution

    def _execute_sync(self, sql: str, params: Mapping[str, Any] | None) -> Any:
        conn = self.connection
        result = conn.execute(text(sql), dict(params or {}))
        if result.returns_rows:
            rows = [dict(row) for row in result.mappings()]
            conn.commit()
            return rows
        outcome: dict[str, Any] = {"rowCount": result.rowcount}
        if self.intent.is_insert:
            last_row_id = getattr(result, "lastrowid", None)
            if last_row_id:
                outcome["lastRowId"] = last_row_id
        conn.commit()
        return outcome

    async def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        try:
            return await asyncio.to_thread(self._execute_sync, sql, params)
        except SQLAlchemyError as e:
            raise BackendError(_driver_message(e)) from e

    async def _run_payload(self) -> Any:
        params: SQLPayload = self.params
        return await self.execute(params.sql, params.params)

    async def _select(self) -> Any:
        return await self._run_payload()

    async def _insert(self) -> Any:
        return await self._run_payload()

    async def _update(self) -> Any:
        return await self._run_payload()

    async def _delete(self) -> Any:
        return await self._run_payload()

    async def _mutation(self) -> Any:
        return await self._run_payload()

    # Schema

    def quote(self, identifier: str) -> str:
        """Quote an identifier using the connected dialect's rules."""
        engine = self._engine
        if engine is None:
            raise RuntimeError(f"{self!r} is not connected")
        return engine.dialect.identifier_preparer.quote_identifier(identifier)

    @abstractmethod
    def _schema_sync(self, table_name: str | None) -> Any: ...

    async def show_schema(self, table_name: str | None = None) -> Any:
        try:
            return await asyncio.to_thread(self._schema_sync, table_name)
        except SQLAlchemyError as e:
            raise BackendError(_driver_message(e)) from e

    def fetch_all(
        self, sql: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a catalog query and return its rows as dicts."""
        result = self.connection.execute(text(sql), dict(params or {}))
        return [dict(row) for row in result.mappings()]
