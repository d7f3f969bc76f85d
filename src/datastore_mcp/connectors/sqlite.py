from __future__ import annotations

from typing import Any, ClassVar

from sqlalchemy.engine import URL, make_url

from datastore_mcp.connectors.sql import SQLDataSource
from datastore_mcp.errors import ConfigurationError
from datastore_mcp.models import SourceType


class SQLiteDataSource(SQLDataSource):
    """SQLite database file through the stdlib driver.

    Options: ``filename`` (or ``database``/``url``) and an optional ``mode``;
    ``mode: "ro"`` opens the file read-only.
    """

    source_type: ClassVar[SourceType] = SourceType.sqlite
    dialect: ClassVar[str] = "sqlite"
    default_driver: ClassVar[str] = "sqlite"

    def build_url(self) -> URL:
        opts = self.options
        if opts.get("url"):
            return make_url(str(opts["url"]))

        filename = opts.get("filename") or opts.get("database") or opts.get("path")
        if not filename:
            raise ConfigurationError(
                f"Connection {self.descriptor.id!r} needs a filename option."
            )
        filename = str(filename)
        mode = opts.get("mode")
        if mode and filename != ":memory:":
            return URL.create(
                self.default_driver,
                database=f"file:{filename}",
                query={"mode": str(mode), "uri": "true"},
            )
        return URL.create(self.default_driver, database=filename)

    def connect_args(self, timeout_s: float) -> dict[str, Any]:
        # Connection is opened and used from different worker threads
        return {"timeout": timeout_s, "check_same_thread": False}

    def _schema_sync(self, table_name: str | None) -> Any:
        if table_name:
            rows = self.fetch_all(
                "SELECT sql FROM sqlite_master WHERE type IN ('table', 'view') AND name = :name",
                {"name": table_name},
            )
            return rows[0]["sql"] if rows else None
        return self.fetch_all(
            "SELECT type, name, sql FROM sqlite_master "
            "WHERE type IN ('table', 'view', 'index', 'trigger') AND name NOT LIKE 'sqlite_%' "
            "ORDER BY type, name"
        )
