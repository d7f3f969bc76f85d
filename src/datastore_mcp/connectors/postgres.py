from __future__ import annotations

from typing import Any, ClassVar

from datastore_mcp.connectors.sql import SQLDataSource
from datastore_mcp.models import SourceType

_SYSTEM_SCHEMAS = "('pg_catalog', 'information_schema')"


class PostgresDataSource(SQLDataSource):
    """PostgreSQL through psycopg2."""

    source_type: ClassVar[SourceType] = SourceType.postgres
    dialect: ClassVar[str] = "postgres"
    default_driver: ClassVar[str] = "postgresql+psycopg2"
    default_port: ClassVar[int | None] = 5432

    def connect_args(self, timeout_s: float) -> dict[str, Any]:
        return {"connect_timeout": max(1, round(timeout_s))}

    def _schema_sync(self, table_name: str | None) -> Any:
        if table_name:
            return {
                "columns": self.fetch_all(
                    "SELECT * FROM information_schema.columns WHERE table_name = :table "
                    "ORDER BY ordinal_position",
                    {"table": table_name},
                ),
                "indexes": self.fetch_all(
                    "SELECT * FROM pg_indexes WHERE tablename = :table", {"table": table_name}
                ),
            }

        return {
            "columns": self.fetch_all(
                "SELECT table_schema, table_name, column_name, data_type, is_nullable "
                "FROM information_schema.columns "
                f"WHERE table_schema NOT IN {_SYSTEM_SCHEMAS} "
                "ORDER BY table_schema, table_name, ordinal_position"
            ),
            "indexes": self.fetch_all(
                "SELECT schemaname, tablename, indexname, indexdef FROM pg_indexes "
                f"WHERE schemaname NOT IN {_SYSTEM_SCHEMAS} ORDER BY schemaname, tablename"
            ),
        }
