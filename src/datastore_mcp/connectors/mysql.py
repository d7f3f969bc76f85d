from __future__ import annotations

from typing import Any, ClassVar

from datastore_mcp.connectors.sql import SQLDataSource
from datastore_mcp.models import SourceType


class MySQLDataSource(SQLDataSource):
    """MySQL / MariaDB through PyMySQL."""

    source_type: ClassVar[SourceType] = SourceType.mysql
    dialect: ClassVar[str] = "mysql"
    default_driver: ClassVar[str] = "mysql+pymysql"
    default_port: ClassVar[int | None] = 3306

    def connect_args(self, timeout_s: float) -> dict[str, Any]:
        return {"connect_timeout": max(1, round(timeout_s))}

    def _show_create(self, kind: str, name: str) -> dict[str, Any] | None:
        rows = self.fetch_all(f"SHOW CREATE {kind} {self.quote(name)}")
        return rows[0] if rows else None

    def _schema_sync(self, table_name: str | None) -> Any:
        if table_name:
            return self._show_create("TABLE", table_name)

        current_db = self.connection.exec_driver_sql("SELECT DATABASE()").scalar()
        tables = [next(iter(row.values())) for row in self.fetch_all("SHOW TABLES")]
        procedures = self.fetch_all("SHOW PROCEDURE STATUS WHERE Db = :db", {"db": current_db})
        functions = self.fetch_all("SHOW FUNCTION STATUS WHERE Db = :db", {"db": current_db})

        return {
            "database": current_db,
            "tables": [self._show_create("TABLE", name) for name in tables],
            "procedures": [self._show_create("PROCEDURE", row["Name"]) for row in procedures],
            "functions": [self._show_create("FUNCTION", row["Name"]) for row in functions],
        }
