from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from datastore_mcp.connectors.sql import SQLDataSource
from datastore_mcp.models import SourceType

DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


def _yes_no(value: object) -> str:
    return "yes" if value else "no"


class MSSQLDataSource(SQLDataSource):
    """Microsoft SQL Server through pyodbc.

    Options follow the tedious-style shape: ``server``, ``port``, ``user``,
    ``password``, ``database`` and an ``options`` map with ``encrypt`` and
    ``trustServerCertificate``.
    """

    source_type: ClassVar[SourceType] = SourceType.mssql
    dialect: ClassVar[str] = "tsql"
    default_driver: ClassVar[str] = "mssql+pyodbc"
    default_port: ClassVar[int | None] = 1433

    def url_query(self) -> Mapping[str, str]:
        query = dict(super().url_query())
        query.setdefault("driver", str(self.options.get("odbcDriver") or DEFAULT_ODBC_DRIVER))
        tls = self.options.get("options") or {}
        if "encrypt" in tls:
            query.setdefault("Encrypt", _yes_no(tls["encrypt"]))
        if "trustServerCertificate" in tls:
            query.setdefault("TrustServerCertificate", _yes_no(tls["trustServerCertificate"]))
        return query

    def connect_args(self, timeout_s: float) -> dict[str, Any]:
        return {"timeout": max(1, round(timeout_s))}

    def _schema_sync(self, table_name: str | None) -> Any:
        if table_name:
            return self.fetch_all(
                "SELECT COLUMN_NAME, DATA_TYPE FROM INFORMATION_SCHEMA.COLUMNS "
                "WHERE TABLE_NAME = :table ORDER BY ORDINAL_POSITION",
                {"table": table_name},
            )
        return self.fetch_all(
            "SELECT TABLE_SCHEMA, TABLE_NAME, COLUMN_NAME, DATA_TYPE "
            "FROM INFORMATION_SCHEMA.COLUMNS "
            "ORDER BY TABLE_SCHEMA, TABLE_NAME, ORDINAL_POSITION"
        )
