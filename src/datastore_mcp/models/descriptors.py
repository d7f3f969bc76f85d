"""Connection descriptor models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SourceType(str, Enum):
    """Backend variants a connection descriptor can point at."""

    mysql = "sql-mysql"
    postgres = "sql-postgres"
    mssql = "sql-mssql"
    sqlite = "sql-sqlite"
    rest = "http-rest"
    graphql = "http-graphql"
    mongo = "document-mongo"
    s3 = "object-s3"
    ftp = "ftp"

    @classmethod
    def parse(cls, value: str) -> SourceType | None:
        """Resolve a descriptor ``type`` (canonical name or alias) to a variant."""
        normalized = value.lower().strip()
        try:
            return cls(normalized)
        except ValueError:
            return _TYPE_ALIASES.get(normalized)


_TYPE_ALIASES: dict[str, SourceType] = {
    "mysql": SourceType.mysql,
    "mariadb": SourceType.mysql,  # Alias
    "postgres": SourceType.postgres,
    "postgresql": SourceType.postgres,  # Alias
    "pg": SourceType.postgres,  # Alias
    "mssql": SourceType.mssql,
    "sqlserver": SourceType.mssql,  # Alias
    "sqlite": SourceType.sqlite,
    "rest": SourceType.rest,
    "http": SourceType.rest,  # Alias
    "crud": SourceType.rest,  # Alias
    "graphql": SourceType.graphql,
    "mongodb": SourceType.mongo,
    "mongo": SourceType.mongo,  # Alias
    "s3": SourceType.s3,
}


class ToolName(str, Enum):
    """Names of the tools exposed over MCP."""

    connections = "connections"
    payload = "payload"
    schema = "schema"
    select = "select"
    insert = "insert"
    update = "update"
    delete = "delete"
    mutation = "mutation"


VERB_TOOLS: frozenset[ToolName] = frozenset(
    {ToolName.select, ToolName.insert, ToolName.update, ToolName.delete, ToolName.mutation}
)


class ConnectionDescriptor(BaseModel):
    """One declared backend: id, variant type, backend options and deny-list."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    type: str = Field(min_length=1, description="Variant name or alias, resolved by the registry")
    options: dict[str, Any] = Field(default_factory=dict)
    disallowed_tools: frozenset[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices("disallowedTools", "disallowed_tools"),
        serialization_alias="disallowedTools",
    )
    source: str | None = Field(default=None, description="File the descriptor was loaded from")

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("connection id must not be blank")
        return value

    @field_validator("options", mode="before")
    @classmethod
    def _none_options(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator("disallowed_tools", mode="before")
    @classmethod
    def _normalize_tools(cls, value: object) -> object:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            raise ValueError("disallowedTools must be a list of tool names")
        if isinstance(value, list | tuple | set | frozenset):
            return frozenset(str(item).strip().lower() for item in value)
        return value

    @property
    def source_type(self) -> SourceType | None:
        return SourceType.parse(self.type)

    def is_disallowed(self, tool: str) -> bool:
        return tool.lower() in self.disallowed_tools


@dataclass(frozen=True)
class DescriptorSource:
    """Descriptors loaded from one file, identified by its path."""

    name: str
    descriptors: tuple[ConnectionDescriptor, ...] = field(default_factory=tuple)
