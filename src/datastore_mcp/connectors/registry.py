"""Connection registry and data source factory.

The registry flattens descriptor sources into an id -> descriptor map and
refuses to build when an id is declared more than once. The factory maps a
descriptor's type to its variant class through a closed table.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from datastore_mcp.config.settings import Settings
from datastore_mcp.connectors.ftp import FtpDataSource
from datastore_mcp.connectors.graphql import GraphQLDataSource
from datastore_mcp.connectors.interface import DataSource
from datastore_mcp.connectors.mongodb import MongoDataSource
from datastore_mcp.connectors.mssql import MSSQLDataSource
from datastore_mcp.connectors.mysql import MySQLDataSource
from datastore_mcp.connectors.postgres import PostgresDataSource
from datastore_mcp.connectors.rest import RestDataSource
from datastore_mcp.connectors.s3 import S3DataSource
from datastore_mcp.connectors.sqlite import SQLiteDataSource
from datastore_mcp.errors import ConfigurationError
from datastore_mcp.models import ActionRequest, ConnectionDescriptor, DescriptorSource, SourceType

logger = logging.getLogger(__name__)

# Every SourceType has exactly one variant
_SOURCES: Mapping[SourceType, type[DataSource]] = MappingProxyType(
    {
        SourceType.mysql: MySQLDataSource,
        SourceType.postgres: PostgresDataSource,
        SourceType.mssql: MSSQLDataSource,
        SourceType.sqlite: SQLiteDataSource,
        SourceType.rest: RestDataSource,
        SourceType.graphql: GraphQLDataSource,
        SourceType.mongo: MongoDataSource,
        SourceType.s3: S3DataSource,
        SourceType.ftp: FtpDataSource,
    }
)


def get_source_class(source_type: str) -> type[DataSource]:
    """Resolve a descriptor type (canonical name or alias) to its variant class.

    Raises:
        ConfigurationError: If the type is not a known variant.
    """
    resolved = SourceType.parse(source_type)
    if resolved is None:
        supported = ", ".join(member.value for member in SourceType)
        raise ConfigurationError(
            f"Unsupported data source type: {source_type!r}. Supported types: {supported}"
        )
    return _SOURCES[resolved]


@dataclass(frozen=True)
class ConnectionRegistry:
    """Immutable id -> descriptor snapshot for one tool call."""

    descriptors: Mapping[str, ConnectionDescriptor]

    @classmethod
    def from_sources(cls, sources: Iterable[DescriptorSource]) -> ConnectionRegistry:
        """Flatten sources, failing on ids declared more than once.

        Raises:
            ConfigurationError: Listing every duplicated id with all of its sources.
        """
        seen: dict[str, ConnectionDescriptor] = {}
        origins: dict[str, list[str]] = {}
        for source in sources:
            for descriptor in source.descriptors:
                origins.setdefault(descriptor.id, []).append(descriptor.source or source.name)
                seen.setdefault(descriptor.id, descriptor)

        duplicates = {key: names for key, names in origins.items() if len(names) > 1}
        if duplicates:
            lines = [f"  - {key}: {', '.join(names)}" for key, names in sorted(duplicates.items())]
            raise ConfigurationError(
                "Duplicate connection ids found (These must be resolved):\n" + "\n".join(lines)
            )

        return cls(descriptors=MappingProxyType(seen))

    def __iter__(self) -> Iterator[ConnectionDescriptor]:
        return iter(self.descriptors.values())

    def __len__(self) -> int:
        return len(self.descriptors)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self.descriptors

    def resolve(self, connection_id: str) -> ConnectionDescriptor:
        """Return the descriptor for ``connection_id``.

        Raises:
            ConfigurationError: If no descriptor declares that id.
        """
        descriptor = self.descriptors.get(connection_id.strip())
        if descriptor is None:
            raise ConfigurationError(
                f'Connection id not found: "{connection_id}". '
                "Try again using a different connection"
            )
        return descriptor


def create_source(
    descriptor: ConnectionDescriptor,
    request: ActionRequest,
    *,
    settings: Settings | None = None,
) -> DataSource:
    """Instantiate the variant for ``descriptor``, bound to one request.

    The instance is not connected; the caller owns connect and close.
    """
    source_cls = get_source_class(descriptor.type)
    logger.debug("Creating %s for connection %s", source_cls.__name__, descriptor.id)
    return source_cls(descriptor, request, settings=settings)
