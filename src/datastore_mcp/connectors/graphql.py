from __future__ import annotations

from functools import cached_property
from typing import Any, ClassVar

from graphql import (
    DocumentNode,
    GraphQLSyntaxError,
    OperationDefinitionNode,
    OperationType,
    get_introspection_query,
    parse,
)
from pydantic import BaseModel, ConfigDict, Field

from datastore_mcp.connectors.http import HTTPDataSource
from datastore_mcp.connectors.payload import PAYLOAD_HINT
from datastore_mcp.errors import ConfigurationError, IntentMismatchError, PayloadError
from datastore_mcp.models import SourceType, ToolName


class GraphQLPayload(BaseModel):
    """GraphQL document POSTed to the connection url."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(
        min_length=1,
        description='GraphQL document. Example: "query { users { id name } }"',
    )
    variables: dict[str, Any] | None = Field(
        default=None, description="Variables passed alongside the query in the request body"
    )
    headers: dict[str, str] | None = Field(
        default=None, description="Extra headers, merged over the connection headers"
    )


class GraphQLDataSource(HTTPDataSource):
    """GraphQL endpoint configured by ``options.url``.

    ``select`` only accepts documents whose operations are all queries.
    ``insert``/``update``/``delete``/``mutation`` accept any document containing a
    mutation; whether that mutation creates, updates or deletes is not inspected.
    """

    source_type: ClassVar[SourceType] = SourceType.graphql
    payload_model: ClassVar[type[BaseModel]] = GraphQLPayload

    @cached_property
    def document(self) -> DocumentNode:
        query = self.payload.get("query")
        if not isinstance(query, str) or not query.strip():
            raise PayloadError(f"A GraphQL `query` string is required. {PAYLOAD_HINT}")
        try:
            return parse(query)
        except GraphQLSyntaxError as e:
            raise PayloadError(f"Invalid GraphQL document: {e.message}") from e

    def _operations(self) -> list[OperationType] | None:
        try:
            document = self.document
        except PayloadError:
            return None
        return [
            definition.operation
            for definition in document.definitions
            if isinstance(definition, OperationDefinitionNode)
        ]

    def is_select(self) -> bool:
        operations = self._operations()
        if not operations:
            return False
        return all(operation == OperationType.QUERY for operation in operations)

    def is_mutation(self) -> bool:
        operations = self._operations()
        return bool(operations) and OperationType.MUTATION in operations

    def is_insert(self) -> bool:
        return self.is_mutation()

    def is_update(self) -> bool:
        return self.is_mutation()

    def is_delete(self) -> bool:
        return self.is_mutation()

    def ensure_intent(self, tool: ToolName) -> None:
        # Surface syntax errors as such rather than as an intent mismatch
        _ = self.document
        if tool == ToolName.mutation and not self.is_mutation():
            raise IntentMismatchError(self.intent_mismatch_message(tool))
        super().ensure_intent(tool)

    def intent_mismatch_message(self, tool: ToolName) -> str:
        if tool == ToolName.select:
            requirement = "contain only query operations"
        else:
            requirement = "contain a mutation operation"
        return (
            f"The provided payload is not a {tool.value.upper()} operation: "
            f"the GraphQL document must {requirement}."
        )

    @property
    def url(self) -> str:
        url = self.options.get("url")
        if not url:
            raise ConfigurationError(f"Connection {self.descriptor.id!r} needs a url option.")
        return str(url)

    async def _post(self, body: dict[str, Any], headers: dict[str, str] | None = None) -> str:
        merged = self.merged_headers(headers)
        merged["Content-Type"] = "application/json"
        response = await self.send("POST", self.url, headers=merged, body=body)
        return response.text

    async def _execute(self) -> str:
        _ = self.document
        params: GraphQLPayload = self.params
        body: dict[str, Any] = {"query": params.query}
        if params.variables is not None:
            body["variables"] = params.variables
        return await self._post(body, params.headers)

    async def mutation(self) -> str:
        self.ensure_intent(ToolName.mutation)
        return await self._mutation()

    async def _select(self) -> str:
        return await self._execute()

    async def _mutation(self) -> str:
        return await self._execute()

    async def _insert(self) -> str:
        return await self._mutation()

    async def _update(self) -> str:
        return await self._mutation()

    async def _delete(self) -> str:
        return await self._mutation()

    async def show_schema(self, table_name: str | None = None) -> str:
        return await self._post({"query": get_introspection_query()})
