from __future__ import annotations

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from datastore_mcp.connectors.http import HTTPDataSource
from datastore_mcp.models import SourceType, ToolName

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

# Verb -> method it implies when the payload does not name one
_VERB_METHODS: dict[ToolName, str] = {
    ToolName.select: "GET",
    ToolName.insert: "POST",
    ToolName.update: "PUT",
    ToolName.delete: "DELETE",
}


class RestPayload(BaseModel):
    """HTTP request forwarded to a REST endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    endpoint: str = Field(
        min_length=1, description="Absolute URL, or a path relative to the connection baseUrl"
    )
    method: HttpMethod | None = Field(
        default=None, description="HTTP method; defaults to the one implied by the tool"
    )
    headers: dict[str, str] | None = Field(
        default=None, description="Extra headers, merged over the connection headers"
    )
    body: str | dict[str, Any] | list[Any] | None = Field(
        default=None, description="Request body; objects and arrays are sent as JSON"
    )

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value


class RestDataSource(HTTPDataSource):
    """Generic REST endpoint.

    ``select``/``insert``/``update``/``delete`` send GET/POST/PUT/DELETE. A
    payload ``method`` that disagrees with the tool is an intent mismatch.
    """

    source_type: ClassVar[SourceType] = SourceType.rest
    payload_model: ClassVar[type[BaseModel]] = RestPayload

    @property
    def method(self) -> str | None:
        raw = self.payload.get("method")
        return str(raw).strip().upper() if raw else None

    def _implies(self, tool: ToolName) -> bool:
        return self.method is None or self.method == _VERB_METHODS[tool]

    def is_select(self) -> bool:
        return self._implies(ToolName.select)

    def is_insert(self) -> bool:
        return self._implies(ToolName.insert)

    def is_update(self) -> bool:
        return self._implies(ToolName.update)

    def is_delete(self) -> bool:
        return self._implies(ToolName.delete)

    def is_mutation(self) -> bool:
        return self.method != "GET"

    def intent_mismatch_message(self, tool: ToolName) -> str:
        return (
            f"The provided payload is not a {tool.value.upper()} operation: "
            f"method must be `{_VERB_METHODS[tool]}` for the {tool.value} tool."
        )

    def client_kwargs(self) -> dict[str, Any]:
        kwargs = super().client_kwargs()
        base_url = self.options.get("baseUrl")
        if base_url:
            kwargs["base_url"] = str(base_url)
        return kwargs

    async def _request(self, default_method: str) -> str:
        params: RestPayload = self.params
        method = params.method or default_method
        response = await self.send(
            method,
            params.endpoint,
            headers=self.merged_headers(params.headers),
            body=params.body,
        )
        return response.text

    async def _select(self) -> str:
        return await self._request("GET")

    async def _insert(self) -> str:
        return await self._request("POST")

    async def _update(self) -> str:
        return await self._request("PUT")

    async def _delete(self) -> str:
        return await self._request("DELETE")

    async def _mutation(self) -> str:
        return await self._request("GET")

    async def show_schema(self, table_name: str | None = None) -> Any:
        if self.payload.get("endpoint"):
            return await self._request("GET")
        description = self.options.get("description")
        if description:
            return description
        return (
            "No schema description is configured for this connection. "
            "Pass an `endpoint` in the payload to fetch one from the API."
        )
