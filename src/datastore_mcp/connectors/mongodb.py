"""MongoDB variant.

The payload ``method`` picks the operation: SELECT, INSERT, UPDATE, DELETE, or
DELETE_TABLE (drop the collection, only reachable through ``mutation``).
pymongo is synchronous, so every driver call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pymongo import MongoClient
from pymongo import errors as mongo_errors

from datastore_mcp.connectors.interface import MethodDataSource
from datastore_mcp.connectors.payload import PAYLOAD_HINT
from datastore_mcp.connectors.shutdown import CloseRoutine
from datastore_mcp.errors import BackendError, ConfigurationError, PayloadError
from datastore_mcp.models import SourceType

logger = logging.getLogger(__name__)

MongoMethod = Literal["SELECT", "INSERT", "UPDATE", "DELETE", "DELETE_TABLE"]


class MongoPayload(BaseModel):
    """Document operation against one collection."""

    model_config = ConfigDict(populate_by_name=True)

    method: MongoMethod = Field(description="Operation to run")
    table_name: str | None = Field(
        default=None, alias="tableName", description="Collection to operate on"
    )
    filter: dict[str, Any] | list[dict[str, Any]] | None = Field(
        default=None,
        description="Query filter; a list of filters is combined with $or (DELETE only)",
    )
    value: dict[str, Any] | list[dict[str, Any]] | None = Field(
        default=None,
        description="Document(s) to insert, or the update document / pipeline for UPDATE",
    )
    max_results: int | None = Field(
        default=None,
        alias="maxResults",
        ge=0,
        description="Maximum documents returned by SELECT; 0 means no limit",
    )

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value


def _as_update(value: dict[str, Any] | list[dict[str, Any]]) -> Any:
    """Plain field maps become ``$set`` updates; operator documents and pipelines pass through."""
    if isinstance(value, list):
        return value
    if any(key.startswith("$") for key in value):
        return value
    return {"$set": value}


class MongoDataSource(MethodDataSource):
    """MongoDB through pymongo.

    Options: ``url`` (connection string), optional ``database`` (defaults to the
    one named in the url) and ``options`` (extra MongoClient keyword arguments).
    """

    source_type: ClassVar[SourceType] = SourceType.mongo
    payload_model: ClassVar[type[BaseModel]] = MongoPayload
    _handlers: ClassVar[dict[str, str]] = {
        "SELECT": "_find",
        "INSERT": "_insert_documents",
        "UPDATE": "_update_documents",
        "DELETE": "_delete_documents",
        "DELETE_TABLE": "_drop_collection",
    }

    _client: Any = None
    _db: Any = None

    def _client_kwargs(self) -> dict[str, Any]:
        timeouts = self.settings.timeouts
        kwargs: dict[str, Any] = {
            "serverSelectionTimeoutMS": int(timeouts.connect_seconds * 1000),
            "connectTimeoutMS": int(timeouts.connect_seconds * 1000),
            "socketTimeoutMS": int(timeouts.request_seconds * 1000),
        }
        kwargs.update(dict(self.options.get("options") or {}))
        return kwargs

    def _open(self) -> None:
        url = self.options.get("url")
        if not url:
            raise ConfigurationError(f"Connection {self.descriptor.id!r} needs a url option.")
        client = MongoClient(str(url), **self._client_kwargs())
        try:
            client.admin.command("ping")
            database = self.options.get("database")
            self._db = client[str(database)] if database else client.get_default_database()
        except mongo_errors.ConfigurationError as e:
            client.close()
            raise ConfigurationError(
                f"Connection {self.descriptor.id!r}: {e}. Set a database in the url or options."
            ) from e
        except Exception:
            client.close()
            raise
        self._client = client

    async def _connect(self) -> None:
        try:
            await asyncio.to_thread(self._open)
        except mongo_errors.PyMongoError as e:
            raise BackendError(f"Could not connect to {self.descriptor.id!r}: {e}") from e

    async def _close(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.close)

    def _close_fallback(self) -> CloseRoutine | None:
        client = self._client
        if client is None:
            return None
        # Second close attempt from a fresh thread; pymongo close is idempotent
        return lambda: asyncio.to_thread(client.close)

    async def _call(self, fn: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except mongo_errors.PyMongoError as e:
            raise BackendError(str(e)) from e

    def _collection(self, params: MongoPayload) -> Any:
        if not params.table_name:
            raise PayloadError(
                "Missing key `tableName`. This is the collection you want to query. "
                f"{PAYLOAD_HINT}"
            )
        return self._db[params.table_name]

    async def _find(self) -> list[dict[str, Any]]:
        params: MongoPayload = self.params
        collection = self._collection(params)
        if isinstance(params.filter, list):
            raise PayloadError("SELECT expects `filter` to be a single object.")
        query = copy.deepcopy(params.filter or {})
        limit = params.max_results
        if limit is None:
            limit = self.settings.limits.default_max_results
        return await self._call(lambda: list(collection.find(query, limit=limit)))

    async def _insert_documents(self) -> dict[str, Any]:
        params: MongoPayload = self.params
        collection = self._collection(params)
        if not params.value:
            raise PayloadError(f"Missing key `value`. {PAYLOAD_HINT}")
        # insert_* adds _id to the documents it is given
        documents = copy.deepcopy(params.value)
        if isinstance(documents, list):
            result = await self._call(collection.insert_many, documents)
            return {"acknowledged": result.acknowledged, "insertedIds": result.inserted_ids}
        result = await self._call(collection.insert_one, documents)
        return {"acknowledged": result.acknowledged, "insertedId": result.inserted_id}

    async def _update_documents(self) -> dict[str, Any]:
        params: MongoPayload = self.params
        collection = self._collection(params)
        if params.filter is None or isinstance(params.filter, list):
            raise PayloadError(f"UPDATE needs a `filter` object. {PAYLOAD_HINT}")
        if not params.value:
            raise PayloadError(f"Missing key `value`. {PAYLOAD_HINT}")
        update = _as_update(copy.deepcopy(params.value))
        result = await self._call(collection.update_many, copy.deepcopy(params.filter), update)
        return {
            "acknowledged": result.acknowledged,
            "matchedCount": result.matched_count,
            "modifiedCount": result.modified_count,
            "upsertedId": result.upserted_id,
        }

    async def _delete_documents(self) -> dict[str, Any]:
        params: MongoPayload = self.params
        collection = self._collection(params)
        if params.filter is None:
            raise PayloadError(f"Missing key `filter`. {PAYLOAD_HINT}")
        query = copy.deepcopy(params.filter)
        if isinstance(query, list):
            query = {"$or": query}
        result = await self._call(collection.delete_many, query)
        return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}

    async def _drop_collection(self) -> bool:
        params: MongoPayload = self.params
        collection = self._collection(params)
        await self._call(collection.drop)
        return True

    def _collection_indexes(self, name: str) -> dict[str, Any]:
        collection = self._db[name]
        return {
            "tableName": name,
            "indexInfo": collection.index_information(),
            "indexes": list(collection.list_indexes()),
        }

    def _schema_sync(self, table_name: str | None) -> Any:
        if table_name:
            return self._collection_indexes(table_name)
        names = sorted(self._db.list_collection_names())
        return {"info": [self._collection_indexes(name) for name in names]}

    async def show_schema(self, table_name: str | None = None) -> Any:
        return await self._call(self._schema_sync, table_name)
