"""S3 object storage variant.

Methods: GET (download an object), SELECT (list keys under a prefix), INSERT
and UPDATE (put an object from raw text or a local file), DELETE.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, ClassVar, Literal

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field, field_validator

from datastore_mcp.connectors.interface import MethodDataSource
from datastore_mcp.connectors.payload import PAYLOAD_HINT
from datastore_mcp.errors import BackendError, PayloadError
from datastore_mcp.models import SourceType

logger = logging.getLogger(__name__)

S3Method = Literal["GET", "SELECT", "INSERT", "UPDATE", "DELETE"]

MAX_LIST_KEYS = 1000

# GetObject response fields returned alongside the body
_OBJECT_FIELDS: dict[str, str] = {
    "ContentType": "contentType",
    "ContentLength": "contentLength",
    "ContentEncoding": "contentEncoding",
    "ContentDisposition": "contentDisposition",
    "ETag": "eTag",
    "LastModified": "lastModified",
    "Metadata": "metadata",
    "StorageClass": "storageClass",
    "VersionId": "versionId",
}


class S3Payload(BaseModel):
    """Object storage operation."""

    model_config = ConfigDict(populate_by_name=True)

    method: S3Method = Field(description="Operation to run")
    bucket: str | None = Field(
        default=None, description="Bucket name; defaults to the connection's bucket option"
    )
    key: str | None = Field(
        default=None, description="Object key, or the key prefix to list for SELECT"
    )
    source_type: Literal["path", "raw"] | None = Field(
        default=None,
        alias="sourceType",
        description="How sourceValue is interpreted for INSERT/UPDATE",
    )
    source_value: str | None = Field(
        default=None,
        alias="sourceValue",
        description="Object contents (raw) or a local file path (path)",
    )
    max_results: int | None = Field(
        default=None,
        alias="maxResults",
        ge=1,
        le=MAX_LIST_KEYS,
        description="Maximum number of keys returned by SELECT",
    )

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value


class S3DataSource(MethodDataSource):
    """S3 or an S3-compatible endpoint through boto3.

    Options: ``bucket``, ``connection.region``,
    ``connection.credentials.{accessKeyId,secretAccessKey}`` (or the same keys
    flat in options) and an optional ``endpointUrl``.
    """

    source_type: ClassVar[SourceType] = SourceType.s3
    payload_model: ClassVar[type[BaseModel]] = S3Payload
    read_methods: ClassVar[frozenset[str]] = frozenset({"GET", "SELECT"})
    _handlers: ClassVar[dict[str, str]] = {
        "GET": "_get_object",
        "SELECT": "_list_objects",
        "INSERT": "_put_object",
        "UPDATE": "_put_object",
        "DELETE": "_delete_object",
    }

    _client: Any = None

    def _client_kwargs(self) -> dict[str, Any]:
        opts = self.options
        connection = dict(opts.get("connection") or {})
        credentials = dict(connection.get("credentials") or {})
        timeouts = self.settings.timeouts

        kwargs: dict[str, Any] = {
            "region_name": connection.get("region") or opts.get("region"),
            "config": Config(
                connect_timeout=timeouts.connect_seconds,
                read_timeout=timeouts.request_seconds,
                retries={"max_attempts": 2},
            ),
        }
        access_key = credentials.get("accessKeyId") or opts.get("accessKeyId")
        secret_key = credentials.get("secretAccessKey") or opts.get("secretAccessKey")
        if access_key and secret_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key
            session_token = credentials.get("sessionToken") or opts.get("sessionToken")
            if session_token:
                kwargs["aws_session_token"] = session_token
        endpoint = opts.get("endpointUrl") or connection.get("endpoint")
        if endpoint:
            kwargs["endpoint_url"] = str(endpoint)
        return kwargs

    async def _connect(self) -> None:
        try:
            self._client = await asyncio.to_thread(
                boto3.client, "s3", **self._client_kwargs()
            )
        except BotoCoreError as e:
            raise BackendError(f"Could not create S3 client: {e}") from e

    async def _close(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.close)

    async def _call(self, fn: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except (BotoCoreError, ClientError) as e:
            raise BackendError(str(e)) from e

    def _bucket(self) -> str:
        bucket = self.payload.get("bucket") or self.options.get("bucket")
        if not bucket:
            raise PayloadError(
                f"Missing key `bucket` and the connection has no default bucket. {PAYLOAD_HINT}"
            )
        return str(bucket)

    def _key(self, params: S3Payload) -> str:
        if not params.key:
            raise PayloadError(f"Missing key `key` for {params.method}. {PAYLOAD_HINT}")
        return params.key

    def _max_results(self, params: S3Payload) -> int:
        if params.max_results is not None:
            return params.max_results
        return min(self.settings.limits.default_max_results, MAX_LIST_KEYS)

    async def list_objects(self, prefix: str, max_results: int) -> dict[str, Any]:
        response = await self._call(
            self._client.list_objects_v2,
            Bucket=self._bucket(),
            Prefix=prefix,
            MaxKeys=max_results,
        )
        contents = response.get("Contents", [])[:max_results]
        return {
            "bucket": self._bucket(),
            "prefix": prefix,
            "isTruncated": bool(response.get("IsTruncated")),
            "keys": [
                {
                    "key": item["Key"],
                    "size": item.get("Size"),
                    "lastModified": item.get("LastModified"),
                }
                for item in contents
            ],
        }

    async def _list_objects(self) -> dict[str, Any]:
        params: S3Payload = self.params
        return await self.list_objects(params.key or "", self._max_results(params))

    def _read_body(self, body: Any) -> Any:
        try:
            raw = body.read()
        finally:
            body.close()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return {"encoding": "base64", "data": base64.b64encode(raw).decode()}

    async def _get_object(self) -> dict[str, Any]:
        params: S3Payload = self.params
        response = await self._call(
            self._client.get_object, Bucket=self._bucket(), Key=self._key(params)
        )
        body = await asyncio.to_thread(self._read_body, response["Body"])
        result: dict[str, Any] = {"bodyString": body}
        for source, target in _OBJECT_FIELDS.items():
            if source in response:
                result[target] = response[source]
        return result

    def _source_body(self, params: S3Payload) -> bytes:
        if params.source_value is None:
            raise PayloadError(f"Missing key `sourceValue` for {params.method}. {PAYLOAD_HINT}")
        if params.source_type == "path":
            path = Path(params.source_value).expanduser()
            try:
                return path.read_bytes()
            except OSError as e:
                raise PayloadError(f"Could not read sourceValue file {path}: {e}") from e
        return params.source_value.encode("utf-8")

    async def _put_object(self) -> dict[str, Any]:
        params: S3Payload = self.params
        key = self._key(params)
        body = await asyncio.to_thread(self._source_body, params)
        response = await self._call(
            self._client.put_object, Bucket=self._bucket(), Key=key, Body=body
        )
        return {
            "key": key,
            "eTag": response.get("ETag"),
            "versionId": response.get("VersionId"),
            "size": len(body),
        }

    async def _delete_object(self) -> dict[str, Any]:
        params: S3Payload = self.params
        key = self._key(params)
        response = await self._call(
            self._client.delete_object, Bucket=self._bucket(), Key=key
        )
        return {
            "key": key,
            "deleteMarker": response.get("DeleteMarker"),
            "versionId": response.get("VersionId"),
        }

    async def show_schema(self, table_name: str | None = None) -> dict[str, Any]:
        prefix = table_name or str(self.payload.get("key") or "")
        max_results = min(self.settings.limits.default_max_results, MAX_LIST_KEYS)
        raw_max = self.payload.get("maxResults")
        if isinstance(raw_max, int) and raw_max > 0:
            max_results = min(raw_max, MAX_LIST_KEYS)
        return await self.list_objects(prefix, max_results)
