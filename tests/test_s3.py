"""Tests for the S3 variant against a stand-in boto3 client."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from datastore_mcp.connectors import s3
from datastore_mcp.connectors.s3 import S3DataSource
from datastore_mcp.errors import BackendError, IntentMismatchError, PayloadError
from datastore_mcp.models import ActionRequest, ConnectionDescriptor, ToolName


class FakeS3Client:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def list_objects_v2(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("list_objects_v2", kwargs))
        keys = sorted(key for key in self.objects if key.startswith(kwargs["Prefix"]))
        # Ignores MaxKeys to check the variant trims the page itself
        return {
            "IsTruncated": len(keys) > kwargs["MaxKeys"],
            "Contents": [{"Key": key, "Size": len(self.objects[key])} for key in keys],
        }

    def get_object(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("get_object", kwargs))
        key = kwargs["Key"]
        if key not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The key does not exist"}},
                "GetObject",
            )
        return {
            "Body": io.BytesIO(self.objects[key]),
            "ContentType": "text/plain",
            "ETag": '"abc"',
        }

    def put_object(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("put_object", kwargs))
        self.objects[kwargs["Key"]] = kwargs["Body"]
        return {"ETag": '"def"'}

    def delete_object(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("delete_object", kwargs))
        self.objects.pop(kwargs["Key"], None)
        return {}

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def fake_s3(monkeypatch: Any) -> list[FakeS3Client]:
    clients: list[FakeS3Client] = []

    def factory(service: str, **kwargs: Any) -> FakeS3Client:
        assert service == "s3"
        client = FakeS3Client(**kwargs)
        clients.append(client)
        return client

    monkeypatch.setattr(s3.boto3, "client", factory)
    return clients


def _source(payload: dict[str, Any], **options: Any) -> S3DataSource:
    opts = {"bucket": "assets", **options}
    descriptor = ConnectionDescriptor(id="store", type="s3", options=opts)
    return S3DataSource(descriptor, ActionRequest("store", payload))


async def _run(
    source: S3DataSource, tool: ToolName, objects: dict[str, bytes] | None = None
) -> Any:
    await source.connect()
    source._client.objects.update(objects or {})
    try:
        return await source.run(tool)
    finally:
        await source.close()


class TestIntent:
    def test_get_and_select_are_reads(self) -> None:
        assert _source({"method": "GET"}).is_select()
        assert _source({"method": "select"}).is_select()
        assert not _source({"method": "GET"}).is_mutation()

    def test_put_methods(self) -> None:
        assert _source({"method": "INSERT"}).is_insert()
        assert _source({"method": "UPDATE"}).is_update()
        assert _source({"method": "DELETE"}).is_mutation()

    @pytest.mark.asyncio
    async def test_mismatch(self, fake_s3: list[FakeS3Client]) -> None:
        with pytest.raises(IntentMismatchError):
            await _source({"method": "DELETE", "key": "a"}).insert()
        assert fake_s3 == []


class TestOperations:
    @pytest.mark.asyncio
    async def test_list_respects_max_results(self, fake_s3: list[FakeS3Client]) -> None:
        objects = {f"logs/{n:03d}.txt": b"x" for n in range(25)}
        source = _source({"method": "SELECT", "key": "logs/", "maxResults": 10})

        listing = await _run(source, ToolName.select, objects)

        assert len(listing["keys"]) == 10
        assert listing["isTruncated"] is True
        assert listing["bucket"] == "assets"
        assert fake_s3[0].calls[0][1]["MaxKeys"] == 10

    @pytest.mark.asyncio
    async def test_max_results_upper_bound(self) -> None:
        source = _source({"method": "SELECT", "maxResults": 5000})
        with pytest.raises(PayloadError, match="maxResults"):
            await _run(source, ToolName.select)

    @pytest.mark.asyncio
    async def test_get_object(self, fake_s3: list[FakeS3Client]) -> None:
        source = _source({"method": "GET", "key": "readme.txt", "bucket": "docs"})

        result = await _run(source, ToolName.select, {"readme.txt": b"hello"})

        assert result == {"bodyString": "hello", "contentType": "text/plain", "eTag": '"abc"'}
        assert fake_s3[0].calls[0][1] == {"Bucket": "docs", "Key": "readme.txt"}

    @pytest.mark.asyncio
    async def test_binary_object_is_base64(self) -> None:
        source = _source({"method": "GET", "key": "logo.png"})
        result = await _run(source, ToolName.select, {"logo.png": b"\xff\xd8\xff"})
        assert result["bodyString"] == {"encoding": "base64", "data": "/9j/"}

    @pytest.mark.asyncio
    async def test_missing_object_is_backend_error(self) -> None:
        source = _source({"method": "GET", "key": "nope"})
        with pytest.raises(BackendError, match="NoSuchKey"):
            await _run(source, ToolName.select)

    @pytest.mark.asyncio
    async def test_put_raw(self, fake_s3: list[FakeS3Client]) -> None:
        source = _source(
            {"method": "INSERT", "key": "a.txt", "sourceType": "raw", "sourceValue": "hi"}
        )
        result = await _run(source, ToolName.insert)
        assert result == {"key": "a.txt", "eTag": '"def"', "versionId": None, "size": 2}
        assert fake_s3[0].objects["a.txt"] == b"hi"

    @pytest.mark.asyncio
    async def test_put_from_path(self, tmp_path: Path, fake_s3: list[FakeS3Client]) -> None:
        upload = tmp_path / "report.csv"
        upload.write_bytes(b"a,b\n1,2\n")
        source = _source(
            {
                "method": "UPDATE",
                "key": "reports/report.csv",
                "sourceType": "path",
                "sourceValue": str(upload),
            }
        )
        await _run(source, ToolName.update)
        assert fake_s3[0].objects["reports/report.csv"] == b"a,b\n1,2\n"

    @pytest.mark.asyncio
    async def test_delete(self, fake_s3: list[FakeS3Client]) -> None:
        source = _source({"method": "DELETE", "key": "old.txt"})
        result = await _run(source, ToolName.delete, {"old.txt": b"bye"})
        assert result["key"] == "old.txt"
        assert "old.txt" not in fake_s3[0].objects

    @pytest.mark.asyncio
    async def test_bucket_required(self) -> None:
        descriptor = ConnectionDescriptor(id="store", type="s3")
        source = S3DataSource(descriptor, ActionRequest("store", {"method": "SELECT"}))
        with pytest.raises(PayloadError, match="bucket"):
            await _run(source, ToolName.select)


class TestClient:
    @pytest.mark.asyncio
    async def test_nested_credentials(self, fake_s3: list[FakeS3Client]) -> None:
        source = _source(
            {"method": "SELECT"},
            connection={
                "region": "eu-west-1",
                "credentials": {"accessKeyId": "AKIA", "secretAccessKey": "s3cr3t"},
            },
            endpointUrl="http://localhost:9000",
        )
        await source.connect()
        await source.close()

        kwargs = fake_s3[0].kwargs
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["aws_access_key_id"] == "AKIA"
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert fake_s3[0].closed

    @pytest.mark.asyncio
    async def test_schema_lists_prefix(self, fake_s3: list[FakeS3Client]) -> None:
        source = _source({})
        await source.connect()
        source._client.objects.update({"a/1": b"1", "b/1": b"2"})
        try:
            listing = await source.show_schema("a/")
        finally:
            await source.close()
        assert [item["key"] for item in listing["keys"]] == ["a/1"]
