"""Tests for the FTP variant and its breadth-first tree walk."""

from __future__ import annotations

import ftplib
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from datastore_mcp.connectors import ftp
from datastore_mcp.connectors.ftp import FtpDataSource, traverse
from datastore_mcp.errors import BackendError, ConfigurationError, PayloadError
from datastore_mcp.models import ActionRequest, ConnectionDescriptor, ToolName


def _deep_tree(depth: int) -> dict[str, list[tuple[str, dict[str, str]]]]:
    """/ -> a -> b -> ... with one file per level."""
    tree: dict[str, list[tuple[str, dict[str, str]]]] = {}
    path = "/"
    for level in range(depth):
        child = chr(ord("a") + level)
        tree[path] = [
            (".", {"type": "cdir"}),
            (child, {"type": "dir"}),
            (f"f{level}.txt", {"type": "file"}),
        ]
        path = f"{path.rstrip('/')}/{child}"
    tree[path] = []
    return tree


class FakeFTP:
    instances: list[FakeFTP] = []
    tree: dict[str, list[tuple[str, dict[str, str]]]] = {}
    files: dict[str, bytes] = {}

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self.sock = SimpleNamespace(settimeout=self._settimeout)
        self.calls: list[tuple[str, Any]] = []
        self.uploads: dict[str, bytes] = {}
        FakeFTP.instances.append(self)

    def _settimeout(self, value: float) -> None:
        self.calls.append(("settimeout", value))

    def connect(self, host: str, port: int) -> str:
        self.calls.append(("connect", (host, port)))
        if host == "unreachable":
            raise ConnectionRefusedError("Connection refused")
        return "220 ready"

    def login(self, user: str, password: str) -> str:
        self.calls.append(("login", (user, password)))
        return "230 ok"

    def prot_p(self) -> str:
        self.calls.append(("prot_p", None))
        return "200 ok"

    def mlsd(self, path: str, facts: list[str]) -> list[tuple[str, dict[str, str]]]:
        self.calls.append(("mlsd", path))
        if path == "/locked":
            raise ftplib.error_perm("530 Not logged in")
        if path not in self.tree:
            raise ftplib.error_perm(f"550 {path}: Not a directory")
        return self.tree[path]

    def retrbinary(self, command: str, callback: Any) -> str:
        callback(self.files[command.removeprefix("RETR ")])
        return "226 done"

    def storbinary(self, command: str, fp: Any) -> str:
        self.uploads[command.removeprefix("STOR ")] = fp.read()
        return "226 done"

    def delete(self, path: str) -> str:
        self.calls.append(("delete", path))
        return "250 Deleted"

    def quit(self) -> str:
        self.calls.append(("quit", None))
        return "221 bye"

    def close(self) -> None:
        self.calls.append(("close", None))


class FakeFTPTLS(FakeFTP):
    pass


@pytest.fixture(autouse=True)
def fake_ftp(monkeypatch: Any) -> type[FakeFTP]:
    FakeFTP.instances = []
    FakeFTP.tree = _deep_tree(10)
    FakeFTP.files = {"/f0.txt": b"hello"}
    monkeypatch.setattr(ftp, "FTP", FakeFTP)
    monkeypatch.setattr(ftp, "FTP_TLS", FakeFTPTLS)
    return FakeFTP


def _source(payload: dict[str, Any], **options: Any) -> FtpDataSource:
    opts = {"host": "files.example.com", **options}
    descriptor = ConnectionDescriptor(id="files", type="ftp", options=opts)
    return FtpDataSource(descriptor, ActionRequest("files", payload))


async def _run(source: FtpDataSource, tool: ToolName) -> Any:
    await source.connect()
    try:
        return await source.run(tool)
    finally:
        await source.close()


class TestTraverse:
    def test_stops_at_max_results(self) -> None:
        client = FakeFTP()
        entries = traverse(client, "/", max_results=5)

        assert entries == [
            "/f0.txt",
            "/a/f1.txt",
            "/a/b/f2.txt",
            "/a/b/c/f3.txt",
            "/a/b/c/d/f4.txt",
        ]
        listed = [arg for name, arg in client.calls if name == "mlsd"]
        assert len(listed) == 5

    def test_zero_means_unlimited(self) -> None:
        assert len(traverse(FakeFTP(), "/", max_results=0)) == 10

    def test_only_directories(self) -> None:
        entries = traverse(FakeFTP(), "/", max_results=3, only_directories=True)
        assert entries == ["/a", "/a/b", "/a/b/c"]

    def test_file_path_is_reported_as_file(self) -> None:
        assert traverse(FakeFTP(), "/f0.txt", max_results=10) == ["/f0.txt"]
        assert traverse(FakeFTP(), "/f0.txt", max_results=10, only_directories=True) == []

    def test_other_permission_errors_propagate(self) -> None:
        with pytest.raises(ftplib.error_perm, match="530"):
            traverse(FakeFTP(), "/locked", max_results=10)


class TestOperations:
    @pytest.mark.asyncio
    async def test_select_lists_tree(self) -> None:
        result = await _run(
            _source({"method": "SELECT", "path": "/a", "maxResults": 2}), ToolName.select
        )
        assert result == ["/a/f1.txt", "/a/b/f2.txt"]

    @pytest.mark.asyncio
    async def test_get_downloads_file(self) -> None:
        result = await _run(_source({"method": "GET", "path": "/f0.txt"}), ToolName.select)
        assert result == {"path": "/f0.txt", "size": 5, "contents": "hello"}

    @pytest.mark.asyncio
    async def test_insert_raw(self, fake_ftp: type[FakeFTP]) -> None:
        payload = {
            "method": "INSERT",
            "destinationPath": "/in/new.txt",
            "sourceType": "raw",
            "sourceValue": "data",
        }
        result = await _run(_source(payload), ToolName.insert)

        assert result == {"path": "/in/new.txt", "size": 4}
        assert fake_ftp.instances[0].uploads["/in/new.txt"] == b"data"

    @pytest.mark.asyncio
    async def test_update_from_path(self, tmp_path: Path, fake_ftp: type[FakeFTP]) -> None:
        local = tmp_path / "local.bin"
        local.write_bytes(b"\x00\x01\x02")
        payload = {
            "method": "UPDATE",
            "destinationPath": "/in/local.bin",
            "sourceType": "path",
            "sourceValue": str(local),
        }
        result = await _run(_source(payload), ToolName.update)

        assert result["size"] == 3
        assert fake_ftp.instances[0].uploads["/in/local.bin"] == b"\x00\x01\x02"

    @pytest.mark.asyncio
    async def test_upload_requires_destination(self) -> None:
        payload = {"method": "INSERT", "sourceType": "raw", "sourceValue": "x"}
        with pytest.raises(PayloadError, match="destinationPath"):
            await _run(_source(payload), ToolName.insert)

    @pytest.mark.asyncio
    async def test_delete(self, fake_ftp: type[FakeFTP]) -> None:
        result = await _run(_source({"method": "DELETE", "path": "/old.txt"}), ToolName.delete)
        assert result == {"path": "/old.txt", "response": "250 Deleted"}
        assert ("delete", "/old.txt") in fake_ftp.instances[0].calls


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_login_and_quit(self, fake_ftp: type[FakeFTP]) -> None:
        source = _source({"method": "SELECT"}, user="bob", password="pw", port=2121)
        await source.connect()
        await source.close()

        calls = fake_ftp.instances[0].calls
        assert ("connect", ("files.example.com", 2121)) in calls
        assert ("login", ("bob", "pw")) in calls
        assert ("settimeout", 10.0) in calls
        assert calls[-1] == ("quit", None)

    @pytest.mark.asyncio
    async def test_explicit_tls(self, fake_ftp: type[FakeFTP]) -> None:
        source = _source({"method": "SELECT"}, secure=True)
        await source.connect()
        await source.close()

        client = fake_ftp.instances[0]
        assert isinstance(client, FakeFTPTLS)
        assert ("login", ("anonymous", "")) in client.calls
        assert ("prot_p", None) in client.calls

    @pytest.mark.asyncio
    async def test_implicit_tls_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="implicit FTPS"):
            await _source({"method": "SELECT"}, secure="implicit").connect()

    @pytest.mark.asyncio
    async def test_connect_failure(self, fake_ftp: type[FakeFTP]) -> None:
        source = _source({"method": "SELECT"}, host="unreachable")
        with pytest.raises(BackendError, match="Connection refused"):
            await source.connect()
        assert fake_ftp.instances[0].calls[-1] == ("close", None)

    @pytest.mark.asyncio
    async def test_schema_walks_from_table_name(self) -> None:
        source = _source({"maxResults": 1})
        await source.connect()
        try:
            assert await source.show_schema("/a/b") == ["/a/b/f2.txt"]
        finally:
            await source.close()
