"""FTP / explicit FTPS variant.

Methods: GET (download a file), SELECT (breadth-first listing of the tree
below ``path``), INSERT and UPDATE (upload raw text or a local file to
``destinationPath``), DELETE (remove the file at ``path``).
"""

from __future__ import annotations

import asyncio
import ftplib
import io
import logging
import posixpath
from collections import deque
from pathlib import Path
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from datastore_mcp.connectors.interface import MethodDataSource
from datastore_mcp.connectors.payload import PAYLOAD_HINT
from datastore_mcp.connectors.shutdown import CloseRoutine
from datastore_mcp.errors import BackendError, ConfigurationError, PayloadError
from datastore_mcp.models import SourceType

logger = logging.getLogger(__name__)

FTP = ftplib.FTP
FTP_TLS = ftplib.FTP_TLS

FtpMethod = Literal["GET", "SELECT", "INSERT", "UPDATE", "DELETE"]

_DIRECTORY_TYPES = frozenset({"dir"})
_SKIPPED_TYPES = frozenset({"cdir", "pdir"})


class FtpPayload(BaseModel):
    """File operation on the FTP server."""

    model_config = ConfigDict(populate_by_name=True)

    method: FtpMethod = Field(description="Operation to run")
    path: str | None = Field(
        default=None, description="Remote file (GET/DELETE) or directory to list (SELECT)"
    )
    destination_path: str | None = Field(
        default=None, alias="destinationPath", description="Remote path to upload to"
    )
    source_type: Literal["path", "raw"] | None = Field(
        default=None,
        alias="sourceType",
        description="How sourceValue is interpreted for INSERT/UPDATE",
    )
    source_value: str | None = Field(
        default=None,
        alias="sourceValue",
        description="File contents (raw) or a local file path (path)",
    )
    max_results: int | None = Field(
        default=None,
        alias="maxResults",
        ge=0,
        description="Maximum entries returned by SELECT; 0 means no limit",
    )
    only_directories: bool = Field(
        default=False, alias="onlyDirectories", description="List directories instead of files"
    )

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value


def _is_missing_path(error: ftplib.error_perm) -> bool:
    message = str(error)
    lowered = message.lower()
    return message.startswith("550") or "not a directory" in lowered or "no such file" in lowered


def traverse(
    client: Any, start: str, *, max_results: int, only_directories: bool = False
) -> list[str]:
    """Breadth-first walk of a remote tree.

    Stops as soon as ``max_results`` entries are collected (0 means unlimited).
    A path that cannot be listed because it is a file is reported as a file.
    """
    limit = max_results if max_results > 0 else None
    root = posixpath.normpath(start or "/")
    queue: deque[str] = deque([root])
    visited: set[str] = set()
    entries: list[str] = []

    def _full() -> bool:
        return limit is not None and len(entries) >= limit

    while queue and not _full():
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)

        try:
            listing = list(client.mlsd(current, facts=["type"]))
        except ftplib.error_perm as e:
            if not _is_missing_path(e):
                raise
            if not only_directories:
                entries.append(current)
            continue

        for name, facts in listing:
            kind = str(facts.get("type", "")).lower()
            if kind in _SKIPPED_TYPES or name in (".", ".."):
                continue
            item_path = posixpath.join(current, name)
            if kind in _DIRECTORY_TYPES:
                if item_path not in visited:
                    queue.append(item_path)
                if only_directories:
                    entries.append(item_path)
            elif not only_directories:
                entries.append(item_path)
            if _full():
                break

    return entries


class FtpDataSource(MethodDataSource):
    """FTP server through ftplib.

    Options: ``host``, ``port`` (21), ``user``, ``password`` and ``secure``
    (true for explicit FTPS; implicit FTPS is not supported).
    """

    source_type: ClassVar[SourceType] = SourceType.ftp
    payload_model: ClassVar[type[BaseModel]] = FtpPayload
    read_methods: ClassVar[frozenset[str]] = frozenset({"GET", "SELECT"})
    _handlers: ClassVar[dict[str, str]] = {
        "GET": "_download",
        "SELECT": "_list",
        "INSERT": "_upload",
        "UPDATE": "_upload",
        "DELETE": "_remove",
    }

    _client: Any = None

    def _open(self) -> None:
        opts = self.options
        host = opts.get("host")
        if not host:
            raise ConfigurationError(f"Connection {self.descriptor.id!r} needs a host option.")
        secure = opts.get("secure", False)
        if secure == "implicit":
            raise ConfigurationError(
                f"Connection {self.descriptor.id!r}: implicit FTPS is not supported; "
                "use secure: true for explicit FTPS."
            )

        timeout = self.settings.timeouts.connect_seconds
        client = FTP_TLS(timeout=timeout) if secure else FTP(timeout=timeout)
        try:
            client.connect(str(host), int(opts.get("port", 21)))
            client.login(str(opts.get("user") or "anonymous"), str(opts.get("password") or ""))
            if secure:
                client.prot_p()
            # Data transfers use the request timeout from here on
            client.sock.settimeout(self.settings.timeouts.request_seconds)
        except Exception:
            client.close()
            raise
        self._client = client

    async def _connect(self) -> None:
        try:
            await asyncio.to_thread(self._open)
        except (OSError, ftplib.Error) as e:
            raise BackendError(f"Could not connect to {self.descriptor.id!r}: {e}") from e

    async def _close(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.quit)

    def _close_fallback(self) -> CloseRoutine | None:
        client = self._client
        if client is None:
            return None
        return lambda: asyncio.to_thread(client.close)

    async def _call(self, fn: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except (OSError, ftplib.Error) as e:
            raise BackendError(str(e)) from e

    def _max_results(self, params: FtpPayload) -> int:
        if params.max_results is not None:
            return params.max_results
        return self.settings.limits.default_max_results

    async def _list(self) -> list[str]:
        params: FtpPayload = self.params
        return await self._call(
            traverse,
            self._client,
            params.path or "/",
            max_results=self._max_results(params),
            only_directories=params.only_directories,
        )

    def _download_sync(self, remote_path: str) -> bytes:
        buffer = io.BytesIO()
        self._client.retrbinary(f"RETR {remote_path}", buffer.write)
        return buffer.getvalue()

    async def _download(self) -> dict[str, Any]:
        params: FtpPayload = self.params
        if not params.path:
            raise PayloadError(f"Missing key `path`. {PAYLOAD_HINT}")
        data = await self._call(self._download_sync, params.path)
        return {
            "path": params.path,
            "size": len(data),
            "contents": data.decode("utf-8", errors="replace"),
        }

    def _upload_sync(self, params: FtpPayload) -> int:
        command = f"STOR {params.destination_path}"
        source = params.source_value or ""
        if params.source_type == "path":
            path = Path(source).expanduser()
            with path.open("rb") as f:
                self._client.storbinary(command, f)
            return path.stat().st_size
        data = source.encode("utf-8")
        self._client.storbinary(command, io.BytesIO(data))
        return len(data)

    async def _upload(self) -> dict[str, Any]:
        params: FtpPayload = self.params
        for key, value in (
            ("sourceType", params.source_type),
            ("sourceValue", params.source_value),
            ("destinationPath", params.destination_path),
        ):
            if not value:
                raise PayloadError(f"Missing key `{key}`. {PAYLOAD_HINT}")
        size = await self._call(self._upload_sync, params)
        return {"path": params.destination_path, "size": size}

    async def _remove(self) -> dict[str, Any]:
        params: FtpPayload = self.params
        if not params.path:
            raise PayloadError(f"Missing key `path`. {PAYLOAD_HINT}")
        response = await self._call(self._client.delete, params.path)
        return {"path": params.path, "response": response}

    async def show_schema(self, table_name: str | None = None) -> list[str]:
        start = table_name or str(self.payload.get("path") or "/")
        max_results = self.settings.limits.default_max_results
        raw_max = self.payload.get("maxResults")
        if isinstance(raw_max, int) and raw_max >= 0:
            max_results = raw_max
        return await self._call(
            traverse,
            self._client,
            start,
            max_results=max_results,
            only_directories=bool(self.payload.get("onlyDirectories", False)),
        )
