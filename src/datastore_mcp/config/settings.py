from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PATTERNS: tuple[str, ...] = (
    ".vscode/connections.json",
    ".vscode/stores.json",
    ".vscode/*.connection.json",
    ".vscode/*.store.json",
)


class TimeoutsConfig(BaseModel):
    connect_seconds: float = Field(default=10.0, gt=0)
    request_seconds: float = Field(default=10.0, gt=0)
    shutdown_seconds: float = Field(default=2.0, gt=0)


class LimitsConfig(BaseModel):
    response_bytes: int = Field(default=512 * 1024, ge=1)
    default_max_results: int = Field(default=100, ge=1)


class DiscoveryConfig(BaseModel):
    workspace_folders: list[Path] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_PATTERNS))
    files: list[Path] = Field(default_factory=list)


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        # Manually override from environment variables
        if "DATASTORE_MCP_CONNECT_SECONDS" in os.environ:
            self.timeouts.connect_seconds = float(os.environ["DATASTORE_MCP_CONNECT_SECONDS"])
        if "DATASTORE_MCP_REQUEST_SECONDS" in os.environ:
            self.timeouts.request_seconds = float(os.environ["DATASTORE_MCP_REQUEST_SECONDS"])
        if "DATASTORE_MCP_SHUTDOWN_SECONDS" in os.environ:
            self.timeouts.shutdown_seconds = float(os.environ["DATASTORE_MCP_SHUTDOWN_SECONDS"])
        if os.environ.get("DATASTORE_MCP_WORKSPACE"):
            for folder in os.environ["DATASTORE_MCP_WORKSPACE"].split(os.pathsep):
                if folder:
                    self.discovery.workspace_folders.append(Path(folder))
