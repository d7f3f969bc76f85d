"""Settings loader for datastore-mcp.

Search order: explicit path -> ./datastore-mcp.toml -> platform config.toml
Uses stdlib tomllib (Python 3.11+).
"""

from __future__ import annotations

import os
import platform
import tomllib
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from datastore_mcp.config.settings import Settings


def get_platform_config_path() -> Path:
    """Return the platform-specific config.toml path."""
    system = platform.system().lower()
    if system == "darwin":
        return Path.home() / "Library" / "Application Support" / "datastore-mcp" / "config.toml"
    if system == "windows":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "datastore-mcp" / "config.toml"
        return Path.home() / "AppData" / "Roaming" / "datastore-mcp" / "config.toml"

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "datastore-mcp" / "config.toml"
    return Path.home() / ".config" / "datastore-mcp" / "config.toml"


def get_config_search_paths() -> list[Path]:
    """Return config search paths in priority order."""
    return [
        Path("./datastore-mcp.toml"),
        get_platform_config_path(),
    ]


def _find_config_file() -> Path | None:
    for path in get_config_search_paths():
        if path.exists():
            return path
    return None


def _parse_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def resolve_config_path(config_path: Path | None = None) -> Path:
    """Resolve the config path used for display."""
    if config_path:
        return config_path
    return _find_config_file() or get_platform_config_path()


def _resolve_relative(paths: Sequence[Any], base: Path) -> list[Path]:
    resolved: list[Path] = []
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = base / path
        resolved.append(path)
    return resolved


def _build_discovery(data: Mapping[str, Any], base: Path) -> dict[str, Any]:
    discovery = dict(data.get("discovery", {}))
    if "workspace_folders" in discovery:
        discovery["workspace_folders"] = _resolve_relative(discovery["workspace_folders"], base)
    if "files" in discovery:
        discovery["files"] = _resolve_relative(discovery["files"], base)
    return discovery


def merge_cli_overrides(settings: Settings, overrides: Mapping[str, Any]) -> Settings:
    """Apply CLI overrides to loaded settings."""
    workspaces = overrides.get("workspace_folders")
    if workspaces:
        settings.discovery.workspace_folders.extend(Path(p) for p in workspaces)

    files = overrides.get("files")
    if files:
        settings.discovery.files.extend(Path(p) for p in files)

    if overrides.get("shutdown_seconds") is not None:
        settings.timeouts.shutdown_seconds = float(overrides["shutdown_seconds"])

    return settings


def load_settings(
    config_path: Path | None = None, *, cli_overrides: Mapping[str, Any] | None = None
) -> Settings:
    """Load settings from TOML, then environment, then CLI overrides.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.
        cli_overrides: Optional CLI overrides to apply after loading.

    Returns:
        Settings with loaded or default values.

    Raises:
        FileNotFoundError: If an explicit config_path is provided but does not exist.
        RuntimeError: If the config file cannot be parsed.
    """
    if config_path:
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at explicitly provided path: {config_path}. "
                "Ensure the file exists or omit the argument to use default search paths."
            )
        path: Path | None = config_path
    else:
        path = _find_config_file()

    if path is None:
        settings = Settings()
    else:
        try:
            data = _parse_toml(path)
        except Exception as e:
            raise RuntimeError(f"Failed to parse configuration file at {path}: {e}") from e

        settings_data: dict[str, Any] = {
            key: data[key] for key in ("timeouts", "limits") if key in data
        }
        if "discovery" in data:
            settings_data["discovery"] = _build_discovery(data, path.parent)
        # Settings(...) rather than model_validate so environment overrides apply
        settings = Settings(**settings_data)

    if cli_overrides:
        settings = merge_cli_overrides(settings, cli_overrides)
    return settings
