from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from datastore_mcp.config import Settings, load_settings


def add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments shared by every command that loads settings."""
    parser.add_argument("--config", type=Path, help="Path to datastore-mcp.toml")
    parser.add_argument(
        "--workspace",
        type=Path,
        action="append",
        default=[],
        help="Workspace folder to search for connection files (repeatable)",
    )
    parser.add_argument(
        "--connections",
        type=Path,
        action="append",
        default=[],
        dest="connection_files",
        help="Explicit connection descriptor file (repeatable)",
    )


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {
        "workspace_folders": args.workspace,
        "files": args.connection_files,
    }
    return load_settings(config_path=args.config, cli_overrides=overrides)
