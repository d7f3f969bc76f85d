from __future__ import annotations

import argparse

from datastore_mcp.cli.options import add_settings_arguments, settings_from_args
from datastore_mcp.config import load_descriptor_sources
from datastore_mcp.connectors.registry import ConnectionRegistry


def configure_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    parser = subparsers.add_parser("connections", help="List discovered connections")
    parser.set_defaults(func=run_connections)
    add_settings_arguments(parser)


def run_connections(args: argparse.Namespace) -> int:
    from datastore_mcp.cli.ui import connections_table, console

    settings = settings_from_args(args)
    registry = ConnectionRegistry.from_sources(load_descriptor_sources(settings))

    if len(registry) == 0:
        console.print("[warning]No connections found.[/warning]")
        return 0

    console.print(connections_table(registry))
    return 0
