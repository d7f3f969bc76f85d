from __future__ import annotations

import argparse
import asyncio
import logging

from datastore_mcp.cli.options import add_settings_arguments, settings_from_args
from datastore_mcp.config import descriptor_loader, resolve_config_path
from datastore_mcp.errors import ConfigurationError
from datastore_mcp.mcp import DataStoreServer

logger = logging.getLogger(__name__)


def configure_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    parser = subparsers.add_parser("serve", help="Run the MCP server over stdio")
    parser.set_defaults(func=run_serve)
    add_settings_arguments(parser)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")


def _configure_logging(verbose: bool) -> None:
    from rich.logging import RichHandler

    from datastore_mcp.cli.ui import error_console

    # Note: rich_tracebacks=False keeps shutdown noise out of the client's stderr pane
    rich_handler = RichHandler(console=error_console, rich_tracebacks=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[rich_handler],
        force=True,
    )


def run_serve(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)

    settings = settings_from_args(args)
    loader = descriptor_loader(settings)

    # Surface broken descriptor files at startup; tool calls reload them anyway
    count = 0
    try:
        count = sum(len(source.descriptors) for source in loader())
    except ConfigurationError as exc:
        logger.warning("Connection descriptors have problems: %s", exc)

    from datastore_mcp.cli.ui import print_startup

    print_startup(resolve_config_path(args.config), count, settings.discovery.workspace_folders)

    server = DataStoreServer(load_sources=loader, settings=settings)

    async def runner() -> None:
        try:
            await server.run()
        except Exception as exc:
            logger.error("Server error: %s", exc, exc_info=True)
            raise

    asyncio.run(runner())
    return 0
