from __future__ import annotations

import argparse
import os

from datastore_mcp.cli.connections import configure_parser as configure_connections
from datastore_mcp.cli.serve import configure_parser as configure_serve
from datastore_mcp.errors import AccessDeniedError, ConfigurationError


def build_parser() -> argparse.ArgumentParser:
    from datastore_mcp import __version__

    parser = argparse.ArgumentParser(
        prog="datastore-mcp",
        description="MCP server exposing uniform tools over SQL, HTTP, document, S3 and FTP stores",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Print version and exit",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Print full traceback on errors (or set DATASTORE_MCP_TRACE=1)",
    )
    subparsers = parser.add_subparsers(dest="command")

    configure_serve(subparsers)
    configure_connections(subparsers)

    return parser


def _tip_for(exc: BaseException) -> str:
    if isinstance(exc, ConfigurationError) and "Duplicate connection ids" in str(exc):
        return "Give each connection a unique id across all connection files."
    if isinstance(exc, ConfigurationError | AccessDeniedError):
        return "Check your connection descriptor files."
    if isinstance(exc, FileNotFoundError):
        return "Check that your config file path is correct."
    return "re-run with --trace to see the full traceback."


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    want_trace = bool(getattr(args, "trace", False)) or os.environ.get(
        "DATASTORE_MCP_TRACE"
    ) in {"1", "true", "TRUE", "yes", "YES"}
    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        # Keep Ctrl-C quiet by default.
        return 130
    except Exception as exc:
        if want_trace:
            from rich.console import Console

            Console(stderr=True).print_exception()
        else:
            # Import locally to avoid slow import on happy path
            from datastore_mcp.cli.ui import print_error

            print_error(type(exc).__name__, str(exc), tip=_tip_for(exc))
        return 1
