"""Diff Journal entry point - MCP server and one-shot commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

# MCP imports are optional - only needed when running the server
try:
    from mcp.server import Server  # pragma: no cover
    from mcp.server.stdio import stdio_server  # pragma: no cover
    from mcp.types import Tool, TextContent  # pragma: no cover
    HAS_MCP = True  # pragma: no cover
except ImportError:
    HAS_MCP = False
    Server = None  # type: ignore
    Tool = None  # type: ignore
    TextContent = None  # type: ignore

from .config import JournalOptions, load_config
from .engine import DiffJournal
from .errors import JournalError
from .tools import execute_tool, make_tools

def create_server(options: JournalOptions) -> "Server":
    """Create and configure the MCP server.

    Args:
        options: Journal options

    Returns:
        Configured MCP Server instance

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install diff-journal[mcp]"
        )

    server = Server("diff-journal")
    journal = DiffJournal(options)
    tool_defs = make_tools(journal)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return list of available tools."""
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in tool_defs.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool invocation."""
        result = await execute_tool(journal, name, arguments)
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(options: JournalOptions) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install diff-journal[mcp]"
        )

    server = create_server(options)  # pragma: no cover

    async with stdio_server() as (read_stream, write_stream):  # pragma: no cover
        await server.run(  # pragma: no cover
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def run_command(journal: DiffJournal, args: argparse.Namespace) -> Optional[dict]:
    """Run a one-shot command if one was requested.

    Returns:
        JSON-able result, or None when no command was given
    """
    if args.materialize:
        target = journal.materialize(args.materialize)
        return {"path": str(target)}

    if args.rollback:
        target = journal.rollback(args.rollback, args.seq)
        return {"path": str(target), "seq": args.seq}

    if args.inspect:
        return journal.inspect(args.inspect).to_dict()

    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Diff Journal - append-only, replayable change history for text files"
    )
    parser.add_argument(
        "--root-dir",
        "-r",
        type=Path,
        default=Path.cwd(),
        help="Root directory of tracked files (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in root directory)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for stderr output (default: WARNING)",
    )

    commands = parser.add_argument_group("commands", "One-shot operations (default: run MCP server)")
    commands.add_argument("--materialize", metavar="FILE", help="Rebuild FILE from its journal")
    commands.add_argument("--rollback", metavar="FILE", help="Rebuild FILE as of --seq")
    commands.add_argument("--seq", type=int, help="Target seq for --rollback")
    commands.add_argument("--inspect", metavar="FILE", help="Summarize the journal of FILE")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.rollback and args.seq is None:
        parser.error("--rollback requires --seq")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    root_dir = args.root_dir.resolve()

    try:
        options = load_config(root_dir, args.config)
    except (JournalError, OSError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    journal = DiffJournal(options)
    try:
        result = run_command(journal, args)
    except JournalError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        sys.exit(1)

    if result is not None:
        print(json.dumps(result, indent=2))
        return

    # Check for MCP before starting server mode
    if not HAS_MCP:
        print("Error: MCP package not installed.", file=sys.stderr)
        print("Install with: pip install diff-journal[mcp]", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_server(options))


if __name__ == "__main__":  # pragma: no cover
    main()
