"""Log directory server - main entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

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

from .config import DirectoryConfig, load_config
from .manager import DirectoryManager
from .store import SqliteEntryStore
from .tools import execute_tool, make_tools
from .users import make_user_context

logger = logging.getLogger(__name__)


def create_manager(config: DirectoryConfig) -> DirectoryManager:
    """Build the single manager instance shared by all requests."""
    store = SqliteEntryStore(config.get_database_path(), lock_timeout=config.lock_timeout)
    return DirectoryManager(store, make_user_context(config), config)


def create_server(config: DirectoryConfig) -> "Server":
    """Create and configure the MCP server.

    Args:
        config: Service configuration

    Returns:
        Configured MCP Server instance

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install olog-directory[mcp]"
        )

    server = Server(config.service_name)
    manager = create_manager(config)
    tool_defs = make_tools(manager)

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
        result = await execute_tool(manager, name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(config: DirectoryConfig) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install olog-directory[mcp]"
        )

    server = create_server(config)  # pragma: no cover

    async with stdio_server() as (read_stream, write_stream):  # pragma: no cover
        await server.run(  # pragma: no cover
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Log directory server - log entries, logbooks and tags with group ownership"
    )
    parser.add_argument(
        "--project-root",
        "-p",
        type=Path,
        default=Path.cwd(),
        help="Directory holding the config file and data directory (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in project root)",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create the database and exit",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    args = parser.parse_args()

    # stdout carries the stdio transport; logs go to stderr
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    project_root = args.project_root.resolve()

    try:
        config = load_config(project_root, args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.init:
        store = SqliteEntryStore(config.get_database_path(), lock_timeout=config.lock_timeout)
        store.close()
        print(f"Initialized directory database at {config.get_database_path()}")
        return

    if not HAS_MCP:
        print("Error: MCP package not installed.", file=sys.stderr)
        print("Install with: pip install olog-directory[mcp]", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting %s (database %s)", config.service_name, config.get_database_path())
    asyncio.run(run_server(config))


if __name__ == "__main__":  # pragma: no cover
    main()
