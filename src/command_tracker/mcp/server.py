"""MCP Server for the command tracker using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents load and save the command/prompt document, manage peer
subscriptions, and sync through Git.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
import yaml
from dotenv import load_dotenv
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from pydantic import ValidationError

from .. import __version__
from ..config_loader import load_hierarchical_config
from ..config_schema import build_config
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..workspace import Workspace
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("command-tracker")

# Global workspace instance (initialized in main)
_workspace: Workspace | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_workspace() -> Workspace:
    """Get the global Workspace instance.

    Raises:
        RuntimeError: If the workspace is not initialized
    """
    if _workspace is None:
        raise RuntimeError(
            "Workspace not initialized. Server lifespan not started."
        )
    return _workspace


def set_workspace(workspace: Workspace | None) -> None:
    global _workspace
    _workspace = workspace


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available tools (read-only mode hides mutating ones)."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    workspace = get_workspace()
    try:
        return await get_registry().call_tool(name, arguments, workspace)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), builds the
    workspace via the lifespan manager, and serves JSON-RPC over stdio.

    Args:
        config_overrides: Optional dict with CLI values (storage_dir,
            auto_sync, debug, read_only, log_file)
    """
    overrides = config_overrides or {}

    # .env first so ${VAR} interpolation in YAML can use its values
    load_dotenv()
    try:
        unified = build_config(load_hierarchical_config())
    except (yaml.YAMLError, ValidationError) as e:
        print(f"ERROR: Invalid config file: {e}", file=sys.stderr)
        raise RuntimeError(f"Invalid config file: {e}") from e

    # Must run before stdio_server starts so nothing reaches stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file") or unified.logging.file,
        level=unified.logging.level,
    )

    read_only = bool(overrides.get("read_only", False))
    registry = ToolRegistry(ALL_SPECS, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} of {len(ALL_SPECS)} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    async with server_lifespan(
        config_overrides=overrides, unified=unified
    ) as ctx:
        set_workspace(ctx["workspace"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="command-tracker",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_workspace(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Command Tracker MCP Server - sync a command/prompt document through Git",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .command_tracker/config.yml)
  command-tracker-mcp

  # Use another storage directory
  command-tracker-mcp --storage-dir ~/work/commands

  # Never commit/push automatically after a save
  command-tracker-mcp --no-auto-sync

  # Expose only tools that do not change the document or repository
  command-tracker-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--storage-dir",
        help="Storage directory holding the document and its Git repository "
        "(takes precedence over CMDTRACK_STORAGE_DIR and config files)",
    )
    parser.add_argument(
        "--no-auto-sync",
        action="store_true",
        help="Do not commit, pull and push after every save",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Hide tools that modify the document or the repository",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"command-tracker-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {}
    if args.storage_dir:
        config_overrides["storage_dir"] = args.storage_dir
    if args.no_auto_sync:
        config_overrides["auto_sync"] = False
    if args.read_only:
        config_overrides["read_only"] = True
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
