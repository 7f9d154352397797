"""Core helpers shared between the workspace and the MCP server."""

from .async_utils import run_sync

__all__ = ["run_sync"]
