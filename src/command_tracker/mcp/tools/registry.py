"""ToolSpec and ToolRegistry for read-only tool filtering.

This module provides a centralized registry for MCP tools.  Operators can
start the server read-only, in which case tools that change the document
or the repository are never exposed to agents.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, whether the
  tool mutates state, and an async handler with standardized signature
  (workspace, args) -> CallToolResult.
- ToolRegistry: Filters specs at construction time, then provides
  list_tools() and call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...sync.git import GitCommandError
from ...sync.peers import PeerFetchError
from ...workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        mutating: True if the tool writes the document or the repository.
        handler: Async handler with signature (workspace, args) -> CallToolResult.
    """

    tool: types.Tool
    mutating: bool
    handler: Callable[[Workspace, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs, optionally limited to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if read_only and spec.mutating:
                continue
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        workspace: Workspace,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Provides centralized error handling for git failures, peer fetch
        failures, validation errors, and unexpected exceptions, translating
        them into structured CallToolResult responses with corrective
        actions.

        Args:
            name: Tool name to invoke.
            arguments: Tool arguments (may be None).
            workspace: Workspace instance.

        Returns:
            CallToolResult from the handler.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import (
            build_error_response,
            translate_git_error,
            translate_peer_error,
        )

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(workspace, args)
        except GitCommandError as e:
            logger.warning("Git failure in %s: %s", name, e)
            return translate_git_error(e)
        except PeerFetchError as e:
            logger.warning("Peer fetch failure in %s: %s", name, e)
            return translate_peer_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log file and retry.",
            )
