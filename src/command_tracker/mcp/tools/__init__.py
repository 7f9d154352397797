"""MCP tool handlers for the command tracker.

This package contains MCP tool implementations that wrap the Workspace
with async handlers and structured error responses.
"""

from .documents import DOCUMENT_SPECS, DOCUMENT_TOOLS
from .errors import build_error_response
from .registry import ToolRegistry, ToolSpec
from .subscriptions import SUBSCRIPTION_SPECS, SUBSCRIPTION_TOOLS
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = DOCUMENT_SPECS + SUBSCRIPTION_SPECS + SYNC_SPECS

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "DOCUMENT_SPECS",
    "SUBSCRIPTION_SPECS",
    "SYNC_SPECS",
    # Tool lists
    "DOCUMENT_TOOLS",
    "SUBSCRIPTION_TOOLS",
    "SYNC_TOOLS",
]
