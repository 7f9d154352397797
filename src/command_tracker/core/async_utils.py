"""Async utilities for bridging the blocking sync engine to async MCP handlers."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Git subprocesses and peer HTTP requests can take seconds; tool
    handlers and the background refresh go through here.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In MCP tool handler:
        outcome = await run_sync(workspace.sync_now, prompter)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
