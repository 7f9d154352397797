"""Lifespan management for MCP server startup and shutdown."""

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Any

from ..config import load_config
from ..config_loader import discover_config_files
from ..config_schema import UnifiedConfig
from ..core.async_utils import run_sync
from ..sync.reporter import format_refresh_report
from ..workspace import Workspace

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


async def periodic_refresh(workspace: Workspace, interval: float) -> None:
    """Refresh every subscription every *interval* seconds until cancelled.

    A failed round is logged and the loop keeps going.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            report = await run_sync(workspace.refresh_subscriptions)
        except Exception:
            logger.exception("Background subscription refresh failed")
            continue
        if report.results:
            logger.info(format_refresh_report(report))


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
    unified: UnifiedConfig | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
      (the caller has already loaded .env and the YAML config)
    - Create the Workspace and seed the document file
    - Start the background subscription refresh

    On shutdown:
    - Cancel the background refresh

    Args:
        config_overrides: Optional dict with config values from CLI
            (storage_dir, auto_sync, debug, read_only)
        unified: Parsed YAML config

    Yields:
        Dict with 'workspace' key containing the initialized Workspace

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Command Tracker MCP Server starting...")

    overrides = config_overrides or {}
    try:
        config = load_config(
            storage_dir=overrides.get("storage_dir"),
            auto_sync=overrides.get("auto_sync"),
            debug=overrides.get("debug", False),
            unified=unified,
        )
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    sources = [f"config file: {p}" for p in discover_config_files()[:1]]
    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    source_desc = ", ".join(sources)
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    _stderr_print(f"  Storage directory: {config.storage_dir}")

    read_only = bool(overrides.get("read_only", False))
    workspace = Workspace(config, read_only=read_only)
    if not read_only:
        try:
            await run_sync(workspace.store.ensure_exists)
        except OSError as e:
            logger.error("Cannot create document in %s: %s", config.storage_dir, e)
            _stderr_print(f"ERROR: Cannot write to {config.storage_dir}: {e}")
            raise RuntimeError(f"Storage directory not writable: {e}") from e

    refresh_task: asyncio.Task | None = None
    if config.refresh_interval > 0 and not read_only:
        refresh_task = asyncio.create_task(
            periodic_refresh(workspace, config.refresh_interval)
        )
        _stderr_print(
            f"  Subscription refresh every {config.refresh_interval}s"
        )

    _stderr_print("Server ready. Waiting for MCP client connection...")
    try:
        yield {"workspace": workspace}
    finally:
        if refresh_task is not None:
            refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await refresh_task
        logger.info("MCP server shutting down")
        _stderr_print("Command Tracker MCP Server shutting down.")
