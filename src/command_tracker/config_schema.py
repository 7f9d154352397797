"""Unified configuration schema for command_tracker.

Defines Pydantic models for the config file structure with dedicated
sections for storage, git, peers and logging.

Usage:
    from command_tracker.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StorageConfig(BaseModel):
    """Where the document lives.

    ``dir`` is optional: when unset the runtime default
    (``~/.command_tracker``) is used.
    """

    dir: str | None = Field(
        default=None, description="Storage directory (git working tree)"
    )
    document: str = Field(
        default="data.json", description="Document file name"
    )

    model_config = {"frozen": True}


class GitConfig(BaseModel):
    """Version-control sync settings."""

    branch: str = Field(default="main", description="Branch to sync")
    remote: str = Field(default="origin", description="Remote name")
    timeout: float = Field(
        default=60.0,
        gt=0,
        le=3600,
        description="Seconds before a git command is killed",
    )
    auto_sync: bool = Field(
        default=True, description="Commit, pull and push after every save"
    )

    model_config = {"frozen": True}


class PeersConfig(BaseModel):
    """Peer document retrieval settings."""

    raw_base_url: str = Field(
        default="https://raw.githubusercontent.com",
        description="Raw-content host peer documents are fetched from",
    )
    fetch_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Seconds allowed per peer request",
    )
    refresh_interval: int = Field(
        default=300,
        ge=0,
        description="Seconds between background refreshes (0 disables)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    peers: PeersConfig = Field(default_factory=PeersConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults; unknown top-level keys are ignored.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        pydantic.ValidationError: If a section has invalid values.
    """
    if not raw_data:
        return UnifiedConfig()

    known = {k: v for k, v in raw_data.items() if k in UnifiedConfig.model_fields}
    ignored = sorted(set(raw_data) - set(known))
    if ignored:
        logger.warning("Ignoring unknown config sections: %s", ", ".join(ignored))
    return UnifiedConfig(**{k: v or {} for k, v in known.items()})
