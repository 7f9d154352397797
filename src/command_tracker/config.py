"""Runtime configuration for the command tracker.

Reads settings from CLI args, environment variables, .env files, and
YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CMDTRACK_STORAGE_DIR: Storage directory (default: ~/.command_tracker)
    CMDTRACK_BRANCH: Branch to sync (default: main)
    CMDTRACK_REMOTE: Remote name (default: origin)
    CMDTRACK_GIT_TIMEOUT: Seconds per git command (default: 60)
    CMDTRACK_FETCH_TIMEOUT: Seconds per peer request (default: 10)
    CMDTRACK_REFRESH_INTERVAL: Seconds between peer refreshes, 0 disables
        (default: 300)
    CMDTRACK_AUTO_SYNC: Sync after every save (default: true)
    CMDTRACK_DEBUG: Enable debug logging (default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from command_tracker.config_schema import UnifiedConfig

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = Path.home() / ".command_tracker"


@dataclass
class Config:
    storage_dir: Path
    document_name: str = "data.json"
    branch: str = "main"
    remote: str = "origin"
    git_timeout: float = 60.0
    auto_sync: bool = True
    raw_base_url: str = "https://raw.githubusercontent.com"
    fetch_timeout: float = 10.0
    refresh_interval: int = 300
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a name, URL or timeout is unusable.
    """
    config.storage_dir = Path(config.storage_dir).expanduser()

    name = config.document_name.strip()
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise ValueError(
            f"Invalid document name '{config.document_name}': must be a plain file name"
        )
    config.document_name = name

    for label, value in (("branch", config.branch), ("remote", config.remote)):
        if not value.strip() or any(ch.isspace() for ch in value.strip()):
            raise ValueError(f"Invalid git {label} '{value}'")
    config.branch = config.branch.strip()
    config.remote = config.remote.strip()

    config.raw_base_url = config.raw_base_url.strip()
    if not config.raw_base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid raw base URL '{config.raw_base_url}': must start with http:// or https://"
        )
    if not urlparse(config.raw_base_url).hostname:
        raise ValueError(
            f"Invalid raw base URL '{config.raw_base_url}': URL must include a hostname"
        )
    config.raw_base_url = config.raw_base_url.removesuffix("/")

    if config.git_timeout <= 0 or config.fetch_timeout <= 0:
        raise ValueError("Timeouts must be positive numbers of seconds")

    if config.refresh_interval < 0:
        raise ValueError(
            f"Invalid refresh interval {config.refresh_interval}: must be >= 0"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, kind: type) -> float | int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"Invalid {key} '{raw}': must be a number") from None


def load_config(
    storage_dir: str | None = None,
    auto_sync: bool | None = None,
    debug: bool = False,
    unified: UnifiedConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML config > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        storage_dir: Override storage directory (CLI ``--storage-dir``).
        auto_sync: Override auto-sync (CLI ``--no-auto-sync``).
        debug: Enable debug logging (CLI flag).
        unified: Parsed YAML config; defaults everywhere when ``None``.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any resolved value is invalid.
    """
    fb = unified or UnifiedConfig()

    final_storage = (
        storage_dir
        or os.getenv("CMDTRACK_STORAGE_DIR")
        or fb.storage.dir
        or str(DEFAULT_STORAGE_DIR)
    )

    if auto_sync is not None:
        final_auto_sync = auto_sync
    else:
        env_auto = _get_bool_env("CMDTRACK_AUTO_SYNC")
        final_auto_sync = fb.git.auto_sync if env_auto is None else env_auto

    if debug:
        final_debug = True
    else:
        final_debug = bool(_get_bool_env("CMDTRACK_DEBUG"))

    git_timeout = _get_number_env("CMDTRACK_GIT_TIMEOUT", float)
    fetch_timeout = _get_number_env("CMDTRACK_FETCH_TIMEOUT", float)
    refresh_interval = _get_number_env("CMDTRACK_REFRESH_INTERVAL", int)

    config = Config(
        storage_dir=Path(final_storage),
        document_name=fb.storage.document,
        branch=os.getenv("CMDTRACK_BRANCH") or fb.git.branch,
        remote=os.getenv("CMDTRACK_REMOTE") or fb.git.remote,
        git_timeout=fb.git.timeout if git_timeout is None else git_timeout,
        auto_sync=final_auto_sync,
        raw_base_url=fb.peers.raw_base_url,
        fetch_timeout=(
            fb.peers.fetch_timeout if fetch_timeout is None else fetch_timeout
        ),
        refresh_interval=(
            fb.peers.refresh_interval
            if refresh_interval is None
            else refresh_interval
        ),
        debug=final_debug,
    )

    validate_config(config)

    return config
