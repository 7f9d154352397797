"""Tests for command_tracker.config — env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the runtime
bootstrap path: validate_config() and load_config().
"""

from pathlib import Path

import pytest

from command_tracker.config import (
    DEFAULT_STORAGE_DIR,
    Config,
    load_config,
    validate_config,
)
from command_tracker.config_schema import build_config

_ENV_VARS = (
    "CMDTRACK_STORAGE_DIR",
    "CMDTRACK_BRANCH",
    "CMDTRACK_REMOTE",
    "CMDTRACK_GIT_TIMEOUT",
    "CMDTRACK_FETCH_TIMEOUT",
    "CMDTRACK_REFRESH_INTERVAL",
    "CMDTRACK_AUTO_SYNC",
    "CMDTRACK_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() — names, URLs and numeric bounds."""

    def test_defaults_valid(self, tmp_path):
        validate_config(Config(storage_dir=tmp_path))  # should not raise

    def test_storage_dir_expanded(self):
        config = Config(storage_dir=Path("~/cmds"))
        validate_config(config)
        assert config.storage_dir == Path.home() / "cmds"

    @pytest.mark.parametrize("name", ["", "  ", "a/b.json", "..", "a\\b"])
    def test_invalid_document_name(self, tmp_path, name):
        with pytest.raises(ValueError, match="plain file name"):
            validate_config(Config(storage_dir=tmp_path, document_name=name))

    def test_branch_with_space_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid git branch"):
            validate_config(Config(storage_dir=tmp_path, branch="my branch"))

    def test_empty_remote_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid git remote"):
            validate_config(Config(storage_dir=tmp_path, remote=" "))

    def test_raw_url_scheme_required(self, tmp_path):
        config = Config(storage_dir=tmp_path, raw_base_url="ftp://example.com")
        with pytest.raises(ValueError, match="must start with http:// or https://"):
            validate_config(config)

    def test_raw_url_host_required(self, tmp_path):
        config = Config(storage_dir=tmp_path, raw_base_url="https://")
        with pytest.raises(ValueError, match="hostname"):
            validate_config(config)

    def test_trailing_slash_stripped(self, tmp_path):
        config = Config(storage_dir=tmp_path, raw_base_url=" http://mirror.local/ ")
        validate_config(config)
        assert config.raw_base_url == "http://mirror.local"

    def test_non_positive_timeout(self, tmp_path):
        with pytest.raises(ValueError, match="Timeouts"):
            validate_config(Config(storage_dir=tmp_path, git_timeout=0))

    def test_negative_refresh_interval(self, tmp_path):
        with pytest.raises(ValueError, match="refresh interval"):
            validate_config(Config(storage_dir=tmp_path, refresh_interval=-1))


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() precedence."""

    def test_zero_config_defaults(self):
        config = load_config()
        assert config.storage_dir == DEFAULT_STORAGE_DIR
        assert config.auto_sync is True
        assert config.branch == "main"
        assert config.refresh_interval == 300
        assert config.debug is False

    def test_env_vars(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CMDTRACK_STORAGE_DIR", str(tmp_path))
        monkeypatch.setenv("CMDTRACK_BRANCH", "sync")
        monkeypatch.setenv("CMDTRACK_REMOTE", "upstream")
        monkeypatch.setenv("CMDTRACK_GIT_TIMEOUT", "15")
        monkeypatch.setenv("CMDTRACK_FETCH_TIMEOUT", "2.5")
        monkeypatch.setenv("CMDTRACK_REFRESH_INTERVAL", "0")

        config = load_config()

        assert config.storage_dir == tmp_path
        assert config.branch == "sync"
        assert config.remote == "upstream"
        assert config.git_timeout == 15.0
        assert config.fetch_timeout == 2.5
        assert config.refresh_interval == 0

    def test_cli_args_override_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CMDTRACK_STORAGE_DIR", "/env/dir")
        monkeypatch.setenv("CMDTRACK_AUTO_SYNC", "true")

        config = load_config(storage_dir=str(tmp_path), auto_sync=False)

        assert config.storage_dir == tmp_path
        assert config.auto_sync is False

    def test_env_overrides_yaml(self, monkeypatch):
        unified = build_config({"git": {"branch": "yaml-branch", "auto_sync": True}})
        monkeypatch.setenv("CMDTRACK_BRANCH", "env-branch")
        monkeypatch.setenv("CMDTRACK_AUTO_SYNC", "no")

        config = load_config(unified=unified)

        assert config.branch == "env-branch"
        assert config.auto_sync is False

    def test_yaml_fallbacks(self, tmp_path):
        unified = build_config(
            {
                "storage": {"dir": str(tmp_path), "document": "cmds.json"},
                "git": {"timeout": 5},
                "peers": {
                    "raw_base_url": "http://mirror.local/",
                    "refresh_interval": 60,
                },
            }
        )

        config = load_config(unified=unified)

        assert config.storage_dir == tmp_path
        assert config.document_name == "cmds.json"
        assert config.git_timeout == 5
        assert config.raw_base_url == "http://mirror.local"
        assert config.refresh_interval == 60

    @pytest.mark.parametrize("value", ["true", "1", "yes", "on", "TRUE"])
    def test_debug_truthy_values(self, monkeypatch, value):
        monkeypatch.setenv("CMDTRACK_DEBUG", value)
        assert load_config().debug is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", ""])
    def test_debug_falsy_values(self, monkeypatch, value):
        monkeypatch.setenv("CMDTRACK_DEBUG", value)
        assert load_config().debug is False

    def test_debug_flag_wins(self, monkeypatch):
        monkeypatch.setenv("CMDTRACK_DEBUG", "false")
        assert load_config(debug=True).debug is True

    def test_non_numeric_env_rejected(self, monkeypatch):
        monkeypatch.setenv("CMDTRACK_GIT_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="CMDTRACK_GIT_TIMEOUT"):
            load_config()
