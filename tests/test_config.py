"""Tests for configuration loading."""

import stat

import pytest

from osgrep.config import (
    DEFAULT_API_URL,
    DEFAULT_DEBOUNCE,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_WORKERS,
    Config,
)
from osgrep.exceptions import ConfigError


@pytest.fixture
def clean_env(monkeypatch):
    """Remove osgrep variables from the environment."""
    for name in (
        "OSGREP_API_KEY",
        "OSGREP_API_URL",
        "OSGREP_STORE",
        "OSGREP_MAX_WORKERS",
        "OSGREP_TIMEOUT",
        "OSGREP_MAX_FILE_SIZE",
        "OSGREP_DEBOUNCE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Tests for the Config class."""

    def test_defaults(self, clean_env, temp_dir):
        cfg = Config(config_dir=temp_dir)

        assert cfg.api_key is None
        assert cfg.api_url == DEFAULT_API_URL
        assert cfg.store is None
        assert cfg.max_workers == DEFAULT_MAX_WORKERS
        assert cfg.max_file_size == DEFAULT_MAX_FILE_SIZE
        assert cfg.debounce == DEFAULT_DEBOUNCE

    def test_reads_config_file(self, clean_env, temp_dir):
        (temp_dir / "config").write_text(
            "# comment\nOSGREP_API_KEY='secret'\nOSGREP_MAX_WORKERS = 3\nnoise\n"
        )
        cfg = Config(config_dir=temp_dir)

        assert cfg.api_key == "secret"
        assert cfg.max_workers == 3

    def test_environment_wins(self, clean_env, temp_dir):
        (temp_dir / "config").write_text("OSGREP_API_URL=http://file/v1\n")
        clean_env.setenv("OSGREP_API_URL", "http://env/v1/")

        assert Config(config_dir=temp_dir).api_url == "http://env/v1"

    def test_invalid_number(self, clean_env, temp_dir):
        clean_env.setenv("OSGREP_MAX_WORKERS", "many")

        with pytest.raises(ConfigError, match="OSGREP_MAX_WORKERS"):
            Config(config_dir=temp_dir).max_workers

    def test_negative_number(self, clean_env, temp_dir):
        clean_env.setenv("OSGREP_DEBOUNCE", "-1")

        with pytest.raises(ConfigError, match="must not be negative"):
            Config(config_dir=temp_dir).debounce

    def test_workers_at_least_one(self, clean_env, temp_dir):
        clean_env.setenv("OSGREP_MAX_WORKERS", "0")
        assert Config(config_dir=temp_dir).max_workers == 1

    def test_save_api_key(self, clean_env, temp_dir):
        config_dir = temp_dir / "osgrep"
        (config_dir).mkdir()
        (config_dir / "config").write_text("OSGREP_STORE=mystore\n")
        cfg = Config(config_dir=config_dir)

        path = cfg.save_api_key("new-key")

        reloaded = Config(config_dir=config_dir)
        assert reloaded.api_key == "new-key"
        assert reloaded.store == "mystore"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
