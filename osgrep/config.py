"""Configuration management for osgrep.

Settings are resolved from environment variables first and then from the
config file at ``~/.config/osgrep/config`` (``KEY=value`` lines).
"""

import logging
import os
from pathlib import Path
from typing import Callable, Optional, TypeVar

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_API_URL = "http://127.0.0.1:4444/v1"
DEFAULT_MAX_WORKERS = 8
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_DEBOUNCE = 0.5

CONFIG_KEYS = {
    "api_key": "OSGREP_API_KEY",
    "api_url": "OSGREP_API_URL",
    "store": "OSGREP_STORE",
    "max_workers": "OSGREP_MAX_WORKERS",
    "request_timeout": "OSGREP_TIMEOUT",
    "max_file_size": "OSGREP_MAX_FILE_SIZE",
    "debounce": "OSGREP_DEBOUNCE",
}


class Config:
    """Configuration manager for osgrep."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file.
                Defaults to ~/.config/osgrep
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "osgrep"
        self.config_dir = config_dir
        self.config_file = config_dir / "config"
        self._file_values: Optional[dict[str, str]] = None

    def _read_config_file(self) -> dict[str, str]:
        """Parse the config file into a dict keyed by environment variable name."""
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        if self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if not line or line.startswith("#") or "=" not in line:
                            continue
                        key, value = line.split("=", 1)
                        values[key.strip()] = value.strip().strip("'\"")
            except OSError as e:
                logger.warning(f"Could not read config file {self.config_file}: {e}")
        self._file_values = values
        return values

    def get(self, name: str) -> Optional[str]:
        """Get a raw setting value.

        Args:
            name: Setting name (see CONFIG_KEYS)

        Returns:
            The value from the environment or config file, or None
        """
        env_name = CONFIG_KEYS[name]
        value = os.environ.get(env_name)
        if value:
            return value
        return self._read_config_file().get(env_name) or None

    def _get_typed(self, name: str, cast: Callable[[str], T], default: T) -> T:
        raw = self.get(name)
        if raw is None:
            return default
        try:
            value = cast(raw)
        except ValueError as e:
            raise ConfigError(
                f"Invalid value for {CONFIG_KEYS[name]}: {raw!r}"
            ) from e
        if isinstance(value, (int, float)) and value < 0:
            raise ConfigError(f"{CONFIG_KEYS[name]} must not be negative: {raw!r}")
        return value

    @property
    def api_key(self) -> Optional[str]:
        return self.get("api_key")

    @property
    def api_url(self) -> str:
        return (self.get("api_url") or DEFAULT_API_URL).rstrip("/")

    @property
    def store(self) -> Optional[str]:
        return self.get("store")

    @property
    def max_workers(self) -> int:
        workers = self._get_typed("max_workers", int, DEFAULT_MAX_WORKERS)
        return max(1, workers)

    @property
    def request_timeout(self) -> float:
        return self._get_typed("request_timeout", float, DEFAULT_TIMEOUT)

    @property
    def max_file_size(self) -> int:
        return self._get_typed("max_file_size", int, DEFAULT_MAX_FILE_SIZE)

    @property
    def debounce(self) -> float:
        return self._get_typed("debounce", float, DEFAULT_DEBOUNCE)

    def save_api_key(self, api_key: str) -> Path:
        """Store the API key in the config file, keeping other settings.

        Args:
            api_key: API key to save

        Returns:
            Path of the written config file
        """
        values = dict(self._read_config_file())
        values[CONFIG_KEYS["api_key"]] = api_key

        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            f.write("# osgrep configuration\n")
            for key, value in sorted(values.items()):
                f.write(f"{key}={value}\n")
        # The file holds a credential
        self.config_file.chmod(0o600)

        self._file_values = values
        return self.config_file


config = Config()
