"""Persistent configuration for pymirror.

Defaults are read from ``~/.config/pymirror/config.json`` and can be
overridden with ``PYMIRROR_*`` environment variables. Command line
options take precedence over both.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import MirrorConfigError
from .utils import DEFAULT_MMAP_MIN_SIZE, DEFAULT_SLEEP_TIME, parse_size

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"

# config key -> environment variable
_ENV_OVERRIDES = {
    "sleep_time": "PYMIRROR_SLEEP_TIME",
    "copy_threshold": "PYMIRROR_COPY_THRESHOLD",
    "recursive": "PYMIRROR_RECURSIVE",
    "log_file": "PYMIRROR_LOG_FILE",
    "pid_file": "PYMIRROR_PID_FILE",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise MirrorConfigError(f"Invalid boolean for {key}: {value!r}")


class Config:
    """Configuration manager for pymirror."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Directory holding config.json. Defaults to
                $PYMIRROR_CONFIG_DIR or ~/.config/pymirror
        """
        if config_dir is None:
            env_dir = os.environ.get("PYMIRROR_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "pymirror"
            )
        self.config_dir = Path(config_dir)
        self._data: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        """Return the path of the configuration file."""
        return self.config_dir / CONFIG_FILE_NAME

    def is_configured(self) -> bool:
        """Whether a configuration file exists."""
        return self.get_config_path().exists()

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        path = self.get_config_path()
        data: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise MirrorConfigError(f"Invalid config file {path}: {e}") from e
            except OSError as e:
                raise MirrorConfigError(
                    f"Cannot read config file {path}: {e.strerror}"
                ) from e
            if not isinstance(data, dict):
                raise MirrorConfigError(f"Config file {path} must hold a JSON object")
            logger.debug(f"Loaded config from {path}")

        self._data = data
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw configuration value, environment first."""
        env_var = _ENV_OVERRIDES.get(key)
        if env_var and env_var in os.environ:
            return os.environ[env_var]
        return self._load().get(key, default)

    @property
    def sleep_time(self) -> int:
        """Seconds to wait between sync cycles."""
        value = self.get("sleep_time", DEFAULT_SLEEP_TIME)
        try:
            sleep_time = int(value)
        except (TypeError, ValueError) as e:
            raise MirrorConfigError(f"Invalid sleep_time: {value!r}") from e
        if sleep_time < 0:
            raise MirrorConfigError(f"sleep_time cannot be negative: {sleep_time}")
        return sleep_time

    @property
    def copy_threshold(self) -> int:
        """Minimum file size (bytes) for the memory-mapped copy."""
        value = self.get("copy_threshold", DEFAULT_MMAP_MIN_SIZE)
        try:
            return parse_size(value)
        except ValueError as e:
            raise MirrorConfigError(str(e)) from e

    @property
    def recursive(self) -> bool:
        """Whether directories are mirrored recursively by default."""
        return _parse_bool("recursive", self.get("recursive", False))

    @property
    def log_file(self) -> Optional[Path]:
        """Log file used by the daemon, if any."""
        value = self.get("log_file")
        return Path(value) if value else None

    @property
    def pid_file(self) -> Optional[Path]:
        """PID file written by the daemon, if any."""
        value = self.get("pid_file")
        return Path(value) if value else None

    def save(self, **values: Any) -> None:
        """Merge values into the configuration file and write it.

        Args:
            **values: Keys to store; None values remove the key
        """
        data = dict(self._load())
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value

        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise MirrorConfigError(
                f"Cannot write config file {path}: {e.strerror}"
            ) from e
        self._data = data
        logger.debug(f"Saved config to {path}")

    def to_dict(self) -> dict[str, Any]:
        """Return the effective configuration."""
        return {
            "sleep_time": self.sleep_time,
            "copy_threshold": self.copy_threshold,
            "recursive": self.recursive,
            "log_file": str(self.log_file) if self.log_file else None,
            "pid_file": str(self.pid_file) if self.pid_file else None,
        }


config = Config()
