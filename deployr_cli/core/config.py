"""
CLI configuration - the ``~/.diconf`` JSON file.

Holds the DeployR endpoint, the logged-in username and the session
cookie between invocations. Nothing about jobs is persisted here; job
state always comes from the server.

Resolution order for the file path:
    1. explicit path (``--diconf`` flag)
    2. DI_CONFIG environment variable
    3. ~/.diconf

Environment overrides applied on load:
    DEPLOYR_ENDPOINT     server base URL
    DEPLOYR_TIMEOUT_S    request timeout in seconds
    DEPLOYR_MAX_RETRIES  transport retry attempts

Usage:
    from deployr_cli.core.config import load_config

    config = load_config()
    config.set("endpoint", "http://localhost:7400")
    config.save()
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from deployr_cli.core.errors import ConfigError

logger = logging.getLogger("config")

DEFAULT_CONFIG_NAME = ".diconf"

_ENV_OVERRIDES = {
    "DEPLOYR_ENDPOINT": ("endpoint", str),
    "DEPLOYR_TIMEOUT_S": ("timeout_s", float),
    "DEPLOYR_MAX_RETRIES": ("max_retries", int),
}


def default_config_path() -> Path:
    env_path = os.environ.get("DI_CONFIG")
    if env_path:
        return Path(env_path)
    return Path.home() / DEFAULT_CONFIG_NAME


class CLIConfig:
    """Key/value store backed by a JSON file."""

    def __init__(self, path: Path, data: Optional[Dict[str, Any]] = None):
        self.path = Path(path)
        self._data: Dict[str, Any] = dict(data or {})
        self._overrides: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._overrides:
            return self._overrides[key]
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._overrides.pop(key, None)
        self._data[key] = value

    def clear(self, key: str) -> None:
        self._overrides.pop(key, None)
        self._data.pop(key, None)

    def as_dict(self) -> Dict[str, Any]:
        merged = dict(self._data)
        merged.update(self._overrides)
        return merged

    def apply_env(self) -> None:
        """Layer environment overrides on top of the file values (never saved)."""
        for env_name, (key, cast) in _ENV_OVERRIDES.items():
            raw = os.environ.get(env_name)
            if raw is None:
                continue
            try:
                self._overrides[key] = cast(raw)
            except ValueError:
                logger.warning(f"Ignoring {env_name}={raw!r}: not a valid {cast.__name__}")

    def save(self) -> None:
        """Write the file values atomically (write temp file, then rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.tmp.",
        )
        try:
            with os.fdopen(temp_fd, "w") as f:
                json.dump(self._data, f, indent=2)
            os.replace(temp_path, self.path)
        except OSError as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise ConfigError(str(self.path), f"cannot write: {e}")

        logger.debug(f"Saved config to {self.path}")


def load_config(path: Optional[Path] = None) -> CLIConfig:
    """
    Load the CLI config.

    A missing file is an empty config. A file that is not a JSON object
    raises ConfigError.
    """
    path = Path(path) if path else default_config_path()
    data: Dict[str, Any] = {}

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(str(path), f"invalid JSON ({e})")
        if not isinstance(data, dict):
            raise ConfigError(str(path), "expected a JSON object")

    config = CLIConfig(path, data)
    config.apply_env()
    return config
