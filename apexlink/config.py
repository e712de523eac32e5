"""Configuration for the ApexLink client.

Options live in a YAML file (``~/.config/apexlink/config.yaml`` unless
``APEXLINK_CONFIG`` points elsewhere) and may be overridden per invocation.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from apexlink.exceptions import ConfigError

DEFAULT_SERVER_URL = "ws://localhost:8765"
DEFAULT_COLOR = "#00ffff"
DEFAULT_SYNC_INTERVAL_MS = 2000
FALLBACK_USERNAME = "apex-user"

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class ApexLinkConfig(BaseModel):
    """User-facing options recognized by the client."""

    daemon_path: Path | None = Field(
        default=None, description="Explicit daemon executable, skips discovery"
    )
    server_url: str = Field(default=DEFAULT_SERVER_URL, description="Signaling server URL")
    username: str | None = Field(
        default=None, description="Display name announced to peers, defaults to $USER"
    )
    color: str = Field(default=DEFAULT_COLOR, description="Cursor color as #rrggbb")
    auto_notify: bool = Field(default=True, description="Show user-facing notifications")
    auto_save: bool = Field(default=True, description="Force-write modified buffers each tick")
    auto_reload: bool = Field(default=True, description="Reload externally changed buffers")
    sync_interval: int = Field(
        default=DEFAULT_SYNC_INTERVAL_MS, gt=0, description="Sync timer interval in milliseconds"
    )

    class Config:
        extra = "forbid"
        validate_assignment = True

    @field_validator("color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        if not _HEX_COLOR.match(value):
            raise ValueError(f"color must look like #rrggbb, got {value!r}")
        return value.lower()

    def display_name(self) -> str:
        """Get the name announced to peers.

        Returns:
            The configured username, the invoking user's login, or a fallback.
        """
        return self.username or os.environ.get("USER") or FALLBACK_USERNAME


def config_file_path() -> Path:
    """Get the config file location.

    Search order:
    1. APEXLINK_CONFIG environment variable
    2. ~/.config/apexlink/config.yaml

    Returns:
        Path to the config file (it may not exist yet).
    """
    env_path = os.environ.get("APEXLINK_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".config" / "apexlink" / "config.yaml"


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    """Read the raw config mapping from disk.

    Args:
        path: Config file path. Defaults to config_file_path().

    Returns:
        The parsed mapping, empty if the file does not exist.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    path = path or config_file_path()
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Path | None = None, **overrides: Any) -> ApexLinkConfig:
    """Load the configuration, applying per-invocation overrides.

    Args:
        path: Config file path. Defaults to config_file_path().
        **overrides: Option values that win over the file. None values are ignored.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file or an override is invalid.
    """
    data = read_config_file(path)
    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return ApexLinkConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def save_config(data: dict[str, Any], path: Path | None = None) -> Path:
    """Validate and write a raw config mapping.

    Args:
        data: Option values to persist. Only these keys are written.
        path: Config file path. Defaults to config_file_path().

    Returns:
        The path written to.

    Raises:
        ConfigError: If the values do not form a valid configuration.
    """
    try:
        ApexLinkConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    path = path or config_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False)
    return path
