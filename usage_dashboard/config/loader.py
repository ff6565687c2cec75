"""
Configuration management and loading.

Handles dashboard settings from an optional YAML file and environment
variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_SESSIONS_DIR = "~/.openclaw/agents/main/sessions"
DEFAULT_PRICING_PATH = "~/.openclaw/openclaw.json"
DEFAULT_CACHE_PATH = "~/.openclaw/usage-dashboard/cache.json"
DEFAULT_QUOTA_COMMAND = ["openclaw", "status", "--usage"]
DEFAULT_PORT = 18790
PORT_ENV_VAR = "DASHBOARD_PORT"


@dataclass(frozen=True)
class DashboardConfig:
    """Complete dashboard configuration."""
    sessions_dir: str = DEFAULT_SESSIONS_DIR
    pricing_path: str = DEFAULT_PRICING_PATH
    cache_path: str = DEFAULT_CACHE_PATH
    refresh_interval: float = 300.0
    quota_command: List[str] = field(default_factory=lambda: list(DEFAULT_QUOTA_COMMAND))
    quota_timeout: float = 15.0
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    daily_spend_alert: float = 1.0

    def __post_init__(self):
        """Validate numeric settings."""
        if self.refresh_interval <= 0:
            raise ValueError("refresh_interval must be > 0")
        if self.quota_timeout <= 0:
            raise ValueError("quota_timeout must be > 0")
        if self.daily_spend_alert <= 0:
            raise ValueError("daily_spend_alert must be > 0")
        if not 0 <= self.port <= 65535:
            raise ValueError("port must be between 0 and 65535")

    @property
    def sessions_path(self) -> str:
        return os.path.expanduser(self.sessions_dir)


_STRING_KEYS = ("sessions_dir", "pricing_path", "cache_path", "host")
_NUMBER_KEYS = ("refresh_interval", "quota_timeout", "daily_spend_alert")
ALLOWED_KEYS = set(_STRING_KEYS) | set(_NUMBER_KEYS) | {"quota_command", "port"}


def _port_from_env(default: int) -> int:
    value = os.environ.get(PORT_ENV_VAR)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{PORT_ENV_VAR} must be an integer, got {value!r}")


def load_dashboard_config(path: Optional[str] = None) -> DashboardConfig:
    """Load and validate the dashboard configuration.

    Without a path the defaults are used. A YAML file may override any
    setting; unknown keys and wrongly typed values are rejected. The
    `DASHBOARD_PORT` environment variable overrides the port in both cases.

    Args:
        path: Optional path to a YAML configuration file

    Returns:
        Validated DashboardConfig object

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return DashboardConfig(port=_port_from_env(DEFAULT_PORT))

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Dashboard config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    unknown_keys = set(raw_config.keys()) - ALLOWED_KEYS
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    settings: Dict[str, Any] = {}
    for key in _STRING_KEYS:
        if key in raw_config:
            if not isinstance(raw_config[key], str) or not raw_config[key]:
                raise ValueError(f"'{key}' must be a non-empty string")
            settings[key] = raw_config[key]

    for key in _NUMBER_KEYS:
        if key in raw_config:
            value = raw_config[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"'{key}' must be a number")
            settings[key] = float(value)

    if "quota_command" in raw_config:
        command = raw_config["quota_command"]
        if isinstance(command, str):
            command = command.split()
        if not isinstance(command, list) or not all(isinstance(c, str) for c in command):
            raise ValueError("'quota_command' must be a list of strings")
        settings["quota_command"] = command

    port = raw_config.get("port", DEFAULT_PORT)
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError("'port' must be an integer")
    settings["port"] = _port_from_env(port)

    return DashboardConfig(**settings)
