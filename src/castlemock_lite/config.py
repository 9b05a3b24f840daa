"""
CastleMock Lite Configuration

Settings are resolved in three layers: dataclass defaults, an optional YAML
file, then ``CASTLEMOCK_*`` environment variables.

Example config.yaml:
    storage_path: ~/.castlemock-lite/catalog.json
    offload_enabled: true
    offload_timeout: 5
    simulate_latency: true
    log_level: info
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import DocumentError

LOG_LEVELS = ('debug', 'info', 'warning', 'error')

ENV_PREFIX = 'CASTLEMOCK_'


@dataclass
class CastleConfig:
    """Runtime configuration."""

    # Persistence
    storage_path: str = "~/.castlemock-lite/catalog.json"

    # Background execution
    offload_enabled: bool = True
    offload_timeout: float = 5.0  # seconds before a background call is abandoned

    # Request simulation
    simulate_latency: bool = True  # sleep for the response's configured delay
    log_history_limit: int = 100  # recent log entries kept by the mock service

    # Logging
    log_level: str = "info"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CastleConfig':
        """Create config from a dictionary, ignoring unknown keys."""
        config = cls()
        for f in fields(cls):
            if f.name in data and data[f.name] is not None:
                setattr(config, f.name, _coerce(f.name, data[f.name], getattr(config, f.name)))
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'CastleConfig':
        """
        Load config from a YAML file.

        Raises:
            DocumentError: If the file can't be read or isn't a mapping
        """
        try:
            with open(yaml_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise DocumentError(f"Could not load config {yaml_path}: {e}") from e

        if not isinstance(data, dict):
            raise DocumentError(f"Config {yaml_path} must be a mapping")
        return cls.from_dict(data)

    def apply_env(self, env: Mapping[str, str]) -> 'CastleConfig':
        """Override fields from ``CASTLEMOCK_<FIELD>`` variables."""
        for f in fields(self):
            key = ENV_PREFIX + f.name.upper()
            if key in env:
                setattr(self, f.name, _coerce(f.name, env[key], getattr(self, f.name)))
        self.validate()
        return self

    def validate(self):
        """
        Raises:
            ValueError: On an unknown log level or a non-positive timeout
        """
        self.log_level = str(self.log_level).lower()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")
        if self.offload_timeout <= 0:
            raise ValueError("offload_timeout must be positive")

    @property
    def resolved_storage_path(self) -> Path:
        return Path(self.storage_path).expanduser()


def _coerce(name: str, value: Any, current: Any) -> Any:
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.strip().lower() in ('1', 'true', 'yes', 'on')
        return bool(value)
    try:
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {name}: {value!r}") from e
    return str(value)


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> CastleConfig:
    """
    Build the effective configuration.

    Args:
        path: Optional YAML config file
        env: Environment mapping (defaults to os.environ)

    Returns:
        CastleConfig with file and environment overrides applied
    """
    config = CastleConfig.from_yaml(path) if path else CastleConfig()
    return config.apply_env(os.environ if env is None else env)
