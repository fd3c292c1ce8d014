"""Config Loader - Loads client settings and resolves them per client identity.

Handles loading the YAML settings file with environment variable substitution
and looking up the ordered parameter sets configured for a client.

Settings file layout:

    environments:
      Development:
        REST Clients:
          hbase:
            - address: http://hbase-read:8080
              allow: [get]
            - address: http://hbase-write:8080
              user: ${HBASE_USER}
              pass: ${HBASE_PASS}
              allow: [post, put, delete]
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from simple_rest.errors import ConfigError
from simple_rest.models import ClientIdentity, ParameterSet, SettingsFile


DEFAULT_SETTINGS_PATH = Path("etc") / "settings.yaml"
SETTINGS_ENV_VAR = "SIMPLE_REST_SETTINGS"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def default_settings_path() -> Path:
    """Settings path from $SIMPLE_REST_SETTINGS, else etc/settings.yaml."""
    configured = os.environ.get(SETTINGS_ENV_VAR)
    if configured:
        return Path(configured)
    return DEFAULT_SETTINGS_PATH


def load_settings(settings_path: Path) -> SettingsFile:
    """Load the settings file from YAML with ${ENV_VAR} substitution."""
    if not settings_path.exists():
        raise ConfigError(f"Settings file not found: {settings_path}")

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            raw_settings = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in settings file: {e}") from e

    # An empty file is a valid (empty) configuration
    if raw_settings is None:
        return SettingsFile()

    if not isinstance(raw_settings, dict):
        raise ConfigError("Settings file must be a YAML mapping")

    raw_settings = _substitute_env_vars(raw_settings)

    try:
        return SettingsFile.model_validate(raw_settings)
    except Exception as e:
        raise ConfigError(f"Invalid settings structure: {e}") from e


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_PATTERN.sub(replacer, s)


class SettingsResolver:
    """Read-only lookup of parameter sets by client identity."""

    def __init__(self, settings: SettingsFile | None = None) -> None:
        self._settings = settings or SettingsFile()

    @classmethod
    def from_file(cls, settings_path: Path) -> "SettingsResolver":
        return cls(load_settings(settings_path))

    def resolve(self, identity: ClientIdentity) -> list[ParameterSet]:
        """Return the ordered parameter sets for identity (empty if unconfigured)."""
        by_type = self._settings.environments.get(identity.environment, {})
        by_name = by_type.get(identity.client_type, {})
        return list(by_name.get(identity.instance_name, []))
