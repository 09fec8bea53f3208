"""Configuration management for filerelay."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .adapter import load_adapter_settings
from .exceptions import ConfigError
from .models import FileRelayConfig
from .resolver import collect_env_overrides, resolve_with_precedence, set_path

DEFAULT_CONFIG_PATH = Path("~/.filerelay/config.yaml")
_CONFIG_HEADER = (
    "# filerelay configuration file\n"
    "# Sections: sender, receiver, watch, logging, cli. Edit with `filerelay config edit`\n"
    "# or `filerelay config set KEY --value VALUE`; FILERELAY__SECTION__KEY overrides it.\n"
)


class ConfigManager:
    """Read and write the YAML config file and resolve it with env and CLI layers."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
    ) -> FileRelayConfig:
        """Resolve defaults, the config file, ``FILERELAY__*`` variables and CLI overrides.

        The file is created with defaults on first use.

        Raises:
            ConfigError: If the file is not a YAML mapping or a value is invalid.
        """
        self.ensure_exists()
        return resolve_with_precedence(
            defaults=FileRelayConfig(),
            file_overrides=self.read_overrides(),
            env_overrides=collect_env_overrides(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def read_overrides(self) -> dict[str, Any]:
        """Return the mapping stored in the config file (empty when absent).

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        if not self._config_path.exists():
            return {}
        try:
            raw = yaml.safe_load(self.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def set_value(self, key: str, value: Any) -> dict[str, Any]:
        """Validate and persist one dotted ``key``, returning the new file mapping.

        Raises:
            ConfigError: If the key is empty or the updated file would not validate.
        """
        path = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not path:
            raise ConfigError("KEY must specify a dotted path such as 'receiver.write_mode'.")
        data = self.read_overrides()
        set_path(data, path, value)
        self.save(data)
        return data

    def save(self, data: FileRelayConfig | Mapping[str, Any]) -> None:
        """Validate ``data`` and write it with a header and update timestamp.

        Raises:
            ConfigError: If ``data`` does not produce a valid configuration.
        """
        if isinstance(data, FileRelayConfig):
            payload = data.model_dump(mode="json")
        else:
            payload = dict(data)
            resolve_with_precedence(defaults=FileRelayConfig(), file_overrides=payload)

        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = yaml.safe_dump(payload, sort_keys=False)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def ensure_exists(self) -> Path:
        """Write a default config file if none exists and return its path."""
        if not self._config_path.exists():
            self.save(FileRelayConfig())
        return self._config_path

    def read_text(self) -> str:
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "FileRelayConfig",
    "resolve_with_precedence",
    "load_adapter_settings",
    "ConfigError",
]
