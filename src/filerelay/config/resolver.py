"""Layer configuration sources into a validated :class:`FileRelayConfig`."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Mapping, Sequence

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import FileRelayConfig

ENV_PREFIX = "FILERELAY__"
LAYERS = ("file", "environment", "cli")


def resolve_with_precedence(
    *,
    defaults: FileRelayConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> FileRelayConfig:
    """Apply override layers on top of ``defaults``, later layers winning.

    Keys may be nested mappings or dotted paths such as
    ``receiver.write_mode``. Lists (``sender.rules``) are replaced whole.

    Raises:
        ConfigError: If a layer is malformed or the result fails validation.
    """
    merged = defaults.model_dump(mode="json")
    for layer, overrides in zip(LAYERS, (file_overrides, env_overrides, cli_overrides)):
        if overrides is None:
            continue
        if not isinstance(overrides, MappingABC):
            raise ConfigError(f"{layer.capitalize()} overrides must be a mapping.")
        merged = merge_layer(merged, expand_dotted(overrides, layer=layer))

    try:
        return FileRelayConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Turn ``FILERELAY__SECTION__KEY`` variables into nested overrides.

    Values are parsed as YAML so ``true`` and ``8`` arrive typed; anything
    YAML rejects is kept as the raw string.
    """
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not path:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        set_path(overrides, path, value, layer="environment")
    return overrides


def set_path(
    target: dict[str, Any], path: Sequence[str], value: Any, *, layer: str = "cli"
) -> None:
    """Store ``value`` at ``path`` inside ``target``, creating sections on the way.

    Raises:
        ConfigError: If a segment along the path already holds a scalar.
    """
    node = target
    for depth, segment in enumerate(path[:-1], start=1):
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            blocked = ".".join(path[:depth])
            raise ConfigError(
                f"{layer.capitalize()} override {'.'.join(path)} conflicts with value at {blocked}."
            )
        node = child
    node[path[-1]] = value


def expand_dotted(overrides: Mapping[str, Any], *, layer: str) -> dict[str, Any]:
    """Rewrite dotted keys into nested sections."""
    expanded: dict[str, Any] = {}
    for key, value in overrides.items():
        if not isinstance(key, str):
            raise ConfigError(f"{layer.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, layer=layer)
        path = key.split(".")
        existing = _lookup(expanded, path)
        if isinstance(value, dict) and isinstance(existing, dict):
            value = merge_layer(existing, value)
        set_path(expanded, path, value, layer=layer)
    return expanded


def merge_layer(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``overrides`` merged in section by section."""
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, dict):
            merged[key] = merge_layer(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _lookup(data: Mapping[str, Any], path: Sequence[str]) -> Any:
    node: Any = data
    for segment in path:
        if not isinstance(node, MappingABC):
            return None
        node = node.get(segment)
    return node


__all__ = [
    "ENV_PREFIX",
    "collect_env_overrides",
    "expand_dotted",
    "merge_layer",
    "resolve_with_precedence",
    "set_path",
]
