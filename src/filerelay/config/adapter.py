"""Translate flat adapter-style settings into a :class:`FileRelayConfig`.

Flow definitions store file adapter options as a flat camelCase mapping
(``sourceDirectory``, ``writeMode``, ...). This module is the single boundary
where those keys and their string labels are mapped onto the typed model.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from .exceptions import ConfigError
from .models import FileRelayConfig
from .resolver import resolve_with_precedence

LOGGER = logging.getLogger(__name__)

_ADAPTER_KEYS: dict[str, tuple[str, str]] = {
    "sourceDirectory": ("sender", "source_directory"),
    "filePattern": ("sender", "file_pattern"),
    "exclusionMask": ("sender", "exclusion_mask"),
    "processReadOnlyFiles": ("sender", "process_read_only_files"),
    "maximumFileSize": ("sender", "maximum_file_size"),
    "msecsToWaitBeforeModificationCheck": ("sender", "msecs_to_wait_before_modification_check"),
    "emptyFileHandling": ("sender", "empty_file_handling"),
    "postProcessAction": ("sender", "post_process_action"),
    "processingMode": ("sender", "post_process_action"),
    "archiveDirectory": ("sender", "archive_directory"),
    "addTimestamp": ("sender", "add_timestamp"),
    "archiveFaultySourceFiles": ("sender", "archive_faulty_source_files"),
    "archiveErrorDirectory": ("sender", "archive_error_directory"),
    "targetDirectory": ("receiver", "target_directory"),
    "outputFilenameMode": ("receiver", "output_filename_mode"),
    "customFilenamePattern": ("receiver", "custom_filename_pattern"),
    "writeMode": ("receiver", "write_mode"),
    "emptyMessageHandling": ("receiver", "empty_message_handling"),
    "maximumConcurrency": ("receiver", "maximum_concurrency"),
}

_RULE_TYPES = {
    "filename_regex",
    "file_size_range",
    "content_contains",
    "content_excludes",
    "header_validation",
    "line_count",
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def load_adapter_settings(
    settings: Mapping[str, Any],
    *,
    base: FileRelayConfig | None = None,
) -> FileRelayConfig:
    """Build a configuration from flat adapter settings.

    ``postProcessAction`` wins over the legacy ``processingMode`` when both are
    present. Unknown keys are ignored with a debug message so flow definitions
    can carry options for other steps.

    Args:
        settings: Flat camelCase mapping as stored on a file adapter.
        base: Optional configuration supplying values for absent keys.

    Returns:
        FileRelayConfig: Validated configuration.

    Raises:
        ConfigError: If the mapped values fail validation.
    """
    if not isinstance(settings, Mapping):
        raise ConfigError("Adapter settings must be a mapping.")

    overrides: dict[str, dict[str, Any]] = {"sender": {}, "receiver": {}}
    for key, value in settings.items():
        if key == "customValidationRules":
            overrides["sender"]["rules"] = _convert_rules(value)
            continue
        target = _ADAPTER_KEYS.get(key)
        if target is None:
            LOGGER.debug("Ignoring unrecognised adapter setting %s", key)
            continue
        if key == "processingMode" and "postProcessAction" in settings:
            continue
        section, field = target
        overrides[section][field] = value

    return resolve_with_precedence(
        defaults=base or FileRelayConfig(),
        cli_overrides=overrides,
    )


def _convert_rules(raw_rules: Any) -> list[dict[str, Any]]:
    if raw_rules is None:
        return []
    if not isinstance(raw_rules, list):
        raise ConfigError("customValidationRules must be a list of rule objects.")

    rules: list[dict[str, Any]] = []
    for raw in raw_rules:
        if not isinstance(raw, Mapping):
            LOGGER.warning("Custom validation rule must be a configuration object: %r", raw)
            continue
        rule_type = str(raw.get("type") or "").lower()
        if rule_type not in _RULE_TYPES:
            LOGGER.warning("Unknown custom validation rule type %r; rule ignored", raw.get("type"))
            continue
        rule: dict[str, Any] = {"type": rule_type}
        for key, value in raw.items():
            if key in ("type", "required"):
                continue
            rule[_snake(key)] = value
        if rule_type == "filename_regex" and "severity" not in rule:
            rule["severity"] = "error" if raw.get("required") is True else "warning"
        rules.append(rule)
    return rules


__all__ = ["load_adapter_settings"]
