"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from filerelay.config import (
    ConfigError,
    ConfigManager,
    FileRelayConfig,
    resolve_with_precedence,
)
from filerelay.config.models import FilenameRegexRule, HeaderRule
from filerelay.config.resolver import collect_env_overrides
from filerelay.transfer import PostProcessAction, WriteMode


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".filerelay" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "filerelay configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, FileRelayConfig)
    assert config.receiver.maximum_concurrency == 1


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"sender": {"maximum_file_size": 64, "file_pattern": "*.csv"}})

    env = {"FILERELAY__SENDER__MAXIMUM_FILE_SIZE": "128", "FILERELAY__RECEIVER__WRITE_MODE": "x"}
    cli = {"sender.maximum_file_size": 256}

    config = ConfigManager(manager.config_path, env=env).load(cli_overrides=cli)

    assert config.sender.file_pattern == "*.csv"
    # CLI overrides take precedence over environment
    assert config.sender.maximum_file_size == 256
    # Unknown labels fall back to the documented default
    assert config.receiver.write_mode is WriteMode.DIRECT


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=FileRelayConfig(),
            file_overrides={"sender": {"maximum_file_size": "not-an-int"}},
        )


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=FileRelayConfig(),
            file_overrides={"sender": {"sourceDir": "/tmp"}},
        )


def test_rules_are_parsed_by_type() -> None:
    config = resolve_with_precedence(
        defaults=FileRelayConfig(),
        file_overrides={
            "sender": {
                "rules": [
                    {"type": "filename_regex", "pattern": r"\w+\.csv"},
                    {"type": "header_validation", "expected_header": "id,name"},
                ]
            }
        },
    )

    first, second = config.sender.rules
    assert isinstance(first, FilenameRegexRule)
    assert isinstance(second, HeaderRule)
    assert second.lines_to_check == 1


def test_labels_are_parsed_leniently() -> None:
    config = resolve_with_precedence(
        defaults=FileRelayConfig(),
        cli_overrides={
            "sender.post_process_action": "Test",
            "receiver.write_mode": "Create Temp File",
        },
    )

    assert config.sender.post_process_action is PostProcessAction.KEEP_AND_REPROCESS
    assert config.receiver.write_mode is WriteMode.TEMP_THEN_RENAME


def test_env_variables_become_typed_nested_overrides() -> None:
    overrides = collect_env_overrides(
        {
            "FILERELAY__RECEIVER__MAXIMUM_CONCURRENCY": "4",
            "FILERELAY__SENDER__PROCESS_READ_ONLY_FILES": "false",
            "FILERELAY__SENDER__FILE_PATTERN": "[bad",
            "PATH": "/usr/bin",
        }
    )

    assert overrides == {
        "receiver": {"maximum_concurrency": 4},
        "sender": {"process_read_only_files": False, "file_pattern": "[bad"},
    }


def test_set_value_persists_dotted_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"sender": {"file_pattern": "*.csv"}})

    data = manager.set_value("receiver.maximum_concurrency", 3)

    assert data == {"sender": {"file_pattern": "*.csv"}, "receiver": {"maximum_concurrency": 3}}
    config = manager.load(include_env=False)
    assert config.receiver.maximum_concurrency == 3
    assert config.sender.file_pattern == "*.csv"


def test_set_value_rejects_invalid_values_without_writing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()
    before = manager.read_text()

    with pytest.raises(ConfigError, match="Invalid configuration values"):
        manager.set_value("receiver.maximum_concurrency", 0)
    with pytest.raises(ConfigError, match="conflicts with value at sender.file_pattern"):
        manager.set_value("sender.file_pattern.nested", 1)

    assert manager.read_text() == before
