"""CLI tests for transfer commands."""

from __future__ import annotations

import json
import os
from pathlib import Path

import yaml
from click.testing import CliRunner

from filerelay.cli import cli
from filerelay.config import ConfigManager


def _env_with_home(tmp_path: Path) -> dict[str, str]:
    env = dict(os.environ)
    env["HOME"] = str(tmp_path / "home")
    return env


def _dirs(tmp_path: Path) -> tuple[Path, Path]:
    source = tmp_path / "in"
    source.mkdir()
    (source / "a.txt").write_text("alpha", encoding="utf-8")
    return source, tmp_path / "out"


def _save_config(tmp_path: Path, data: dict) -> None:
    manager = ConfigManager(config_path=tmp_path / "home" / ".filerelay" / "config.yaml")
    manager.save(data)


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "filerelay moves files" in result.output
    for command in ("run", "watch", "audit", "config"):
        assert command in result.output


def test_cli_run_json_reports_counts(tmp_path: Path) -> None:
    source, target = _dirs(tmp_path)
    _save_config(tmp_path, {"sender": {"post_process_action": "DELETE"}})
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", "--source", str(source), "--target", str(target), "--json"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["counts"]["delivered"] == 1
    assert payload["deliveries"][0]["status"] == "SUCCESS"
    assert payload["context"]["source_directory"].endswith("/in")
    assert (target / "a.txt").read_text(encoding="utf-8") == "alpha"
    assert not (source / "a.txt").exists()


def test_cli_run_summary_mode(tmp_path: Path) -> None:
    source, target = _dirs(tmp_path)
    _save_config(tmp_path, {"sender": {"post_process_action": "KEEP_AND_REPROCESS"}})
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", "--source", str(source), "--target", str(target), "--summary"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    assert "Run summary for" in result.stdout
    assert "delivered=1" in result.stdout


def test_cli_run_with_adapter_settings(tmp_path: Path) -> None:
    source, target = _dirs(tmp_path)
    settings = tmp_path / "adapter.yaml"
    settings.write_text(
        yaml.safe_dump(
            {
                "sourceDirectory": str(source),
                "targetDirectory": str(target),
                "processingMode": "Test",
                "outputFilenameMode": "Custom",
                "customFilenamePattern": "copy_{original_name}{extension}",
            }
        ),
        encoding="utf-8",
    )
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", "--adapter-settings", str(settings), "--json"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    assert (target / "copy_a.txt").exists()
    assert (source / "a.txt").exists()


def test_cli_run_missing_source_reports_json_error(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli,
        [
            "run",
            "--source",
            str(tmp_path / "missing"),
            "--target",
            str(tmp_path / "out"),
            "--json",
        ],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "transfer_error"
    assert "Source directory not accessible" in payload["error"]["message"]


def test_cli_run_rejects_json_with_quiet(tmp_path: Path) -> None:
    source, target = _dirs(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["run", "--source", str(source), "--target", str(target), "--json", "--quiet"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code != 0
    assert "--json cannot be combined with --quiet" in result.output


def test_cli_watch_once_json(tmp_path: Path) -> None:
    source, target = _dirs(tmp_path)
    _save_config(tmp_path, {"sender": {"post_process_action": "DELETE"}})
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["watch", "--source", str(source), "--target", str(target), "--once", "--json"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["counts"]["delivered"] == 1
    assert (target / "a.txt").exists()


def test_cli_watch_rejects_non_positive_debounce(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli, ["watch", "--once", "--debounce", "0"], env=_env_with_home(tmp_path)
    )

    assert result.exit_code != 0
    assert "--debounce must be greater than zero" in result.output


def test_cli_audit_lists_events_from_run(tmp_path: Path) -> None:
    source, target = _dirs(tmp_path)
    audit_log = tmp_path / "audit.jsonl"
    _save_config(
        tmp_path,
        {
            "sender": {"post_process_action": "KEEP_AND_REPROCESS"},
            "logging": {"audit_log": str(audit_log)},
        },
    )
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    run_result = runner.invoke(
        cli, ["run", "--source", str(source), "--target", str(target), "--quiet"], env=env
    )
    assert run_result.exit_code == 0, run_result.output

    result = runner.invoke(cli, ["audit", "--kind", "delivered", "--json"], env=env)

    assert result.exit_code == 0, result.output
    events = json.loads(result.stdout)["events"]
    assert [event["file_name"] for event in events] == ["a.txt"]
    assert events[0]["kind"] == "delivered"


def test_cli_audit_requires_configured_log(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["audit"], env=_env_with_home(tmp_path))

    assert result.exit_code != 0
    assert "No audit log configured" in result.output
