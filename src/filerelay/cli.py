"""Command line interface for filerelay."""

from __future__ import annotations

import difflib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from filerelay.audit import CorruptAuditLogError, JsonlAuditLog, TransferEventKind
from filerelay.config import (
    ConfigError,
    ConfigManager,
    FileRelayConfig,
    load_adapter_settings,
    resolve_with_precedence,
)
from filerelay.logging_setup import configure_logging
from filerelay.transfer import RunReport, TransferError, TransferPipeline
from filerelay.watch import WatchService

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """

    if quiet and mode != "error":
        return

    important_modes = {"summary", "warning", "error"}
    if summary_only and mode not in important_modes:
        return

    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Source directory relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _resolve_output_modes(
    ctx: click.Context,
    config: FileRelayConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Combine CLI flags with configured defaults into (quiet, summary_only)."""

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _load_runtime_config(
    *,
    source: str | None,
    target: str | None,
    adapter_settings: str | None,
) -> FileRelayConfig:
    """Load the layered configuration and apply command-line directory overrides.

    Raises:
        ConfigError: If any configuration source is invalid.
    """
    manager = ConfigManager()
    manager.ensure_exists()
    config = manager.load()

    if adapter_settings:
        try:
            raw = yaml.safe_load(Path(adapter_settings).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Unable to read adapter settings: {exc}") from exc
        config = load_adapter_settings(raw, base=config)

    overrides: dict[str, Any] = {}
    if source:
        overrides["sender.source_directory"] = str(Path(source).expanduser().resolve())
    if target:
        overrides["receiver.target_directory"] = str(Path(target).expanduser().resolve())
    if overrides:
        config = resolve_with_precedence(defaults=config, cli_overrides=overrides)
    return config


def _emit_report(
    report: RunReport,
    *,
    command: str,
    json_output: bool,
    quiet: bool,
    summary_only: bool,
) -> None:
    """Render output for a completed transfer run."""

    if json_output:
        console.print_json(data=report.payload())
        return

    if report.deliveries and not quiet and not summary_only:
        table = Table(title=f"Run {report.run_id}", show_lines=False)
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Destination")
        table.add_column("Bytes", justify="right")
        for result in report.deliveries:
            table.add_row(
                result.file_name,
                result.status.value,
                str(result.output_path or ""),
                str(result.size_bytes),
            )
        console.print(table)

    for name, reason in report.rejected.items():
        _emit_message(
            f"[yellow]Rejected {escape(name)}: {escape(reason)}[/yellow]",
            mode="detail",
            quiet=quiet,
            summary_only=summary_only,
        )

    if report.quarantined:
        _emit_message(
            f"[yellow]{len(report.quarantined)} file(s) moved to the error directory.[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )

    failed_post = [outcome for outcome in report.post_processed if not outcome.applied]
    for outcome in failed_post:
        _emit_message(
            f"[yellow]Post-processing ({outcome.action.value}) not applied to "
            f"{escape(outcome.file_name)}: {escape(outcome.detail)}[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )

    if report.errors:
        _emit_message(
            "[red]Errors encountered:[/red]",
            mode="error",
            quiet=quiet,
            summary_only=summary_only,
        )
        for name, message in report.errors.items():
            _emit_message(
                f"  - {escape(name)}: {escape(message)}",
                mode="error",
                quiet=quiet,
                summary_only=summary_only,
            )

    if report.cancelled:
        _emit_message(
            "[yellow]Run cancelled; remaining files will be picked up next time.[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )

    _emit_message(
        _format_summary_line(command, report.source_directory or "-", report.counts()),
        mode="summary",
        quiet=quiet,
        summary_only=summary_only,
    )


_directory_options = [
    click.option(
        "--source",
        type=click.Path(file_okay=False, path_type=str),
        help="Override the configured source directory.",
    ),
    click.option(
        "--target",
        type=click.Path(file_okay=False, path_type=str),
        help="Override the configured target directory.",
    ),
    click.option(
        "--adapter-settings",
        type=click.Path(exists=True, dir_okay=False, path_type=str),
        help="YAML or JSON file with flat adapter options (sourceDirectory, writeMode, ...).",
    ),
    click.option("--log-level", type=str, help="Override the configured logging level."),
    click.option("--json", "json_output", is_flag=True, help="Emit JSON run reports."),
    click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines."),
    click.option("--quiet", is_flag=True, help="Suppress non-error output."),
]


def _with_directory_options(func: Any) -> Any:
    for option in reversed(_directory_options):
        func = option(func)
    return func


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="filerelay")
def cli() -> None:
    """filerelay moves files from a source to a target directory reliably."""


@cli.command()
@_with_directory_options
@click.pass_context
def run(
    ctx: click.Context,
    source: str | None,
    target: str | None,
    adapter_settings: str | None,
    log_level: str | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Run one transfer pass: collect, deliver and post-process.

    Args:
        ctx: Click context used for parameter source inspection.
        source: Optional source directory override.
        target: Optional target directory override.
        adapter_settings: Optional file with flat adapter options.
        log_level: Optional logging level override.
        json_output: If True, emit the run report as JSON.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.

    Raises:
        click.ClickException: If configuration is invalid or a directory is inaccessible.
    """

    try:
        config = _load_runtime_config(
            source=source, target=target, adapter_settings=adapter_settings
        )
        configure_logging(config.logging, level_override=log_level)
    except (ConfigError, ValueError) as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )

    try:
        report = TransferPipeline.from_config(config).run()
    except TransferError as exc:
        _handle_cli_error(
            str(exc),
            code="transfer_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )
        return

    _emit_report(
        report,
        command="Run",
        json_output=json_output,
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@_with_directory_options
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--once", is_flag=True, help="Process current contents once and exit.")
@click.pass_context
def watch(
    ctx: click.Context,
    source: str | None,
    target: str | None,
    adapter_settings: str | None,
    log_level: str | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
    debounce: float | None,
    once: bool,
) -> None:
    """Monitor the source directory and run a transfer after each burst of changes.

    Args:
        ctx: Click context for parameter source inspection.
        source: Optional source directory override.
        target: Optional target directory override.
        adapter_settings: Optional file with flat adapter options.
        log_level: Optional logging level override.
        json_output: When True, emit JSON payloads instead of text.
        summary_mode: When True, restrict output to summary/warning lines.
        quiet: When True, suppress non-error output entirely.
        debounce: Optional debounce override in seconds.
        once: When True, process current contents once and exit.

    Raises:
        click.ClickException: If option combinations or configuration are invalid.
    """

    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    try:
        config = _load_runtime_config(
            source=source, target=target, adapter_settings=adapter_settings
        )
        configure_logging(config.logging, level_override=log_level)
    except (ConfigError, ValueError) as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )

    try:
        service = WatchService(config, debounce_override=debounce)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    def _emit(report: RunReport) -> None:
        _emit_report(
            report,
            command="Watch",
            json_output=json_output,
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    if once:
        try:
            _emit(service.process_once())
        except TransferError as exc:
            _handle_cli_error(
                str(exc), code="transfer_error", json_output=json_output, original=exc
            )
        return

    if not json_output:
        _emit_message(
            f"[cyan]Watching {service.source}. Press Ctrl+C to stop.[/cyan]",
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    try:
        service.watch(_emit)
    except KeyboardInterrupt:
        service.stop()
        if not json_output:
            _emit_message(
                "[yellow]Watch stopped by user request.[/yellow]",
                mode="summary",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
    except RuntimeError as exc:
        _handle_cli_error(
            str(exc), code="watch_runtime_error", json_output=json_output, original=exc
        )


@cli.command()
@click.option(
    "--kind",
    type=click.Choice([kind.value for kind in TransferEventKind]),
    help="Only show events of this kind.",
)
@click.option("--run-id", type=str, help="Only show events from this run.")
@click.option("--since", type=click.DateTime(), help="Only show events after this time (UTC).")
@click.option("--limit", type=click.IntRange(min=1), help="Show at most this many events.")
@click.option("--json", "json_output", is_flag=True, help="Emit events as JSON.")
def audit(
    kind: str | None,
    run_id: str | None,
    since: datetime | None,
    limit: int | None,
    json_output: bool,
) -> None:
    """Show entries from the configured transfer audit log.

    Raises:
        click.ClickException: If no audit log is configured or it cannot be parsed.
    """

    try:
        config = ConfigManager().load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    if config.logging.audit_log is None:
        _handle_cli_error(
            "No audit log configured; set logging.audit_log first.",
            code="audit_not_configured",
            json_output=json_output,
        )
        return

    if since is not None and since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)

    try:
        entries = JsonlAuditLog(config.logging.audit_log).read_entries(
            since=since,
            kind=TransferEventKind(kind) if kind else None,
            run_id=run_id,
            limit=limit,
        )
    except CorruptAuditLogError as exc:
        _handle_cli_error(str(exc), code="audit_corrupt", json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data={"events": [entry.model_dump(mode="json") for entry in entries]})
        return

    if not entries:
        console.print("[yellow]No audit events matched.[/yellow]")
        return

    table = Table(title="Transfer audit log")
    table.add_column("Timestamp")
    table.add_column("Kind")
    table.add_column("File")
    table.add_column("Detail")
    for entry in entries:
        table.add_row(
            entry.timestamp.isoformat(),
            entry.kind.value,
            entry.file_name,
            entry.detail or str(entry.destination or ""),
        )
    console.print(table)


@cli.group()
def config() -> None:
    """Manage filerelay configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        manager.set_value(key, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key.strip()}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        manager.save(parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
