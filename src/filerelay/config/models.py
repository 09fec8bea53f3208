"""Configuration models describing filerelay settings."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from filerelay.transfer.models import (
    EmptyFileHandling,
    EmptyMessageHandling,
    OutputNamingMode,
    PostProcessAction,
    WriteMode,
)


class FileRelayBaseModel(BaseModel):
    """Shared configuration for filerelay Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class _RuleBase(FileRelayBaseModel):
    """Fields common to every custom validation rule.

    Attributes:
        severity: ``error`` rejects the file, ``warning`` only annotates it.
        error_message: Optional message replacing the rule's default text.
    """

    severity: Literal["error", "warning"] = "error"
    error_message: Optional[str] = None


class FilenameRegexRule(_RuleBase):
    """Require the file name to fully match ``pattern``."""

    type: Literal["filename_regex"] = "filename_regex"
    pattern: str = ""


class FileSizeRangeRule(_RuleBase):
    """Require the file size to fall within ``[min_size, max_size]`` bytes."""

    type: Literal["file_size_range"] = "file_size_range"
    min_size: Optional[int] = None
    max_size: Optional[int] = None


class ContentContainsRule(_RuleBase):
    """Require the decoded content to contain ``text``."""

    type: Literal["content_contains"] = "content_contains"
    text: str = ""
    case_insensitive: bool = False


class ContentExcludesRule(_RuleBase):
    """Reject content containing ``text``."""

    type: Literal["content_excludes"] = "content_excludes"
    text: str = ""
    case_insensitive: bool = False


class HeaderRule(_RuleBase):
    """Require the first ``lines_to_check`` lines to start with ``expected_header``."""

    type: Literal["header_validation"] = "header_validation"
    expected_header: str = ""
    lines_to_check: int = 1


class LineCountRule(_RuleBase):
    """Require the number of lines to fall within ``[min_lines, max_lines]``."""

    type: Literal["line_count"] = "line_count"
    min_lines: Optional[int] = None
    max_lines: Optional[int] = None


ValidationRule = Annotated[
    Union[
        FilenameRegexRule,
        FileSizeRangeRule,
        ContentContainsRule,
        ContentExcludesRule,
        HeaderRule,
        LineCountRule,
    ],
    Field(discriminator="type"),
]


class SenderOptions(FileRelayBaseModel):
    """Collection-side options.

    Attributes:
        source_directory: Directory scanned for candidate files.
        file_pattern: Include glob applied to file names.
        exclusion_mask: Glob whose matches are skipped without quarantine.
        process_read_only_files: Whether read-only files are collected.
        maximum_file_size: Upper size bound in bytes, ``0`` for unlimited.
        msecs_to_wait_before_modification_check: Stability window, ``0`` disables it.
        empty_file_handling: Policy for zero-byte files.
        post_process_action: Action applied to sources after delivery.
        archive_directory: Destination for the ARCHIVE action.
        add_timestamp: Whether archived files receive a timestamp suffix.
        archive_faulty_source_files: Whether rejected files are quarantined.
        archive_error_directory: Quarantine directory.
        rules: Custom validation rules evaluated against file content.
    """

    source_directory: Optional[Path] = None
    file_pattern: str = "*"
    exclusion_mask: Optional[str] = None
    process_read_only_files: bool = False
    maximum_file_size: int = Field(default=0, ge=0)
    msecs_to_wait_before_modification_check: int = Field(default=0, ge=0)
    empty_file_handling: EmptyFileHandling = EmptyFileHandling.DO_NOT_CREATE_MESSAGE
    post_process_action: PostProcessAction = PostProcessAction.ARCHIVE
    archive_directory: Optional[Path] = None
    add_timestamp: bool = False
    archive_faulty_source_files: bool = False
    archive_error_directory: Optional[Path] = None
    rules: List[ValidationRule] = Field(default_factory=list)

    @field_validator("empty_file_handling", mode="before")
    @classmethod
    def _parse_empty_file_handling(cls, value: object) -> EmptyFileHandling:
        return EmptyFileHandling.parse(value)

    @field_validator("post_process_action", mode="before")
    @classmethod
    def _parse_post_process_action(cls, value: object) -> PostProcessAction:
        return PostProcessAction.parse(value)

    @field_validator("file_pattern", mode="before")
    @classmethod
    def _default_pattern(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "*"
        return value

    @field_validator("exclusion_mask", mode="before")
    @classmethod
    def _blank_mask(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ReceiverOptions(FileRelayBaseModel):
    """Delivery-side options.

    Attributes:
        target_directory: Directory receiving delivered files.
        output_filename_mode: How destination names are derived.
        custom_filename_pattern: Template used by the custom naming mode.
        write_mode: Direct writes or temp-file-then-rename.
        empty_message_handling: Whether empty units produce empty files.
        maximum_concurrency: Upper bound on concurrent destination writes.
    """

    target_directory: Optional[Path] = None
    output_filename_mode: OutputNamingMode = OutputNamingMode.ORIGINAL
    custom_filename_pattern: Optional[str] = None
    write_mode: WriteMode = WriteMode.DIRECT
    empty_message_handling: EmptyMessageHandling = EmptyMessageHandling.WRITE_EMPTY_FILE
    maximum_concurrency: int = Field(default=1, ge=1)

    @field_validator("output_filename_mode", mode="before")
    @classmethod
    def _parse_naming_mode(cls, value: object) -> OutputNamingMode:
        return OutputNamingMode.parse(value)

    @field_validator("write_mode", mode="before")
    @classmethod
    def _parse_write_mode(cls, value: object) -> WriteMode:
        return WriteMode.parse(value)

    @field_validator("empty_message_handling", mode="before")
    @classmethod
    def _parse_empty_message_handling(cls, value: object) -> EmptyMessageHandling:
        return EmptyMessageHandling.parse(value)


class WatchOptions(FileRelayBaseModel):
    """Settings for continuous, event-triggered runs.

    Attributes:
        debounce_seconds: Quiet period after the last event before a run starts.
        error_backoff_seconds: Initial delay after a failed run.
        max_error_backoff_seconds: Upper bound for the exponential backoff.
    """

    debounce_seconds: float = 2.0
    error_backoff_seconds: float = 1.0
    max_error_backoff_seconds: float = 60.0


class LoggingSettings(FileRelayBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional path of a rotating log file.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
        audit_log: Optional path of the JSONL transfer audit log.
    """

    level: str = "WARNING"
    file: Optional[Path] = None
    max_size_mb: int = 100
    backup_count: int = 5
    audit_log: Optional[Path] = None


class CLIOptions(FileRelayBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class FileRelayConfig(FileRelayBaseModel):
    """Top-level configuration struct for filerelay.

    Attributes:
        sender: Collection-side options.
        receiver: Delivery-side options.
        watch: Watch service settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    sender: SenderOptions = Field(default_factory=SenderOptions)
    receiver: ReceiverOptions = Field(default_factory=ReceiverOptions)
    watch: WatchOptions = Field(default_factory=WatchOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "FileRelayBaseModel",
    "ValidationRule",
    "FilenameRegexRule",
    "FileSizeRangeRule",
    "ContentContainsRule",
    "ContentExcludesRule",
    "HeaderRule",
    "LineCountRule",
    "SenderOptions",
    "ReceiverOptions",
    "WatchOptions",
    "LoggingSettings",
    "CLIOptions",
    "FileRelayConfig",
]
