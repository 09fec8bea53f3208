"""Data models shared by the collection and delivery sides of a transfer run."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

LOGGER = logging.getLogger(__name__)

_LABEL_NOISE = re.compile(r"[\s_\-]+")


def _normalise_label(value: str) -> str:
    return _LABEL_NOISE.sub("", value).lower()


class _LabelledEnum(str, Enum):
    """Closed enumeration parsed from external labels with a single fallback."""

    @classmethod
    def _aliases(cls) -> Mapping[str, str]:
        return {}

    @classmethod
    def _default(cls) -> "_LabelledEnum":
        raise NotImplementedError

    @classmethod
    def parse(cls, value: Any, *, warn: bool = True):
        """Return the member matching ``value`` or the documented default.

        Labels are matched case-insensitively with whitespace, hyphens and
        underscores ignored, so ``"Create Temp File"`` and ``TEMP_THEN_RENAME``
        resolve to the same member. ``None`` and empty strings resolve to the
        default silently; any other unknown label logs a warning first.
        """
        if isinstance(value, cls):
            return value
        default = cls._default()
        if value is None:
            return default
        text = _normalise_label(str(value))
        if not text:
            return default
        for member in cls:
            if _normalise_label(member.value) == text:
                return member
        alias = cls._aliases().get(text)
        if alias is not None:
            return cls(alias)
        if warn:
            LOGGER.warning(
                "Unknown %s value %r, defaulting to %s", cls.__name__, value, default.value
            )
        return default


class PostProcessAction(_LabelledEnum):
    """Terminal action applied to a source file after confirmed delivery."""

    ARCHIVE = "ARCHIVE"
    DELETE = "DELETE"
    KEEP_AND_MARK = "KEEP_AND_MARK"
    KEEP_AND_REPROCESS = "KEEP_AND_REPROCESS"

    @classmethod
    def _aliases(cls) -> Mapping[str, str]:
        # Legacy processingMode=Test leaves files in place.
        return {"test": "KEEP_AND_REPROCESS"}

    @classmethod
    def _default(cls) -> "PostProcessAction":
        return cls.ARCHIVE


class WriteMode(_LabelledEnum):
    """How destination content reaches disk."""

    DIRECT = "DIRECT"
    TEMP_THEN_RENAME = "TEMP_THEN_RENAME"

    @classmethod
    def _aliases(cls) -> Mapping[str, str]:
        return {"directly": "DIRECT", "createtempfile": "TEMP_THEN_RENAME"}

    @classmethod
    def _default(cls) -> "WriteMode":
        return cls.DIRECT


class OutputNamingMode(_LabelledEnum):
    """How destination file names are derived from source names."""

    ORIGINAL = "ORIGINAL"
    TIMESTAMPED = "TIMESTAMPED"
    CUSTOM_PATTERN = "CUSTOM_PATTERN"

    @classmethod
    def _aliases(cls) -> Mapping[str, str]:
        return {
            "useoriginal": "ORIGINAL",
            "addtimestamp": "TIMESTAMPED",
            "custom": "CUSTOM_PATTERN",
        }

    @classmethod
    def _default(cls) -> "OutputNamingMode":
        return cls.ORIGINAL


class EmptyFileHandling(_LabelledEnum):
    """Collector policy for zero-byte source files."""

    DO_NOT_CREATE_MESSAGE = "DO_NOT_CREATE_MESSAGE"
    SKIP = "SKIP"
    PROCESS = "PROCESS"

    @classmethod
    def _aliases(cls) -> Mapping[str, str]:
        return {
            "donotcreatemessage": "DO_NOT_CREATE_MESSAGE",
            "skipemptyfiles": "SKIP",
            "processemptyfiles": "PROCESS",
        }

    @classmethod
    def _default(cls) -> "EmptyFileHandling":
        return cls.DO_NOT_CREATE_MESSAGE


class EmptyMessageHandling(_LabelledEnum):
    """Deliverer policy for units carrying no content."""

    WRITE_EMPTY_FILE = "WRITE_EMPTY_FILE"
    SKIP_EMPTY = "SKIP_EMPTY"

    @classmethod
    def _aliases(cls) -> Mapping[str, str]:
        return {"skipemptymessages": "SKIP_EMPTY", "writeemptyfile": "WRITE_EMPTY_FILE"}

    @classmethod
    def _default(cls) -> "EmptyMessageHandling":
        return cls.WRITE_EMPTY_FILE


class ValidationDecision(str, Enum):
    """Verdict produced by the validation chain."""

    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    REJECT_QUARANTINE = "REJECT_QUARANTINE"


class ValidationCategory(str, Enum):
    """Classification of a validation failure."""

    FORMAT = "format"
    SIZE = "size"
    NAME = "name"
    CONTENT = "content"
    PERMISSION = "permission"
    TIMESTAMP = "timestamp"
    LOCK_STATUS = "lock_status"
    UNKNOWN = "unknown"


class ReadStatus(str, Enum):
    """Outcome of reading a source file into memory."""

    READ_SUCCESS = "READ_SUCCESS"
    READ_FAILED = "READ_FAILED"


class DeliveryStatus(str, Enum):
    """Outcome of writing a unit to the destination."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class FileCandidate(BaseModel):
    """A file discovered by a scan that has not yet passed validation.

    Attributes:
        path: Absolute path of the file.
        name: File name component of ``path``.
        size_bytes: Size reported by ``stat`` at scan time.
        last_modified_at: Modification time as an aware UTC datetime.
        mtime_ns: Raw modification stamp used for stability comparisons.
        read_only: Whether the current process lacks write permission.
    """

    path: Path
    name: str
    size_bytes: int = Field(ge=0)
    last_modified_at: datetime
    mtime_ns: int
    read_only: bool = False


class ValidationOutcome(BaseModel):
    """Verdict for one candidate, consumed immediately by the collector."""

    decision: ValidationDecision
    reason: str = ""
    category: ValidationCategory = ValidationCategory.UNKNOWN
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def accept(cls, warnings: Optional[List[str]] = None) -> "ValidationOutcome":
        return cls(decision=ValidationDecision.ACCEPT, warnings=list(warnings or []))

    @classmethod
    def reject(
        cls,
        reason: str,
        category: ValidationCategory,
        *,
        quarantine: bool = False,
        warnings: Optional[List[str]] = None,
    ) -> "ValidationOutcome":
        decision = (
            ValidationDecision.REJECT_QUARANTINE if quarantine else ValidationDecision.REJECT
        )
        return cls(
            decision=decision,
            reason=reason,
            category=category,
            warnings=list(warnings or []),
        )

    @property
    def accepted(self) -> bool:
        return self.decision is ValidationDecision.ACCEPT

    @property
    def should_quarantine(self) -> bool:
        return self.decision is ValidationDecision.REJECT_QUARANTINE


class TransferUnit(BaseModel):
    """In-memory unit handed from the collector to the deliverer.

    The model is frozen so content cannot change after the single read.

    Attributes:
        file_name: Source file name.
        original_path: Absolute path of the source file.
        content: Raw bytes read from the source, ``None`` when the read failed.
        size_bytes: Number of bytes read.
        post_process_action: Action to apply once delivery succeeds.
        archive_directory: Destination for the ARCHIVE action.
        add_timestamp: Whether archived files receive a timestamp suffix.
        status: Whether the read succeeded.
        error_message: First error encountered while reading.
        warnings: Warning-level validation messages.
    """

    model_config = ConfigDict(frozen=True)

    file_name: str
    original_path: Path
    content: Optional[bytes] = None
    size_bytes: int = 0
    post_process_action: PostProcessAction = PostProcessAction.ARCHIVE
    archive_directory: Optional[Path] = None
    add_timestamp: bool = False
    status: ReadStatus = ReadStatus.READ_SUCCESS
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @property
    def readable(self) -> bool:
        return self.status is ReadStatus.READ_SUCCESS and self.content is not None


class DeliveryResult(BaseModel):
    """Outcome of delivering one unit to the destination directory."""

    file_name: str
    output_file_name: Optional[str] = None
    output_path: Optional[Path] = None
    size_bytes: int = 0
    status: DeliveryStatus
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is DeliveryStatus.SUCCESS


class PostProcessOutcome(BaseModel):
    """Record of the post-processing step applied to one source file."""

    file_name: str
    source_path: Path
    action: PostProcessAction
    applied: bool
    detail: str = ""
    new_path: Optional[Path] = None


__all__ = [
    "PostProcessAction",
    "WriteMode",
    "OutputNamingMode",
    "EmptyFileHandling",
    "EmptyMessageHandling",
    "ValidationDecision",
    "ValidationCategory",
    "ReadStatus",
    "DeliveryStatus",
    "FileCandidate",
    "ValidationOutcome",
    "TransferUnit",
    "DeliveryResult",
    "PostProcessOutcome",
]
