"""Sender side of a transfer run: scan, validate and read source files."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

from filerelay.audit import AuditTrail, StepRecorder, TransferEventKind, record_file_processed

from .context import ExecutionContext
from .discovery import DirectoryScanner
from .errors import SourceNotAccessibleError
from .models import FileCandidate, ReadStatus, TransferUnit, ValidationOutcome
from .quarantine import ErrorQuarantine
from .stability import StabilityGate
from .validation import ValidationChain

if TYPE_CHECKING:
    from filerelay.config.models import SenderOptions

LOGGER = logging.getLogger(__name__)

READ_FOR_PROCESSING = "READ_FOR_PROCESSING"


@dataclass(slots=True)
class CollectionResult:
    """Summary of one collection pass.

    Attributes:
        units: Units handed to the deliverer, including ``READ_FAILED`` ones.
        discovered: Number of candidates found by the scan.
        rejected: Rejection reason per file name.
        quarantined: New locations of quarantined files.
        errors: First read error per file name.
        cancelled: Whether a stop request cut the pass short.
    """

    units: list[TransferUnit] = field(default_factory=list)
    discovered: int = 0
    rejected: Dict[str, str] = field(default_factory=dict)
    quarantined: list[Path] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def collected(self) -> list[TransferUnit]:
        return [unit for unit in self.units if unit.readable]


class FileCollector:
    """Collect accepted source files into in-memory transfer units.

    Candidates are processed in name order. Required checks run first so cheap
    rejections never wait on the stability window, which is then observed once
    for every remaining candidate. Each accepted file is read exactly once and
    custom rules are evaluated against those bytes.
    """

    def __init__(
        self,
        options: "SenderOptions",
        *,
        scanner: Optional[DirectoryScanner] = None,
        validator: Optional[ValidationChain] = None,
        quarantine: Optional[ErrorQuarantine] = None,
        audit: Optional[AuditTrail] = None,
        step_recorder: Optional[StepRecorder] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.options = options
        self.stop_event = stop_event or threading.Event()
        self.scanner = scanner or DirectoryScanner(file_pattern=options.file_pattern)
        self.validator = validator or ValidationChain(
            options,
            stability=StabilityGate(
                options.msecs_to_wait_before_modification_check, stop_event=self.stop_event
            ),
        )
        self.quarantine = quarantine or ErrorQuarantine(
            options.archive_error_directory, enabled=options.archive_faulty_source_files
        )
        self.audit = audit or AuditTrail()
        self.step_recorder = step_recorder

    def collect(self, context: ExecutionContext) -> CollectionResult:
        """Run one collection pass and publish ``filesToProcess``.

        Args:
            context: Execution context of the current run.

        Returns:
            CollectionResult: Units and per-file outcomes.

        Raises:
            SourceNotAccessibleError: If the source directory is unset, missing,
                or not a directory.
        """
        result = CollectionResult()
        context.files_to_process = []
        if self.options.source_directory is None:
            raise SourceNotAccessibleError("Source directory not configured")

        candidates = self.scanner.scan_sorted(self.options.source_directory)
        result.discovered = len(candidates)
        LOGGER.info(
            "Found %d candidate(s) in %s", len(candidates), self.options.source_directory
        )

        pending: list[tuple[FileCandidate, list[str]]] = []
        for candidate in candidates:
            if self._cancelled(result):
                break
            self.audit.emit(
                TransferEventKind.DISCOVERED,
                candidate.name,
                source_path=candidate.path,
                size_bytes=candidate.size_bytes,
            )
            outcome = self.validator.check_required(candidate)
            if outcome.accepted:
                pending.append((candidate, outcome.warnings))
            else:
                self._reject(candidate, outcome, result)

        if not result.cancelled and pending:
            stable_paths = {
                candidate.path
                for candidate in self.validator.stability.filter_stable(
                    [candidate for candidate, _ in pending]
                )
            }
            if self._cancelled(result):
                pending = []
            for candidate, warnings in pending:
                if candidate.path in stable_paths:
                    continue
                self._reject(
                    candidate, self.validator.unstable(candidate, warnings=warnings), result
                )
            pending = [entry for entry in pending if entry[0].path in stable_paths]

        for candidate, warnings in pending:
            if self._cancelled(result):
                break
            unit = self._read(candidate, warnings, result)
            if unit is not None:
                result.units.append(unit)

        context.files_to_process = result.units
        LOGGER.info(
            "Collected %d file(s), rejected %d, read errors %d",
            len(result.collected),
            len(result.rejected),
            len(result.errors),
        )
        return result

    # Internal helpers -------------------------------------------------

    def _cancelled(self, result: CollectionResult) -> bool:
        if self.stop_event.is_set():
            if not result.cancelled:
                LOGGER.info("Collection cancelled; remaining files left for the next run")
            result.cancelled = True
        return result.cancelled

    def _read(
        self,
        candidate: FileCandidate,
        warnings: list[str],
        result: CollectionResult,
    ) -> Optional[TransferUnit]:
        options = self.options
        try:
            content = candidate.path.read_bytes()
        except OSError as exc:
            message = f"Failed to read {candidate.name}: {exc}"
            LOGGER.error("Failed to read %s: %s", candidate.name, exc)
            result.errors.setdefault(candidate.name, message)
            self.audit.emit(
                TransferEventKind.READ_FAILED,
                candidate.name,
                source_path=candidate.path,
                detail=message,
            )
            return TransferUnit(
                file_name=candidate.name,
                original_path=candidate.path,
                post_process_action=options.post_process_action,
                archive_directory=options.archive_directory,
                add_timestamp=options.add_timestamp,
                status=ReadStatus.READ_FAILED,
                error_message=message,
                warnings=warnings,
            )

        outcome = self.validator.check_content(candidate, content, warnings=warnings)
        if not outcome.accepted:
            self._reject(candidate, outcome, result)
            return None

        self.audit.emit(
            TransferEventKind.VALIDATED,
            candidate.name,
            source_path=candidate.path,
            size_bytes=len(content),
            detail="; ".join(outcome.warnings),
        )
        unit = TransferUnit(
            file_name=candidate.name,
            original_path=candidate.path,
            content=content,
            size_bytes=len(content),
            post_process_action=options.post_process_action,
            archive_directory=options.archive_directory,
            add_timestamp=options.add_timestamp,
            warnings=outcome.warnings,
        )
        record_file_processed(
            self.step_recorder, unit.file_name, READ_FOR_PROCESSING, unit.size_bytes
        )
        self.audit.emit(
            TransferEventKind.COLLECTED,
            unit.file_name,
            source_path=unit.original_path,
            size_bytes=unit.size_bytes,
        )
        LOGGER.debug("Read %d bytes from %s", unit.size_bytes, candidate.path)
        return unit

    def _reject(
        self,
        candidate: FileCandidate,
        outcome: ValidationOutcome,
        result: CollectionResult,
    ) -> None:
        LOGGER.info("Rejected %s: %s", candidate.name, outcome.reason)
        result.rejected[candidate.name] = outcome.reason
        self.audit.emit(
            TransferEventKind.REJECTED,
            candidate.name,
            source_path=candidate.path,
            size_bytes=candidate.size_bytes,
            detail=f"{outcome.category.value}: {outcome.reason}",
        )
        if not outcome.should_quarantine:
            return
        new_path = self.quarantine.quarantine(candidate.path, outcome.reason)
        if new_path is None:
            return
        result.quarantined.append(new_path)
        self.audit.emit(
            TransferEventKind.QUARANTINED,
            candidate.name,
            source_path=candidate.path,
            destination=new_path,
            size_bytes=candidate.size_bytes,
            detail=outcome.reason,
        )


__all__ = ["FileCollector", "CollectionResult", "READ_FOR_PROCESSING"]
