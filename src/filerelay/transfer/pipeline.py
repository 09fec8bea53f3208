"""High-level transfer run orchestration."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from filerelay.audit import AuditSink, AuditTrail, JsonlAuditLog, StepRecorder, TransferEventKind

from .collector import FileCollector
from .context import ExecutionContext
from .delivery import FileDeliverer
from .models import DeliveryResult, DeliveryStatus, PostProcessOutcome, TransferUnit
from .postprocess import PostProcessor

if TYPE_CHECKING:
    from filerelay.config.models import FileRelayConfig

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RunReport:
    """Outcome of one scan, deliver and post-process pass.

    Attributes:
        run_id: Identifier stamped on every audit event of the run.
        source_directory: Directory that was scanned.
        target_directory: Directory files were delivered to.
        started_at: UTC time the run started.
        finished_at: UTC time the run finished.
        discovered: Number of candidates found by the scan.
        collected: Number of files read into memory.
        rejected: Rejection reason per file name.
        quarantined: New locations of quarantined files.
        deliveries: Delivery results in collection order.
        post_processed: Post-processing outcomes for delivered files.
        errors: First read or write error per file name.
        cancelled: Whether a stop request cut the run short.
    """

    run_id: str
    source_directory: Optional[Path]
    target_directory: Optional[Path]
    started_at: datetime
    finished_at: Optional[datetime] = None
    discovered: int = 0
    collected: int = 0
    rejected: Dict[str, str] = field(default_factory=dict)
    quarantined: list[Path] = field(default_factory=list)
    deliveries: list[DeliveryResult] = field(default_factory=list)
    post_processed: list[PostProcessOutcome] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def delivered(self) -> int:
        return sum(1 for result in self.deliveries if result.succeeded)

    @property
    def skipped(self) -> int:
        return sum(1 for result in self.deliveries if result.status is DeliveryStatus.SKIPPED)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def counts(self) -> dict[str, int]:
        """Return the headline counters used by summaries."""
        return {
            "discovered": self.discovered,
            "collected": self.collected,
            "rejected": len(self.rejected),
            "quarantined": len(self.quarantined),
            "delivered": self.delivered,
            "skipped": self.skipped,
            "errors": len(self.errors),
            "post_processed": sum(1 for outcome in self.post_processed if outcome.applied),
        }

    def payload(self) -> dict[str, Any]:
        """Return a JSON-ready description of the run."""
        return {
            "context": {
                "run_id": self.run_id,
                "source_directory": (
                    self.source_directory.as_posix() if self.source_directory else None
                ),
                "target_directory": (
                    self.target_directory.as_posix() if self.target_directory else None
                ),
                "started_at": self.started_at.isoformat(),
                "finished_at": self.finished_at.isoformat() if self.finished_at else None,
                "cancelled": self.cancelled,
            },
            "counts": self.counts(),
            "rejected": [
                {"file": name, "reason": reason} for name, reason in self.rejected.items()
            ],
            "quarantine": [path.as_posix() for path in self.quarantined],
            "deliveries": [result.model_dump(mode="json") for result in self.deliveries],
            "post_processing": [
                outcome.model_dump(mode="json") for outcome in self.post_processed
            ],
            "errors": [
                {"file": name, "message": message} for name, message in self.errors.items()
            ],
        }


class TransferPipeline:
    """Coordinate collection, delivery and post-processing for one configuration."""

    def __init__(
        self,
        config: "FileRelayConfig",
        *,
        audit_sink: Optional[AuditSink] = None,
        step_recorder: Optional[StepRecorder] = None,
        post_processor: Optional[PostProcessor] = None,
    ) -> None:
        self.config = config
        self.audit_sink = audit_sink
        self.step_recorder = step_recorder
        self.post_processor = post_processor or PostProcessor()

    @classmethod
    def from_config(
        cls,
        config: "FileRelayConfig",
        *,
        step_recorder: Optional[StepRecorder] = None,
    ) -> "TransferPipeline":
        """Build a pipeline, attaching the JSONL audit log when one is configured."""
        audit_sink: Optional[AuditSink] = None
        if config.logging.audit_log is not None:
            audit_sink = JsonlAuditLog(config.logging.audit_log)
        return cls(config, audit_sink=audit_sink, step_recorder=step_recorder)

    def run(self, stop_event: Optional[threading.Event] = None) -> RunReport:
        """Execute one transfer run.

        Per-file failures are isolated and reported. Files already delivered
        are post-processed even when ``stop_event`` is set mid-run.

        Args:
            stop_event: Event checked between files to cancel the run.

        Returns:
            RunReport: Counts and per-file outcomes.

        Raises:
            SourceNotAccessibleError: If the source directory cannot be scanned.
            TargetNotAccessibleError: If the target directory cannot be prepared.
        """
        stop_event = stop_event or threading.Event()
        sender = self.config.sender
        receiver = self.config.receiver
        report = RunReport(
            run_id=uuid.uuid4().hex,
            source_directory=sender.source_directory,
            target_directory=receiver.target_directory,
            started_at=datetime.now(timezone.utc),
        )
        audit = AuditTrail(self.audit_sink, report.run_id)
        context = ExecutionContext()
        LOGGER.info("Starting transfer run %s", report.run_id)

        collector = FileCollector(
            sender, audit=audit, step_recorder=self.step_recorder, stop_event=stop_event
        )
        collection = collector.collect(context)
        report.discovered = collection.discovered
        report.collected = len(collection.collected)
        report.rejected = dict(collection.rejected)
        report.quarantined = list(collection.quarantined)
        report.errors = dict(collection.errors)
        report.cancelled = collection.cancelled

        deliverer = FileDeliverer(
            receiver, audit=audit, step_recorder=self.step_recorder, stop_event=stop_event
        )
        batch = deliverer.deliver(context)
        report.deliveries = batch.results
        report.cancelled = report.cancelled or batch.cancelled
        for result in batch.results:
            if result.status is DeliveryStatus.FAILED and result.error_message:
                report.errors.setdefault(result.file_name, result.error_message)

        if context.receiver_processing_successful:
            report.post_processed = self._post_process(context.successful_files, audit)

        report.finished_at = datetime.now(timezone.utc)
        LOGGER.info(
            "Finished transfer run %s: %s",
            report.run_id,
            ", ".join(f"{key}={value}" for key, value in report.counts().items()),
        )
        return report

    def _post_process(
        self, units: list[TransferUnit], audit: AuditTrail
    ) -> list[PostProcessOutcome]:
        outcomes: list[PostProcessOutcome] = []
        seen: set[Path] = set()
        for unit in units:
            if unit.original_path in seen:
                continue
            seen.add(unit.original_path)
            outcome = self.post_processor.apply(unit)
            outcomes.append(outcome)
            kind = TransferEventKind.POST_PROCESSED
            if not outcome.applied:
                kind = TransferEventKind.POST_PROCESS_FAILED
            audit.emit(
                kind,
                unit.file_name,
                source_path=unit.original_path,
                destination=outcome.new_path,
                detail=f"{outcome.action.value}: {outcome.detail}",
            )
        return outcomes


__all__ = ["TransferPipeline", "RunReport"]
