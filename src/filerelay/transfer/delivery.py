"""Receiver side of a transfer run: name and write collected units."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from filerelay.audit import AuditTrail, StepRecorder, TransferEventKind, record_file_processed

from .context import ExecutionContext
from .errors import TargetNotAccessibleError
from .models import DeliveryResult, DeliveryStatus, TransferUnit
from .naming import OutputNamer
from .writer import DestinationWriter

if TYPE_CHECKING:
    from filerelay.config.models import ReceiverOptions

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DeliveryBatch:
    """Results of one delivery pass, in the order units were collected.

    Attributes:
        results: One result per attempted unit.
        delivered: Units whose write succeeded.
        cancelled: Whether a stop request prevented some writes from starting.
    """

    results: list[DeliveryResult] = field(default_factory=list)
    delivered: list[TransferUnit] = field(default_factory=list)
    cancelled: bool = False


class FileDeliverer:
    """Write units from ``filesToProcess`` into the target directory.

    ``maximum_concurrency`` bounds a worker pool; with the default of ``1``
    units are written strictly one after another. Results are always reported
    in input order. Writes to the same destination path are serialized.
    """

    def __init__(
        self,
        options: "ReceiverOptions",
        *,
        namer: Optional[OutputNamer] = None,
        writer: Optional[DestinationWriter] = None,
        audit: Optional[AuditTrail] = None,
        step_recorder: Optional[StepRecorder] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.options = options
        self.namer = namer or OutputNamer(
            options.output_filename_mode, options.custom_filename_pattern
        )
        self.writer = writer or DestinationWriter(
            options.write_mode, options.empty_message_handling
        )
        self.audit = audit or AuditTrail()
        self.step_recorder = step_recorder
        self.stop_event = stop_event or threading.Event()
        self._path_locks: defaultdict[Path, threading.Lock] = defaultdict(threading.Lock)
        self._path_locks_guard = threading.Lock()

    def prepare_target(self) -> Path:
        """Create the target directory when needed and return it.

        Raises:
            TargetNotAccessibleError: If the directory is unset or cannot be created.
        """
        target = self.options.target_directory
        if target is None:
            raise TargetNotAccessibleError("Target directory not configured")
        target = target.expanduser()
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise TargetNotAccessibleError(f"Target directory not accessible: {target}") from exc
        if not target.is_dir():
            raise TargetNotAccessibleError(f"Target directory not accessible: {target}")
        return target

    def deliver(self, context: ExecutionContext) -> DeliveryBatch:
        """Deliver every unit in ``filesToProcess``.

        Sets ``receiverProcessingSuccessful`` and ``successfulFiles`` on the
        context when at least one unit was written.

        Raises:
            TargetNotAccessibleError: If the target directory cannot be prepared.
        """
        units = context.files_to_process
        batch = DeliveryBatch()
        if not units:
            LOGGER.debug("No files to write")
            return batch
        target = self.prepare_target()

        workers = min(self.options.maximum_concurrency, len(units))
        if workers <= 1:
            outcomes = [self._deliver_one(unit, target) for unit in units]
        else:
            LOGGER.debug("Delivering %d unit(s) with %d workers", len(units), workers)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="filerelay") as pool:
                futures = [pool.submit(self._deliver_one, unit, target) for unit in units]
                outcomes = [future.result() for future in futures]

        for unit, outcome in zip(units, outcomes):
            if outcome is None:
                batch.cancelled = True
                continue
            batch.results.append(outcome)
            if outcome.succeeded:
                batch.delivered.append(unit)

        if batch.delivered:
            context.mark_delivered(batch.delivered)
        if batch.cancelled:
            LOGGER.info("Delivery cancelled; undelivered files left for the next run")
        return batch

    def _deliver_one(self, unit: TransferUnit, target: Path) -> Optional[DeliveryResult]:
        if self.stop_event.is_set():
            return None

        if not unit.readable:
            LOGGER.debug("Skipping %s: content was not read", unit.file_name)
            return DeliveryResult(
                file_name=unit.file_name,
                status=DeliveryStatus.FAILED,
                error_message=unit.error_message or "Content was not read",
            )

        content = unit.content or b""
        if not self.writer.should_write(content):
            LOGGER.info("Skipping empty message for %s", unit.file_name)
            self.audit.emit(
                TransferEventKind.SKIPPED,
                unit.file_name,
                source_path=unit.original_path,
                detail="Empty message skipped",
            )
            return DeliveryResult(file_name=unit.file_name, status=DeliveryStatus.SKIPPED)

        output_name = self.namer.name_for(unit.file_name)
        output_path = target / output_name
        try:
            with self._lock_for(output_path):
                written = self.writer.write(output_path, content)
        except Exception as exc:  # noqa: BLE001
            message = f"Failed to write {output_name}: {exc}"
            LOGGER.error("Failed to deliver %s to %s: %s", unit.file_name, output_path, exc)
            self.audit.emit(
                TransferEventKind.DELIVERY_FAILED,
                unit.file_name,
                source_path=unit.original_path,
                destination=output_path,
                detail=message,
            )
            return DeliveryResult(
                file_name=unit.file_name,
                output_file_name=output_name,
                output_path=output_path,
                status=DeliveryStatus.FAILED,
                error_message=message,
            )

        LOGGER.info("Delivered %s to %s (%d bytes)", unit.file_name, output_path, written)
        record_file_processed(self.step_recorder, output_name, str(output_path), written)
        self.audit.emit(
            TransferEventKind.DELIVERED,
            unit.file_name,
            source_path=unit.original_path,
            destination=output_path,
            size_bytes=written,
        )
        return DeliveryResult(
            file_name=unit.file_name,
            output_file_name=output_name,
            output_path=output_path,
            size_bytes=written,
            status=DeliveryStatus.SUCCESS,
        )

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._path_locks_guard:
            return self._path_locks[path]


__all__ = ["FileDeliverer", "DeliveryBatch"]
