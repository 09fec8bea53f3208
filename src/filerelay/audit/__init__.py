"""Audit sinks and step recorders used by the transfer pipeline."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Protocol

from pydantic import ValidationError

from .errors import AuditError, CorruptAuditLogError
from .models import StepEntry, TransferEvent, TransferEventKind

LOGGER = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Receiver of structured transfer events."""

    def record(self, event: TransferEvent) -> None: ...


class StepRecorder(Protocol):
    """External tracker of files handled by an execution step."""

    def add_file_processed(self, file_name: str, destination: str, size_bytes: int) -> None: ...


class NullAuditSink:
    """Audit sink that discards every event."""

    def record(self, event: TransferEvent) -> None:
        return None


class JsonlAuditLog:
    """Append-only JSON-lines audit log.

    Writes are serialized with a lock because deliveries may run on a worker
    pool.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the log, creating its parent directory.

        Args:
            path: Location of the JSONL file.
        """
        self._path = Path(path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def record(self, event: TransferEvent) -> None:
        """Append a single event to the log file."""
        line = event.model_dump_json() + "\n"
        with self._lock:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        LOGGER.debug("Audit: %s %s", event.kind.value, event.file_name)

    def read_entries(
        self,
        *,
        since: Optional[datetime] = None,
        kind: Optional[TransferEventKind] = None,
        run_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[TransferEvent]:
        """Read audit entries with optional filtering.

        Args:
            since: Only return entries strictly after this timestamp.
            kind: Only return entries of this kind.
            run_id: Only return entries produced by this run.
            limit: Maximum number of entries to return (newest after filtering).

        Returns:
            List[TransferEvent]: Matching events, oldest first.

        Raises:
            CorruptAuditLogError: If a stored line cannot be parsed.
        """
        if not self._path.exists():
            return []

        entries: List[TransferEvent] = []
        with self._path.open(encoding="utf-8") as handle:
            for number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    event = TransferEvent.model_validate_json(line)
                except ValidationError as exc:
                    raise CorruptAuditLogError(
                        f"Invalid audit entry at {self._path}:{number}: {exc}"
                    ) from exc
                if since is not None and event.timestamp <= since:
                    continue
                if kind is not None and event.kind is not kind:
                    continue
                if run_id is not None and event.run_id != run_id:
                    continue
                entries.append(event)

        if limit is not None:
            entries = entries[-limit:]
        return entries


class AuditTrail:
    """Run-scoped helper that stamps events with a run id and never raises."""

    def __init__(self, sink: Optional[AuditSink] = None, run_id: str = "") -> None:
        self.sink: AuditSink = sink or NullAuditSink()
        self.run_id = run_id

    def emit(self, kind: TransferEventKind, file_name: str, **fields: Any) -> None:
        """Record one event; sink failures are logged and swallowed."""
        for key in ("source_path", "destination"):
            if fields.get(key) is not None:
                fields[key] = str(fields[key])
        try:
            event = TransferEvent(run_id=self.run_id, kind=kind, file_name=file_name, **fields)
            self.sink.record(event)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to record %s event for %s: %s", kind.value, file_name, exc)


def record_file_processed(
    recorder: Optional[StepRecorder], file_name: str, destination: str, size_bytes: int
) -> None:
    """Report a handled file to ``recorder``; tracker failures are logged and swallowed."""
    if recorder is None:
        return
    try:
        recorder.add_file_processed(file_name, destination, size_bytes)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Failed to record processed file %s: %s", file_name, exc)


class InMemoryStepRecorder:
    """Step recorder that keeps reported files in memory."""

    def __init__(self) -> None:
        self._entries: List[StepEntry] = []
        self._lock = threading.Lock()

    @property
    def entries(self) -> List[StepEntry]:
        with self._lock:
            return list(self._entries)

    def add_file_processed(self, file_name: str, destination: str, size_bytes: int) -> None:
        with self._lock:
            self._entries.append(
                StepEntry(file_name=file_name, destination=destination, size_bytes=size_bytes)
            )


__all__ = [
    "AuditSink",
    "StepRecorder",
    "NullAuditSink",
    "JsonlAuditLog",
    "AuditTrail",
    "InMemoryStepRecorder",
    "record_file_processed",
    "TransferEvent",
    "TransferEventKind",
    "StepEntry",
    "AuditError",
    "CorruptAuditLogError",
]
