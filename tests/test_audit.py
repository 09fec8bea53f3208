"""Tests for audit sinks and step recorders."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from filerelay.audit import (
    AuditTrail,
    CorruptAuditLogError,
    InMemoryStepRecorder,
    JsonlAuditLog,
    TransferEvent,
    TransferEventKind,
)


def test_jsonl_log_appends_and_filters(tmp_path: Path) -> None:
    log = JsonlAuditLog(tmp_path / "logs" / "audit.jsonl")
    early = datetime(2024, 1, 1, tzinfo=timezone.utc)
    log.record(
        TransferEvent(
            timestamp=early, run_id="r1", kind=TransferEventKind.DISCOVERED, file_name="a"
        )
    )
    log.record(TransferEvent(run_id="r1", kind=TransferEventKind.DELIVERED, file_name="a"))
    log.record(TransferEvent(run_id="r2", kind=TransferEventKind.DELIVERED, file_name="b"))

    assert len(log.read_entries()) == 3
    assert [entry.file_name for entry in log.read_entries(run_id="r2")] == ["b"]
    assert len(log.read_entries(kind=TransferEventKind.DELIVERED)) == 2
    assert len(log.read_entries(since=early + timedelta(seconds=1))) == 2
    assert [entry.file_name for entry in log.read_entries(limit=1)] == ["b"]


def test_missing_log_reads_empty(tmp_path: Path) -> None:
    assert JsonlAuditLog(tmp_path / "audit.jsonl").read_entries() == []


def test_corrupt_line_raises(tmp_path: Path) -> None:
    path = tmp_path / "audit.jsonl"
    path.write_text("{not json}\n", encoding="utf-8")

    with pytest.raises(CorruptAuditLogError):
        JsonlAuditLog(path).read_entries()


def test_audit_trail_stamps_run_id_and_stringifies_paths(tmp_path: Path) -> None:
    log = JsonlAuditLog(tmp_path / "audit.jsonl")
    trail = AuditTrail(log, run_id="abc")

    trail.emit(
        TransferEventKind.DELIVERED,
        "a.txt",
        source_path=tmp_path / "in" / "a.txt",
        destination=tmp_path / "out" / "a.txt",
        size_bytes=3,
    )

    (entry,) = log.read_entries()
    assert entry.run_id == "abc"
    assert entry.destination == str(tmp_path / "out" / "a.txt")
    assert entry.size_bytes == 3


def test_audit_trail_swallows_sink_failures() -> None:
    class _BrokenSink:
        def record(self, event: TransferEvent) -> None:
            raise OSError("disk full")

    AuditTrail(_BrokenSink(), "r").emit(TransferEventKind.REJECTED, "a.txt")


def test_in_memory_step_recorder_keeps_entries() -> None:
    recorder = InMemoryStepRecorder()

    recorder.add_file_processed("a.txt", "/out/a.txt", 3)

    (entry,) = recorder.entries
    assert (entry.file_name, entry.destination, entry.size_bytes) == ("a.txt", "/out/a.txt", 3)
