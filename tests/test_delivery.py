"""Tests for the delivery stage."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from filerelay.audit import InMemoryStepRecorder
from filerelay.config.models import ReceiverOptions
from filerelay.transfer import (
    DeliveryStatus,
    ExecutionContext,
    FileDeliverer,
    ReadStatus,
    TargetNotAccessibleError,
    TransferUnit,
)
from filerelay.transfer.writer import TEMP_SUFFIX


def _unit(name: str, content: bytes | None = b"payload", **extra) -> TransferUnit:
    return TransferUnit(
        file_name=name,
        original_path=Path("/source") / name,
        content=content,
        size_bytes=len(content or b""),
        **extra,
    )


def _context(*units: TransferUnit) -> ExecutionContext:
    context = ExecutionContext()
    context.files_to_process = list(units)
    return context


def test_delivers_units_and_marks_context(tmp_path: Path) -> None:
    target = tmp_path / "out"
    recorder = InMemoryStepRecorder()
    context = _context(_unit("a.txt", b"alpha"), _unit("b.txt", b"beta"))

    batch = FileDeliverer(
        ReceiverOptions(target_directory=target), step_recorder=recorder
    ).deliver(context)

    assert [result.status for result in batch.results] == [DeliveryStatus.SUCCESS] * 2
    assert (target / "a.txt").read_bytes() == b"alpha"
    assert (target / "b.txt").read_bytes() == b"beta"
    assert context.receiver_processing_successful is True
    assert [unit.file_name for unit in context.successful_files] == ["a.txt", "b.txt"]
    assert [entry.destination for entry in recorder.entries] == [
        str(target / "a.txt"),
        str(target / "b.txt"),
    ]


def test_results_keep_input_order_under_worker_pool(tmp_path: Path) -> None:
    names = [f"file{index:02d}.txt" for index in range(12)]
    context = _context(*(_unit(name, name.encode()) for name in names))
    options = ReceiverOptions(target_directory=tmp_path, maximum_concurrency=4)

    batch = FileDeliverer(options).deliver(context)

    assert [result.file_name for result in batch.results] == names
    assert all(result.succeeded for result in batch.results)
    assert [unit.file_name for unit in batch.delivered] == names


def test_same_destination_writes_are_serialized(tmp_path: Path) -> None:
    contents = [bytes([65 + index]) * 4096 for index in range(6)]
    context = _context(*(_unit(f"{index}.txt", content) for index, content in enumerate(contents)))
    options = ReceiverOptions(
        target_directory=tmp_path,
        maximum_concurrency=3,
        output_filename_mode="Custom",
        custom_filename_pattern="combined.txt",
        write_mode="TEMP_THEN_RENAME",
    )

    batch = FileDeliverer(options).deliver(context)

    assert all(result.succeeded for result in batch.results)
    assert (tmp_path / "combined.txt").read_bytes() in contents
    assert not list(tmp_path.glob(f"*{TEMP_SUFFIX}"))


def test_write_failure_is_isolated(tmp_path: Path) -> None:
    (tmp_path / "a.txt").mkdir()
    context = _context(_unit("a.txt"), _unit("b.txt"))

    batch = FileDeliverer(ReceiverOptions(target_directory=tmp_path)).deliver(context)

    failed, succeeded = batch.results
    assert failed.status is DeliveryStatus.FAILED
    assert failed.error_message.startswith("Failed to write a.txt:")
    assert succeeded.status is DeliveryStatus.SUCCESS
    assert [unit.file_name for unit in context.successful_files] == ["b.txt"]


def test_empty_units_follow_message_policy(tmp_path: Path) -> None:
    skipping = ReceiverOptions(
        target_directory=tmp_path / "skip", empty_message_handling="SKIP_EMPTY"
    )
    writing = ReceiverOptions(target_directory=tmp_path / "write")

    skipped = FileDeliverer(skipping).deliver(_context(_unit("empty.txt", b"")))
    written = FileDeliverer(writing).deliver(_context(_unit("empty.txt", b"")))

    assert skipped.results[0].status is DeliveryStatus.SKIPPED
    assert not (tmp_path / "skip" / "empty.txt").exists()
    assert written.results[0].status is DeliveryStatus.SUCCESS
    assert (tmp_path / "write" / "empty.txt").read_bytes() == b""


def test_unread_units_are_reported_as_failed(tmp_path: Path) -> None:
    unit = _unit(
        "broken.txt",
        None,
        status=ReadStatus.READ_FAILED,
        error_message="Failed to read broken.txt: denied",
    )
    context = _context(unit)

    batch = FileDeliverer(ReceiverOptions(target_directory=tmp_path)).deliver(context)

    assert batch.results[0].status is DeliveryStatus.FAILED
    assert batch.results[0].error_message == "Failed to read broken.txt: denied"
    assert not (tmp_path / "broken.txt").exists()
    assert context.receiver_processing_successful is False


def test_cancelled_delivery_writes_nothing(tmp_path: Path) -> None:
    stop_event = threading.Event()
    stop_event.set()
    context = _context(_unit("a.txt"))

    batch = FileDeliverer(
        ReceiverOptions(target_directory=tmp_path), stop_event=stop_event
    ).deliver(context)

    assert batch.cancelled is True
    assert batch.results == []
    assert not (tmp_path / "a.txt").exists()


def test_unconfigured_or_unusable_target_raises(tmp_path: Path) -> None:
    with pytest.raises(TargetNotAccessibleError, match="not configured"):
        FileDeliverer(ReceiverOptions()).deliver(_context(_unit("a.txt")))

    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    with pytest.raises(TargetNotAccessibleError, match="not accessible"):
        FileDeliverer(ReceiverOptions(target_directory=blocker / "out")).deliver(
            _context(_unit("a.txt"))
        )


def test_nothing_to_deliver_skips_target_preparation() -> None:
    context = _context()

    batch = FileDeliverer(ReceiverOptions()).deliver(context)

    assert batch.results == []
    assert context.receiver_processing_successful is False


def test_failing_step_recorder_does_not_stop_delivery(tmp_path: Path) -> None:
    class _BrokenRecorder:
        def add_file_processed(self, file_name: str, destination: str, size_bytes: int) -> None:
            raise RuntimeError("tracker down")

    context = _context(_unit("a.txt", b"alpha"), _unit("b.txt", b"beta"))

    batch = FileDeliverer(
        ReceiverOptions(target_directory=tmp_path), step_recorder=_BrokenRecorder()
    ).deliver(context)

    assert [result.status for result in batch.results] == [DeliveryStatus.SUCCESS] * 2
    assert (tmp_path / "b.txt").read_bytes() == b"beta"
