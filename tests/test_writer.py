"""Tests for destination write strategies."""

from pathlib import Path

import pytest

from filerelay.transfer import DestinationWriter, EmptyMessageHandling, WriteMode
from filerelay.transfer.writer import temp_path_for


def test_direct_write_replaces_existing_file(tmp_path: Path) -> None:
    destination = tmp_path / "report.csv"
    destination.write_text("old contents", encoding="utf-8")

    written = DestinationWriter(WriteMode.DIRECT).write(destination, b"new")

    assert written == 3
    assert destination.read_bytes() == b"new"


def test_temp_then_rename_leaves_no_temp_file(tmp_path: Path) -> None:
    destination = tmp_path / "out" / "report.csv"
    destination.parent.mkdir()

    DestinationWriter("Create Temp File").write(destination, b"a,b\n1,2\n")

    assert destination.read_bytes() == b"a,b\n1,2\n"
    assert not temp_path_for(destination).exists()
    assert sorted(path.name for path in destination.parent.iterdir()) == ["report.csv"]


def test_temp_then_rename_failure_removes_temp_file(tmp_path: Path) -> None:
    destination = tmp_path / "report.csv"
    destination.mkdir()

    with pytest.raises(OSError):
        DestinationWriter(WriteMode.TEMP_THEN_RENAME).write(destination, b"data")

    assert not temp_path_for(destination).exists()


def test_direct_write_failure_propagates(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        DestinationWriter().write(tmp_path / "missing" / "a.txt", b"data")


def test_should_write_honours_empty_message_policy() -> None:
    writing = DestinationWriter(empty_message_handling=EmptyMessageHandling.WRITE_EMPTY_FILE)
    skipping = DestinationWriter(empty_message_handling="Skip Empty Messages")

    assert writing.should_write(b"") is True
    assert skipping.should_write(b"") is False
    assert skipping.should_write(b"x") is True
