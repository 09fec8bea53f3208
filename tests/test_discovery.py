"""Tests for source directory scanning."""

from pathlib import Path

import pytest

from filerelay.transfer import DirectoryScanner, SourceNotAccessibleError
from filerelay.transfer.discovery import matches_glob


def test_scanner_lists_regular_files_matching_pattern(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_bytes(b"x" * 100)
    (tmp_path / "b.csv").write_text("id\n", encoding="utf-8")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "c.txt").write_text("deep", encoding="utf-8")

    scanner = DirectoryScanner(file_pattern="*.txt")
    found = scanner.scan_sorted(tmp_path)

    assert [candidate.name for candidate in found] == ["a.txt"]
    candidate = found[0]
    assert candidate.size_bytes == 100
    assert candidate.path == (tmp_path / "a.txt").resolve()
    assert candidate.last_modified_at.tzinfo is not None


def test_scanner_skips_processed_markers(tmp_path: Path) -> None:
    (tmp_path / "done.txt.processed").write_text("old", encoding="utf-8")
    (tmp_path / "new.txt").write_text("new", encoding="utf-8")

    names = [candidate.name for candidate in DirectoryScanner().scan(tmp_path)]

    assert names == ["new.txt"]


def test_scan_sorted_orders_by_name(tmp_path: Path) -> None:
    for name in ("zeta.txt", "alpha.txt", "mid.txt"):
        (tmp_path / name).write_text(name, encoding="utf-8")

    names = [candidate.name for candidate in DirectoryScanner().scan_sorted(tmp_path)]

    assert names == ["alpha.txt", "mid.txt", "zeta.txt"]


def test_missing_source_raises(tmp_path: Path) -> None:
    with pytest.raises(SourceNotAccessibleError):
        list(DirectoryScanner().scan(tmp_path / "missing"))


def test_file_as_source_raises(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x", encoding="utf-8")

    with pytest.raises(SourceNotAccessibleError):
        DirectoryScanner().scan_sorted(not_a_dir)


def test_matches_glob_is_case_sensitive_and_empty_matches_nothing() -> None:
    assert matches_glob("b.tmp", "*.tmp")
    assert not matches_glob("B.TMP", "*.tmp")
    assert not matches_glob("b.tmp", "")
    assert not matches_glob("b.tmp", None)
