"""Source directory discovery."""

from __future__ import annotations

import fnmatch
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .errors import SourceNotAccessibleError
from .models import FileCandidate

LOGGER = logging.getLogger(__name__)

PROCESSED_SUFFIX = ".processed"


def matches_glob(name: str, pattern: str | None) -> bool:
    """Return whether ``name`` matches the shell-style ``pattern``.

    Matching is case sensitive on every platform. An empty pattern matches
    nothing.
    """
    if not pattern:
        return False
    return fnmatch.fnmatchcase(name, pattern)


def build_candidate(path: Path) -> FileCandidate:
    """Stat ``path`` and return a candidate describing it."""
    stat = path.stat()
    return FileCandidate(
        path=path,
        name=path.name,
        size_bytes=stat.st_size,
        last_modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        mtime_ns=stat.st_mtime_ns,
        read_only=not os.access(path, os.W_OK),
    )


class DirectoryScanner:
    """List regular files in a source directory matching an include glob.

    Files already marked as processed (``<name>.processed``) are never listed.
    """

    def __init__(self, *, file_pattern: str = "*") -> None:
        self.file_pattern = file_pattern or "*"

    def ensure_accessible(self, root: Path) -> Path:
        """Return the resolved root or raise when it cannot be scanned.

        Raises:
            SourceNotAccessibleError: If ``root`` is missing or not a directory.
        """
        root = root.expanduser()
        if not root.exists() or not root.is_dir():
            raise SourceNotAccessibleError(f"Source directory not accessible: {root}")
        return root.resolve()

    def scan(self, root: Path) -> Iterator[FileCandidate]:
        """Yield candidates in filesystem enumeration order.

        No ordering is guaranteed; use :meth:`scan_sorted` when a stable order
        matters.

        Raises:
            SourceNotAccessibleError: If ``root`` is missing or not a directory.
        """
        root = self.ensure_accessible(root)
        try:
            entries = list(root.iterdir())
        except OSError as exc:
            raise SourceNotAccessibleError(f"Source directory not accessible: {root}") from exc

        for path in entries:
            if path.name.endswith(PROCESSED_SUFFIX):
                continue
            if not matches_glob(path.name, self.file_pattern):
                continue
            try:
                if not path.is_file():
                    continue
                candidate = build_candidate(path)
            except OSError:
                # Removed between listing and stat; the next scan will settle it.
                LOGGER.debug("Skipping %s: vanished during scan", path)
                continue
            yield candidate

    def scan_sorted(self, root: Path) -> list[FileCandidate]:
        """Return candidates sorted by file name."""
        return sorted(self.scan(root), key=lambda candidate: candidate.name)


__all__ = ["DirectoryScanner", "PROCESSED_SUFFIX", "build_candidate", "matches_glob"]
