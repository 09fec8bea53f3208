"""Destination write strategies."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .models import EmptyMessageHandling, WriteMode

LOGGER = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def temp_path_for(destination: Path) -> Path:
    """Return the staging path used for ``destination`` under temp-then-rename."""
    return destination.with_name(destination.name + TEMP_SUFFIX)


class DestinationWriter:
    """Write unit content to a destination path.

    ``DIRECT`` writes straight to the destination, replacing any existing file.
    ``TEMP_THEN_RENAME`` writes ``<dest>.tmp``, flushes it to disk and renames
    it over ``<dest>``, so readers of the destination directory never see a
    partially written file under the final name.
    """

    def __init__(
        self,
        mode: WriteMode = WriteMode.DIRECT,
        empty_message_handling: EmptyMessageHandling = EmptyMessageHandling.WRITE_EMPTY_FILE,
    ) -> None:
        self.mode = WriteMode.parse(mode)
        self.empty_message_handling = EmptyMessageHandling.parse(empty_message_handling)

    def should_write(self, content: Optional[bytes]) -> bool:
        """Return whether ``content`` should produce a destination file."""
        if content:
            return True
        return self.empty_message_handling is EmptyMessageHandling.WRITE_EMPTY_FILE

    def write(self, destination: Path, content: bytes) -> int:
        """Write ``content`` to ``destination`` and return the byte count.

        Raises:
            OSError: If writing or renaming fails. Under temp-then-rename the
                temporary file is removed before the error propagates.
        """
        if self.mode is WriteMode.TEMP_THEN_RENAME:
            return self._write_via_temp(destination, content)
        return self._write_direct(destination, content)

    def _write_direct(self, destination: Path, content: bytes) -> int:
        with destination.open("wb") as handle:
            handle.write(content)
        LOGGER.debug("Wrote %d bytes to %s", len(content), destination)
        return len(content)

    def _write_via_temp(self, destination: Path, content: bytes) -> int:
        temp_path = temp_path_for(destination)
        try:
            with temp_path.open("wb") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, destination)
        except BaseException:
            self._discard(temp_path)
            raise
        LOGGER.debug("Wrote %d bytes to %s via %s", len(content), destination, temp_path.name)
        return len(content)

    @staticmethod
    def _discard(temp_path: Path) -> None:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("Failed to remove temporary file %s: %s", temp_path, exc)


__all__ = ["DestinationWriter", "TEMP_SUFFIX", "temp_path_for"]
