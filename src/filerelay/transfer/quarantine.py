"""Relocation of rejected source files into an error directory."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

QUARANTINE_STAMP_FORMAT = "%Y%m%d_%H%M%S"


def move_without_overwrite(source: Path, destination: Path) -> Path:
    """Move ``source`` to ``destination``, refusing to replace an existing file.

    Raises:
        FileExistsError: If ``destination`` already exists.
        OSError: If the move itself fails.
    """
    if destination.exists() and destination != source:
        raise FileExistsError(f"Destination already exists: {destination}")
    return Path(shutil.move(str(source), str(destination)))


class ErrorQuarantine:
    """Move rejected files aside as ``<yyyyMMdd_HHmmss>_<name>``.

    Quarantine is best effort: failures are logged and the file stays where it
    was, so the next scan sees it again.
    """

    def __init__(
        self,
        error_directory: Optional[Path],
        *,
        enabled: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.error_directory = error_directory.expanduser() if error_directory else None
        self.enabled = enabled
        self._clock = clock
        if enabled and self.error_directory is None:
            LOGGER.warning(
                "archive_faulty_source_files enabled but archive_error_directory not configured"
            )

    @property
    def active(self) -> bool:
        return self.enabled and self.error_directory is not None

    def target_for(self, path: Path) -> Path:
        """Return the quarantine path ``path`` would be moved to now."""
        if self.error_directory is None:
            raise ValueError("No error directory configured")
        stamp = self._clock().strftime(QUARANTINE_STAMP_FORMAT)
        return self.error_directory / f"{stamp}_{path.name}"

    def quarantine(self, path: Path, reason: str) -> Optional[Path]:
        """Move ``path`` into the error directory.

        Args:
            path: Rejected source file.
            reason: Rejection reason recorded in the log.

        Returns:
            Optional[Path]: New location, or ``None`` when quarantine is
            inactive or failed.
        """
        error_directory = self.error_directory
        if not self.enabled or error_directory is None:
            return None
        try:
            if not error_directory.exists():
                error_directory.mkdir(parents=True, exist_ok=True)
                LOGGER.info("Created error directory %s", error_directory)
            destination = move_without_overwrite(path, self.target_for(path))
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Failed to quarantine %s: %s", path, exc)
            return None
        LOGGER.info("Quarantined %s to %s: %s", path.name, destination, reason)
        return destination


__all__ = ["ErrorQuarantine", "QUARANTINE_STAMP_FORMAT", "move_without_overwrite"]
