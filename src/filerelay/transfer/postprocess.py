"""Terminal actions applied to source files after a confirmed delivery."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from .discovery import PROCESSED_SUFFIX
from .models import PostProcessAction, PostProcessOutcome, TransferUnit
from .naming import split_extension
from .quarantine import move_without_overwrite

LOGGER = logging.getLogger(__name__)

ARCHIVE_STAMP_FORMAT = "%Y%m%d_%H%M%S"


class PostProcessor:
    """Apply a unit's post-process action to its source file.

    Every action is single shot. Failures are logged and reported through the
    returned outcome, never raised: the source then stays where it was and may
    be collected again by a later scan.
    """

    def __init__(self, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def apply(self, unit: TransferUnit) -> PostProcessOutcome:
        """Apply ``unit.post_process_action`` to ``unit.original_path``."""
        action = unit.post_process_action
        handler = {
            PostProcessAction.ARCHIVE: self._archive,
            PostProcessAction.DELETE: self._delete,
            PostProcessAction.KEEP_AND_MARK: self._mark,
            PostProcessAction.KEEP_AND_REPROCESS: self._keep,
        }[action]
        try:
            return handler(unit)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error(
                "Post-processing (%s) failed for %s; file left in place: %s",
                action.value,
                unit.original_path,
                exc,
            )
            return self._outcome(unit, applied=False, detail=f"Post-processing failed: {exc}")

    def archive_target(self, unit: TransferUnit, archive_directory: Path) -> Path:
        """Return the path ``unit`` is archived to."""
        name = unit.file_name
        if unit.add_timestamp:
            stem, extension = split_extension(name)
            name = f"{stem}_{self._clock().strftime(ARCHIVE_STAMP_FORMAT)}{extension}"
        return archive_directory / name

    def _archive(self, unit: TransferUnit) -> PostProcessOutcome:
        if unit.archive_directory is None:
            LOGGER.warning(
                "No archive directory configured; leaving %s in place", unit.original_path
            )
            return self._outcome(unit, applied=False, detail="Archive directory not configured")
        source = unit.original_path
        if not source.exists():
            LOGGER.warning("Cannot archive %s: file no longer exists", source)
            return self._outcome(unit, applied=False, detail="Source file no longer exists")

        archive_directory = unit.archive_directory.expanduser()
        archive_directory.mkdir(parents=True, exist_ok=True)
        destination = move_without_overwrite(source, self.archive_target(unit, archive_directory))
        LOGGER.info("Archived %s to %s", source, destination)
        return self._outcome(unit, applied=True, detail="Archived", new_path=destination)

    def _delete(self, unit: TransferUnit) -> PostProcessOutcome:
        source = unit.original_path
        try:
            source.unlink()
        except FileNotFoundError:
            LOGGER.warning("Cannot delete %s: file no longer exists", source)
            return self._outcome(unit, applied=False, detail="Source file no longer exists")
        LOGGER.info("Deleted %s", source)
        return self._outcome(unit, applied=True, detail="Deleted")

    def _mark(self, unit: TransferUnit) -> PostProcessOutcome:
        source = unit.original_path
        if not source.exists():
            LOGGER.debug("Nothing to mark: %s no longer exists", source)
            return self._outcome(unit, applied=False, detail="Source file no longer exists")
        destination = move_without_overwrite(
            source, source.with_name(source.name + PROCESSED_SUFFIX)
        )
        LOGGER.info("Marked %s as processed", source)
        return self._outcome(unit, applied=True, detail="Marked as processed", new_path=destination)

    def _keep(self, unit: TransferUnit) -> PostProcessOutcome:
        LOGGER.debug("Keeping %s for reprocessing", unit.original_path)
        return self._outcome(unit, applied=True, detail="Kept for reprocessing")

    @staticmethod
    def _outcome(
        unit: TransferUnit,
        *,
        applied: bool,
        detail: str,
        new_path: Path | None = None,
    ) -> PostProcessOutcome:
        return PostProcessOutcome(
            file_name=unit.file_name,
            source_path=unit.original_path,
            action=unit.post_process_action,
            applied=applied,
            detail=detail,
            new_path=new_path,
        )


__all__ = ["PostProcessor", "ARCHIVE_STAMP_FORMAT", "PROCESSED_SUFFIX"]
