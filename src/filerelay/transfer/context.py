"""Per-run execution context shared by the collection and delivery stages."""

from __future__ import annotations

from collections import UserDict
from typing import Any, List

from .models import TransferUnit

FILES_TO_PROCESS = "filesToProcess"
RECEIVER_PROCESSING_SUCCESSFUL = "receiverProcessingSuccessful"
SUCCESSFUL_FILES = "successfulFiles"


class ExecutionContext(UserDict):
    """Mutable key-value map handed between the stages of one run.

    A fresh context is created for every run and must not be shared between
    concurrent runs. The collector writes ``filesToProcess``; the deliverer
    reads it and writes ``receiverProcessingSuccessful`` and
    ``successfulFiles``. Other keys are left for surrounding flow steps.
    """

    @property
    def files_to_process(self) -> List[TransferUnit]:
        return list(self.data.get(FILES_TO_PROCESS, []))

    @files_to_process.setter
    def files_to_process(self, units: List[TransferUnit]) -> None:
        self.data[FILES_TO_PROCESS] = list(units)

    @property
    def receiver_processing_successful(self) -> bool:
        return bool(self.data.get(RECEIVER_PROCESSING_SUCCESSFUL, False))

    @property
    def successful_files(self) -> List[TransferUnit]:
        return list(self.data.get(SUCCESSFUL_FILES, []))

    def mark_delivered(self, units: List[TransferUnit]) -> None:
        """Signal that the receiver wrote ``units`` and they may be post-processed."""
        self.data[RECEIVER_PROCESSING_SUCCESSFUL] = True
        self.data[SUCCESSFUL_FILES] = list(units)

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-friendly summary without file contents."""
        return {
            FILES_TO_PROCESS: [unit.file_name for unit in self.files_to_process],
            RECEIVER_PROCESSING_SUCCESSFUL: self.receiver_processing_successful,
            SUCCESSFUL_FILES: [unit.file_name for unit in self.successful_files],
        }


__all__ = [
    "ExecutionContext",
    "FILES_TO_PROCESS",
    "RECEIVER_PROCESSING_SUCCESSFUL",
    "SUCCESSFUL_FILES",
]
