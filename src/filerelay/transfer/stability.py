"""Modification-time stability checks for files that may still be written."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

from .models import FileCandidate

LOGGER = logging.getLogger(__name__)

Waiter = Callable[[float], bool]


class StabilityGate:
    """Filter out candidates whose modification time changes across a wait window.

    Attributes:
        wait_seconds: Length of the observation window; ``0`` disables the gate.
    """

    def __init__(
        self,
        wait_ms: int = 0,
        *,
        stop_event: Optional[threading.Event] = None,
        waiter: Optional[Waiter] = None,
    ) -> None:
        """Initialize the gate.

        Args:
            wait_ms: Observation window in milliseconds.
            stop_event: Event that interrupts the wait when set.
            waiter: Callable that blocks for the given seconds and returns
                ``True`` when the wait was interrupted. Defaults to waiting
                on ``stop_event``.
        """
        self.wait_seconds = max(0, wait_ms) / 1000.0
        self._stop_event = stop_event or threading.Event()
        self._waiter = waiter or self._stop_event.wait

    @property
    def enabled(self) -> bool:
        return self.wait_seconds > 0

    def is_stable(self, candidate: FileCandidate) -> bool:
        """Block for the window and report whether ``candidate`` stayed unchanged."""
        return bool(self.filter_stable([candidate]))

    def filter_stable(self, candidates: Iterable[FileCandidate]) -> list[FileCandidate]:
        """Return the candidates that stayed unchanged across one shared window.

        Every candidate is observed against the same deadline, so the run waits
        once regardless of how many files are pending. Files that vanish,
        change, or cannot be read fail closed and are left for the next scan.
        """
        pending = list(candidates)
        if not self.enabled or not pending:
            return pending

        observed: list[tuple[FileCandidate, int]] = []
        for candidate in pending:
            try:
                observed.append((candidate, candidate.path.stat().st_mtime_ns))
            except OSError as exc:
                LOGGER.warning("Stability check failed for %s: %s", candidate.name, exc)

        if not observed:
            return []

        LOGGER.debug(
            "Checking stability of %d file(s), waiting %.3f s", len(observed), self.wait_seconds
        )
        if self._waiter(self.wait_seconds):
            LOGGER.info("Stability wait interrupted; deferring %d file(s)", len(observed))
            return []

        stable: list[FileCandidate] = []
        for candidate, initial in observed:
            try:
                current = candidate.path.stat().st_mtime_ns
            except FileNotFoundError:
                LOGGER.warning("File disappeared during stability check: %s", candidate.path)
                continue
            except OSError as exc:
                LOGGER.warning("Stability check failed for %s: %s", candidate.name, exc)
                continue
            if current != initial:
                LOGGER.info("File %s is still being modified", candidate.name)
                continue
            stable.append(candidate)
        return stable


__all__ = ["StabilityGate"]
