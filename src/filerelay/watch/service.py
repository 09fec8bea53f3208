"""Filesystem watch service that triggers transfer runs on source changes."""

from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from filerelay.config import FileRelayConfig
from filerelay.transfer import RunReport, TransferError, TransferPipeline
from filerelay.transfer.discovery import PROCESSED_SUFFIX
from filerelay.transfer.writer import TEMP_SUFFIX

LOGGER = logging.getLogger(__name__)

PipelineFactory = Callable[[FileRelayConfig], TransferPipeline]


class WatchService:
    """Run the transfer pipeline whenever the source directory settles.

    Events are debounced: a run starts once no new event arrived for the
    debounce interval. Failed runs back off exponentially up to the configured
    maximum. :meth:`stop` cancels an in-flight run between files; files that
    were already delivered are still post-processed.
    """

    def __init__(
        self,
        config: FileRelayConfig,
        *,
        debounce_override: Optional[float] = None,
        pipeline_factory: Optional[PipelineFactory] = None,
    ) -> None:
        """Initialize the watch service.

        Args:
            config: Loaded configuration.
            debounce_override: Optional debounce interval override in seconds.
            pipeline_factory: Builds the pipeline used for each run.
        """
        if config.sender.source_directory is None:
            raise ValueError("A source directory is required to watch.")
        self._config = config
        self._source = config.sender.source_directory.expanduser().resolve()
        self._pipeline_factory = pipeline_factory or TransferPipeline.from_config
        self._pipeline: Optional[TransferPipeline] = None
        self._observer: Optional[Observer] = None
        self._queue: queue.Queue[Optional[Path]] = queue.Queue()
        self._stop_event = threading.Event()
        settings = config.watch
        self._debounce_seconds = (
            max(0.1, debounce_override)
            if debounce_override and debounce_override > 0
            else max(0.1, settings.debounce_seconds)
        )
        self._initial_backoff = max(0.1, settings.error_backoff_seconds)
        self._max_backoff = max(self._initial_backoff, settings.max_error_backoff_seconds)
        self._backoff = self._initial_backoff

    @property
    def source(self) -> Path:
        return self._source

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    # Public API -------------------------------------------------------

    def process_once(self) -> RunReport:
        """Run a single transfer pass.

        Raises:
            TransferError: If the source or target directory is inaccessible.
        """
        if self._pipeline is None:
            self._pipeline = self._pipeline_factory(self._config)
        return self._pipeline.run(self._stop_event)

    def watch(self, callback: Callable[[RunReport], None]) -> None:
        """Process existing files, then run again after each burst of events.

        Args:
            callback: Invoked with the report of every completed run.
        """
        if self._observer is not None:
            raise RuntimeError("WatchService is already running.")

        observer = Observer()
        observer.schedule(
            _WatchEventHandler(self._source, self._queue), str(self._source), recursive=False
        )
        self._observer = observer
        observer.start()
        LOGGER.info("Watching %s", self._source)
        try:
            self._run_pass(callback)
            self._run_loop(callback)
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop watching and cancel the running pass between files."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._queue.put(None)

    # Internal helpers -------------------------------------------------

    def _run_loop(self, callback: Callable[[RunReport], None]) -> None:
        flush_deadline: Optional[float] = None

        while not self._stop_event.is_set():
            timeout: Optional[float] = None
            if flush_deadline is not None:
                timeout = max(0.0, flush_deadline - time.monotonic())

            try:
                path = self._queue.get(timeout=timeout)
            except queue.Empty:
                flush_deadline = None
                self._run_pass(callback)
                continue

            if path is None:
                break
            LOGGER.debug("Change detected: %s", path)
            flush_deadline = time.monotonic() + self._debounce_seconds

    def _run_pass(self, callback: Callable[[RunReport], None]) -> None:
        if self._stop_event.is_set():
            return
        try:
            report = self.process_once()
        except TransferError as exc:
            LOGGER.error("Transfer run failed: %s; retrying in %.1f s", exc, self._backoff)
            self._stop_event.wait(self._backoff)
            self._backoff = min(self._backoff * 2, self._max_backoff)
            if not self._stop_event.is_set():
                self._queue.put(self._source)
            return
        self._backoff = self._initial_backoff
        callback(report)


class _WatchEventHandler(FileSystemEventHandler):
    """Forward file events from the source directory into the service queue."""

    def __init__(self, root: Path, queue_handle: queue.Queue[Optional[Path]]) -> None:
        self._root = root
        self._queue = queue_handle

    def on_created(self, event: FileSystemEvent) -> None:
        self._enqueue(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._enqueue(event)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - watchdog-specific
        self._enqueue(event)

    def _enqueue(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = Path(str(getattr(event, "dest_path", "") or event.src_path))
        if path.parent != self._root or path.name.endswith((PROCESSED_SUFFIX, TEMP_SUFFIX)):
            return
        self._queue.put(path)


__all__ = ["WatchService"]
