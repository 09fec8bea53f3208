"""Continuous, event-triggered transfer runs."""

from .service import WatchService

__all__ = ["WatchService"]
