"""Destination file name generation."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from .models import OutputNamingMode

LOGGER = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
DATE_FORMAT = "%Y%m%d"


def split_extension(name: str) -> tuple[str, str]:
    """Split ``name`` at its last dot.

    A leading dot belongs to the stem, so ``.env`` has no extension and
    ``archive.tar.gz`` splits into ``archive.tar`` and ``.gz``.
    """
    index = name.rfind(".")
    if index <= 0:
        return name, ""
    return name[:index], name[index:]


class OutputNamer:
    """Compute destination names for delivered files.

    :meth:`name_for` never raises; any failure falls back to the source name.
    """

    def __init__(
        self,
        mode: OutputNamingMode = OutputNamingMode.ORIGINAL,
        pattern: Optional[str] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        uuid_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ) -> None:
        self.mode = OutputNamingMode.parse(mode)
        self.pattern = pattern or ""
        self._clock = clock
        self._uuid_factory = uuid_factory
        if self.mode is OutputNamingMode.CUSTOM_PATTERN and not self.pattern.strip():
            LOGGER.warning("Custom naming selected without a pattern; using original names")
            self.mode = OutputNamingMode.ORIGINAL

    def name_for(self, original: str) -> str:
        """Return the destination name for ``original``."""
        try:
            generated = self._generate(original)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to generate output name for %s: %s", original, exc)
            return original
        if not generated or "/" in generated or "\\" in generated or generated in (".", ".."):
            LOGGER.warning(
                "Generated output name %r for %s is unusable; using original name",
                generated,
                original,
            )
            return original
        return generated

    def _generate(self, original: str) -> str:
        if self.mode is OutputNamingMode.ORIGINAL:
            return original

        now = self._clock()
        stem, extension = split_extension(original)
        if self.mode is OutputNamingMode.TIMESTAMPED:
            return f"{stem}_{now.strftime(TIMESTAMP_FORMAT)}{extension}"

        tokens = {
            "{original_name}": stem,
            "{timestamp}": now.strftime(TIMESTAMP_FORMAT),
            "{date}": now.strftime(DATE_FORMAT),
            "{extension}": extension,
        }
        result = self.pattern
        for token, value in tokens.items():
            result = result.replace(token, value)
        if "{uuid}" in result:
            result = result.replace("{uuid}", str(self._uuid_factory()))
        return result


__all__ = ["OutputNamer", "split_extension", "TIMESTAMP_FORMAT", "DATE_FORMAT"]
