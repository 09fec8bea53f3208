"""Audit and step-tracking records emitted by the transfer pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TransferEventKind(str, Enum):
    """Lifecycle points reported to the audit sink."""

    DISCOVERED = "discovered"
    VALIDATED = "validated"
    REJECTED = "rejected"
    QUARANTINED = "quarantined"
    COLLECTED = "collected"
    READ_FAILED = "read_failed"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    SKIPPED = "skipped"
    POST_PROCESSED = "post_processed"
    POST_PROCESS_FAILED = "post_process_failed"


class TransferEvent(BaseModel):
    """A single audit record describing what happened to one file."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    run_id: str
    kind: TransferEventKind
    file_name: str
    source_path: Optional[str] = None
    destination: Optional[str] = None
    size_bytes: int = Field(default=0, ge=0)
    detail: str = ""


class StepEntry(BaseModel):
    """A file reported to the external execution-step tracker."""

    file_name: str
    destination: str
    size_bytes: int = Field(default=0, ge=0)


__all__ = ["TransferEventKind", "TransferEvent", "StepEntry"]
