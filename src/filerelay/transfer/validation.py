"""Ordered validation chain deciding whether a candidate may be collected."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Optional

from .discovery import matches_glob
from .models import EmptyFileHandling, FileCandidate, ValidationCategory, ValidationOutcome
from .rules import evaluate_rules
from .stability import StabilityGate

if TYPE_CHECKING:
    from filerelay.config.models import SenderOptions

LOGGER = logging.getLogger(__name__)

FUTURE_MTIME_TOLERANCE = timedelta(seconds=60)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ValidationChain:
    """Run the fixed-order checks for one candidate.

    Required checks run in this order and the first failure wins: existence and
    readability, exclusion mask, read-only policy, size bound, empty-file
    policy, stability. Custom rules run afterwards against content that has
    already been read, and only their error-severity failures reject.
    """

    def __init__(
        self,
        options: "SenderOptions",
        *,
        stability: Optional[StabilityGate] = None,
        clock: Clock = _utcnow,
    ) -> None:
        self.options = options
        self.stability = stability or StabilityGate(options.msecs_to_wait_before_modification_check)
        self._clock = clock

    def validate(self, candidate: FileCandidate) -> ValidationOutcome:
        """Run every required check, including the blocking stability check."""
        outcome = self.check_required(candidate)
        if not outcome.accepted:
            return outcome
        try:
            stable = self.stability.is_stable(candidate)
        except Exception as exc:  # noqa: BLE001
            return self._unexpected(candidate, exc)
        if not stable:
            return self.unstable(candidate, warnings=outcome.warnings)
        return outcome

    def check_required(self, candidate: FileCandidate) -> ValidationOutcome:
        """Run the required checks that do not wait on the filesystem."""
        try:
            return self._check_required(candidate)
        except Exception as exc:  # noqa: BLE001
            return self._unexpected(candidate, exc)

    def check_content(
        self,
        candidate: FileCandidate,
        content: Optional[bytes],
        *,
        warnings: Optional[list[str]] = None,
    ) -> ValidationOutcome:
        """Evaluate custom rules against bytes that were already read.

        Args:
            candidate: File the content belongs to.
            content: Bytes read from ``candidate``.
            warnings: Warnings carried over from the required checks.

        Returns:
            ValidationOutcome: ``REJECT_QUARANTINE`` on the first error-severity
            failure, otherwise an acceptance carrying every warning.
        """
        carried = list(warnings or [])
        if not self.options.rules:
            return ValidationOutcome.accept(carried)
        try:
            report = evaluate_rules(
                self.options.rules,
                name=candidate.name,
                size_bytes=len(content) if content is not None else candidate.size_bytes,
                content=content,
            )
        except Exception as exc:  # noqa: BLE001
            return self._unexpected(candidate, exc)

        all_warnings = carried + report.warnings
        for message in report.warnings:
            LOGGER.warning("Validation warning for %s: %s", candidate.name, message)
        violation = report.first_error()
        if violation is not None:
            return ValidationOutcome.reject(
                violation.message,
                violation.category,
                quarantine=True,
                warnings=all_warnings,
            )
        return ValidationOutcome.accept(all_warnings)

    def unstable(
        self, candidate: FileCandidate, *, warnings: Optional[list[str]] = None
    ) -> ValidationOutcome:
        """Return the rejection used for files that are still being written."""
        return ValidationOutcome.reject(
            f"File is still being modified: {candidate.name}",
            ValidationCategory.LOCK_STATUS,
            warnings=warnings,
        )

    # Internal helpers -------------------------------------------------

    def _check_required(self, candidate: FileCandidate) -> ValidationOutcome:
        options = self.options
        path = candidate.path
        warnings: list[str] = []

        if not path.exists():
            return ValidationOutcome.reject(
                f"File does not exist: {path}", ValidationCategory.UNKNOWN
            )
        if not path.is_file():
            return ValidationOutcome.reject(
                f"Not a regular file: {path}", ValidationCategory.FORMAT
            )
        if not os.access(path, os.R_OK):
            return ValidationOutcome.reject(
                f"File is not readable: {path}",
                ValidationCategory.PERMISSION,
                quarantine=True,
            )

        if matches_glob(candidate.name, options.exclusion_mask):
            return ValidationOutcome.reject(
                f"File matches exclusion mask {options.exclusion_mask}",
                ValidationCategory.NAME,
            )

        if candidate.read_only and not options.process_read_only_files:
            return ValidationOutcome.reject(
                f"File is read-only: {candidate.name}", ValidationCategory.PERMISSION
            )

        maximum = options.maximum_file_size
        if maximum > 0 and candidate.size_bytes > maximum:
            return ValidationOutcome.reject(
                f"File size {candidate.size_bytes} bytes exceeds maximum {maximum} bytes",
                ValidationCategory.SIZE,
                quarantine=True,
            )

        if candidate.size_bytes == 0:
            policy = options.empty_file_handling
            if policy is not EmptyFileHandling.PROCESS:
                return ValidationOutcome.reject(
                    f"Empty file skipped ({policy.value})", ValidationCategory.SIZE
                )

        if candidate.last_modified_at > self._clock() + FUTURE_MTIME_TOLERANCE:
            message = (
                f"File modification time is in the future: "
                f"{candidate.last_modified_at.isoformat()}"
            )
            LOGGER.warning("Validation warning for %s: %s", candidate.name, message)
            warnings.append(message)

        return ValidationOutcome.accept(warnings)

    def _unexpected(self, candidate: FileCandidate, exc: Exception) -> ValidationOutcome:
        LOGGER.exception("Validation of %s failed unexpectedly", candidate.name)
        return ValidationOutcome.reject(
            f"Validation error: {exc}",
            ValidationCategory.UNKNOWN,
            quarantine=True,
        )


__all__ = ["ValidationChain", "FUTURE_MTIME_TOLERANCE"]
