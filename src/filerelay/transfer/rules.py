"""Custom validation rules evaluated against a file's name, size and content."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional

from .models import ValidationCategory

if TYPE_CHECKING:
    from filerelay.config.models import (
        ContentContainsRule,
        ContentExcludesRule,
        FilenameRegexRule,
        FileSizeRangeRule,
        HeaderRule,
        LineCountRule,
        ValidationRule,
    )

LOGGER = logging.getLogger(__name__)

MAX_HEADER_LINES = 100


@dataclass(slots=True)
class RuleViolation:
    """An error-severity rule failure."""

    message: str
    category: ValidationCategory


@dataclass(slots=True)
class RuleReport:
    """Errors and warnings accumulated while evaluating a rule set."""

    errors: list[RuleViolation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def first_error(self) -> Optional[RuleViolation]:
        return self.errors[0] if self.errors else None


@dataclass(slots=True)
class _Subject:
    name: str
    size_bytes: int
    content: Optional[bytes]

    _text: Optional[str] = None

    @property
    def text(self) -> str:
        if self._text is None:
            self._text = (self.content or b"").decode("utf-8", errors="replace")
        return self._text


def _fail(
    rule: "ValidationRule", report: RuleReport, message: str, category: ValidationCategory
) -> None:
    if rule.severity == "warning":
        report.warnings.append(message)
    else:
        report.errors.append(RuleViolation(message=message, category=category))


def _check_filename_regex(rule: "FilenameRegexRule", subject: _Subject, report: RuleReport) -> None:
    if not rule.pattern.strip():
        report.warnings.append("Filename regex rule has no pattern")
        return
    try:
        pattern = re.compile(rule.pattern)
    except re.error as exc:
        report.warnings.append(f"Invalid regex pattern in custom rule: {rule.pattern} - {exc}")
        return
    if pattern.fullmatch(subject.name) is None:
        message = rule.error_message or "Filename does not match custom pattern"
        _fail(
            rule,
            report,
            f"{message} (pattern: {rule.pattern}, filename: {subject.name})",
            ValidationCategory.NAME,
        )


def _check_range(
    rule: "FileSizeRangeRule | LineCountRule",
    report: RuleReport,
    *,
    actual: int,
    minimum: Optional[int],
    maximum: Optional[int],
    unit: str,
    default_message: str,
    category: ValidationCategory,
) -> None:
    if minimum is None and maximum is None:
        report.warnings.append(f"{rule.type} rule sets neither a minimum nor a maximum")
        return
    for label, bound in (("minimum", minimum), ("maximum", maximum)):
        if bound is not None and bound < 0:
            report.warnings.append(f"Invalid negative {label} in {rule.type} rule: {bound}")
            return
    if minimum is not None and maximum is not None and minimum > maximum:
        report.warnings.append(
            f"Invalid {rule.type} range: minimum ({minimum}) is greater than maximum ({maximum})"
        )
        return

    message = rule.error_message or default_message
    if minimum is not None and actual < minimum:
        _fail(
            rule,
            report,
            f"{message} (actual: {actual} {unit}, minimum: {minimum} {unit})",
            category,
        )
    elif maximum is not None and actual > maximum:
        _fail(
            rule,
            report,
            f"{message} (actual: {actual} {unit}, maximum: {maximum} {unit})",
            category,
        )


def _check_file_size_range(
    rule: "FileSizeRangeRule", subject: _Subject, report: RuleReport
) -> None:
    _check_range(
        rule,
        report,
        actual=subject.size_bytes,
        minimum=rule.min_size,
        maximum=rule.max_size,
        unit="bytes",
        default_message="File size not within custom range",
        category=ValidationCategory.SIZE,
    )


def _search(
    rule: "ContentContainsRule | ContentExcludesRule", subject: _Subject
) -> tuple[str, str]:
    haystack, needle = subject.text, rule.text
    if rule.case_insensitive:
        return haystack.casefold(), needle.casefold()
    return haystack, needle


def _check_content_contains(
    rule: "ContentContainsRule", subject: _Subject, report: RuleReport
) -> None:
    if not rule.text:
        report.warnings.append("Content contains rule has no text")
        return
    haystack, needle = _search(rule, subject)
    if needle not in haystack:
        message = rule.error_message or "File content does not contain required text"
        _fail(rule, report, f"{message}: {rule.text}", ValidationCategory.CONTENT)


def _check_content_excludes(
    rule: "ContentExcludesRule", subject: _Subject, report: RuleReport
) -> None:
    if not rule.text:
        report.warnings.append("Content excludes rule has no text")
        return
    haystack, needle = _search(rule, subject)
    if needle in haystack:
        message = rule.error_message or "File content contains forbidden text"
        _fail(rule, report, f"{message}: {rule.text}", ValidationCategory.CONTENT)


def _check_header(rule: "HeaderRule", subject: _Subject, report: RuleReport) -> None:
    if not rule.expected_header:
        report.warnings.append("Header validation rule has no expected header")
        return
    lines_to_check = rule.lines_to_check
    if not 0 < lines_to_check <= MAX_HEADER_LINES:
        report.warnings.append(
            f"Invalid lines_to_check value (must be 1-{MAX_HEADER_LINES}): {lines_to_check}"
        )
        lines_to_check = 1

    lines = subject.text.splitlines()
    message = rule.error_message or "File header does not match expected format"
    if not lines:
        _fail(rule, report, f"{message} (file is empty)", ValidationCategory.FORMAT)
        return
    actual = "\n".join(lines[:lines_to_check])
    if not actual.startswith(rule.expected_header):
        shown = actual if len(actual) <= 100 else actual[:100] + "..."
        _fail(
            rule,
            report,
            f"{message} (expected: {rule.expected_header!r}, actual: {shown!r})",
            ValidationCategory.FORMAT,
        )


def _check_line_count(rule: "LineCountRule", subject: _Subject, report: RuleReport) -> None:
    _check_range(
        rule,
        report,
        actual=len(subject.text.splitlines()),
        minimum=rule.min_lines,
        maximum=rule.max_lines,
        unit="lines",
        default_message="File line count not within expected range",
        category=ValidationCategory.CONTENT,
    )


_CHECKS: Dict[str, Callable[..., None]] = {
    "filename_regex": _check_filename_regex,
    "file_size_range": _check_file_size_range,
    "content_contains": _check_content_contains,
    "content_excludes": _check_content_excludes,
    "header_validation": _check_header,
    "line_count": _check_line_count,
}

CONTENT_RULE_TYPES = frozenset(
    {"content_contains", "content_excludes", "header_validation", "line_count"}
)


def evaluate_rules(
    rules: Iterable["ValidationRule"],
    *,
    name: str,
    size_bytes: int,
    content: Optional[bytes],
) -> RuleReport:
    """Evaluate every rule and collect errors and warnings.

    Rules never stop each other: all of them run so every warning is reported.
    A rule that is misconfigured (bad regex, inverted range, missing text)
    contributes a warning instead of an error. Content rules are skipped with a
    warning when ``content`` is ``None``.

    Args:
        rules: Configured rules.
        name: File name checked by ``filename_regex``.
        size_bytes: Size checked by ``file_size_range``.
        content: Bytes already read from the file.

    Returns:
        RuleReport: Accumulated errors and warnings.
    """
    report = RuleReport()
    subject = _Subject(name=name, size_bytes=size_bytes, content=content)
    for rule in rules:
        check = _CHECKS.get(rule.type)
        if check is None:
            report.warnings.append(f"Unknown custom validation rule type: {rule.type}")
            continue
        if content is None and rule.type in CONTENT_RULE_TYPES:
            report.warnings.append(f"Skipped {rule.type} rule: content unavailable")
            continue
        try:
            check(rule, subject, report)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Custom rule %s failed for %s: %s", rule.type, name, exc)
            report.warnings.append(f"Failed to evaluate {rule.type} rule: {exc}")
    return report


__all__ = ["RuleReport", "RuleViolation", "evaluate_rules", "CONTENT_RULE_TYPES"]
