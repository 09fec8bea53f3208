"""Audit log errors."""


class AuditError(Exception):
    """Base exception for audit log operations."""


class CorruptAuditLogError(AuditError):
    """Raised when a stored audit entry cannot be parsed."""
