"""Transfer pipeline errors."""


class TransferError(Exception):
    """Base exception for failures that abort a whole transfer run."""


class SourceNotAccessibleError(TransferError):
    """Raised when the source directory is missing or not a directory."""


class TargetNotAccessibleError(TransferError):
    """Raised when the destination directory cannot be prepared."""
