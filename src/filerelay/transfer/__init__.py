"""File transfer pipeline: collection, delivery and post-processing."""

from .collector import CollectionResult, FileCollector
from .context import ExecutionContext
from .delivery import DeliveryBatch, FileDeliverer
from .discovery import DirectoryScanner
from .errors import SourceNotAccessibleError, TargetNotAccessibleError, TransferError
from .models import (
    DeliveryResult,
    DeliveryStatus,
    EmptyFileHandling,
    EmptyMessageHandling,
    FileCandidate,
    OutputNamingMode,
    PostProcessAction,
    PostProcessOutcome,
    ReadStatus,
    TransferUnit,
    ValidationCategory,
    ValidationDecision,
    ValidationOutcome,
    WriteMode,
)
from .naming import OutputNamer
from .pipeline import RunReport, TransferPipeline
from .postprocess import PostProcessor
from .quarantine import ErrorQuarantine
from .stability import StabilityGate
from .validation import ValidationChain
from .writer import DestinationWriter

__all__ = [
    "CollectionResult",
    "DeliveryBatch",
    "DeliveryResult",
    "DeliveryStatus",
    "DestinationWriter",
    "DirectoryScanner",
    "EmptyFileHandling",
    "EmptyMessageHandling",
    "ErrorQuarantine",
    "ExecutionContext",
    "FileCandidate",
    "FileCollector",
    "FileDeliverer",
    "OutputNamer",
    "OutputNamingMode",
    "PostProcessAction",
    "PostProcessOutcome",
    "PostProcessor",
    "ReadStatus",
    "RunReport",
    "SourceNotAccessibleError",
    "StabilityGate",
    "TargetNotAccessibleError",
    "TransferError",
    "TransferPipeline",
    "TransferUnit",
    "ValidationCategory",
    "ValidationChain",
    "ValidationDecision",
    "ValidationOutcome",
    "WriteMode",
]
