from .capture import CapturedMedia, CaptureKind, CaptureOutcome, OutcomeStatus
from .media import MediaDescriptor, MediaFormatDescriptor, get_mime_type

__all__ = [
    "CaptureKind",
    "CaptureOutcome",
    "CapturedMedia",
    "MediaDescriptor",
    "MediaFormatDescriptor",
    "OutcomeStatus",
    "get_mime_type",
]
