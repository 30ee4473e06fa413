"""
media-capture-bridge - Bridge between a scripting layer and native capture facilities

Usage:
    # Server
    uvicorn media_capture_bridge.main:app

    # Scripting side client
    from media_capture_bridge import BridgeClient

    async with BridgeClient("ws://localhost:8000") as client:
        envelope = await client.invoke("captureImage", {"limit": 2})
        for media_file in envelope.raise_for_status():
            print(media_file["fullPath"])
"""

__version__ = "0.1.0"

from .client import BridgeClient
from .exceptions import CommandError
from .models import CaptureKind, CaptureOutcome, CapturedMedia, MediaDescriptor, MediaFormatDescriptor
from .protocol import ResultEnvelope, ResultStatus

__all__ = [
    "BridgeClient",
    "CaptureKind",
    "CaptureOutcome",
    "CapturedMedia",
    "CommandError",
    "MediaDescriptor",
    "MediaFormatDescriptor",
    "ResultEnvelope",
    "ResultStatus",
]
