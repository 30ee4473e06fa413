"""Exception types raised by media-capture-bridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for bridge failures."""


class DecodeError(BridgeError):
    """Options payload could not be decoded."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class ValidationError(BridgeError):
    """A required field is missing or empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Required field '{field}' is missing")


class NativeCaptureError(BridgeError):
    """The native side reported a failure or could not be reached."""


class StorageError(BridgeError):
    """Raised when reading from or writing to media storage fails."""

    def __init__(self, path: str, cause: Exception | None = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Storage operation failed for '{path}'{detail}")


class UnsupportedFormatError(BridgeError):
    """Format data was requested for a mime type other than image/jpeg."""

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__(f"Unsupported media type: {mime_type}")


class UnseekableStreamError(BridgeError):
    """The WAV header cannot be rewritten on a non-seekable stream."""


class InvalidStateError(BridgeError):
    """An audio session operation was called in the wrong state."""


class CommandError(BridgeError):
    """A command returned a non-OK envelope (client side)."""

    def __init__(self, status: str, message: str | None):
        self.status = status
        self.message = message
        super().__init__(f"{status}: {message}" if message else status)
