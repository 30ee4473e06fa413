"""Capture domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CaptureKind(str, Enum):
    """キャプチャの種類"""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class OutcomeStatus(str, Enum):
    """ネイティブ側キャプチャの終了状態"""

    OK = "ok"
    CANCELLED = "cancelled"
    FAILED = "failed"
    OTHER = "other"


@dataclass(frozen=True)
class CapturedMedia:
    """Content produced by one native capture.

    stored_path is set when the producer already wrote the content to media
    storage (audio recordings); otherwise the dispatcher persists it.
    """

    file_name: str
    content: bytes
    stored_path: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class CaptureOutcome:
    """Exactly one of these is delivered per native capture invocation."""

    status: OutcomeStatus
    media: Optional[CapturedMedia] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, media: CapturedMedia) -> "CaptureOutcome":
        return cls(OutcomeStatus.OK, media=media)

    @classmethod
    def cancelled(cls) -> "CaptureOutcome":
        return cls(OutcomeStatus.CANCELLED)

    @classmethod
    def failed(cls, error: Exception) -> "CaptureOutcome":
        return cls(OutcomeStatus.FAILED, error=error)

    @classmethod
    def other(cls) -> "CaptureOutcome":
        return cls(OutcomeStatus.OTHER)
