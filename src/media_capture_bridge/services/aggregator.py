"""Repeat-until-limit controller shared by image, audio and video capture."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..models.media import MediaDescriptor

CANCELED_MESSAGE = "Canceled."
DID_NOT_COMPLETE_MESSAGE = "Did not complete"


class Action(str, Enum):
    CAPTURE_AGAIN = "capture_again"
    FLUSH = "flush"
    ERROR = "error"


@dataclass(frozen=True)
class Decision:
    action: Action
    results: list[MediaDescriptor] = field(default_factory=list)
    message: Optional[str] = None


class CaptureResultAggregator:
    """Collects descriptors for one capture command.

    The pending list never grows past `limit`: reaching the limit flushes it.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"limit must be at least 1: {limit}")
        self._limit = limit
        self._pending: list[MediaDescriptor] = []

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def pending(self) -> tuple[MediaDescriptor, ...]:
        return tuple(self._pending)

    def on_artifact_captured(self, descriptor: MediaDescriptor) -> Decision:
        self._pending.append(descriptor)
        if len(self._pending) < self._limit:
            return Decision(Action.CAPTURE_AGAIN)
        return self._flush()

    def on_cancelled(self) -> Decision:
        return self._flush_or_error(CANCELED_MESSAGE)

    def on_unknown_outcome(self) -> Decision:
        return self._flush_or_error(DID_NOT_COMPLETE_MESSAGE)

    def discard(self) -> None:
        self._pending.clear()

    def _flush_or_error(self, message: str) -> Decision:
        # partial results count as success
        if self._pending:
            return self._flush()
        return Decision(Action.ERROR, message=message)

    def _flush(self) -> Decision:
        results = list(self._pending)
        self._pending.clear()
        return Decision(Action.FLUSH, results=results)
