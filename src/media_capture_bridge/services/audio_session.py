"""Microphone recording session.

Chunks pushed by the microphone are appended to an in-memory WAV stream as
soon as they arrive. The duration counter and the label shown on the
recording page are advanced through a separate dispatch hook, so the sample
buffer never depends on when (or whether) the UI update runs.
"""

from __future__ import annotations

import asyncio
import io
import logging
from datetime import timedelta
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from ..exceptions import InvalidStateError
from ..models.capture import CapturedMedia, CaptureOutcome
from ..wav import WAV_HEADER_SIZE, update_wav_header, write_wav_header
from .storage import AUDIO_FOLDER, MediaStorage

logger = logging.getLogger(__name__)

FILE_NAME_FORMAT = "Audio-{}.wav"


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    FINALIZED = "finalized"


def _call_now(fn: Callable[[], None]) -> None:
    fn()


def format_duration(duration: timedelta) -> str:
    total = int(duration.total_seconds())
    minutes, seconds = divmod(total, 60)
    return f"Duration: {minutes % 60:02d}:{seconds:02d}"


class AudioCaptureSession:
    def __init__(
        self,
        storage: MediaStorage,
        *,
        dispatch: Callable[[Callable[[], None]], None] | None = None,
        on_duration_changed: Callable[[timedelta], None] | None = None,
    ) -> None:
        self._storage = storage
        self._dispatch = dispatch or _call_now
        self._on_duration_changed = on_duration_changed

        self._state = RecordingState.IDLE
        self._buffer: Optional[io.BytesIO] = None
        self._duration = timedelta(0)
        self._sample_rate = 0
        self._chunks = 0
        self._result: Optional[CaptureOutcome] = None

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def result(self) -> Optional[CaptureOutcome]:
        """Outcome of the last finalize(), kept until the page is closed."""
        return self._result

    @property
    def is_recording(self) -> bool:
        return self._state == RecordingState.RECORDING

    @property
    def duration(self) -> timedelta:
        return self._duration

    @property
    def duration_label(self) -> str:
        return format_duration(self._duration)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def data_size(self) -> int:
        """Number of sample bytes recorded so far (header excluded)."""
        if self._buffer is None:
            return 0
        return max(0, self._buffer.getbuffer().nbytes - WAV_HEADER_SIZE)

    def start(self, sample_rate: int) -> None:
        if self._state not in (RecordingState.IDLE, RecordingState.STOPPED):
            raise InvalidStateError(f"cannot start recording in state {self._state.value}")
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive: {sample_rate}")

        self._buffer = io.BytesIO()
        write_wav_header(self._buffer, sample_rate)
        self._sample_rate = sample_rate
        self._duration = timedelta(0)
        self._chunks = 0
        self._state = RecordingState.RECORDING
        logger.info(f"Audio recording started at {sample_rate}Hz")

    def on_buffer_delivered(self, chunk: bytes, duration: timedelta) -> None:
        """Append one microphone buffer. Must be called in delivery order."""

        if self._state != RecordingState.RECORDING or self._buffer is None:
            raise InvalidStateError(f"audio chunk delivered in state {self._state.value}")

        self._buffer.write(chunk)
        self._chunks += 1
        if self._chunks <= 3 or self._chunks % 100 == 0:
            logger.debug(f"Audio chunk #{self._chunks}: {len(chunk)} bytes, total={self.data_size}")

        self._dispatch(lambda: self._advance_duration(duration))

    def _advance_duration(self, duration: timedelta) -> None:
        if duration > timedelta(0):
            self._duration += duration
        if self._on_duration_changed is not None:
            self._on_duration_changed(self._duration)

    def stop(self) -> None:
        if self._state != RecordingState.RECORDING:
            raise InvalidStateError(f"cannot stop recording in state {self._state.value}")

        self._state = RecordingState.STOPPED
        logger.info(f"Audio recording stopped: {self._chunks} chunks, {self.data_size} bytes")

    async def finalize(self) -> CaptureOutcome:
        """Write the recording to storage.

        Returns a cancelled outcome when nothing was recorded. StorageError
        propagates to the caller.
        """
        if self._state == RecordingState.RECORDING:
            raise InvalidStateError("stop the recording before finalizing")
        if self._state == RecordingState.FINALIZED:
            raise InvalidStateError("recording already finalized")

        if self._buffer is None or self.data_size <= 0:
            self._state = RecordingState.FINALIZED
            self._result = CaptureOutcome.cancelled()
            return self._result

        update_wav_header(self._buffer)
        content = self._buffer.getvalue()
        file_name = FILE_NAME_FORMAT.format(uuid4())

        # Avoid blocking event loop on file I/O.
        path = await asyncio.to_thread(self._storage.save, AUDIO_FOLDER, file_name, content)

        self._state = RecordingState.FINALIZED
        stored_name = path.rsplit("/", 1)[-1]
        self._result = CaptureOutcome.ok(CapturedMedia(file_name=stored_name, content=content, stored_path=path))
        return self._result

    def close(self) -> CaptureOutcome:
        """The recording page went away: report the taken clip, or a cancel."""
        if self._result is not None:
            return self._result
        return self.cancel()

    def cancel(self) -> CaptureOutcome:
        if self._state == RecordingState.RECORDING:
            self.stop()
        self._buffer = None
        self._state = RecordingState.FINALIZED
        return CaptureOutcome.cancelled()
