"""Native host connection.

The native host (camera chooser, recording page, media player) connects over
`WS /api/ws/native`. This service turns its messages into capture outcomes:

- server -> host: {"type": "show", "kind": "image", "limit": 1}
                  {"type": "play", "path": "AudioCache/Audio-....wav"}
                  {"type": "recording_duration", "text": "Duration: 00:05"}
                  {"type": "dismiss", "kind": "image"}   (the scripting side went away)
- host -> server: {"type": "outcome", "status": "ok", "fileName": "...", "data": "<base64>"}
                  {"type": "outcome", "status": "cancelled" | "other"}
                  {"type": "outcome", "status": "failed", "message": "..."}
                  {"type": "recording", "action": "start", "sampleRate": 16000, "bufferDurationMs": 500}
                  {"type": "recording", "action": "stop" | "take" | "close"}
                  binary frames: PCM chunks while recording

An audio capture completes on "close": with the clip saved by the last
"take", or as cancelled when nothing was taken.

Only one native capture is active at a time and it waits for the host
without a timeout.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from ..exceptions import InvalidStateError, NativeCaptureError, StorageError
from ..models.capture import CapturedMedia, CaptureKind, CaptureOutcome, OutcomeStatus
from ..protocol import CaptureOptions
from .audio_session import AudioCaptureSession, format_duration
from .capabilities import CapabilitiesInvoker, MediaPlayer
from .storage import MediaStorage

logger = logging.getLogger(__name__)

SendJson = Callable[[dict[str, Any]], Awaitable[None]]

_DEFAULT_EXTENSIONS = {
    CaptureKind.IMAGE: ".jpg",
    CaptureKind.AUDIO: ".wav",
    CaptureKind.VIDEO: ".mp4",
}


class NativeBridge(CapabilitiesInvoker, MediaPlayer):
    def __init__(
        self,
        storage: MediaStorage,
        *,
        sample_rate: int = 16000,
        buffer_duration_ms: int = 500,
    ) -> None:
        self._storage = storage
        self._default_sample_rate = sample_rate
        self._default_buffer_duration = timedelta(milliseconds=buffer_duration_ms)
        self._buffer_duration = self._default_buffer_duration

        self._send: Optional[SendJson] = None
        self._pending: Optional[asyncio.Future[CaptureOutcome]] = None
        self._pending_kind: Optional[CaptureKind] = None
        self._recorder: Optional[AudioCaptureSession] = None

    @property
    def is_attached(self) -> bool:
        return self._send is not None

    @property
    def recorder(self) -> Optional[AudioCaptureSession]:
        return self._recorder

    def attach(self, send: SendJson) -> bool:
        """Register the native host. Returns False if one is already attached."""
        if self._send is not None:
            return False
        self._send = send
        logger.info("Native host attached")
        return True

    def detach(self) -> None:
        self._send = None
        recorder = self._recorder
        if recorder is not None and recorder.result is not None:
            # A clip was already taken and saved.
            self._complete(recorder.result)
        else:
            if recorder is not None and recorder.is_recording:
                recorder.cancel()
            # The host vanished mid-capture: nobody will report how it ended.
            self._complete(CaptureOutcome.other())
        logger.info("Native host detached")

    # --- CapabilitiesInvoker / MediaPlayer -----------------------------

    async def capture(self, kind: CaptureKind, options: CaptureOptions) -> CaptureOutcome:
        if self._send is None:
            return CaptureOutcome.failed(NativeCaptureError("Native host is not connected"))
        if self._pending is not None and not self._pending.done():
            return CaptureOutcome.failed(NativeCaptureError("A native capture is already active"))

        loop = asyncio.get_running_loop()
        future: asyncio.Future[CaptureOutcome] = loop.create_future()
        self._pending = future
        self._pending_kind = kind
        if kind == CaptureKind.AUDIO:
            self._buffer_duration = self._default_buffer_duration
            self._recorder = AudioCaptureSession(
                self._storage,
                dispatch=loop.call_soon,
                on_duration_changed=self._on_duration_changed,
            )

        try:
            try:
                await self._send({"type": "show", "kind": kind.value, "limit": options.limit})
            except Exception as e:
                return CaptureOutcome.failed(NativeCaptureError(f"Failed to show native {kind.value} capture: {e}"))
            try:
                return await future
            except asyncio.CancelledError:
                # Nobody is waiting for this capture any more.
                await self._dismiss(kind)
                raise
        finally:
            self._pending = None
            self._pending_kind = None
            self._recorder = None

    async def launch_player(self, path: str) -> None:
        if self._send is None:
            raise NativeCaptureError("Native host is not connected")
        try:
            await self._send({"type": "play", "path": path})
        except Exception as e:
            raise NativeCaptureError(f"Failed to launch player: {e}") from e

    async def _dismiss(self, kind: CaptureKind) -> None:
        recorder = self._recorder
        if recorder is not None and recorder.result is None:
            recorder.cancel()

        send = self._send
        if send is None:
            return
        logger.info(f"Dismissing native {kind.value} capture")
        try:
            await send({"type": "dismiss", "kind": kind.value})
        except Exception as e:
            logger.warning(f"Failed to dismiss native {kind.value} capture: {e}")

    # --- host messages -------------------------------------------------

    async def handle_message(self, data: dict[str, Any]) -> None:
        msg_type = data.get("type")
        if msg_type == "outcome":
            self._complete(self._parse_outcome(data))
        elif msg_type == "recording":
            await self._handle_recording(data)
        else:
            logger.warning(f"Unknown native message type: {msg_type}")

    def handle_audio_chunk(self, chunk: bytes) -> None:
        recorder = self._recorder
        if recorder is None or not recorder.is_recording:
            logger.warning(f"Dropping {len(chunk)} byte audio chunk: not recording")
            return
        recorder.on_buffer_delivered(chunk, self._buffer_duration)

    def _parse_outcome(self, data: dict[str, Any]) -> CaptureOutcome:
        try:
            status = OutcomeStatus(str(data.get("status", "")).lower())
        except ValueError:
            return CaptureOutcome.other()

        if status == OutcomeStatus.CANCELLED:
            return CaptureOutcome.cancelled()
        if status == OutcomeStatus.OTHER:
            return CaptureOutcome.other()
        if status == OutcomeStatus.FAILED:
            return CaptureOutcome.failed(NativeCaptureError(str(data.get("message") or "")))

        try:
            content = base64.b64decode(data.get("data") or "", validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            return CaptureOutcome.failed(NativeCaptureError(f"Invalid capture data: {e}"))
        if not content:
            return CaptureOutcome.failed(NativeCaptureError("Capture data is missing"))

        file_name = data.get("fileName") or self._default_file_name()
        return CaptureOutcome.ok(CapturedMedia(file_name=str(file_name), content=content))

    def _default_file_name(self) -> str:
        kind = self._pending_kind or CaptureKind.IMAGE
        return f"{kind.value.capitalize()}-{uuid4()}{_DEFAULT_EXTENSIONS[kind]}"

    async def _handle_recording(self, data: dict[str, Any]) -> None:
        recorder = self._recorder
        if recorder is None:
            logger.warning("Recording message without an active audio capture")
            return

        action = data.get("action")
        try:
            if action == "start":
                sample_rate = int(data.get("sampleRate") or self._default_sample_rate)
                buffer_ms = data.get("bufferDurationMs")
                if buffer_ms:
                    self._buffer_duration = timedelta(milliseconds=int(buffer_ms))
                recorder.start(sample_rate)
            elif action == "stop":
                recorder.stop()
            elif action == "take":
                # The capture completes when the page is closed.
                if recorder.is_recording:
                    recorder.stop()
                try:
                    await recorder.finalize()
                except StorageError as e:
                    logger.error(f"Failed to save audio clip: {e}")
                    self._complete(CaptureOutcome.failed(e))
            elif action == "close":
                self._complete(recorder.close())
            else:
                logger.warning(f"Unknown recording action: {action}")
        except (InvalidStateError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring recording action {action}: {e}")

    def _complete(self, outcome: CaptureOutcome) -> None:
        future = self._pending
        if future is None or future.done():
            if outcome.status != OutcomeStatus.OTHER:
                logger.warning(f"Native outcome {outcome.status.value} without a pending capture")
            return
        future.set_result(outcome)

    def _on_duration_changed(self, duration: timedelta) -> None:
        send = self._send
        if send is None:
            return
        asyncio.create_task(self._send_duration(send, format_duration(duration)))

    async def _send_duration(self, send: SendJson, text: str) -> None:
        try:
            await send({"type": "recording_duration", "text": text})
        except Exception as e:
            logger.debug(f"Failed to send duration label: {e}")


_native_bridge: Optional[NativeBridge] = None


def get_native_bridge(
    storage: MediaStorage,
    *,
    sample_rate: int = 16000,
    buffer_duration_ms: int = 500,
) -> NativeBridge:
    """NativeBridge のシングルトンインスタンスを取得"""

    global _native_bridge
    if _native_bridge is None:
        _native_bridge = NativeBridge(
            storage,
            sample_rate=sample_rate,
            buffer_duration_ms=buffer_duration_ms,
        )
    return _native_bridge
