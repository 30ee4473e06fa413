"""Command dispatcher.

One dispatcher serves one scripting connection. Every capture or utility
command produces exactly one ResultEnvelope; debug console commands produce
none.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from PIL import Image

from ..exceptions import DecodeError, StorageError, UnsupportedFormatError, ValidationError
from ..models.capture import CapturedMedia, CaptureKind, OutcomeStatus
from ..models.media import MediaDescriptor, MediaFormatDescriptor, get_mime_type
from ..protocol import (
    CAST_MEDIA_FILE_CALLBACK,
    CaptureAudioOptions,
    CaptureImageOptions,
    CaptureOptions,
    CaptureVideoOptions,
    MediaFormatOptions,
    ResultEnvelope,
    decode_options,
)
from .aggregator import Action, CaptureResultAggregator
from .capabilities import CapabilitiesInvoker, MediaPlayer
from .storage import AUDIO_FOLDER, IMAGE_FOLDER, VIDEO_FOLDER, MediaStorage

logger = logging.getLogger(__name__)
console_logger = logging.getLogger("media_capture_bridge.console")

FILE_PATH_MISSING_MESSAGE = "File path is missing"
FILE_NOT_FOUND_MESSAGE = "File not found"
CAPTURE_IN_PROGRESS_MESSAGE = "Capture already in progress"

SUPPORTED_FORMAT_MIME_TYPE = "image/jpeg"

# Methods that wait on the native UI without a timeout.
CAPTURE_METHODS = frozenset({"captureImage", "captureAudio", "captureVideo"})

_OPTIONS_MODELS: dict[CaptureKind, type[CaptureOptions]] = {
    CaptureKind.IMAGE: CaptureImageOptions,
    CaptureKind.AUDIO: CaptureAudioOptions,
    CaptureKind.VIDEO: CaptureVideoOptions,
}

_STORAGE_FOLDERS: dict[CaptureKind, str] = {
    CaptureKind.IMAGE: IMAGE_FOLDER,
    CaptureKind.AUDIO: AUDIO_FOLDER,
    CaptureKind.VIDEO: VIDEO_FOLDER,
}

_CAPTURE_ERROR_MESSAGES: dict[CaptureKind, str] = {
    CaptureKind.IMAGE: "Error capturing image.",
    CaptureKind.AUDIO: "Error capturing audio.",
    CaptureKind.VIDEO: "Error capturing video.",
}


class CommandDispatcher:
    def __init__(
        self,
        *,
        capabilities: CapabilitiesInvoker,
        storage: MediaStorage,
        player: MediaPlayer,
    ) -> None:
        self._capabilities = capabilities
        self._storage = storage
        self._player = player
        self._capturing = False

        self._handlers: dict[str, Callable[[Optional[str]], Awaitable[Optional[ResultEnvelope]]]] = {
            "captureImage": self.capture_image,
            "captureAudio": self.capture_audio,
            "captureVideo": self.capture_video,
            "getFormatData": self.get_format_data,
            "play": self.play,
            "log": self.log,
            "warn": self.warn,
            "error": self.error,
        }

    async def dispatch(self, method: str, options: Optional[str]) -> Optional[ResultEnvelope]:
        handler = self._handlers.get(method)
        if handler is None:
            logger.warning(f"Unknown method: {method}")
            return ResultEnvelope.error(f"Unknown method: {method}")
        return await handler(options)

    # --- capture -------------------------------------------------------

    async def capture_image(self, options: Optional[str]) -> ResultEnvelope:
        return await self._capture(CaptureKind.IMAGE, options)

    async def capture_audio(self, options: Optional[str]) -> ResultEnvelope:
        return await self._capture(CaptureKind.AUDIO, options)

    async def capture_video(self, options: Optional[str]) -> ResultEnvelope:
        return await self._capture(CaptureKind.VIDEO, options)

    async def _capture(self, kind: CaptureKind, options_text: Optional[str]) -> ResultEnvelope:
        model = _OPTIONS_MODELS[kind]
        try:
            options = decode_options(options_text, model, model())
        except DecodeError as e:
            logger.warning(f"Invalid {kind.value} capture options: {e.message}")
            return ResultEnvelope.json_exception(e.message)

        if self._capturing:
            return ResultEnvelope.error(CAPTURE_IN_PROGRESS_MESSAGE)

        self._capturing = True
        try:
            return await self._run_capture(kind, options)
        finally:
            self._capturing = False

    async def _run_capture(self, kind: CaptureKind, options: CaptureOptions) -> ResultEnvelope:
        aggregator = CaptureResultAggregator(options.limit)
        logger.info(f"Capture {kind.value} started (limit={options.limit})")

        while True:
            try:
                outcome = await self._capabilities.capture(kind, options)
            except Exception as e:
                logger.exception(f"Failed to invoke native {kind.value} capture")
                return ResultEnvelope.error(str(e) or None)

            if outcome.status == OutcomeStatus.OK and outcome.media is not None:
                try:
                    descriptor = await self._store(kind, outcome.media)
                except StorageError as e:
                    logger.error(f"Capture {kind.value} storage error: {e}")
                    aggregator.discard()
                    return ResultEnvelope.error(_CAPTURE_ERROR_MESSAGES[kind])
                decision = aggregator.on_artifact_captured(descriptor)
            elif outcome.status == OutcomeStatus.CANCELLED:
                decision = aggregator.on_cancelled()
            elif outcome.status == OutcomeStatus.FAILED:
                logger.warning(f"Native {kind.value} capture failed: {outcome.error}")
                aggregator.discard()
                message = str(outcome.error) if outcome.error is not None else ""
                return ResultEnvelope.error(message or None)
            else:
                decision = aggregator.on_unknown_outcome()

            if decision.action == Action.CAPTURE_AGAIN:
                logger.info(f"Capture {kind.value}: {len(aggregator.pending)}/{aggregator.limit}, showing again")
                continue

            if decision.action == Action.FLUSH:
                logger.info(f"Capture {kind.value} finished with {len(decision.results)} file(s)")
                return ResultEnvelope.ok(decision.results, CAST_MEDIA_FILE_CALLBACK)

            logger.info(f"Capture {kind.value} ended: {decision.message}")
            return ResultEnvelope.error(decision.message)

    async def _store(self, kind: CaptureKind, media: CapturedMedia) -> MediaDescriptor:
        path = media.stored_path
        if path is None:
            path = await asyncio.to_thread(
                self._storage.save, _STORAGE_FOLDERS[kind], media.file_name, media.content
            )
        return await asyncio.to_thread(MediaDescriptor.from_storage, self._storage, path, size=media.size)

    # --- utilities -----------------------------------------------------

    async def get_format_data(self, options: Optional[str]) -> ResultEnvelope:
        if options is None or not options.strip():
            return ResultEnvelope.json_exception()

        try:
            format_options = decode_options(options, MediaFormatOptions)
        except DecodeError as e:
            return ResultEnvelope.json_exception(e.message)

        if format_options is None:
            return ResultEnvelope.json_exception()
        if not format_options.full_path:
            return ResultEnvelope.json_exception(str(ValidationError("fullPath")))

        mime_type = format_options.type or get_mime_type(format_options.full_path)
        try:
            data = await asyncio.to_thread(self._read_format, format_options.full_path, mime_type)
        except UnsupportedFormatError as e:
            logger.info(f"Format data not supported: {e}")
            return ResultEnvelope.error()
        except StorageError as e:
            logger.warning(f"Format data unavailable: {e}")
            return ResultEnvelope.error(FILE_NOT_FOUND_MESSAGE)
        except Exception:
            logger.exception(f"Failed to read format data of {format_options.full_path}")
            return ResultEnvelope.error()

        return ResultEnvelope.ok(data)

    def _read_format(self, path: str, mime_type: str) -> MediaFormatDescriptor:
        # Only still images carry format data.
        if mime_type != SUPPORTED_FORMAT_MIME_TYPE:
            raise UnsupportedFormatError(mime_type)

        with self._storage.open_read(path) as f:
            try:
                with Image.open(f) as image:
                    image.load()
                    width, height = image.size
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                raise StorageError(path, e) from e
        return MediaFormatDescriptor(width=width, height=height)

    async def play(self, options: Optional[str]) -> ResultEnvelope:
        try:
            media = decode_options(options, MediaDescriptor)
        except DecodeError as e:
            return ResultEnvelope.json_exception(e.message)

        if media is None or not media.file_path:
            return ResultEnvelope.error(FILE_PATH_MISSING_MESSAGE)

        # The player rejects rooted paths.
        path = media.file_path.lstrip("/\\")
        if not path:
            return ResultEnvelope.error(FILE_PATH_MISSING_MESSAGE)

        try:
            await self._player.launch_player(path)
        except Exception as e:
            logger.warning(f"Failed to launch player for {path}: {e}")
            return ResultEnvelope.error(str(e) or None)

        return ResultEnvelope.ok()

    # --- debug console -------------------------------------------------

    async def log(self, options: Optional[str]) -> None:
        console_logger.info(f"Log:{options or ''}")

    async def warn(self, options: Optional[str]) -> None:
        console_logger.warning(f"Warn:{options or ''}")

    async def error(self, options: Optional[str]) -> None:
        console_logger.error(f"Error:{options or ''}")
