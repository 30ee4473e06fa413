from __future__ import annotations

import struct
from datetime import timedelta

import pytest

from media_capture_bridge.exceptions import InvalidStateError, StorageError
from media_capture_bridge.models.capture import OutcomeStatus
from media_capture_bridge.services.audio_session import (
    AudioCaptureSession,
    RecordingState,
    format_duration,
)

HALF_SECOND = timedelta(milliseconds=500)


def test_start_and_deliver(storage):
    session = AudioCaptureSession(storage)
    session.start(8000)
    assert session.state == RecordingState.RECORDING
    assert session.sample_rate == 8000

    session.on_buffer_delivered(b"\x00\x01" * 10, HALF_SECOND)

    assert session.data_size == 20
    assert session.duration == HALF_SECOND
    assert session.duration_label == "Duration: 00:00"


def test_chunks_rejected_outside_recording(storage):
    session = AudioCaptureSession(storage)
    with pytest.raises(InvalidStateError):
        session.on_buffer_delivered(b"\x00\x00", HALF_SECOND)

    session.start(8000)
    session.stop()
    with pytest.raises(InvalidStateError):
        session.on_buffer_delivered(b"\x00\x00", HALF_SECOND)
    assert session.data_size == 0


def test_start_rejects_bad_sample_rate(storage):
    session = AudioCaptureSession(storage)
    with pytest.raises(ValueError):
        session.start(0)
    assert session.state == RecordingState.IDLE


def test_duration_is_decoupled_from_buffer(storage):
    deferred = []
    labels = []
    session = AudioCaptureSession(storage, dispatch=deferred.append, on_duration_changed=labels.append)
    session.start(16000)

    for _ in range(3):
        session.on_buffer_delivered(b"\x01\x00" * 8, HALF_SECOND)

    # Samples are in the buffer before any UI update ran.
    assert session.data_size == 48
    assert session.duration == timedelta(0)

    for fn in deferred:
        fn()

    assert session.duration == timedelta(milliseconds=1500)
    assert labels == [timedelta(milliseconds=500), timedelta(seconds=1), timedelta(milliseconds=1500)]


def test_restart_resets_recording(storage):
    session = AudioCaptureSession(storage)
    session.start(8000)
    session.on_buffer_delivered(b"\x01\x02", HALF_SECOND)
    session.stop()

    session.start(11025)

    assert session.data_size == 0
    assert session.duration == timedelta(0)
    assert session.sample_rate == 11025


def test_cancel_discards_samples(storage):
    session = AudioCaptureSession(storage)
    session.start(8000)
    session.on_buffer_delivered(b"\x01\x02", HALF_SECOND)

    outcome = session.cancel()

    assert outcome.status == OutcomeStatus.CANCELLED
    assert session.state == RecordingState.FINALIZED
    assert session.data_size == 0
    assert not (storage.root / "AudioCache").exists()


@pytest.mark.asyncio
async def test_finalize_persists_wav(storage):
    session = AudioCaptureSession(storage)
    session.start(16000)
    session.on_buffer_delivered(b"\x01\x02" * 4, HALF_SECOND)
    session.on_buffer_delivered(b"\x03\x04" * 4, HALF_SECOND)
    session.stop()

    outcome = await session.finalize()

    assert outcome.status == OutcomeStatus.OK
    media = outcome.media
    assert media is not None
    assert media.stored_path is not None
    assert media.stored_path.startswith("/AudioCache/Audio-")
    assert media.stored_path.endswith(".wav")
    assert session.state == RecordingState.FINALIZED

    data = storage.resolve(media.stored_path).read_bytes()
    assert len(data) == 44 + 16
    assert struct.unpack_from("<I", data, 4)[0] == 52
    assert struct.unpack_from("<I", data, 24)[0] == 16000
    assert struct.unpack_from("<I", data, 40)[0] == 16
    assert data[44:] == b"\x01\x02" * 4 + b"\x03\x04" * 4
    assert media.size == len(data)


@pytest.mark.asyncio
async def test_finalize_without_samples_is_cancelled(storage):
    session = AudioCaptureSession(storage)
    session.start(16000)
    session.stop()

    outcome = await session.finalize()

    assert outcome.status == OutcomeStatus.CANCELLED
    assert not (storage.root / "AudioCache").exists()


@pytest.mark.asyncio
async def test_finalize_from_idle_is_cancelled(storage):
    outcome = await AudioCaptureSession(storage).finalize()
    assert outcome.status == OutcomeStatus.CANCELLED


@pytest.mark.asyncio
async def test_finalize_while_recording_raises(storage):
    session = AudioCaptureSession(storage)
    session.start(8000)
    with pytest.raises(InvalidStateError):
        await session.finalize()


@pytest.mark.asyncio
async def test_finalize_twice_raises(storage):
    session = AudioCaptureSession(storage)
    session.start(8000)
    session.on_buffer_delivered(b"\x01\x02", HALF_SECOND)
    session.stop()
    await session.finalize()

    with pytest.raises(InvalidStateError):
        await session.finalize()


@pytest.mark.asyncio
async def test_finalize_storage_failure_propagates(storage, monkeypatch: pytest.MonkeyPatch):
    def _fail(folder, file_name, data):
        raise StorageError(f"/{folder}/{file_name}", OSError("disk full"))

    monkeypatch.setattr(storage, "save", _fail)
    session = AudioCaptureSession(storage)
    session.start(8000)
    session.on_buffer_delivered(b"\x01\x02", HALF_SECOND)
    session.stop()

    with pytest.raises(StorageError):
        await session.finalize()


@pytest.mark.parametrize(
    "duration,label",
    [
        (timedelta(0), "Duration: 00:00"),
        (timedelta(seconds=5, milliseconds=900), "Duration: 00:05"),
        (timedelta(seconds=65), "Duration: 01:05"),
    ],
)
def test_format_duration(duration, label):
    assert format_duration(duration) == label


@pytest.mark.asyncio
async def test_close_reports_taken_clip(storage):
    session = AudioCaptureSession(storage)
    assert session.result is None
    session.start(16000)
    session.on_buffer_delivered(b"\x01\x02", HALF_SECOND)
    session.stop()

    taken = await session.finalize()

    assert session.result is taken
    assert session.close() is taken
    assert taken.status == OutcomeStatus.OK


def test_close_without_take_is_cancelled(storage):
    session = AudioCaptureSession(storage)
    session.start(16000)
    session.on_buffer_delivered(b"\x01\x02", HALF_SECOND)

    outcome = session.close()

    assert outcome.status == OutcomeStatus.CANCELLED
    assert session.state == RecordingState.FINALIZED
    assert not (storage.root / "AudioCache").exists()
