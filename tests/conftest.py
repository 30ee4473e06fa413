from __future__ import annotations

import io
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from media_capture_bridge.api.endpoints import healthz
from media_capture_bridge.api.router import api_router
from media_capture_bridge.exceptions import NativeCaptureError
from media_capture_bridge.models.capture import CapturedMedia, CaptureKind, CaptureOutcome
from media_capture_bridge.protocol import CaptureOptions
from media_capture_bridge.services.capabilities import CapabilitiesInvoker, MediaPlayer
from media_capture_bridge.services.dispatcher import CommandDispatcher
from media_capture_bridge.services.storage import MediaStorage


def make_jpeg(width: int = 64, height: int = 48) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format="JPEG")
    return buf.getvalue()


def ok_outcome(file_name: str = "photo.jpg", content: bytes = b"\xff\xd8FAKEJPEG\xff\xd9") -> CaptureOutcome:
    return CaptureOutcome.ok(CapturedMedia(file_name=file_name, content=content))


class FakeNativeBridge(CapabilitiesInvoker, MediaPlayer):
    """Replays scripted outcomes instead of talking to a native host."""

    def __init__(self, outcomes: list[CaptureOutcome] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[CaptureKind, CaptureOptions]] = []
        self.played: list[str] = []
        self.player_error: Exception | None = None
        self.is_attached = True

    async def capture(self, kind: CaptureKind, options: CaptureOptions) -> CaptureOutcome:
        self.calls.append((kind, options))
        if not self.outcomes:
            return CaptureOutcome.other()
        return self.outcomes.pop(0)

    async def launch_player(self, path: str) -> None:
        if self.player_error is not None:
            raise self.player_error
        self.played.append(path)


class FakeSender:
    """Collects messages the native bridge sends to the host."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self._fail = fail

    async def __call__(self, data: dict[str, Any]) -> None:
        if self._fail:
            raise NativeCaptureError("host went away")
        self.sent.append(data)

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def storage(tmp_path) -> MediaStorage:
    return MediaStorage(tmp_path / "store")


@pytest.fixture
def fake_native() -> FakeNativeBridge:
    return FakeNativeBridge()


@pytest.fixture
def dispatcher(storage: MediaStorage, fake_native: FakeNativeBridge) -> CommandDispatcher:
    return CommandDispatcher(capabilities=fake_native, storage=storage, player=fake_native)


@pytest.fixture
def app(storage: MediaStorage, fake_native: FakeNativeBridge) -> FastAPI:
    # Build an app without the production lifespan (no singletons, no env config).
    app = FastAPI()
    app.include_router(healthz.router, tags=["health"])
    app.include_router(api_router)

    app.state.storage = storage
    app.state.native_bridge = fake_native
    return app


@pytest.fixture
def client(app: FastAPI):
    with TestClient(app) as c:
        yield c
