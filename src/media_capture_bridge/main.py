"""Media Capture Bridge - FastAPI Application

スクリプト側とネイティブ側のキャプチャ機能を仲介するバックエンド。

- コマンド WebSocket (/api/ws/command): captureImage / captureAudio / captureVideo /
  getFormatData / play と debug console (log / warn / error)
- ネイティブ側 WebSocket (/api/ws/native): カメラ UI・録音ページ・プレイヤー
- ヘルスチェック (/healthz)

API ドキュメントは FastAPI の OpenAPI 生成を活用し、`/docs` で確認できる。
"""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from media_capture_bridge import __version__
from media_capture_bridge.api.endpoints import healthz
from media_capture_bridge.api.router import api_router
from media_capture_bridge.core.config import load_settings
from media_capture_bridge.core.logging import configure_logging
from media_capture_bridge.services.native_bridge import get_native_bridge
from media_capture_bridge.services.storage import get_media_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    app.state.settings = settings

    logger.info("Starting services...")
    logger.info(f"Using media storage: {settings.media_storage_root}")

    storage = get_media_storage(settings.media_storage_root)
    storage.root.mkdir(parents=True, exist_ok=True)
    app.state.storage = storage

    app.state.native_bridge = get_native_bridge(
        storage,
        sample_rate=settings.audio_sample_rate,
        buffer_duration_ms=settings.audio_buffer_duration_ms,
    )

    yield

    logger.info("Stopping services...")
    native_bridge = getattr(app.state, "native_bridge", None)
    if native_bridge and native_bridge.is_attached:
        native_bridge.detach()


def create_app() -> FastAPI:
    settings = load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Media Capture Bridge",
        description="スクリプト側とネイティブのカメラ・マイク・ビデオ録画を仲介するブリッジ",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {"name": "health", "description": "Health check"},
            {"name": "command", "description": "WebSocket command protocol"},
            {"name": "native", "description": "WebSocket native host"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # root level
    app.include_router(healthz.router, tags=["health"])

    # /api
    app.include_router(api_router)

    return app


app = create_app()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the media capture bridge")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
