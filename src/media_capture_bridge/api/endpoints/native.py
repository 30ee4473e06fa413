"""WebSocket endpoint for the native host.

WS /api/ws/native

ネイティブ側（カメラ UI・録音ページ・メディアプレイヤー）は常に 1 接続のみ。
2 本目の接続は 4009 で閉じる。メッセージ形式は
media_capture_bridge.services.native_bridge を参照。
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket

from media_capture_bridge.services.native_bridge import NativeBridge

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/native")
async def websocket_native(websocket: WebSocket) -> None:
    await websocket.accept()

    app = websocket.scope.get("app")
    native_bridge: NativeBridge | None = getattr(app.state, "native_bridge", None) if app else None
    if native_bridge is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    async def send(data: dict[str, Any]) -> None:
        await websocket.send_json(data)

    if not native_bridge.attach(send):
        await websocket.close(code=4009, reason="Native host already connected")
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            chunk = message.get("bytes")
            if chunk is not None:
                native_bridge.handle_audio_chunk(chunk)
                continue

            text = message.get("text")
            if text is None:
                continue
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid native message: {e}")
                continue
            if not isinstance(data, dict):
                logger.warning("Native message must be a JSON object")
                continue

            await native_bridge.handle_message(data)
    finally:
        native_bridge.detach()
