"""WebSocket command endpoint for the scripting side.

WS /api/ws/command

Protocol:
- client -> server (text JSON):
    {"method": "captureImage", "options": "{\"limit\": 2}", "callbackId": "Capture1"}
    - method: captureImage | captureAudio | captureVideo | getFormatData | play | log | warn | error
    - options: JSON encoded string (省略可)
    - callbackId: 省略可、レスポンスにそのまま返す

- server -> client (text JSON), one per command:
    {"status": "OK", "payload": [{"name": ..., "fullPath": ..., "type": ..., "lastModifiedDate": ..., "size": ...}],
     "callback": "navigator.device.capture._castMediaFile"}
    {"status": "ERROR", "payload": "Canceled."}
    {"status": "JSON_EXCEPTION", "payload": "..."}

    log / warn / error には応答しない。

Capture commands wait for the native host without a timeout. They run in a
background task so the connection keeps reading: other commands are answered
meanwhile (a second capture gets "Capture already in progress"), and a
disconnect dismisses the pending native capture.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from media_capture_bridge.exceptions import DecodeError
from media_capture_bridge.protocol import CommandRequest, ResultEnvelope, parse_request
from media_capture_bridge.services.dispatcher import CAPTURE_METHODS, CommandDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/command")
async def websocket_command(websocket: WebSocket) -> None:
    """スクリプト側からのコマンドを処理する"""

    await websocket.accept()

    app = websocket.scope.get("app")
    native_bridge = getattr(app.state, "native_bridge", None) if app else None
    storage = getattr(app.state, "storage", None) if app else None
    if native_bridge is None or storage is None:
        await websocket.close(code=1011, reason="Server not ready")
        return

    dispatcher = CommandDispatcher(capabilities=native_bridge, storage=storage, player=native_bridge)
    send_lock = asyncio.Lock()
    captures: set[asyncio.Task[None]] = set()
    logger.info("Command connection opened")

    async def send(data: dict[str, Any]) -> None:
        async with send_lock:
            await websocket.send_json(data)

    async def run(request: CommandRequest) -> None:
        try:
            envelope = await dispatcher.dispatch(request.method, request.options)
        except Exception as e:
            logger.exception(f"Command {request.method} failed")
            envelope = ResultEnvelope.error(str(e) or None)

        if envelope is None:
            return
        try:
            await send(envelope.with_callback_id(request.callback_id).to_dict())
        except Exception as e:
            logger.warning(f"Failed to send {request.method} result: {e}")

    try:
        while True:
            try:
                text = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            try:
                request = parse_request(text)
            except DecodeError as e:
                await send(ResultEnvelope.json_exception(e.message).to_dict())
                continue

            if request.method in CAPTURE_METHODS:
                task = asyncio.create_task(run(request), name=f"command-{request.method}")
                captures.add(task)
                task.add_done_callback(captures.discard)
            else:
                await run(request)

    finally:
        pending = list(captures)
        if pending:
            logger.info(f"Command connection closed with {len(pending)} capture(s) in flight, cancelling")
        for task in pending:
            task.cancel()
        if pending:
            # Let the captures dismiss the native UI even if this handler is cancelled too.
            await asyncio.shield(asyncio.gather(*pending, return_exceptions=True))
        logger.info("Command connection closed")
