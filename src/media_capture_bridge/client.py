"""WebSocket client for the scripting side of the bridge."""

from __future__ import annotations

import asyncio
import json
import logging
from itertools import count
from types import TracebackType
from typing import Any, Self

import websockets
from websockets.asyncio.client import ClientConnection

from .exceptions import DecodeError
from .protocol import ResultEnvelope

logger = logging.getLogger(__name__)


class BridgeClient:
    """Async client for `WS /api/ws/command`.

    Usage:
        async with BridgeClient() as client:
            envelope = await client.invoke("captureImage", {"limit": 2})
            files = envelope.raise_for_status()

    Capture commands wait for the user on the native side, so `invoke` has
    no timeout unless one is given.
    """

    def __init__(
        self,
        backend_url: str = "ws://localhost:8000",
        connect_timeout: float = 10.0,
    ):
        """Initialize the client.

        Args:
            backend_url: WebSocket URL of the bridge server
            connect_timeout: Timeout for the WebSocket connection
        """
        self.backend_url = backend_url.rstrip("/")
        self.connect_timeout = connect_timeout

        self._ws: ClientConnection | None = None
        self._ids = count(1)
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """Open the command connection.

        Raises:
            ConnectionError: If connection fails
        """
        if self._ws is not None:
            return

        ws_url = f"{self.backend_url}/api/ws/command"
        logger.info(f"Connecting to {ws_url}")
        try:
            self._ws = await asyncio.wait_for(websockets.connect(ws_url), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            raise ConnectionError(f"Connection timeout to {ws_url}")
        except Exception as e:
            raise ConnectionError(f"Failed to connect to {ws_url}: {e}")

    async def disconnect(self) -> None:
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")
            finally:
                self._ws = None

    async def invoke(
        self,
        method: str,
        options: dict[str, Any] | str | None = None,
        timeout: float | None = None,
    ) -> ResultEnvelope:
        """Send one command and wait for its envelope.

        Raises:
            ConnectionError: If not connected
            DecodeError: If the server answers with something that is not an envelope
            asyncio.TimeoutError: If no matching envelope arrives within `timeout`
        """
        if self._ws is None:
            raise ConnectionError("Not connected. Call connect() first.")

        if isinstance(options, dict):
            options = json.dumps(options)

        async with self._lock:
            callback_id = f"{method}{next(self._ids)}"
            await self._ws.send(json.dumps({"method": method, "options": options, "callbackId": callback_id}))
            logger.debug(f"Sent {method} ({callback_id})")

            return await asyncio.wait_for(self._receive_envelope(self._ws, callback_id), timeout=timeout)

    async def _receive_envelope(self, ws: ClientConnection, callback_id: str) -> ResultEnvelope:
        while True:
            raw = await ws.recv()
            if isinstance(raw, bytes):
                raise DecodeError("Expected JSON envelope, got binary")
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise DecodeError(f"Invalid JSON: {e}", e) from e
            if not isinstance(data, dict):
                raise DecodeError("envelope must be a JSON object")

            envelope = ResultEnvelope.from_dict(data)
            if envelope.callback_id not in (None, callback_id):
                # Late reply to a command that already timed out.
                logger.warning(f"Discarding reply for {envelope.callback_id}, waiting for {callback_id}")
                continue
            return envelope

    async def log(self, message: str) -> None:
        """Write to the bridge's debug console. The server does not reply."""
        if self._ws is None:
            raise ConnectionError("Not connected. Call connect() first.")
        await self._ws.send(json.dumps({"method": "log", "options": message}))

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

