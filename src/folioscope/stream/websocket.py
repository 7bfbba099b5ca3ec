"""WebSocket transport with automatic reconnect."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import websockets

from folioscope.config_loader import StreamConfig
from folioscope.constants import ConnectionState
from folioscope.errors import TransportError
from folioscope.stream.transport import Transport

logger = logging.getLogger(__name__)


class WebSocketTransport(Transport):
    """
    JSON-over-websocket transport.

    Frames sent while disconnected are dropped; the subscription hub
    re-announces its full state after every reconnect. Each connection gets
    a fresh outbox so frames queued for a dead connection never leak into
    the next one.
    """

    def __init__(self, config: StreamConfig | None = None):
        super().__init__()
        self.config = config or StreamConfig()
        self._ws: Any = None
        self._outbox: asyncio.Queue[dict[str, Any]] | None = None
        self._stop_event: asyncio.Event | None = None
        self._stopping = False

    def backoff_delay(self, attempt: int) -> float:
        """Exponential delay before reconnect attempt ``attempt`` (1-based)."""
        delay = self.config.reconnect_delay_seconds * (2 ** max(attempt - 1, 0))
        return min(delay, self.config.max_reconnect_delay_seconds)

    async def start(self) -> None:
        """Connect and serve until stop() is called or retries run out."""
        self._stopping = False
        self._stop_event = asyncio.Event()
        attempt = 0

        while not self._stopping:
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._connect_once()
                attempt = 0
                self._set_state(ConnectionState.DISCONNECTED)
            except TransportError as e:
                logger.error(f"Transport error: {e}")
                self._set_state(ConnectionState.ERROR)

            if self._stopping or not self.config.auto_reconnect:
                break

            attempt += 1
            max_attempts = self.config.max_reconnect_attempts
            if max_attempts is not None and attempt > max_attempts:
                logger.error(f"Giving up after {max_attempts} reconnect attempts")
                break

            delay = self.backoff_delay(attempt)
            logger.info(f"Reconnecting to {self.config.url} in {delay:.1f}s (attempt {attempt})")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)

        self._set_state(ConnectionState.DISCONNECTED)

    async def stop(self) -> None:
        self._stopping = True
        if self._stop_event:
            self._stop_event.set()
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.warning(f"Error closing websocket: {e}")
        logger.info("WebSocketTransport stopped")

    def send(self, message: dict[str, Any]) -> bool:
        if self._outbox is None or not self.is_connected:
            logger.debug(f"Not connected, dropping frame: {message}")
            return False
        self._outbox.put_nowait(message)
        return True

    async def _connect_once(self) -> None:
        logger.info(f"Connecting to {self.config.url}")
        try:
            async with websockets.connect(
                self.config.url, open_timeout=self.config.open_timeout_seconds
            ) as ws:
                self._ws = ws
                await self._serve(ws)
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            raise TransportError(f"{self.config.url}: {e}") from e
        finally:
            self._ws = None
            self._outbox = None

    async def _serve(self, ws: Any) -> None:
        outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._outbox = outbox
        # Listeners of CONNECTED may enqueue frames (resync) before the writer starts
        self._set_state(ConnectionState.CONNECTED)

        writer = asyncio.create_task(self._drain_outbox(ws, outbox))
        try:
            async for raw in ws:
                self._handle_raw(raw)
        finally:
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer

    async def _drain_outbox(self, ws: Any, outbox: asyncio.Queue[dict[str, Any]]) -> None:
        while True:
            message = await outbox.get()
            try:
                await ws.send(json.dumps(message))
                logger.debug(f"Sent frame: {message}")
            except websockets.ConnectionClosed as e:
                logger.warning(f"Connection closed while sending {message}: {e}")
                return
            except (TypeError, ValueError) as e:
                logger.error(f"Could not encode frame {message}: {e}")

    def _handle_raw(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring non-JSON frame: {e}")
            return

        if not isinstance(message, dict):
            logger.warning(f"Ignoring frame that is not an object: {message!r}")
            return

        self._emit_message(message)
