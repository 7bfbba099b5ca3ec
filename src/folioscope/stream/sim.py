"""Simulated transport for dry runs and tests."""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any

from folioscope.constants import ConnectionState, StreamEvent
from folioscope.stream.transport import Transport

logger = logging.getLogger(__name__)


class SimTransport(Transport):
    """
    In-memory stand-in for the price server.

    Remembers which symbols the client has subscribed to, like the real
    server does for the life of one connection, and generates a random walk
    price path for them. Every accepted frame is recorded in ``sent``.
    """

    def __init__(
        self,
        interval_sec: float = 1.0,
        start_price: float = 100.0,
        seed: int | None = None,
    ):
        super().__init__()
        self.interval_sec = interval_sec
        self.start_price = start_price
        self.sent: list[dict[str, Any]] = []
        self.remote_symbols: set[str] = set()
        self._open_prices: dict[str, float] = {}
        self._prices: dict[str, float] = {}
        self._random = random.Random(seed)
        self._running = False

    def open(self) -> None:
        """Walk the state machine to CONNECTED without starting the price loop."""
        self._set_state(ConnectionState.CONNECTING)
        self._set_state(ConnectionState.CONNECTED)

    def simulate_drop(self, error: bool = False) -> None:
        """Lose the connection; the server forgets all subscriptions."""
        self.remote_symbols.clear()
        self._set_state(ConnectionState.ERROR if error else ConnectionState.DISCONNECTED)

    def simulate_reconnect(self) -> None:
        self.open()

    async def start(self) -> None:
        """Connect and generate ticks until stopped."""
        self._running = True
        self.open()
        logger.info("SimTransport started")

        while self._running:
            for symbol in sorted(self.remote_symbols):
                self.inject({"event": StreamEvent.PRICE_UPDATE.value, "data": self._next_tick(symbol)})
            await asyncio.sleep(self.interval_sec)

        self._set_state(ConnectionState.DISCONNECTED)

    async def stop(self) -> None:
        """Stop generation."""
        self._running = False
        logger.info("SimTransport stopped")

    def send(self, message: dict[str, Any]) -> bool:
        if not self.is_connected:
            logger.debug(f"Not connected, dropping frame: {message}")
            return False

        self.sent.append(message)
        symbols = message.get("symbols", [])
        if message.get("event") == StreamEvent.SUBSCRIBE.value:
            self.remote_symbols.update(symbols)
        elif message.get("event") == StreamEvent.UNSUBSCRIBE.value:
            self.remote_symbols.difference_update(symbols)
        return True

    def inject(self, message: dict[str, Any]) -> None:
        """Deliver an inbound message as if it came from the server."""
        self._emit_message(message)

    def _next_tick(self, symbol: str) -> dict[str, Any]:
        open_price = self._open_prices.setdefault(symbol, self.start_price)
        price = self._prices.get(symbol, open_price)
        price = max(0.01, round(price + self._random.choice([-0.5, -0.25, 0.0, 0.25, 0.5]), 2))
        self._prices[symbol] = price

        change = round(price - open_price, 2)
        return {
            "symbol": symbol,
            "price": price,
            "change": change,
            "changePercent": round(change / open_price * 100, 4),
            "volume": self._random.randint(1, 1000),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
