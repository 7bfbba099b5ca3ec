"""Subscription multiplexing over a single market data transport."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from folioscope.config_loader import StreamConfig
from folioscope.constants import ConnectionState, StreamEvent
from folioscope.data.market_data import Tick
from folioscope.errors import TickFormatError
from folioscope.stream.transport import Transport
from folioscope.stream.websocket import WebSocketTransport

logger = logging.getLogger(__name__)

Listener = Callable[[Tick], Any]

_VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {
        ConnectionState.CONNECTED,
        ConnectionState.ERROR,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED, ConnectionState.ERROR},
    ConnectionState.ERROR: {ConnectionState.CONNECTING, ConnectionState.DISCONNECTED},
}


@dataclass(frozen=True)
class ListenerHandle:
    """Opaque registration token returned by SubscriptionHub.register()."""

    symbol: str
    handle_id: int


class SubscriptionHub:
    """
    Single source of truth for which listeners want ticks for which symbol.

    The first listener for a symbol sends a ``subscribe`` frame and the last
    one to leave sends ``unsubscribe``; churn in between produces no traffic.
    Local state wins over the wire: a lost frame is never rolled back, the
    full set is re-announced whenever the transport reports CONNECTED.

    A listener is registered at most once per symbol (set semantics), so a
    single unsubscribe removes it no matter how often it was subscribed.
    """

    _instance: ClassVar[SubscriptionHub | None] = None

    def __init__(self, transport: Transport):
        self.transport = transport
        self._lock = threading.RLock()
        self._subscriptions: dict[str, dict[Listener, ListenerHandle]] = {}
        self._handles: dict[int, Listener] = {}
        self._handle_ids = itertools.count(1)
        self._pending: set[asyncio.Future] = set()
        self._state = transport.state

        transport.add_message_callback(self.handle_message)
        transport.add_state_callback(self._on_state_change)

    # --- Process-wide instance ---

    @classmethod
    def get_instance(cls) -> SubscriptionHub:
        """
        Return the session hub, creating it with a default websocket transport on first use.

        The hub does not connect by itself; run ``await hub.start()`` (or
        ``hub.transport.start()``) to open the connection.
        """
        if cls._instance is None:
            cls._instance = cls(WebSocketTransport(StreamConfig()))
            logger.info(f"Created SubscriptionHub for {cls._instance.transport.config.url}")
        return cls._instance

    @classmethod
    def initialize(cls, transport: Transport) -> SubscriptionHub:
        """Create the session hub around an explicit transport."""
        if cls._instance is not None:
            logger.warning("Replacing existing SubscriptionHub instance")
        cls._instance = cls(transport)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    async def start(self) -> None:
        """Run the transport until stop() is called; subscriptions are announced on connect."""
        await self.transport.start()

    async def stop(self) -> None:
        await self.transport.stop()

    # --- Registration ---

    def subscribe(self, symbol: str, listener: Listener) -> ListenerHandle:
        """Register ``listener`` for ``symbol``; announce the symbol if it is new."""
        with self._lock:
            listeners = self._subscriptions.get(symbol)
            if listeners is not None and listener in listeners:
                logger.debug(f"Listener already subscribed to {symbol}")
                return listeners[listener]

            if listeners is None:
                self._send(StreamEvent.SUBSCRIBE, [symbol])
                listeners = self._subscriptions[symbol] = {}

            handle = ListenerHandle(symbol=symbol, handle_id=next(self._handle_ids))
            listeners[listener] = handle
            self._handles[handle.handle_id] = listener

        logger.debug(f"Subscribed listener #{handle.handle_id} to {symbol}")
        return handle

    def unsubscribe(self, symbol: str, listener: Listener) -> bool:
        """
        Remove ``listener`` from ``symbol``.

        Returns:
            False if the listener was not registered (no-op).
        """
        with self._lock:
            listeners = self._subscriptions.get(symbol)
            if not listeners or listener not in listeners:
                logger.debug(f"Unsubscribe for unknown listener on {symbol} ignored")
                return False

            handle = listeners.pop(listener)
            self._handles.pop(handle.handle_id, None)

            if not listeners:
                del self._subscriptions[symbol]
                self._send(StreamEvent.UNSUBSCRIBE, [symbol])

        logger.debug(f"Unsubscribed listener #{handle.handle_id} from {symbol}")
        return True

    def register(self, symbol: str, listener: Listener) -> ListenerHandle:
        """Handle-returning alias of subscribe()."""
        return self.subscribe(symbol, listener)

    def unregister(self, handle: ListenerHandle) -> bool:
        """Remove the registration behind ``handle``; stale handles are a no-op."""
        with self._lock:
            listener = self._handles.get(handle.handle_id)
            if listener is None:
                logger.debug(f"Stale handle #{handle.handle_id} for {handle.symbol} ignored")
                return False
            return self.unsubscribe(handle.symbol, listener)

    # --- Queries ---

    @property
    def state(self) -> ConnectionState:
        return self._state

    def symbols(self) -> list[str]:
        with self._lock:
            return sorted(self._subscriptions)

    def listener_count(self, symbol: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(symbol, ()))

    def has_listeners(self, symbol: str) -> bool:
        return self.listener_count(symbol) > 0

    # --- Inbound ---

    def handle_message(self, message: dict[str, Any]) -> None:
        """Entry point for every inbound transport message."""
        event = message.get("event")
        if event != StreamEvent.PRICE_UPDATE.value:
            logger.debug(f"Ignoring event {event!r}")
            return

        try:
            tick = Tick.from_payload(message.get("data"))
        except TickFormatError as e:
            logger.warning(f"Dropping malformed price update: {e}")
            return

        self.dispatch(tick)

    def dispatch(self, tick: Tick) -> int:
        """
        Deliver ``tick`` to every listener of its symbol.

        Listeners are called from a snapshot, so they may subscribe or
        unsubscribe while being called.

        Returns:
            Number of listeners invoked.
        """
        with self._lock:
            listeners = list(self._subscriptions.get(tick.symbol, ()))

        if not listeners:
            logger.debug(f"No listeners for {tick.symbol}, tick dropped")
            return 0

        for listener in listeners:
            try:
                result = listener(tick)
                if inspect.isawaitable(result):
                    self._schedule(result)
            except Exception as e:
                logger.error(f"Listener for {tick.symbol} failed: {e}", exc_info=True)

        return len(listeners)

    # --- Connection lifecycle ---

    def resync(self) -> list[str]:
        """Re-announce every symbol with listeners in one subscribe frame."""
        with self._lock:
            symbols = sorted(self._subscriptions)
            if not symbols:
                logger.debug("Nothing to resync")
                return []
            logger.info(f"Resyncing {len(symbols)} symbols: {', '.join(symbols)}")
            self._send(StreamEvent.SUBSCRIBE, symbols)
        return symbols

    def _on_state_change(self, state: ConnectionState) -> None:
        previous = self._state
        if state not in _VALID_TRANSITIONS[previous]:
            logger.warning(f"Unexpected connection transition {previous.value} -> {state.value}")
        self._state = state

        if state == ConnectionState.CONNECTED:
            self.resync()
        elif state == ConnectionState.ERROR:
            logger.warning(f"Connection error; keeping {len(self.symbols())} subscriptions for resync")

    def _send(self, event: StreamEvent, symbols: list[str]) -> None:
        message = {"event": event.value, "symbols": symbols}
        try:
            accepted = self.transport.send(message)
        except Exception as e:
            logger.error(f"Failed to send {event.value} for {symbols}: {e}")
            return

        if not accepted:
            logger.debug(f"{event.value} {symbols} not delivered; will resync on reconnect")

    def _schedule(self, awaitable: Any) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Listener returned an awaitable outside an event loop; discarding it")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)
        future.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, future: asyncio.Future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Async listener failed: {exc}", exc_info=exc)
