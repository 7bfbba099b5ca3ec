"""Base market data transport interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from folioscope.constants import ConnectionState

logger = logging.getLogger(__name__)

MessageCallback = Callable[[dict[str, Any]], None]
StateCallback = Callable[[ConnectionState], None]


class Transport(ABC):
    """
    Abstract bidirectional message channel.

    Implementations own connection management and retry policy. Callers only
    send frames and observe inbound messages and state changes.
    """

    def __init__(self):
        self._message_callbacks: list[MessageCallback] = []
        self._state_callbacks: list[StateCallback] = []
        self._state = ConnectionState.DISCONNECTED

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def add_message_callback(self, callback: MessageCallback) -> None:
        """Register callback for inbound messages."""
        self._message_callbacks.append(callback)

    def add_state_callback(self, callback: StateCallback) -> None:
        """Register callback for connection state changes."""
        self._state_callbacks.append(callback)

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.info(f"Transport state: {self._state.value} -> {state.value}")
        self._state = state
        for cb in list(self._state_callbacks):
            try:
                cb(state)
            except Exception as e:
                logger.error(f"State callback failed: {e}", exc_info=True)

    def _emit_message(self, message: dict[str, Any]) -> None:
        for cb in list(self._message_callbacks):
            try:
                cb(message)
            except Exception as e:
                logger.error(f"Message callback failed: {e}", exc_info=True)

    @abstractmethod
    async def start(self) -> None:
        """Open the connection and keep it alive until stopped."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Close the connection and stop reconnecting."""
        pass

    @abstractmethod
    def send(self, message: dict[str, Any]) -> bool:
        """
        Queue a frame for delivery without blocking.

        Returns:
            True if the frame was accepted, False if it was dropped.
        """
        pass
