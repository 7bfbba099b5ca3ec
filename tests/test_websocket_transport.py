"""Tests for WebSocketTransport."""

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest

from folioscope.config_loader import StreamConfig
from folioscope.constants import ConnectionState
from folioscope.stream.hub import SubscriptionHub
from folioscope.stream.websocket import WebSocketTransport


class FakeConnection:
    """Async context manager standing in for a websockets client connection."""

    def __init__(self, incoming=()):
        self.incoming = list(incoming)
        self.sent = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for raw in self.incoming:
            # Yield to the writer task between frames
            await asyncio.sleep(0.01)
            yield raw
        await asyncio.sleep(0.01)

    async def send(self, data):
        self.sent.append(json.loads(data))

    async def close(self):
        self.closed = True


def tick_frame(symbol, price):
    return json.dumps(
        {
            "event": "priceUpdate",
            "data": {"symbol": symbol, "price": price, "change": 0.0, "changePercent": 0.0, "volume": 10},
        }
    )


@pytest.fixture
def config():
    return StreamConfig(
        url="ws://test.invalid/ws",
        auto_reconnect=False,
        reconnect_delay_seconds=0.01,
        max_reconnect_delay_seconds=0.02,
    )


def record_states(transport):
    states = []
    transport.add_state_callback(states.append)
    return states


@pytest.mark.asyncio
async def test_connect_resync_and_deliver(config):
    transport = WebSocketTransport(config)
    hub = SubscriptionHub(transport)
    states = record_states(transport)
    listener = MagicMock(return_value=None)

    hub.subscribe("AAPL", listener)  # dropped: not connected yet

    fake = FakeConnection([tick_frame("AAPL", 190.5), tick_frame("MSFT", 410.0)])
    with patch("folioscope.stream.websocket.websockets.connect", return_value=fake) as connect:
        await asyncio.wait_for(transport.start(), timeout=2.0)

    connect.assert_called_once_with("ws://test.invalid/ws", open_timeout=10.0)
    assert states == [
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
    ]
    assert fake.sent == [{"event": "subscribe", "symbols": ["AAPL"]}]
    listener.assert_called_once()
    assert listener.call_args.args[0].price == 190.5


@pytest.mark.asyncio
async def test_bad_frames_ignored(config):
    transport = WebSocketTransport(config)
    received = []
    transport.add_message_callback(received.append)

    fake = FakeConnection(["not json", "[1, 2, 3]", tick_frame("AAPL", 1.0)])
    with patch("folioscope.stream.websocket.websockets.connect", return_value=fake):
        await asyncio.wait_for(transport.start(), timeout=2.0)

    assert len(received) == 1
    assert received[0]["data"]["symbol"] == "AAPL"


@pytest.mark.asyncio
async def test_connection_failure_is_logged_not_raised(config):
    config = config.model_copy(update={"auto_reconnect": True, "max_reconnect_attempts": 2})
    transport = WebSocketTransport(config)
    states = record_states(transport)

    with patch(
        "folioscope.stream.websocket.websockets.connect",
        side_effect=OSError("connection refused"),
    ) as connect:
        await asyncio.wait_for(transport.start(), timeout=2.0)

    assert connect.call_count == 3
    assert states.count(ConnectionState.ERROR) == 3
    assert transport.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_reconnect_resyncs_on_new_connection(config):
    config = config.model_copy(update={"auto_reconnect": True, "max_reconnect_attempts": 1})
    transport = WebSocketTransport(config)
    hub = SubscriptionHub(transport)
    hub.subscribe("AAPL", MagicMock(return_value=None))
    hub.subscribe("MSFT", MagicMock(return_value=None))

    first, second = FakeConnection(), FakeConnection()
    connections = iter([first, second])

    def connect(*args, **kwargs):
        try:
            return next(connections)
        except StopIteration:
            raise OSError("server gone") from None

    with patch("folioscope.stream.websocket.websockets.connect", side_effect=connect):
        await asyncio.wait_for(transport.start(), timeout=2.0)

    expected = [{"event": "subscribe", "symbols": ["AAPL", "MSFT"]}]
    assert first.sent == expected
    assert second.sent == expected


@pytest.mark.asyncio
async def test_stop_interrupts_backoff(config):
    config = config.model_copy(
        update={
            "auto_reconnect": True,
            "reconnect_delay_seconds": 10.0,
            "max_reconnect_delay_seconds": 10.0,
        }
    )
    transport = WebSocketTransport(config)

    with patch("folioscope.stream.websocket.websockets.connect", side_effect=OSError("down")):
        task = asyncio.create_task(transport.start())
        await asyncio.sleep(0.05)
        await transport.stop()
        await asyncio.wait_for(task, timeout=1.0)

    assert transport.state == ConnectionState.DISCONNECTED


def test_send_while_disconnected_is_dropped(config):
    transport = WebSocketTransport(config)
    assert transport.send({"event": "subscribe", "symbols": ["AAPL"]}) is False


def test_backoff_is_exponential_and_capped():
    transport = WebSocketTransport(
        StreamConfig(reconnect_delay_seconds=1.0, max_reconnect_delay_seconds=30.0)
    )
    assert [transport.backoff_delay(n) for n in range(1, 7)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]
