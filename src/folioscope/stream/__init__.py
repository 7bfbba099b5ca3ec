"""Real-time Market Data Module."""

from folioscope.stream.hub import ListenerHandle, SubscriptionHub
from folioscope.stream.sim import SimTransport
from folioscope.stream.transport import Transport
from folioscope.stream.websocket import WebSocketTransport

__all__ = [
    "ListenerHandle",
    "SimTransport",
    "SubscriptionHub",
    "Transport",
    "WebSocketTransport",
]
