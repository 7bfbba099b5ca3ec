"""Exception hierarchy for folioscope."""

from __future__ import annotations


class FolioscopeError(Exception):
    """Base class for all folioscope errors."""


class DataInsufficientError(FolioscopeError):
    """Price series too short, or a return denominator is zero."""


class HistoryFormatError(FolioscopeError):
    """History payload does not have the expected shape or ordering."""


class TickFormatError(FolioscopeError):
    """Price update payload could not be turned into a Tick."""


class TransportError(FolioscopeError):
    """Connection-level failure on the market data transport.

    Raised inside transports and caught there; the hub never lets it escape.
    """


class ApiError(FolioscopeError):
    """Portfolio REST API request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
