"""Market data structures and types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from folioscope.errors import TickFormatError


def _parse_timestamp(raw: Any) -> datetime:
    """Accept ISO-8601 strings, epoch milliseconds, or datetimes."""
    if raw is None:
        return datetime.now(timezone.utc)
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, bool):
        raise TickFormatError(f"Invalid timestamp: {raw!r}")
    if isinstance(raw, (int, float)):
        try:
            return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise TickFormatError(f"Timestamp out of range: {raw!r}") from e
    if isinstance(raw, str):
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError as e:
            raise TickFormatError(f"Invalid timestamp: {raw!r}") from e
    raise TickFormatError(f"Invalid timestamp: {raw!r}")


@dataclass(frozen=True)
class Tick:
    """Real-time price update for one symbol."""

    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int
    timestamp: datetime

    @classmethod
    def from_payload(cls, data: Any) -> Tick:
        """Build a Tick from the ``data`` object of a priceUpdate event."""
        if not isinstance(data, dict):
            raise TickFormatError(f"Price update payload must be an object, got {type(data).__name__}")

        symbol = data.get("symbol")
        if not isinstance(symbol, str) or not symbol:
            raise TickFormatError(f"Price update missing symbol: {data}")

        try:
            price = float(data["price"])
            change = float(data.get("change", 0.0))
            change_percent = float(data.get("changePercent", 0.0))
            volume = int(data.get("volume", 0))
        except KeyError as e:
            raise TickFormatError(f"Price update for {symbol} missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise TickFormatError(f"Price update for {symbol} has bad numeric field: {e}") from e

        if volume < 0:
            raise TickFormatError(f"Negative volume for {symbol}: {volume}")

        return cls(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            volume=volume,
            timestamp=_parse_timestamp(data.get("timestamp")),
        )

    def to_payload(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "change": self.change,
            "changePercent": self.change_percent,
            "volume": self.volume,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PricePoint:
    """One element of a portfolio value history."""

    date: date
    value: float
    benchmark: float | None = None
