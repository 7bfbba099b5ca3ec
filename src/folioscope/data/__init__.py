"""Market Data and History Module."""

from folioscope.data.history import load_history_file, parse_history
from folioscope.data.market_data import PricePoint, Tick

__all__ = [
    "PricePoint",
    "Tick",
    "load_history_file",
    "parse_history",
]
