"""Core constants for folioscope."""

from enum import Enum


class TransportMode(str, Enum):
    """Market data transport selection."""

    WEBSOCKET = "websocket"
    SIM = "sim"


class ConnectionState(str, Enum):
    """Transport connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class StreamEvent(str, Enum):
    """Event names on the market data wire."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PRICE_UPDATE = "priceUpdate"


class Timeframe(str, Enum):
    """History windows offered by the portfolio API."""

    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    THREE_YEARS = "3Y"
    FIVE_YEARS = "5Y"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# ============================================
# Analytics
# ============================================

RISK_FREE_RATE = 0.02
TRADING_PERIODS_PER_YEAR = 252

# Reference figures the dashboard compares a portfolio against
BENCHMARK_TOTAL_RETURN = 0.0845
BENCHMARK_ANNUALIZED_RETURN = 0.102
BENCHMARK_SHARPE_RATIO = 1.12
BENCHMARK_MAX_DRAWDOWN = 0.153
BENCHMARK_BETA = 1.0
BENCHMARK_ALPHA = 0.0

# ============================================
# Default Values
# ============================================

DEFAULT_WS_URL = "ws://localhost:5000/ws"
DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_API_TIMEOUT = 10.0
DEFAULT_RECONNECT_DELAY = 1.0
DEFAULT_MAX_RECONNECT_DELAY = 30.0
DEFAULT_MIN_WEIGHT = 0.05
DEFAULT_MAX_WEIGHT = 0.4

# ============================================
# Application Constants
# ============================================

APP_NAME = "folioscope"
WS_URL_ENV = "FOLIOSCOPE_WS_URL"
API_URL_ENV = "FOLIOSCOPE_API_URL"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
