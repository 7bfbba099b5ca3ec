"""folioscope: real-time price subscriptions and portfolio performance analytics."""

__version__ = "0.1.0"
