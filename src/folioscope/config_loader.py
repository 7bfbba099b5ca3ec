"""Configuration loader with Pydantic validation and environment variable interpolation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables at module level
load_dotenv(find_dotenv(usecwd=True))

from folioscope.constants import (
    API_URL_ENV,
    DEFAULT_API_TIMEOUT,
    DEFAULT_API_URL,
    DEFAULT_MAX_RECONNECT_DELAY,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_WS_URL,
    RISK_FREE_RATE,
    TRADING_PERIODS_PER_YEAR,
    WS_URL_ENV,
    LogLevel,
    Timeframe,
    TransportMode,
)


def interpolate_env_vars(value: Any) -> Any:
    """
    Interpolate environment variables in string values.

    Supports formats:
    - ${VAR_NAME} - replaced by the variable, or empty string if unset
    - ${VAR_NAME:default} - optional with default value
    """
    if not isinstance(value, str):
        return value

    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value
        elif default is not None:
            return default
        else:
            return ""

    return re.sub(pattern, replacer, value)


def process_config_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively process config dict to interpolate env vars."""
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = process_config_dict(value)
        elif isinstance(value, list):
            result[key] = [
                process_config_dict(item) if isinstance(item, dict) else interpolate_env_vars(item)
                for item in value
            ]
        else:
            result[key] = interpolate_env_vars(value)
    return result


# ============================================
# Pydantic Configuration Models
# ============================================


class EnvironmentConfig(BaseModel):
    """Environment and runtime settings."""

    log_level: LogLevel = LogLevel.INFO
    transport_mode: TransportMode = TransportMode.WEBSOCKET


class StreamConfig(BaseModel):
    """Market data stream settings."""

    url: str = Field(default_factory=lambda: os.environ.get(WS_URL_ENV) or DEFAULT_WS_URL)
    open_timeout_seconds: float = 10.0
    auto_reconnect: bool = True
    reconnect_delay_seconds: float = DEFAULT_RECONNECT_DELAY
    max_reconnect_delay_seconds: float = DEFAULT_MAX_RECONNECT_DELAY
    max_reconnect_attempts: int | None = None  # None = retry forever
    sim_interval_seconds: float = 1.0

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the stream URL uses a websocket scheme."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError(f"Stream URL must start with ws:// or wss://, got: {v}")
        return v

    @field_validator(
        "open_timeout_seconds",
        "reconnect_delay_seconds",
        "max_reconnect_delay_seconds",
        "sim_interval_seconds",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Value must be positive, got: {v}")
        return v

    @field_validator("max_reconnect_attempts")
    @classmethod
    def validate_attempts(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError(f"Value must be non-negative, got: {v}")
        return v

    @model_validator(mode="after")
    def validate_backoff_range(self) -> StreamConfig:
        """Validate backoff ceiling is not below the base delay."""
        if self.max_reconnect_delay_seconds < self.reconnect_delay_seconds:
            raise ValueError(
                f"max_reconnect_delay_seconds ({self.max_reconnect_delay_seconds}) must be at least "
                f"reconnect_delay_seconds ({self.reconnect_delay_seconds})"
            )
        return self


class ApiConfig(BaseModel):
    """Portfolio REST API settings."""

    base_url: str = Field(default_factory=lambda: os.environ.get(API_URL_ENV) or DEFAULT_API_URL)
    timeout_seconds: float = DEFAULT_API_TIMEOUT

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"API URL must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got: {v}")
        return v


class AnalyticsConfig(BaseModel):
    """Performance analytics settings."""

    risk_free_rate: float = RISK_FREE_RATE
    periods_per_year: int = TRADING_PERIODS_PER_YEAR
    default_timeframe: Timeframe = Timeframe.ONE_YEAR

    @field_validator("periods_per_year")
    @classmethod
    def validate_periods(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"periods_per_year must be positive, got: {v}")
        return v


class WatchConfig(BaseModel):
    """Symbols streamed by the watch command when none are given."""

    symbols: list[str] = Field(default_factory=list)

    @field_validator("symbols")
    @classmethod
    def normalize_symbols(cls, v: list[str]) -> list[str]:
        """Upper-case symbols and drop blanks."""
        return [s.strip().upper() for s in v if s and s.strip()]


class AppConfig(BaseModel):
    """Root application configuration."""

    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)

    @property
    def is_sim_mode(self) -> bool:
        """Check if using the simulated transport."""
        return self.environment.transport_mode == TransportMode.SIM


# ============================================
# Configuration Loader
# ============================================


class ConfigLoader:
    """Load and validate configuration from YAML files with env var interpolation."""

    def __init__(self, config_path: str | Path) -> None:
        """
        Initialize config loader.

        Args:
            config_path: Path to the YAML configuration file.
        """
        self.config_path = Path(config_path)
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """
        Load and validate configuration.

        Returns:
            Validated AppConfig instance.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            yaml.YAMLError: If YAML is invalid.
            pydantic.ValidationError: If config validation fails.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            raw_config = {}

        processed_config = process_config_dict(raw_config)

        self._config = AppConfig.model_validate(processed_config)

        return self._config

    @property
    def config(self) -> AppConfig:
        """Get loaded config, loading if necessary."""
        if self._config is None:
            return self.load()
        return self._config

    def reload(self) -> AppConfig:
        """Force reload configuration from disk."""
        self._config = None
        return self.load()


def load_config(config_path: str | Path) -> AppConfig:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated AppConfig instance.
    """
    loader = ConfigLoader(config_path)
    return loader.load()


def load_config_with_overrides(
    config_path: str | Path,
    *,
    log_level: str | None = None,
    transport_mode: str | None = None,
) -> AppConfig:
    """
    Load configuration with CLI overrides.

    Args:
        config_path: Path to the YAML configuration file.
        log_level: Override log level.
        transport_mode: Override transport mode (websocket or sim).

    Returns:
        Validated AppConfig instance with overrides applied.
    """
    config = load_config(config_path)

    env_updates: dict[str, Any] = {}

    if log_level is not None:
        env_updates["log_level"] = LogLevel(log_level.upper())

    if transport_mode is not None:
        env_updates["transport_mode"] = TransportMode(transport_mode.lower())

    if env_updates:
        return config.model_copy(
            update={"environment": config.environment.model_copy(update=env_updates)}
        )

    return config
