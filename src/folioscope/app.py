"""folioscope application orchestrator."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from folioscope.analytics.performance import MetricComparison, PerformanceAnalyzer, PerformanceMetrics
from folioscope.api.client import PortfolioApiClient
from folioscope.config_loader import AppConfig, load_config_with_overrides
from folioscope.constants import LOG_FORMAT, Timeframe, TransportMode
from folioscope.data.history import load_history_file
from folioscope.data.market_data import PricePoint, Tick
from folioscope.stream.hub import SubscriptionHub
from folioscope.stream.sim import SimTransport
from folioscope.stream.transport import Transport
from folioscope.stream.websocket import WebSocketTransport

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@dataclass
class AnalysisReport:
    """Metrics for one history window, with its benchmark comparison."""

    points: list[PricePoint]
    metrics: PerformanceMetrics
    benchmark_metrics: PerformanceMetrics | None = None
    comparisons: list[MetricComparison] = field(default_factory=list)


class DashboardApp:
    """Wires configuration, transport, hub and analytics together."""

    def __init__(
        self,
        config_path: str = "config/config.yaml",
        log_level: str | None = None,
        transport_mode: str | None = None,
    ):
        self.config_path = Path(config_path)
        self.config: AppConfig | None = None
        self._log_level_override = log_level
        self._transport_mode_override = transport_mode

        # Components
        self.transport: Transport | None = None
        self.hub: SubscriptionHub | None = None
        self.analyzer: PerformanceAnalyzer | None = None
        self.api: PortfolioApiClient | None = None

        self._shutdown_event = asyncio.Event()

    def initialize(self) -> None:
        """Load config and build components."""
        self.config = load_config_with_overrides(
            self.config_path.absolute(),
            log_level=self._log_level_override,
            transport_mode=self._transport_mode_override,
        )
        setup_logging(self.config.environment.log_level.value)
        logger.info("Initializing folioscope...")

        if self.config.environment.transport_mode == TransportMode.SIM:
            self.transport = SimTransport(interval_sec=self.config.stream.sim_interval_seconds)
            logger.info("Using SimTransport")
        else:
            self.transport = WebSocketTransport(self.config.stream)
            logger.info(f"Using WebSocketTransport ({self.config.stream.url})")

        self.hub = SubscriptionHub.initialize(self.transport)
        self.analyzer = PerformanceAnalyzer(
            risk_free_rate=self.config.analytics.risk_free_rate,
            periods_per_year=self.config.analytics.periods_per_year,
        )
        self.api = PortfolioApiClient(self.config.api)

    def _ensure_initialized(self) -> None:
        if self.config is None:
            self.initialize()

    # --- Streaming ---

    def _log_tick(self, tick: Tick) -> None:
        logger.info(
            f"{tick.symbol} {tick.price:.2f} {tick.change:+.2f} "
            f"({tick.change_percent:+.2f}%) vol {tick.volume:,}"
        )

    async def watch(
        self,
        symbols: list[str] | None = None,
        duration: float | None = None,
        listener: Callable[[Tick], object] | None = None,
    ) -> None:
        """
        Stream ticks for symbols until a signal arrives or ``duration`` elapses.

        Args:
            symbols: Symbols to watch; defaults to the configured watch list.
            duration: Seconds to run, or None to run until interrupted.
            listener: Tick callback; defaults to logging each tick.
        """
        self._ensure_initialized()
        symbols = [s.upper() for s in (symbols or self.config.watch.symbols)]
        if not symbols:
            raise ValueError("No symbols to watch")

        listener = listener or self._log_tick
        handles = [self.hub.register(symbol, listener) for symbol in symbols]
        logger.info(f"Watching {', '.join(symbols)}")

        loop = asyncio.get_running_loop()
        try:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._handle_signal)
        except NotImplementedError:
            logger.warning("Signal handlers not supported in this environment. Use Ctrl+C to stop.")

        transport_task = asyncio.create_task(self.hub.start())
        try:
            if duration is None:
                await self._shutdown_event.wait()
            else:
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=duration)
        finally:
            logger.info("Shutting down...")
            for handle in handles:
                self.hub.unregister(handle)
            await self.hub.stop()
            await transport_task
            logger.info("Shutdown complete.")

    def _handle_signal(self) -> None:
        logger.info("Signal received, initiating shutdown...")
        self._shutdown_event.set()

    # --- Analytics ---

    def analyze_points(self, points: list[PricePoint]) -> AnalysisReport:
        """Compute metrics and the benchmark comparison for a series."""
        self._ensure_initialized()
        metrics = self.analyzer.analyze(points)
        benchmark_metrics = self.analyzer.analyze_benchmark(points)
        return AnalysisReport(
            points=points,
            metrics=metrics,
            benchmark_metrics=benchmark_metrics,
            comparisons=self.analyzer.compare(metrics),
        )

    def analyze_portfolio(
        self, portfolio_id: str, timeframe: Timeframe | str | None = None
    ) -> AnalysisReport:
        """Fetch a portfolio's history from the API and analyze it."""
        self._ensure_initialized()
        timeframe = Timeframe(timeframe or self.config.analytics.default_timeframe)
        points = self.api.get_performance(portfolio_id, timeframe)
        return self.analyze_points(points)

    def analyze_file(self, path: str | Path) -> AnalysisReport:
        """Analyze a history saved as JSON."""
        return self.analyze_points(load_history_file(path))
