"""Risk/return metrics over a portfolio value history.

Every metric is recomputed from the full series on each call; nothing is
cached between series and inputs are never mutated.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field

from folioscope.constants import (
    BENCHMARK_ALPHA,
    BENCHMARK_ANNUALIZED_RETURN,
    BENCHMARK_BETA,
    BENCHMARK_MAX_DRAWDOWN,
    BENCHMARK_SHARPE_RATIO,
    BENCHMARK_TOTAL_RETURN,
    RISK_FREE_RATE,
    TRADING_PERIODS_PER_YEAR,
)
from folioscope.data.market_data import PricePoint
from folioscope.errors import DataInsufficientError

logger = logging.getLogger(__name__)


def _values(points: Sequence[PricePoint] | Sequence[float]) -> list[float]:
    return [p.value if isinstance(p, PricePoint) else float(p) for p in points]


def _fmt_pct(value: float) -> str:
    return f"{value:.2%}" if math.isfinite(value) else "n/a"


def _fmt_num(value: float) -> str:
    return f"{value:.2f}" if math.isfinite(value) else "n/a"


# ============================================
# Metric functions
# ============================================


def period_returns(values: Sequence[float]) -> list[float]:
    """
    Simple returns between consecutive values.

    r[i] = (P[i] - P[i-1]) / P[i-1]

    Raises:
        DataInsufficientError: Fewer than two values, or a zero denominator.
    """
    if len(values) < 2:
        raise DataInsufficientError(f"Need at least 2 values to compute returns, got {len(values)}")

    returns = []
    for i in range(1, len(values)):
        prev = values[i - 1]
        if prev == 0:
            raise DataInsufficientError(f"Value at index {i - 1} is zero; return is undefined")
        returns.append((values[i] - prev) / prev)
    return returns


def volatility(returns: Sequence[float]) -> float:
    """Population standard deviation of returns."""
    if not returns:
        raise DataInsufficientError("Need at least 1 return to compute volatility")
    return statistics.pstdev(returns)


def sharpe_ratio(
    mean_return: float, vol: float, risk_free_rate: float = RISK_FREE_RATE
) -> float:
    """
    (mean - risk_free_rate) / volatility.

    The rate is subtracted from the per-period mean as-is, without
    de-annualizing. With zero volatility the result is +inf, -inf or nan
    depending on the sign of the excess return.
    """
    excess = mean_return - risk_free_rate
    if vol == 0:
        if excess == 0:
            return math.nan
        return math.copysign(math.inf, excess)
    return excess / vol


def total_return(values: Sequence[float]) -> float:
    """(last - first) / first."""
    if len(values) < 2:
        raise DataInsufficientError(f"Need at least 2 values for total return, got {len(values)}")
    if values[0] == 0:
        raise DataInsufficientError("First value is zero; total return is undefined")
    return (values[-1] - values[0]) / values[0]


def annualized_return(
    total: float, n_points: int, periods_per_year: int = TRADING_PERIODS_PER_YEAR
) -> float:
    """
    (1 + total) ** (periods_per_year / n_points) - 1.

    Uses the number of points, not elapsed calendar time, as the period count.
    Returns nan when 1 + total is negative and inf when the result
    exceeds the float range.
    """
    if n_points < 1:
        raise DataInsufficientError("Need at least 1 point to annualize")
    base = 1 + total
    if base < 0:
        return math.nan
    try:
        return base ** (periods_per_year / n_points) - 1
    except OverflowError:
        return math.inf


def max_drawdown(values: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a fraction of the peak; 0 if never below a peak."""
    if not values:
        raise DataInsufficientError("Need at least 1 value for drawdown")
    if values[0] == 0:
        raise DataInsufficientError("First value is zero; drawdown is undefined")

    peak = values[0]
    worst = 0.0
    for i, value in enumerate(values):
        if value > peak:
            peak = value
        if peak == 0:
            raise DataInsufficientError(f"Running peak is zero at index {i}; drawdown is undefined")
        drawdown = (peak - value) / peak
        if drawdown > worst:
            worst = drawdown
    return worst


# ============================================
# Results
# ============================================


@dataclass
class PerformanceMetrics:
    """Risk/return statistics for one series."""

    total_return: float
    annualized_return: float
    sharpe_ratio: float
    volatility: float
    max_drawdown: float
    beta: float = 0.0
    alpha: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalReturn": self.total_return,
            "annualizedReturn": self.annualized_return,
            "sharpeRatio": self.sharpe_ratio,
            "volatility": self.volatility,
            "maxDrawdown": self.max_drawdown,
            "beta": self.beta,
            "alpha": self.alpha,
        }

    def summary(self) -> str:
        """Generate text summary of the metrics."""
        lines = [
            f"Total Return: {_fmt_pct(self.total_return)}",
            f"Annualized Return: {_fmt_pct(self.annualized_return)}",
            f"Sharpe Ratio: {_fmt_num(self.sharpe_ratio)}",
            f"Volatility: {_fmt_pct(self.volatility)}",
            f"Max Drawdown: {_fmt_pct(self.max_drawdown)}",
            f"Beta: {_fmt_num(self.beta)}",
            f"Alpha: {_fmt_pct(self.alpha)}",
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class BenchmarkFigures:
    """Reference figures a portfolio's metrics are compared against."""

    total_return: float = BENCHMARK_TOTAL_RETURN
    annualized_return: float = BENCHMARK_ANNUALIZED_RETURN
    sharpe_ratio: float = BENCHMARK_SHARPE_RATIO
    max_drawdown: float = BENCHMARK_MAX_DRAWDOWN
    beta: float = BENCHMARK_BETA
    alpha: float = BENCHMARK_ALPHA

    @classmethod
    def from_metrics(cls, metrics: PerformanceMetrics) -> BenchmarkFigures:
        return cls(
            total_return=metrics.total_return,
            annualized_return=metrics.annualized_return,
            sharpe_ratio=metrics.sharpe_ratio,
            max_drawdown=metrics.max_drawdown,
            beta=metrics.beta,
            alpha=metrics.alpha,
        )


@dataclass(frozen=True)
class MetricComparison:
    """One row of a portfolio-vs-benchmark table."""

    name: str
    portfolio: float
    benchmark: float
    difference: float
    outperforms: bool | None  # None where neither direction is better


# Metrics where a smaller value is the better one
_LOWER_IS_BETTER = {"max_drawdown"}
# Metrics with no better direction
_NO_DIRECTION = {"beta"}


@dataclass
class PerformanceAnalyzer:
    """
    Computes PerformanceMetrics from an ordered value history.

    Usage:
        analyzer = PerformanceAnalyzer()
        metrics = analyzer.analyze(points)
        rows = analyzer.compare(metrics)
    """

    risk_free_rate: float = RISK_FREE_RATE
    periods_per_year: int = TRADING_PERIODS_PER_YEAR
    figures: BenchmarkFigures = field(default_factory=BenchmarkFigures)

    def analyze(
        self,
        points: Sequence[PricePoint] | Sequence[float],
        beta: float = 0.0,
        alpha: float = 0.0,
    ) -> PerformanceMetrics:
        """
        Compute all metrics for a series.

        Args:
            points: PricePoints (or plain values) ascending by date.
            beta: Market beta, when computed elsewhere.
            alpha: Market alpha, when computed elsewhere.

        Raises:
            DataInsufficientError: Fewer than two points, or a zero value before the last point.
        """
        values = _values(points)
        returns = period_returns(values)

        mean = statistics.fmean(returns)
        vol = volatility(returns)
        total = total_return(values)

        metrics = PerformanceMetrics(
            total_return=total,
            annualized_return=annualized_return(total, len(values), self.periods_per_year),
            sharpe_ratio=sharpe_ratio(mean, vol, self.risk_free_rate),
            volatility=vol,
            max_drawdown=max_drawdown(values),
            beta=beta,
            alpha=alpha,
        )

        if not math.isfinite(metrics.sharpe_ratio):
            logger.debug(f"Sharpe ratio is {metrics.sharpe_ratio} (volatility {vol})")

        return metrics

    def analyze_benchmark(self, points: Sequence[PricePoint]) -> PerformanceMetrics | None:
        """Metrics of the benchmark column, or None unless every point carries one."""
        if not points or any(p.benchmark is None for p in points):
            return None
        return self.analyze([p.benchmark for p in points])

    def compare(
        self, metrics: PerformanceMetrics, figures: BenchmarkFigures | None = None
    ) -> list[MetricComparison]:
        """Compare metrics row by row against benchmark figures."""
        figures = figures or self.figures
        rows = []
        for name in ("total_return", "annualized_return", "sharpe_ratio", "max_drawdown", "beta", "alpha"):
            ours = getattr(metrics, name)
            theirs = getattr(figures, name)

            if name in _NO_DIRECTION:
                outperforms = None
            elif not math.isfinite(ours):
                outperforms = False
            elif name in _LOWER_IS_BETTER:
                outperforms = ours < theirs
            else:
                outperforms = ours > theirs

            rows.append(
                MetricComparison(
                    name=name,
                    portfolio=ours,
                    benchmark=theirs,
                    difference=ours - theirs,
                    outperforms=outperforms,
                )
            )
        return rows
