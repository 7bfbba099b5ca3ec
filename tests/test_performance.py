"""Tests for performance analytics."""

from __future__ import annotations

import math
from datetime import date, timedelta

import pytest

from folioscope.analytics.performance import (
    BenchmarkFigures,
    PerformanceAnalyzer,
    annualized_return,
    max_drawdown,
    period_returns,
    sharpe_ratio,
    total_return,
    volatility,
)
from folioscope.data.market_data import PricePoint
from folioscope.errors import DataInsufficientError


def make_points(values: list[float], benchmarks: list[float] | None = None) -> list[PricePoint]:
    start = date(2024, 1, 2)
    return [
        PricePoint(
            date=start + timedelta(days=i),
            value=v,
            benchmark=benchmarks[i] if benchmarks else None,
        )
        for i, v in enumerate(values)
    ]


@pytest.fixture
def analyzer() -> PerformanceAnalyzer:
    return PerformanceAnalyzer()


class TestPeriodReturns:
    def test_simple_returns(self) -> None:
        assert period_returns([100, 110, 121, 108.9]) == pytest.approx([0.10, 0.10, -0.10])

    def test_single_value_rejected(self) -> None:
        with pytest.raises(DataInsufficientError):
            period_returns([100.0])

    def test_empty_rejected(self) -> None:
        with pytest.raises(DataInsufficientError):
            period_returns([])

    def test_zero_denominator_rejected(self) -> None:
        with pytest.raises(DataInsufficientError, match="index 1"):
            period_returns([100.0, 0.0, 50.0])

    def test_zero_last_value_allowed(self) -> None:
        # Only denominators must be non-zero
        assert period_returns([100.0, 0.0]) == [-1.0]


class TestMetricFunctions:
    def test_volatility_is_population_stddev(self) -> None:
        # mean 0.0, squared deviations 0.01 each
        assert volatility([0.1, -0.1, 0.1, -0.1]) == pytest.approx(0.1)

    def test_sharpe_uses_unadjusted_risk_free_rate(self) -> None:
        assert sharpe_ratio(0.05, 0.1) == pytest.approx((0.05 - 0.02) / 0.1)

    def test_sharpe_zero_volatility_negative_excess(self) -> None:
        assert sharpe_ratio(0.0, 0.0) == -math.inf

    def test_sharpe_zero_volatility_positive_excess(self) -> None:
        assert sharpe_ratio(0.05, 0.0) == math.inf

    def test_sharpe_zero_volatility_zero_excess(self) -> None:
        assert math.isnan(sharpe_ratio(0.02, 0.0))

    def test_total_return(self) -> None:
        assert total_return([100, 110, 121, 108.9]) == pytest.approx(0.089)

    def test_annualized_uses_point_count(self) -> None:
        assert annualized_return(0.1, 252) == pytest.approx(0.1)
        assert annualized_return(0.1, 126) == pytest.approx(1.1**2 - 1)

    def test_annualized_total_loss(self) -> None:
        assert annualized_return(-1.0, 10) == -1.0

    def test_annualized_negative_base_is_nan(self) -> None:
        assert math.isnan(annualized_return(-1.5, 10))

    def test_annualized_overflow_is_inf(self) -> None:
        assert annualized_return(1000.0, 2) == math.inf

    def test_drawdown_from_running_peak(self) -> None:
        assert max_drawdown([100, 110, 121, 108.9]) == pytest.approx(0.1)

    def test_drawdown_takes_worst_trough(self) -> None:
        assert max_drawdown([100, 80, 120, 90, 130]) == pytest.approx(0.25)

    def test_drawdown_zero_for_non_decreasing(self) -> None:
        assert max_drawdown([1, 1, 2, 3, 3, 5]) == 0.0

    def test_drawdown_zero_running_peak(self) -> None:
        with pytest.raises(DataInsufficientError, match="peak is zero"):
            max_drawdown([-1.0, 0.0])


class TestPerformanceAnalyzer:
    def test_reference_scenario(self, analyzer: PerformanceAnalyzer) -> None:
        metrics = analyzer.analyze(make_points([100, 110, 121, 108.9]))

        returns = [0.10, 0.10, -0.10]
        mean = sum(returns) / 3
        vol = math.sqrt(sum((r - mean) ** 2 for r in returns) / 3)

        assert metrics.total_return == pytest.approx(0.089)
        assert metrics.annualized_return == pytest.approx(1.089 ** (252 / 4) - 1)
        assert metrics.volatility == pytest.approx(vol)
        assert metrics.sharpe_ratio == pytest.approx((mean - 0.02) / vol)
        assert metrics.max_drawdown == pytest.approx((121 - 108.9) / 121)
        assert metrics.beta == 0.0
        assert metrics.alpha == 0.0

    def test_accepts_plain_values(self, analyzer: PerformanceAnalyzer) -> None:
        from_points = analyzer.analyze(make_points([100, 105, 103]))
        from_values = analyzer.analyze([100, 105, 103])
        assert from_points == from_values

    def test_flat_series(self, analyzer: PerformanceAnalyzer) -> None:
        metrics = analyzer.analyze(make_points([50.0] * 10))

        assert metrics.volatility == 0.0
        assert not math.isfinite(metrics.sharpe_ratio)
        assert metrics.total_return == 0.0
        assert metrics.max_drawdown == 0.0

    def test_large_gain_over_few_points(self, analyzer: PerformanceAnalyzer) -> None:
        metrics = analyzer.analyze([1.0, 1001.0])

        assert metrics.total_return == pytest.approx(1000.0)
        assert metrics.annualized_return == math.inf
        assert "Annualized Return: n/a" in metrics.summary()

    def test_series_rising_to_zero_peak(self, analyzer: PerformanceAnalyzer) -> None:
        with pytest.raises(DataInsufficientError):
            analyzer.analyze([-1.0, 0.0])

    def test_too_short_series(self, analyzer: PerformanceAnalyzer) -> None:
        with pytest.raises(DataInsufficientError):
            analyzer.analyze(make_points([100.0]))

    def test_zero_value_series(self, analyzer: PerformanceAnalyzer) -> None:
        with pytest.raises(DataInsufficientError):
            analyzer.analyze(make_points([0.0, 10.0, 20.0]))

    def test_input_not_mutated(self, analyzer: PerformanceAnalyzer) -> None:
        points = make_points([100, 97, 104, 99, 120])
        snapshot = list(points)

        first = analyzer.analyze(points)
        round_trip = list(reversed(list(reversed(points))))
        second = analyzer.analyze(round_trip)

        assert points == snapshot
        assert first.total_return == second.total_return

    def test_drawdown_bounds_for_positive_series(self, analyzer: PerformanceAnalyzer) -> None:
        series = [
            [100, 90, 95, 80, 120],
            [5, 4, 3, 2, 1],
            [1, 2, 3, 4],
            [10, 10.5, 10.25, 11],
        ]
        for values in series:
            dd = analyzer.analyze(values).max_drawdown
            assert 0.0 <= dd < 1.0
            non_decreasing = all(b >= a for a, b in zip(values, values[1:]))
            assert (dd == 0.0) == non_decreasing

    def test_external_beta_alpha(self, analyzer: PerformanceAnalyzer) -> None:
        metrics = analyzer.analyze([100, 101, 102], beta=1.2, alpha=0.01)
        assert metrics.beta == 1.2
        assert metrics.alpha == 0.01

    def test_custom_constants(self) -> None:
        analyzer = PerformanceAnalyzer(risk_free_rate=0.0, periods_per_year=12)
        metrics = analyzer.analyze([100, 110, 121])
        assert metrics.annualized_return == pytest.approx(1.21 ** (12 / 3) - 1)
        assert metrics.sharpe_ratio == math.inf  # constant 10% returns, zero volatility

    def test_to_dict_uses_wire_keys(self, analyzer: PerformanceAnalyzer) -> None:
        data = analyzer.analyze([100, 110]).to_dict()
        assert set(data) == {
            "totalReturn",
            "annualizedReturn",
            "sharpeRatio",
            "volatility",
            "maxDrawdown",
            "beta",
            "alpha",
        }

    def test_summary_marks_non_finite(self, analyzer: PerformanceAnalyzer) -> None:
        summary = analyzer.analyze([10, 10, 10]).summary()
        assert "Sharpe Ratio: n/a" in summary
        assert "Total Return: 0.00%" in summary


class TestBenchmark:
    def test_benchmark_series_metrics(self, analyzer: PerformanceAnalyzer) -> None:
        points = make_points([100, 110, 121], benchmarks=[100, 105, 110.25])
        metrics = analyzer.analyze_benchmark(points)

        assert metrics is not None
        assert metrics.total_return == pytest.approx(0.1025)

    def test_benchmark_missing_returns_none(self, analyzer: PerformanceAnalyzer) -> None:
        points = make_points([100, 110, 121])
        assert analyzer.analyze_benchmark(points) is None

    def test_compare_directions(self, analyzer: PerformanceAnalyzer) -> None:
        metrics = analyzer.analyze([100, 110, 121, 108.9])
        rows = {row.name: row for row in analyzer.compare(metrics)}

        assert rows["total_return"].benchmark == 0.0845
        assert rows["total_return"].outperforms is True
        assert rows["total_return"].difference == pytest.approx(0.089 - 0.0845)
        # 10% drawdown beats the 15.3% reference
        assert rows["max_drawdown"].outperforms is True
        assert rows["beta"].outperforms is None
        assert rows["alpha"].outperforms is False

    def test_compare_non_finite_never_outperforms(self, analyzer: PerformanceAnalyzer) -> None:
        metrics = analyzer.analyze([100, 110, 121])  # zero volatility, +inf Sharpe
        rows = {row.name: row for row in analyzer.compare(metrics)}
        assert rows["sharpe_ratio"].outperforms is False

    def test_compare_against_custom_figures(self, analyzer: PerformanceAnalyzer) -> None:
        mine = analyzer.analyze([100, 102, 101, 104])
        other = analyzer.analyze([100, 101, 99, 100])
        rows = analyzer.compare(mine, BenchmarkFigures.from_metrics(other))
        assert {row.name for row in rows} == {
            "total_return",
            "annualized_return",
            "sharpe_ratio",
            "max_drawdown",
            "beta",
            "alpha",
        }
        assert next(r for r in rows if r.name == "total_return").outperforms is True
