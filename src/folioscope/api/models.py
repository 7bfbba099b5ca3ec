"""Response models for remotely computed portfolio analytics.

Optimization, VaR/CVaR and correlation are computed server-side; these
classes only describe the shapes the dashboard consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from folioscope.errors import ApiError


def _float_map(raw: Any, name: str) -> dict[str, float]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ApiError(f"'{name}' must be an object, got {type(raw).__name__}")
    try:
        return {str(k): float(v) for k, v in raw.items()}
    except (TypeError, ValueError) as e:
        raise ApiError(f"'{name}' has a non-numeric value: {e}") from e


def _require_float(data: dict, key: str) -> float:
    if key not in data:
        raise ApiError(f"Response missing '{key}'")
    try:
        return float(data[key])
    except (TypeError, ValueError) as e:
        raise ApiError(f"'{key}' is not numeric: {data[key]!r}") from e


@dataclass
class RiskMetrics:
    """Server-side risk analysis of a portfolio."""

    var: float
    cvar: float
    beta: float
    correlations: dict[str, float] = field(default_factory=dict)
    stress_tests: dict[str, float] = field(default_factory=dict)
    sector_exposure: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> RiskMetrics:
        if not isinstance(data, dict):
            raise ApiError(f"Risk response must be an object, got {type(data).__name__}")
        return cls(
            var=_require_float(data, "var"),
            cvar=_require_float(data, "cvar"),
            beta=_require_float(data, "beta"),
            correlations=_float_map(data.get("correlations"), "correlations"),
            stress_tests=_float_map(data.get("stressTests"), "stressTests"),
            sector_exposure=_float_map(data.get("sectorExposure"), "sectorExposure"),
        )


@dataclass
class OptimizationResult:
    """One portfolio on the efficient frontier."""

    expected_return: float
    risk: float
    sharpe_ratio: float
    weights: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> OptimizationResult:
        if not isinstance(data, dict):
            raise ApiError(f"Optimization result must be an object, got {type(data).__name__}")
        return cls(
            expected_return=_require_float(data, "expectedReturn"),
            risk=_require_float(data, "risk"),
            sharpe_ratio=_require_float(data, "sharpeRatio"),
            weights=_float_map(data.get("weights"), "weights"),
        )


@dataclass
class OptimizationResponse:
    """Efficient frontier plus the portfolio recommended for the requested risk tolerance."""

    efficient_frontier: list[OptimizationResult]
    recommended_portfolio: OptimizationResult | None = None

    @classmethod
    def from_dict(cls, data: Any) -> OptimizationResponse:
        if not isinstance(data, dict):
            raise ApiError(f"Optimization response must be an object, got {type(data).__name__}")

        frontier = data.get("efficientFrontier") or []
        if not isinstance(frontier, list):
            raise ApiError("'efficientFrontier' must be an array")

        recommended = data.get("recommendedPortfolio")
        return cls(
            efficient_frontier=[OptimizationResult.from_dict(item) for item in frontier],
            recommended_portfolio=(
                OptimizationResult.from_dict(recommended) if recommended is not None else None
            ),
        )
