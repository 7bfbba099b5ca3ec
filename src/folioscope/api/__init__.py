"""Portfolio API Module."""

from folioscope.api.client import PortfolioApiClient
from folioscope.api.models import OptimizationResponse, OptimizationResult, RiskMetrics

__all__ = [
    "PortfolioApiClient",
    "OptimizationResponse",
    "OptimizationResult",
    "RiskMetrics",
]
