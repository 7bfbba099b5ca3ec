"""Portfolio REST API client."""

from __future__ import annotations

import logging
from typing import Any

import requests

from folioscope.api.models import OptimizationResponse, RiskMetrics
from folioscope.config_loader import ApiConfig
from folioscope.constants import DEFAULT_MAX_WEIGHT, DEFAULT_MIN_WEIGHT, Timeframe
from folioscope.data.history import parse_history
from folioscope.data.market_data import PricePoint
from folioscope.errors import ApiError

logger = logging.getLogger(__name__)


class PortfolioApiClient:
    """
    Thin client for the dashboard's portfolio endpoints.

    Usage:
        client = PortfolioApiClient(config.api)
        points = client.get_performance("p1", Timeframe.ONE_YEAR)
    """

    def __init__(self, config: ApiConfig | None = None, session: requests.Session | None = None):
        self.config = config or ApiConfig()
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._url(path)
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method, url, timeout=self.config.timeout_seconds, **kwargs
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise ApiError(f"{method} {url} failed with status {status}", status_code=status) from e
        except requests.RequestException as e:
            raise ApiError(f"{method} {url} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"{method} {url} returned invalid JSON") from e

    def get_performance(
        self, portfolio_id: str, timeframe: Timeframe | str = Timeframe.ONE_YEAR
    ) -> list[PricePoint]:
        """
        Fetch a portfolio's value history for a timeframe.

        Raises:
            ApiError: Request failed.
            HistoryFormatError: Response is not a valid ordered series.
            ValueError: Unknown timeframe token.
        """
        timeframe = Timeframe(timeframe)
        payload = self._request(
            "GET", f"portfolio/{portfolio_id}/performance", params={"timeframe": timeframe.value}
        )
        points = parse_history(payload)
        logger.info(f"Fetched {len(points)} points for portfolio {portfolio_id} ({timeframe.value})")
        return points

    def get_risk_metrics(self, portfolio_id: str) -> RiskMetrics:
        """Fetch server-computed VaR/CVaR, beta, correlations and exposures."""
        return RiskMetrics.from_dict(self._request("GET", f"portfolio/{portfolio_id}/risk"))

    def optimize(
        self,
        portfolio_id: str,
        risk_tolerance: float,
        min_weight: float = DEFAULT_MIN_WEIGHT,
        max_weight: float = DEFAULT_MAX_WEIGHT,
    ) -> OptimizationResponse:
        """Request an efficient frontier from the server-side optimizer."""
        if not 0.0 <= risk_tolerance <= 1.0:
            raise ValueError(f"risk_tolerance must be in [0, 1], got: {risk_tolerance}")
        if not 0.0 <= min_weight <= max_weight <= 1.0:
            raise ValueError(f"Invalid weight bounds: min={min_weight}, max={max_weight}")

        body = {
            "portfolioId": portfolio_id,
            "riskTolerance": risk_tolerance,
            "constraints": {"minWeight": min_weight, "maxWeight": max_weight},
        }
        return OptimizationResponse.from_dict(self._request("POST", "portfolio/optimize", json=body))

    def close(self) -> None:
        self.session.close()
