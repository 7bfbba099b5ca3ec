"""History payload parsing.

Turns the portfolio API's performance response into an ordered list of
PricePoints, rejecting shapes the analytics engine cannot trust.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

from folioscope.data.market_data import PricePoint
from folioscope.errors import HistoryFormatError

logger = logging.getLogger(__name__)


def _parse_date(raw: Any, index: int) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            # Accept full timestamps too, keeping the calendar date
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise HistoryFormatError(f"Point {index}: invalid date {raw!r}")


def _parse_number(raw: Any, field_name: str, index: int) -> float:
    if isinstance(raw, bool) or raw is None:
        raise HistoryFormatError(f"Point {index}: invalid {field_name} {raw!r}")
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise HistoryFormatError(f"Point {index}: invalid {field_name} {raw!r}") from e


def parse_history(payload: Any) -> list[PricePoint]:
    """
    Parse a history response into PricePoints.

    Accepts either a bare JSON array or an object with a ``performance`` array.

    Raises:
        HistoryFormatError: On missing fields, bad values, unsorted or duplicate dates.
    """
    if isinstance(payload, dict):
        if "performance" not in payload:
            raise HistoryFormatError("History object has no 'performance' array")
        payload = payload["performance"]

    if not isinstance(payload, list):
        raise HistoryFormatError(f"History must be an array, got {type(payload).__name__}")

    points: list[PricePoint] = []
    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            raise HistoryFormatError(f"Point {i}: expected object, got {type(item).__name__}")
        if "date" not in item or "value" not in item:
            raise HistoryFormatError(f"Point {i}: 'date' and 'value' are required")

        point_date = _parse_date(item["date"], i)
        benchmark = item.get("benchmark")

        if points and point_date <= points[-1].date:
            if point_date == points[-1].date:
                raise HistoryFormatError(f"Point {i}: duplicate date {point_date.isoformat()}")
            raise HistoryFormatError(
                f"Point {i}: date {point_date.isoformat()} is before {points[-1].date.isoformat()}"
            )

        points.append(
            PricePoint(
                date=point_date,
                value=_parse_number(item["value"], "value", i),
                benchmark=None if benchmark is None else _parse_number(benchmark, "benchmark", i),
            )
        )

    logger.debug(f"Parsed {len(points)} history points")
    return points


def load_history_file(path: str | Path) -> list[PricePoint]:
    """Load a history series saved as JSON in the API's response shape."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"History file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise HistoryFormatError(f"{path} is not valid JSON: {e}") from e

    return parse_history(payload)
