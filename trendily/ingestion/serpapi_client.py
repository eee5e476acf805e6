"""
SerpAPI Google Trends client.

API:   https://serpapi.com/search.json?engine=google_trends
Docs:  https://serpapi.com/google-trends-api

Credential setup (.env, gitignored)::

  TRENDILY_SERPAPI_KEY=your_key      # SERPAPI_KEY is also accepted

Request::

  GET /search.json
    ?engine=google_trends&data_type=TIMESERIES&q=<keyword>
    &date=today 12-m&tz=0[&geo=FR]&api_key=...

Response (relevant part)::

  {"interest_over_time": {"timeline_data": [
      {"date": "Mar 2 – 8, 2025",
       "values": [{"query": "...", "value": "64", "extracted_value": 64}]},
      ...
  ]}}

Provider problems (missing key, non-2xx, ``error`` field, empty timeline,
network failure) are returned as ``TrendFetchResult.error``, never raised.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from trendily.ingestion.base import TrendSource
from trendily.models.trend import TrendFetchResult, TrendPoint

SERPAPI_URL = "https://serpapi.com/search.json"


class SerpApiTrendSource(TrendSource):
    """Interest-over-time from SerpAPI's ``google_trends`` engine.

    Args:
        api_key:         SerpAPI key; ``None`` makes every fetch fail fast.
        timeframe:       Google Trends date range, e.g. ``"today 12-m"``.
        max_points:      Keep only the most recent ``max_points`` periods.
        timeout_seconds: HTTP timeout.
        transport:       Optional ``httpx`` transport (tests use ``MockTransport``).
    """

    name = "serpapi"

    def __init__(
        self,
        api_key: Optional[str],
        timeframe: str = "today 12-m",
        max_points: int = 52,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__()
        self.api_key = api_key
        self.timeframe = timeframe
        self.max_points = max_points
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def fetch(self, keyword: str, geo: Optional[str] = None) -> TrendFetchResult:
        if not self.api_key:
            return TrendFetchResult(keyword=keyword, error="SERPAPI_KEY missing")

        params = {
            "engine": "google_trends",
            "q": keyword,
            "data_type": "TIMESERIES",
            "date": self.timeframe,
            "tz": "0",
            "api_key": self.api_key,
        }
        if geo:
            params["geo"] = geo

        try:
            with httpx.Client(
                transport=self._transport, timeout=self.timeout_seconds
            ) as client:
                resp = client.get(SERPAPI_URL, params=params)
        except httpx.HTTPError as exc:
            self.logger.warning("SerpAPI request failed | keyword=%s error=%s", keyword, exc)
            return TrendFetchResult(keyword=keyword, error=f"SerpAPI request failed: {exc}")

        if resp.status_code >= 400:
            return TrendFetchResult(
                keyword=keyword, error=f"SerpAPI {resp.status_code}: {resp.text}"
            )

        try:
            data = resp.json()
        except ValueError:
            return TrendFetchResult(keyword=keyword, error="SerpAPI: invalid JSON response")

        if not isinstance(data, dict):
            return TrendFetchResult(
                keyword=keyword,
                error=f"SerpAPI: unexpected response type {type(data).__name__}",
            )

        if data.get("error"):
            return TrendFetchResult(keyword=keyword, error=str(data["error"]))

        interest = data.get("interest_over_time")
        raw = interest.get("timeline_data") if isinstance(interest, dict) else None
        raw = [item for item in raw if isinstance(item, dict)] if isinstance(raw, list) else []
        if not raw:
            return TrendFetchResult(keyword=keyword, error="SerpAPI: timeline_data empty")

        points = tuple(_parse_timeline_item(item) for item in raw)[-self.max_points:]
        self.logger.debug("SerpAPI returned %d points | keyword=%s", len(points), keyword)
        return TrendFetchResult(keyword=keyword, points=points, source=self.name)


def _parse_timeline_item(item: dict[str, Any]) -> TrendPoint:
    label = item.get("date") or item.get("formattedAxisTime") or item.get("time") or ""
    values = item.get("values")
    first = values[0] if isinstance(values, list) and values else {}
    if not isinstance(first, dict):
        first = {}
    raw_value = first.get("extracted_value", first.get("value", 0))
    return TrendPoint(label=str(label), interest=_to_interest(raw_value))


def _to_interest(value: Any) -> float:
    # Google Trends reports "<1" for tiny but non-zero interest.
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return 0.0
