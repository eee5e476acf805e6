"""
QuickChart renderer.

Builds a Chart.js line-chart config and encodes it into a QuickChart URL::

    https://quickchart.io/chart?c=<urlencoded JSON>&w=600&h=300

No network call is made; the URL is rendered by QuickChart when the email
client loads the image.
"""

from __future__ import annotations

import json
from typing import Any, Sequence
from urllib.parse import quote

from trendily.charts.base import ChartRenderer, ChartResult
from trendily.models.trend import TrendPoint

QUICKCHART_URL = "https://quickchart.io/chart"

LINE_COLOR = "rgb(37, 99, 235)"
FILL_COLOR = "rgba(37, 99, 235, 0.2)"


def build_chart_config(keyword: str, points: Sequence[TrendPoint]) -> dict[str, Any]:
    """Chart.js config for an interest-over-time line chart."""
    return {
        "type": "line",
        "data": {
            "labels": [p.label for p in points],
            "datasets": [
                {
                    "label": keyword,
                    "data": [p.interest for p in points],
                    "borderColor": LINE_COLOR,
                    "backgroundColor": FILL_COLOR,
                    "fill": True,
                    "tension": 0.3,
                }
            ],
        },
        "options": {
            "plugins": {"legend": {"display": False}},
            "scales": {"y": {"beginAtZero": True}},
        },
    }


class QuickChartRenderer(ChartRenderer):
    """Encodes trend series as QuickChart image URLs."""

    def __init__(
        self,
        base_url: str = QUICKCHART_URL,
        width: int = 600,
        height: int = 300,
    ) -> None:
        self.base_url = base_url
        self.width = width
        self.height = height

    def render(self, keyword: str, points: Sequence[TrendPoint]) -> ChartResult:
        if not points:
            return ChartResult(error="no points to chart")
        config = json.dumps(build_chart_config(keyword, points), separators=(",", ":"))
        url = f"{self.base_url}?c={quote(config, safe='')}&w={self.width}&h={self.height}"
        return ChartResult(url=url)
