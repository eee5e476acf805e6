"""
Alert email rendering.

``render_alert()`` is deterministic: the same keyword, signals and chart URL
always give byte-identical subject, HTML and plain-text bodies.  No clock, no
randomness, no per-recipient content.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Optional

from trendily.models.trend import SignalSet
from trendily.signals.metrics import momentum_score

QUICK_ACTIONS = (
    "Short video explaining why this is trending now.",
    "Long-tail how-to article on the topic.",
    "Small tool or template as a lead magnet.",
)


@dataclass(frozen=True)
class RenderedAlert:
    """Subject and bodies of one alert email."""

    subject: str
    html: str
    text: str


def format_pct(pct: Optional[int]) -> str:
    """``30 -> "+30%"``, ``-5 -> "-5%"``, ``None -> "n/a"``."""
    if pct is None:
        return "n/a"
    return f"{pct:+d}%"


def _format_interest(value: Optional[float]) -> str:
    if value is None:
        return "?"
    return f"{value:g}"


def render_alert(
    keyword: str,
    signals: SignalSet,
    chart_url: Optional[str] = None,
) -> RenderedAlert:
    """Render the alert email for one keyword.

    Args:
        keyword:   Tracked keyword.
        signals:   Signals derived for this run.
        chart_url: Optional chart image URL to embed.

    Returns:
        ``RenderedAlert`` with subject, HTML and plain-text bodies.
    """
    pct = format_pct(signals.pct_change)
    score = momentum_score(signals)
    interest = _format_interest(signals.last_interest)
    kw = html.escape(keyword)

    subject = f'Trendily alert: "{keyword}" ({pct}, score {score})'

    chart_html = ""
    if chart_url:
        chart_html = (
            f'<p><img src="{html.escape(chart_url, quote=True)}" '
            f'alt="Interest over time for {kw}" width="600"></p>'
        )
    actions_html = "".join(f"<li>{a}</li>" for a in QUICK_ACTIONS)

    body_html = (
        '<div style="font-family:system-ui; line-height:1.55">'
        f"<h2>Trending up: {kw}</h2>"
        f"<p><strong>{pct}</strong> vs previous week.</p>"
        f"<p>Current interest: <strong>{interest}</strong> "
        f"(average {signals.average}/100).</p>"
        f"<p>Stability: {signals.stability}% of periods rising.</p>"
        f"<p>Overall score: {score}</p>"
        f"{chart_html}"
        "<p>Quick ideas:</p>"
        f"<ul>{actions_html}</ul>"
        '<p style="margin-top:16px;color:#666">Trendily</p>'
        "</div>"
    )

    lines = [
        f"Trending up: {keyword}",
        f"{pct} vs previous week.",
        f"Current interest: {interest} (average {signals.average}/100).",
        f"Stability: {signals.stability}% of periods rising.",
        f"Overall score: {score}",
    ]
    if chart_url:
        lines.append(f"Chart: {chart_url}")
    lines.append("")
    lines.append("Quick ideas:")
    lines.extend(f"- {a}" for a in QUICK_ACTIONS)
    lines.append("")
    lines.append("Trendily")

    return RenderedAlert(subject=subject, html=body_html, text="\n".join(lines))
