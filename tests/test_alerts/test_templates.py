"""Tests for alert email rendering."""

from __future__ import annotations

from trendily.alerts.templates import QUICK_ACTIONS, format_pct, render_alert
from trendily.models.trend import SignalSet

SIGNALS = SignalSet(pct_change=30, average=50, stability=100, last_interest=65.0)


class TestFormatPct:
    def test_signs(self):
        assert format_pct(30) == "+30%"
        assert format_pct(-5) == "-5%"
        assert format_pct(0) == "+0%"

    def test_none(self):
        assert format_pct(None) == "n/a"


class TestRenderAlert:
    def test_is_deterministic(self):
        assert render_alert("ai agents", SIGNALS) == render_alert("ai agents", SIGNALS)

    def test_subject_carries_keyword_change_and_score(self):
        rendered = render_alert("ai agents", SIGNALS)
        assert rendered.subject == 'Trendily alert: "ai agents" (+30%, score 15)'

    def test_bodies_carry_signals(self):
        rendered = render_alert("ai agents", SIGNALS)
        assert "+30%" in rendered.html
        assert "average 50/100" in rendered.html
        assert "Current interest: 65 (average 50/100)." in rendered.text
        for action in QUICK_ACTIONS:
            assert action in rendered.text

    def test_keyword_is_html_escaped(self):
        rendered = render_alert("<script>x</script>", SIGNALS)
        assert "<script>" not in rendered.html
        assert "&lt;script&gt;" in rendered.html

    def test_chart_embedded_when_given(self):
        url = "https://quickchart.io/chart?c=abc&w=600"
        rendered = render_alert("ai agents", SIGNALS, chart_url=url)
        assert '<img src="https://quickchart.io/chart?c=abc&amp;w=600"' in rendered.html
        assert f"Chart: {url}" in rendered.text

    def test_no_chart_no_image(self):
        rendered = render_alert("ai agents", SIGNALS)
        assert "<img" not in rendered.html
        assert "Chart:" not in rendered.text
