"""
Trendily: Streamlit dashboard
=============================

Optional local UI for exploring a keyword and managing subscriptions.

App structure
-------------
  1. Explore      Interest-over-time chart and the last 12 weeks with
                  week-over-week deltas.
  2. Subscribe    Email + threshold form for the current keyword.
  3. Activity     Recent subscriptions and recent alert runs.

Usage
-----
    pip install -e ".[dashboard]"
    streamlit run dashboard/app.py
"""

from __future__ import annotations

import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import streamlit as st

st.set_page_config(page_title="Trendily", layout="wide")

import pandas as pd
from pydantic import ValidationError

from dashboard.data_loader import (
    get_config,
    load_recent_runs,
    load_recent_subscriptions,
    load_trend,
    subscribe,
)
from trendily.models.trend import TrendPoint
from trendily.signals.metrics import derive_signals, momentum_score, weekly_deltas

config = get_config()

# ── Sidebar ───────────────────────────────────────────────────────────────────

with st.sidebar:
    st.title("Trendily")
    st.caption("Spot rising keywords early")
    st.divider()
    keyword = st.text_input("Keyword", value="artificial intelligence").strip()
    geo = st.text_input(
        "Region (optional)",
        value=config.trends.default_geo or "",
        help="Two-letter country code, e.g. FR.",
    ).strip() or None
    if st.button("Refresh"):
        st.cache_data.clear()
        st.rerun()

if not keyword:
    st.info("Enter a keyword in the sidebar.")
    st.stop()

# ── Explore ───────────────────────────────────────────────────────────────────

st.header(f"Interest over time: {keyword}")
trend = load_trend(keyword, geo)

if not trend["points"]:
    st.error(f"No data: {trend['error']}")
else:
    points = [TrendPoint(**p) for p in trend["points"]]
    signals = derive_signals(points)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric(
        "Week over week",
        f"{signals.pct_change:+d}%" if signals.pct_change is not None else "n/a",
    )
    c2.metric("Average", f"{signals.average}/100")
    c3.metric("Stability", f"{signals.stability}%")
    c4.metric("Score", momentum_score(signals))

    series = pd.DataFrame(trend["points"]).set_index("label")
    st.line_chart(series["interest"])
    st.caption(f"Source: {trend['source']}")

    st.subheader("Last 12 weeks")
    table = pd.DataFrame(weekly_deltas(points, weeks=12))
    table["delta_pct"] = [
        "" if v is None or pd.isna(v) else f"{int(v):+d}%" for v in table["delta_pct"]
    ]
    st.dataframe(
        table.rename(columns={"label": "Week", "interest": "Interest", "delta_pct": "WoW"}),
        hide_index=True,
        use_container_width=True,
    )

# ── Subscribe ─────────────────────────────────────────────────────────────────

st.header("Get alerted")
with st.form("subscribe"):
    email = st.text_input("Email")
    threshold = st.number_input(
        "Alert when the week-over-week change reaches (%)",
        value=float(config.alerts.default_threshold),
        step=5.0,
    )
    submitted = st.form_submit_button("Subscribe")

if submitted:
    try:
        stored_email, created = subscribe(email, keyword, threshold)
    except ValidationError as exc:
        st.error(f"Invalid subscription: {exc.errors()[0]['msg']}")
    else:
        if created:
            st.success(f"{stored_email} will be alerted on '{keyword}'.")
        else:
            st.info(f"{stored_email} is already subscribed to '{keyword}'.")

# ── Activity ──────────────────────────────────────────────────────────────────

left, right = st.columns(2)
with left:
    st.subheader("Recent subscriptions")
    subs = load_recent_subscriptions(limit=20)
    if subs:
        st.dataframe(pd.DataFrame(subs), hide_index=True, use_container_width=True)
    else:
        st.caption("No subscriptions yet.")

with right:
    st.subheader("Recent alert runs")
    runs = load_recent_runs(limit=10)
    if runs:
        st.dataframe(pd.DataFrame(runs), hide_index=True, use_container_width=True)
    else:
        st.caption("No runs yet. Trigger one with: trendily check-alerts")
