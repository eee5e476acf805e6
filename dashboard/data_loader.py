"""
Dashboard data loader.

Reads go through the same repositories the CLI uses.  Loaders are cached with
``@st.cache_data`` so widget interactions do not hit SQLite or the trend
providers again; ``subscribe()`` clears the cache after writing.
"""

from __future__ import annotations

from typing import Optional

import streamlit as st

from trendily.config import AppConfig, load_config
from trendily.db.connection import get_connection
from trendily.db.repositories.run_repo import AlertRunRepository
from trendily.db.repositories.subscription_repo import SubscriptionRepository
from trendily.db.schema import apply_schema
from trendily.pipeline.factory import build_trend_source

_RUN_COLUMNS = {
    "run_slug", "trigger", "forced", "status", "sent_count",
    "attempt_count", "errored_count", "started_at", "finished_at",
}


@st.cache_resource
def get_config() -> AppConfig:
    return load_config()


def _connect(config: AppConfig):
    return get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )


@st.cache_data(ttl=900, show_spinner="Fetching trends ...")
def load_trend(keyword: str, geo: Optional[str]) -> dict:
    """Fetch a keyword's series.

    Returns ``{"points": [{"label", "interest"}], "source", "error"}``.
    """
    config = get_config()
    result = build_trend_source(config).fetch(keyword, geo or config.trends.default_geo)
    return {
        "points": [p.model_dump() for p in result.points],
        "source": result.source,
        "error": result.error,
    }


@st.cache_data(ttl=60)
def load_recent_subscriptions(limit: int = 20) -> list[dict]:
    config = get_config()
    with _connect(config) as conn:
        apply_schema(conn)
        subs = SubscriptionRepository(conn).list_recent(limit=limit)
    return [s.model_dump(exclude={"id"}) for s in subs]


@st.cache_data(ttl=60)
def load_recent_runs(limit: int = 10) -> list[dict]:
    config = get_config()
    with _connect(config) as conn:
        apply_schema(conn)
        runs = AlertRunRepository(conn).get_recent_runs(limit=limit)
    return [r.model_dump(include=_RUN_COLUMNS) for r in runs]


def subscribe(email: str, keyword: str, threshold: float) -> tuple[str, bool]:
    """Create a subscription.  Returns ``(stored email, created)``."""
    config = get_config()
    with _connect(config) as conn:
        apply_schema(conn)
        sub, created = SubscriptionRepository(conn).subscribe(email, keyword, threshold)
    st.cache_data.clear()
    return sub.email, created
