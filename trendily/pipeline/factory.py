"""
Builds pipeline collaborators from an ``AppConfig``.

This is the only place that knows which concrete adapters back each
interface; the CLI, the HTTP app and the dashboard all go through it.
"""

from __future__ import annotations

import logging
from typing import Optional

from trendily.charts.quickchart import QuickChartRenderer
from trendily.config import AppConfig
from trendily.db.store import SqliteRunLog, SqliteSubscriptionStore
from trendily.ingestion.base import TrendSource
from trendily.ingestion.google_trends_client import GoogleTrendsSource
from trendily.ingestion.serpapi_client import SerpApiTrendSource
from trendily.ingestion.trend_source import FallbackTrendSource
from trendily.notify.resend_mailer import ResendMailer
from trendily.pipeline.orchestrator import AlertRunOrchestrator

logger = logging.getLogger(__name__)


def build_store(config: AppConfig) -> SqliteSubscriptionStore:
    db = config.database
    return SqliteSubscriptionStore(db.db_path, db.wal_mode, db.busy_timeout_ms)


def build_run_log(config: AppConfig) -> SqliteRunLog:
    db = config.database
    return SqliteRunLog(db.db_path, db.wal_mode, db.busy_timeout_ms)


def build_trend_source(config: AppConfig) -> TrendSource:
    """Fallback chain over the configured providers, in configured order."""
    tc = config.trends
    providers: list[TrendSource] = []
    for name in tc.providers:
        if name == "serpapi":
            providers.append(
                SerpApiTrendSource(
                    api_key=tc.serpapi_key.get_secret_value() if tc.serpapi_key else None,
                    timeframe=tc.timeframe,
                    max_points=tc.max_points,
                    timeout_seconds=tc.timeout_seconds,
                )
            )
        elif name == "google_trends":
            providers.append(
                GoogleTrendsSource(timeframe=tc.timeframe, max_points=tc.max_points)
            )
    return FallbackTrendSource(providers)


def build_mailer(config: AppConfig) -> Optional[ResendMailer]:
    """Resend mailer, or ``None`` when no API key is configured."""
    mc = config.mailer
    if mc.api_key is None or not mc.api_key.get_secret_value():
        return None
    return ResendMailer(
        api_key=mc.api_key.get_secret_value(),
        base_url=mc.base_url,
        timeout_seconds=mc.timeout_seconds,
    )


def build_chart_renderer(config: AppConfig) -> QuickChartRenderer:
    cc = config.chart
    return QuickChartRenderer(base_url=cc.base_url, width=cc.width, height=cc.height)


def build_orchestrator(config: AppConfig) -> AlertRunOrchestrator:
    """Wire the production ``AlertRunOrchestrator``."""
    return AlertRunOrchestrator(
        config=config,
        trend_source=build_trend_source(config),
        store=build_store(config),
        mailer=build_mailer(config),
        chart_renderer=build_chart_renderer(config) if config.alerts.chart_enabled else None,
        run_log=build_run_log(config),
    )
