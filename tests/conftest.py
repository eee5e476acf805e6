"""
Shared pytest fixtures for the Trendily test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the schema
    applied. Created anew for each test that requests it.
  - ``make_subscription``: Factory for ``Subscription`` objects.
  - Fake collaborators (trend source, mailer, store, run log, chart renderer,
    pacer clock) whose behaviour is configured through plain attributes.
  - ``app_config`` and ``make_orchestrator`` for end-to-end pipeline tests.

No fixture touches the network or sleeps.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Callable, Generator, Optional, Sequence

import pytest

from trendily.alerts.pacing import SendPacer
from trendily.charts.base import ChartRenderer, ChartResult
from trendily.config import (
    AlertsConfig,
    AppConfig,
    DatabaseConfig,
    MailerConfig,
    SecurityConfig,
)
from trendily.db.schema import apply_schema
from trendily.db.store import RunLog, SubscriptionStore
from trendily.errors import PersistenceError
from trendily.ingestion.base import TrendSource
from trendily.models.meta import RunMetadata
from trendily.models.subscription import HistoryRow, Subscription
from trendily.models.trend import TrendFetchResult, TrendPoint
from trendily.notify.base import EmailMessage, Mailer, MailerResult
from trendily.pipeline.orchestrator import AlertRunOrchestrator

NOW = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)
SECRET = "s3cret"


def points_of(values: Sequence[float]) -> tuple[TrendPoint, ...]:
    """Weekly points labelled ``w01``, ``w02``, ..."""
    return tuple(TrendPoint(label=f"w{i + 1:02d}", interest=v) for i, v in enumerate(values))


# ── Fakes ─────────────────────────────────────────────────────────────────────

class FakeTrendSource(TrendSource):
    """Serves ``series[keyword]``; ``errors`` and ``raises`` simulate failures."""

    name = "fake"

    def __init__(self) -> None:
        super().__init__()
        self.series: dict[str, Sequence[float]] = {}
        self.errors: dict[str, str] = {}
        self.raises: dict[str, Exception] = {}
        self.calls: list[tuple[str, Optional[str]]] = []

    def fetch(self, keyword: str, geo: Optional[str] = None) -> TrendFetchResult:
        self.calls.append((keyword, geo))
        if keyword in self.raises:
            raise self.raises[keyword]
        if keyword in self.errors:
            return TrendFetchResult(keyword=keyword, error=self.errors[keyword])
        values = self.series.get(keyword)
        if not values:
            return TrendFetchResult(keyword=keyword, error="SerpAPI: timeline_data empty")
        return TrendFetchResult(keyword=keyword, points=points_of(values), source=self.name)


class FakeMailer(Mailer):
    """Accepts everything except addresses in ``reject`` or ``raise_for``."""

    def __init__(self) -> None:
        super().__init__()
        self.reject: set[str] = set()
        self.raise_for: set[str] = set()
        self.sent: list[EmailMessage] = []
        self.attempted: list[str] = []

    def send(self, message: EmailMessage) -> MailerResult:
        self.attempted.append(message.to)
        if message.to in self.raise_for:
            raise ConnectionError("connection refused")
        if message.to in self.reject:
            return MailerResult(ok=False, error="Resend 422: invalid recipient")
        self.sent.append(message)
        return MailerResult(ok=True, message_id=f"msg-{len(self.sent)}")


class FakeStore(SubscriptionStore):
    def __init__(self) -> None:
        self.subscriptions: list[Subscription] = []
        self.list_error: Optional[Exception] = None
        self.update_error_for: set[str] = set()
        self.history_error: Optional[Exception] = None
        self.notified: dict[str, datetime] = {}
        self.history: list[HistoryRow] = []

    def list_active(self, limit: int) -> list[Subscription]:
        if self.list_error is not None:
            raise self.list_error
        return [
            s.model_copy(update={"last_notified_at": self.notified.get(s.id, s.last_notified_at)})
            for s in self.subscriptions
            if s.active
        ][:limit]

    def update_last_notified(self, subscription_id: str, notified_at: datetime) -> bool:
        if subscription_id in self.update_error_for:
            raise PersistenceError("disk I/O error")
        self.notified[subscription_id] = notified_at
        return True

    def upsert_history(self, rows: Sequence[HistoryRow]) -> int:
        if self.history_error is not None:
            raise self.history_error
        self.history.extend(rows)
        return len(rows)


class FakeRunLog(RunLog):
    def __init__(self) -> None:
        self.started: list[RunMetadata] = []
        self.finished: list[RunMetadata] = []

    def start(self, run: RunMetadata) -> RunMetadata:
        run.run_id = len(self.started) + 1
        self.started.append(run)
        return run

    def finish(self, run: RunMetadata) -> None:
        self.finished.append(run)


class FakeChartRenderer(ChartRenderer):
    def __init__(self) -> None:
        self.error: Optional[str] = None
        self.raises: Optional[Exception] = None
        self.calls: list[str] = []

    def render(self, keyword: str, points: Sequence[TrendPoint]) -> ChartResult:
        self.calls.append(keyword)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return ChartResult(error=self.error)
        return ChartResult(url=f"https://chart.test/{keyword.replace(' ', '-')}.png")


class FakeClock:
    """Monotonic clock whose ``sleep`` just advances time."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


# ── Domain factories ──────────────────────────────────────────────────────────

@pytest.fixture
def make_subscription() -> Callable[..., Subscription]:
    counter = iter(range(1, 10_000))

    def _make(
        email: str = "ana@example.com",
        keyword: str = "ai agents",
        threshold: float = 10.0,
        last_notified_at: Optional[datetime] = None,
        id: Optional[str] = None,
    ) -> Subscription:
        return Subscription(
            id=id or f"sub-{next(counter)}",
            email=email,
            keyword=keyword,
            threshold=threshold,
            last_notified_at=last_notified_at,
        )

    return _make


# ── Collaborator fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def trend_source() -> FakeTrendSource:
    return FakeTrendSource()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def run_log() -> FakeRunLog:
    return FakeRunLog()


@pytest.fixture
def chart_renderer() -> FakeChartRenderer:
    return FakeChartRenderer()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pacer(fake_clock: FakeClock) -> SendPacer:
    return SendPacer(0.3, clock=fake_clock.monotonic, sleep=fake_clock.sleep)


# ── Pipeline fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """A valid config: secret set, mailer configured, history on, volume floor off."""
    return AppConfig(
        database=DatabaseConfig(db_path=str(tmp_path / "trendily.db")),
        security=SecurityConfig(alert_secret=SECRET),
        mailer=MailerConfig(api_key="re_test_key", sender="Trendily <alerts@trendily.test>"),
        alerts=AlertsConfig(),
    )


@pytest.fixture
def make_orchestrator(
    app_config, trend_source, store, mailer, chart_renderer, run_log, pacer
) -> Callable[..., AlertRunOrchestrator]:
    def _make(config: Optional[AppConfig] = None, **overrides) -> AlertRunOrchestrator:
        kwargs = dict(
            config=config or app_config,
            trend_source=trend_source,
            store=store,
            mailer=mailer,
            chart_renderer=chart_renderer,
            run_log=run_log,
            pacer=pacer,
            clock=lambda: NOW,
        )
        kwargs.update(overrides)
        return AlertRunOrchestrator(**kwargs)

    return _make


@pytest.fixture
def now() -> datetime:
    return NOW
