"""
Alert run orchestration.

The ``AlertRunOrchestrator`` runs one alert evaluation end to end:

  Step 1: Authorize:     Constant-time secret check.  Fails closed.
  Step 2: Check config:  Mailer and sender identity must be present.
  Step 3: Load:          Active subscriptions from the store (newest first).
  Step 4: Group:         One group per distinct keyword.
  Step 5: Per group:     Fetch series → derive signals → store history →
                          render chart → decide → dispatch.
  Step 6: Report:        Fold group results into a ``RunReport``.

Failure isolation
-----------------
- Authorization, configuration:  Raised before any data access.
- Subscription load failure:     ``PersistenceError``, raised (nothing to evaluate).
- Fetch failure for one keyword: Every member of that group is Errored
                                 (``fetch``, provider message verbatim); the run
                                 continues with the next group.
- History or chart failure:      Recorded as a report warning; sends proceed.
- Send failures:                 Per recipient, see ``NotificationDispatcher``.
- Run log failures:              Logged and ignored; the run log is an audit trail.

Every run() call is self-contained.  Concurrent runs against the same store are
not coordinated.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence
from uuid import uuid4

from trendily.alerts.decision import AlertPolicy, Decision, evaluate_group
from trendily.alerts.dispatcher import NotificationDispatcher
from trendily.alerts.grouping import group_by_keyword
from trendily.alerts.pacing import SendPacer
from trendily.charts.base import ChartRenderer
from trendily.config import AppConfig
from trendily.db.store import RunLog, SubscriptionStore
from trendily.errors import (
    AuthorizationError,
    ConfigurationError,
    ErrorKind,
    FetchError,
    PersistenceError,
    RunError,
)
from trendily.ingestion.base import TrendSource
from trendily.models.meta import RunMetadata
from trendily.models.outcome import DecisionOutcome, GroupResult, OutcomeStatus, RunReport
from trendily.models.subscription import HistoryRow, Subscription
from trendily.models.trend import SignalSet, TrendFetchResult, TrendPoint
from trendily.notify.base import Mailer
from trendily.signals.metrics import derive_signals
from trendily.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def verify_credential(config: AppConfig, credential: Optional[str]) -> None:
    """Constant-time check of ``credential`` against ``security.alert_secret``.

    Raises:
        AuthorizationError: If no secret is configured, or the credential is
            missing or wrong.
    """
    secret = config.security.alert_secret
    expected = secret.get_secret_value() if secret else ""
    if not expected:
        raise AuthorizationError("unauthorized: alert secret is not configured")
    if not credential or not hmac.compare_digest(
        credential.encode("utf-8"), expected.encode("utf-8")
    ):
        raise AuthorizationError("unauthorized")


class AlertRunOrchestrator:
    """Coordinates one alert run.

    Args:
        config:         AppConfig for this run.
        trend_source:   Provider of interest-over-time series.
        store:          Subscription store.
        mailer:         Email provider; ``None`` when no API key is configured.
        chart_renderer: Optional chart renderer for alert emails.
        run_log:        Optional audit log of runs.
        pacer:          Send pacer; built from ``alerts.send_interval_ms`` if omitted.
        clock:          Returns the current UTC time.
    """

    def __init__(
        self,
        config: AppConfig,
        trend_source: TrendSource,
        store: SubscriptionStore,
        mailer: Optional[Mailer],
        chart_renderer: Optional[ChartRenderer] = None,
        run_log: Optional[RunLog] = None,
        pacer: Optional[SendPacer] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.trend_source = trend_source
        self.store = store
        self.mailer = mailer
        self.chart_renderer = chart_renderer
        self.run_log = run_log
        self.pacer = pacer
        self._clock = clock
        self.policy = AlertPolicy(
            cooldown_hours=config.alerts.cooldown_hours,
            volume_floor=config.alerts.volume_floor,
        )

    # ── Public API ────────────────────────────────────────────────────────────

    def authorize(self, credential: Optional[str]) -> None:
        """Check ``credential`` against the configured alert secret.

        Raises:
            AuthorizationError: If no secret is configured, or the credential is
                missing or wrong.
        """
        verify_credential(self.config, credential)

    def check_config(self) -> None:
        """Raise ``ConfigurationError`` when the mailer or sender is missing."""
        if self.mailer is None:
            raise ConfigurationError("Missing RESEND_API_KEY")
        if not self.config.mailer.sender.strip():
            raise ConfigurationError("Missing EMAIL_FROM sender identity")

    def run(
        self,
        credential: Optional[str],
        forced: bool = False,
        trigger: str = "cli",
    ) -> RunReport:
        """Execute one alert run.

        Args:
            credential: Shared secret presented by the caller.
            forced:     Bypass threshold, cooldown and group short-circuits.
            trigger:    ``http``, ``cli`` or ``scheduler`` (recorded in the run log).

        Returns:
            ``RunReport`` folded from every keyword group.

        Raises:
            AuthorizationError: Bad or missing credential.
            ConfigurationError: Mailer or sender not configured.
            PersistenceError:   Active subscriptions could not be loaded.
        """
        started_at = self._clock()
        run_slug = str(uuid4())

        # ── Step 1-2: Authorize + config ──────────────────────────────────────
        self.authorize(credential)
        self.check_config()

        logger.info("Alert run | run_slug=%s | forced=%s | trigger=%s", run_slug, forced, trigger)
        run_meta = self._persist_run_start(run_slug, forced, trigger, started_at)

        # ── Step 3: Load subscriptions ────────────────────────────────────────
        try:
            subscriptions = self.store.list_active(self.config.alerts.subscription_limit)
        except PersistenceError as exc:
            logger.error("Subscription load failed: %s", exc.message)
            self._persist_run_finish(run_meta, None, error_message=exc.message)
            raise
        except Exception as exc:
            logger.error("Subscription load failed: %s", exc)
            self._persist_run_finish(run_meta, None, error_message=str(exc))
            raise PersistenceError(f"Failed to load subscriptions: {exc}") from exc

        if not subscriptions:
            logger.info("No active subscriptions; nothing to evaluate.")
            report = RunReport(
                run_slug=run_slug, forced=forced,
                started_at=started_at, finished_at=self._clock(),
            )
            self._persist_run_finish(run_meta, report)
            return report

        # ── Step 4-5: Per keyword group ───────────────────────────────────────
        groups = group_by_keyword(subscriptions)
        logger.info(
            "Evaluating %d subscriptions across %d keywords", len(subscriptions), len(groups)
        )
        dispatcher = self._build_dispatcher()
        results = [
            self._process_group(keyword, members, dispatcher, forced)
            for keyword, members in groups.items()
        ]

        # ── Step 6: Report ────────────────────────────────────────────────────
        report = RunReport.from_groups(
            run_slug=run_slug,
            forced=forced,
            groups=results,
            started_at=started_at,
            finished_at=self._clock(),
        )
        self._persist_run_finish(run_meta, report)

        logger.info(
            "Alert run finished | run_slug=%s | sent=%d | attempts=%d | errored=%d | warnings=%d",
            run_slug, report.sent_count, report.attempt_count,
            report.errored_count, len(report.warnings),
        )
        return report

    # ── Per-group processing ──────────────────────────────────────────────────

    def _build_dispatcher(self) -> NotificationDispatcher:
        assert self.mailer is not None
        pacer = self.pacer or SendPacer(self.config.alerts.send_interval_ms / 1000)
        return NotificationDispatcher(
            mailer=self.mailer,
            store=self.store,
            pacer=pacer,
            sender=self.config.mailer.sender,
            allowed_recipients=self.config.mailer.allowed_recipients,
            clock=self._clock,
        )

    def _process_group(
        self,
        keyword: str,
        members: Sequence[Subscription],
        dispatcher: NotificationDispatcher,
        forced: bool,
    ) -> GroupResult:
        fetched = self._fetch(keyword)
        if not fetched.ok:
            err = FetchError(
                fetched.error or f"No trend data for '{keyword}'", keyword=keyword
            ).to_run_error()
            logger.warning("Fetch failed | keyword=%s error=%s", keyword, err.message)
            return GroupResult(
                keyword=keyword,
                outcomes=tuple(
                    DecisionOutcome(
                        subscription_id=s.id, email=s.email, keyword=s.keyword,
                        pct_change=None, status=OutcomeStatus.ERRORED, error=err,
                    )
                    for s in members
                ),
            )

        signals = derive_signals(fetched.points)
        logger.debug(
            "Signals | keyword=%s pct=%s avg=%d stab=%d source=%s",
            keyword, signals.pct_change, signals.average, signals.stability, fetched.source,
        )

        warnings: list[RunError] = []
        if self.config.alerts.history_enabled:
            warning = self._historicize(keyword, fetched)
            if warning is not None:
                warnings.append(warning)

        decisions = evaluate_group(members, signals, self.policy, forced, self._clock())
        candidates = [d.subscription for d in decisions if d.send]

        chart_url: Optional[str] = None
        if candidates and self.config.alerts.chart_enabled and self.chart_renderer:
            chart_url, warning = self._render_chart(keyword, fetched.points)
            if warning is not None:
                warnings.append(warning)

        tally = dispatcher.dispatch(keyword, candidates, signals, chart_url)
        return GroupResult(
            keyword=keyword,
            attempts=tally.attempts,
            outcomes=_merge_outcomes(decisions, tally.outcomes, signals),
            warnings=tuple(warnings),
        )

    def _fetch(self, keyword: str) -> TrendFetchResult:
        try:
            return self.trend_source.fetch(keyword, self.config.trends.default_geo)
        except Exception as exc:
            logger.error("Trend source raised | keyword=%s error=%s", keyword, exc)
            return TrendFetchResult(keyword=keyword, error=str(exc) or type(exc).__name__)

    def _historicize(self, keyword: str, fetched: TrendFetchResult) -> Optional[RunError]:
        fetched_at = self._clock()
        rows = [
            HistoryRow(
                keyword=keyword, label=p.label, interest=p.interest,
                source=fetched.source, fetched_at=fetched_at,
            )
            for p in fetched.points
        ]
        try:
            self.store.upsert_history(rows)
        except Exception as exc:
            logger.warning("History write failed | keyword=%s error=%s", keyword, exc)
            return PersistenceError(
                f"History not saved for '{keyword}': {exc}", keyword=keyword
            ).to_run_error()
        return None

    def _render_chart(
        self, keyword: str, points: Sequence[TrendPoint]
    ) -> tuple[Optional[str], Optional[RunError]]:
        assert self.chart_renderer is not None
        try:
            chart = self.chart_renderer.render(keyword, points)
        except Exception as exc:
            logger.warning("Chart render raised | keyword=%s error=%s", keyword, exc)
            chart_error = str(exc)
        else:
            if chart.url:
                return chart.url, None
            chart_error = chart.error or "no chart URL"
        return None, RunError(
            kind=ErrorKind.DISPATCH,
            message=f"Chart not rendered for '{keyword}': {chart_error}",
            keyword=keyword,
            scope="group",
        )

    # ── Run log (best effort) ─────────────────────────────────────────────────

    def _persist_run_start(
        self, run_slug: str, forced: bool, trigger: str, started_at: datetime
    ) -> Optional[RunMetadata]:
        if self.run_log is None:
            return None
        try:
            run = RunMetadata(
                run_slug=run_slug,
                trigger=trigger,
                forced=forced,
                config_snapshot=self.config.model_dump(mode="json"),
                started_at=started_at,
            )
            return self.run_log.start(run)
        except Exception as exc:
            logger.warning("Could not persist run start: %s", exc)
            return None

    def _persist_run_finish(
        self,
        run: Optional[RunMetadata],
        report: Optional[RunReport],
        error_message: Optional[str] = None,
    ) -> None:
        if run is None or self.run_log is None:
            return
        try:
            run.finished_at = self._clock()
            if report is None:
                run.status = "failed"
                run.error_message = error_message
            else:
                run.sent_count = report.sent_count
                run.attempt_count = report.attempt_count
                run.errored_count = report.errored_count
                problems = [o.error.message for o in report.outcomes if o.error] + [
                    w.message for w in report.warnings
                ]
                run.status = "partial" if problems else "success"
                run.error_message = "; ".join(problems) if problems else None
            self.run_log.finish(run)
        except Exception as exc:
            logger.warning("Could not persist run finish: %s", exc)


def _merge_outcomes(
    decisions: Sequence[Decision],
    dispatched: Sequence[DecisionOutcome],
    signals: SignalSet,
) -> tuple[DecisionOutcome, ...]:
    """Interleave skipped decisions and dispatch outcomes back into store order."""
    by_id: Mapping[str, DecisionOutcome] = {o.subscription_id: o for o in dispatched}
    merged: list[DecisionOutcome] = []
    for d in decisions:
        if d.send:
            merged.append(by_id[d.subscription.id])
        else:
            merged.append(d.skipped_outcome(signals.pct_change))
    return tuple(merged)
