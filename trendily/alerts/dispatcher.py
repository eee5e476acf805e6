"""
Notification dispatch.

For each send-candidate, in order:

  1. Allow-list gate: when ``allowed_recipients`` is non-empty and the
     recipient is not on it, the subscription is Skipped
     ``recipient_restricted``.  No attempt is counted and no pacing is used.
  2. The attempt counter is incremented.
  3. ``pacer.wait()``, then ``mailer.send()``.
  4. Accepted: outcome Sent, ``last_notified_at`` written through the store,
     ``pacer.record_send()``.  A store failure here, or a write that matches no
     row, does not undo the send; it is attached to the Sent outcome as a
     ``persistence`` error.
  5. Rejected or raised: outcome Errored (``dispatch``).  The cooldown clock is
     not touched and the pacing budget is not consumed.

Sends are strictly sequential.  The message content is rendered once per
keyword group since it carries no per-recipient data.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from trendily.alerts.pacing import SendPacer
from trendily.alerts.templates import RenderedAlert, render_alert
from trendily.db.store import SubscriptionStore
from trendily.errors import DispatchError, ErrorKind, PersistenceError, RunError
from trendily.models.outcome import (
    DecisionOutcome,
    DispatchTally,
    OutcomeStatus,
    SkipReason,
)
from trendily.models.subscription import Subscription
from trendily.models.trend import SignalSet
from trendily.notify.base import EmailMessage, Mailer
from trendily.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends alert emails for one run and records per-recipient outcomes.

    Args:
        mailer:             Email delivery provider.
        store:              Store used to record ``last_notified_at``.
        pacer:              Shared pacing primitive for the whole run.
        sender:             ``From`` identity, e.g. ``Trendily <alerts@x.io>``.
        allowed_recipients: Test-mode allow-list; empty means everyone.
        clock:              Returns the current UTC time.
    """

    def __init__(
        self,
        mailer: Mailer,
        store: SubscriptionStore,
        pacer: SendPacer,
        sender: str,
        allowed_recipients: Iterable[str] = (),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.mailer = mailer
        self.store = store
        self.pacer = pacer
        self.sender = sender
        self.allowed_recipients = frozenset(
            r.strip().lower() for r in allowed_recipients if r.strip()
        )
        self._clock = clock

    def is_allowed(self, email: str) -> bool:
        """``True`` when test mode is off or ``email`` is on the allow-list."""
        return not self.allowed_recipients or email.lower() in self.allowed_recipients

    def dispatch(
        self,
        keyword: str,
        candidates: Iterable[Subscription],
        signals: SignalSet,
        chart_url: Optional[str] = None,
    ) -> DispatchTally:
        """Send the alert for ``keyword`` to every candidate.

        Returns:
            ``DispatchTally`` with the attempt count and one outcome per
            candidate, in input order.
        """
        tally = DispatchTally()
        rendered: Optional[RenderedAlert] = None

        for sub in candidates:
            if not self.is_allowed(sub.email):
                logger.info(
                    "Recipient not on allow-list | keyword=%s email=%s", keyword, sub.email
                )
                tally.outcomes.append(
                    _outcome(sub, signals, OutcomeStatus.SKIPPED,
                             reason=SkipReason.RECIPIENT_RESTRICTED)
                )
                continue

            tally.attempts += 1
            if rendered is None:
                rendered = render_alert(keyword, signals, chart_url)
            tally.outcomes.append(self._send_one(sub, signals, rendered))

        return tally

    def _send_one(
        self,
        sub: Subscription,
        signals: SignalSet,
        rendered: RenderedAlert,
    ) -> DecisionOutcome:
        message = EmailMessage(
            sender=self.sender,
            to=sub.email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
        )

        self.pacer.wait()
        try:
            result = self.mailer.send(message)
        except Exception as exc:
            logger.warning(
                "Send raised | keyword=%s email=%s error=%s", sub.keyword, sub.email, exc
            )
            err = DispatchError(f"{type(exc).__name__}: {exc}", keyword=sub.keyword)
            return _outcome(sub, signals, OutcomeStatus.ERRORED, error=err.to_run_error())

        if not result.ok:
            err = DispatchError(result.error or "Mailer rejected message", keyword=sub.keyword)
            return _outcome(sub, signals, OutcomeStatus.ERRORED, error=err.to_run_error())

        self.pacer.record_send()
        logger.info(
            "Alert sent | keyword=%s email=%s pct=%s id=%s",
            sub.keyword, sub.email, signals.pct_change, result.message_id,
        )

        persistence_error: Optional[RunError] = None
        try:
            updated = self.store.update_last_notified(sub.id, self._clock())
            if not updated:
                logger.warning("last_notified_at not updated | id=%s", sub.id)
                persistence_error = RunError(
                    kind=ErrorKind.PERSISTENCE,
                    message=f"last_notified_at not updated for {sub.id}",
                    keyword=sub.keyword,
                )
        except Exception as exc:
            logger.error("Cooldown write failed | id=%s error=%s", sub.id, exc)
            if not isinstance(exc, PersistenceError):
                exc = PersistenceError(str(exc))
            persistence_error = RunError(
                kind=exc.kind, message=exc.message, keyword=sub.keyword
            )

        return _outcome(sub, signals, OutcomeStatus.SENT, error=persistence_error)


def _outcome(
    sub: Subscription,
    signals: SignalSet,
    status: OutcomeStatus,
    reason: Optional[SkipReason] = None,
    error: Optional[RunError] = None,
) -> DecisionOutcome:
    return DecisionOutcome(
        subscription_id=sub.id,
        email=sub.email,
        keyword=sub.keyword,
        pct_change=signals.pct_change,
        status=status,
        reason=reason,
        error=error,
    )
