"""
Tests for NotificationDispatcher.

What we test
------------
1. Every allowed candidate gets one attempt, in order.
2. Accepted sends write last_notified_at through the store.
3. Rejected and raising sends are Errored and leave the cooldown untouched.
4. A store failure after a send keeps the outcome Sent with a persistence error.
5. The allow-list skips other recipients without counting an attempt.
6. Pacing waits between successful sends only.
"""

from __future__ import annotations

import pytest

from trendily.alerts.dispatcher import NotificationDispatcher
from trendily.errors import ErrorKind
from trendily.models.outcome import OutcomeStatus, SkipReason
from trendily.models.trend import SignalSet

SIGNALS = SignalSet(pct_change=30, average=50, stability=100, last_interest=65.0)
SENDER = "Trendily <alerts@trendily.test>"


@pytest.fixture
def dispatcher(mailer, store, pacer, now) -> NotificationDispatcher:
    return NotificationDispatcher(mailer, store, pacer, SENDER, clock=lambda: now)


@pytest.fixture
def candidates(make_subscription):
    return [
        make_subscription(email="a@x.io"),
        make_subscription(email="b@x.io"),
        make_subscription(email="c@x.io"),
    ]


class TestDispatch:
    def test_sends_to_every_candidate_in_order(self, dispatcher, mailer, candidates):
        tally = dispatcher.dispatch("ai agents", candidates, SIGNALS)

        assert tally.attempts == 3
        assert [o.status for o in tally.outcomes] == [OutcomeStatus.SENT] * 3
        assert [m.to for m in mailer.sent] == ["a@x.io", "b@x.io", "c@x.io"]
        assert all(m.sender == SENDER for m in mailer.sent)

    def test_message_is_rendered_once_per_group(self, dispatcher, mailer, candidates):
        dispatcher.dispatch("ai agents", candidates, SIGNALS, chart_url="https://c.test/x.png")
        assert len({(m.subject, m.html, m.text) for m in mailer.sent}) == 1
        assert "https://c.test/x.png" in mailer.sent[0].html

    def test_records_last_notified(self, dispatcher, store, candidates, now):
        dispatcher.dispatch("ai agents", candidates, SIGNALS)
        assert store.notified == {c.id: now for c in candidates}

    def test_rejection_is_errored_verbatim(self, dispatcher, mailer, store, candidates):
        mailer.reject.add("b@x.io")
        tally = dispatcher.dispatch("ai agents", candidates, SIGNALS)

        errored = tally.outcomes[1]
        assert errored.status == OutcomeStatus.ERRORED
        assert errored.error.kind == ErrorKind.DISPATCH
        assert errored.error.message == "Resend 422: invalid recipient"
        assert candidates[1].id not in store.notified
        assert tally.attempts == 3

    def test_transport_failure_is_errored(self, dispatcher, mailer, candidates):
        mailer.raise_for.add("a@x.io")
        tally = dispatcher.dispatch("ai agents", candidates, SIGNALS)

        assert tally.outcomes[0].status == OutcomeStatus.ERRORED
        assert tally.outcomes[0].error.message == "ConnectionError: connection refused"
        assert [o.status for o in tally.outcomes[1:]] == [OutcomeStatus.SENT] * 2

    def test_store_failure_keeps_send(self, dispatcher, store, candidates):
        store.update_error_for.add(candidates[0].id)
        tally = dispatcher.dispatch("ai agents", candidates, SIGNALS)

        outcome = tally.outcomes[0]
        assert outcome.status == OutcomeStatus.SENT
        assert outcome.error.kind == ErrorKind.PERSISTENCE
        assert outcome.error.keyword == "ai agents"

    def test_unmatched_cooldown_write_is_reported(self, dispatcher, store, candidates):
        store.update_last_notified = lambda subscription_id, notified_at: False
        tally = dispatcher.dispatch("ai agents", candidates[:1], SIGNALS)

        outcome = tally.outcomes[0]
        assert outcome.status == OutcomeStatus.SENT
        assert outcome.error.kind == ErrorKind.PERSISTENCE
        assert outcome.error.message == f"last_notified_at not updated for {candidates[0].id}"
        assert outcome.error.keyword == "ai agents"

    def test_empty_candidates(self, dispatcher, mailer):
        tally = dispatcher.dispatch("ai agents", [], SIGNALS)
        assert tally.attempts == 0
        assert tally.outcomes == []
        assert mailer.attempted == []


class TestAllowList:
    def test_restricted_recipients_are_skipped_without_attempt(
        self, mailer, store, pacer, candidates, now
    ):
        dispatcher = NotificationDispatcher(
            mailer, store, pacer, SENDER, allowed_recipients=[" B@X.io "], clock=lambda: now
        )
        tally = dispatcher.dispatch("ai agents", candidates, SIGNALS)

        assert tally.attempts == 1
        assert mailer.attempted == ["b@x.io"]
        assert [o.reason for o in tally.outcomes] == [
            SkipReason.RECIPIENT_RESTRICTED, None, SkipReason.RECIPIENT_RESTRICTED,
        ]

    def test_empty_allow_list_allows_everyone(self, dispatcher):
        assert dispatcher.is_allowed("anyone@x.io")


class TestPacing:
    def test_waits_between_successful_sends(self, dispatcher, candidates, fake_clock):
        dispatcher.dispatch("ai agents", candidates, SIGNALS)
        assert fake_clock.sleeps == [pytest.approx(0.3), pytest.approx(0.3)]

    def test_failed_send_does_not_consume_budget(
        self, dispatcher, mailer, candidates, fake_clock
    ):
        mailer.reject.add("a@x.io")
        dispatcher.dispatch("ai agents", candidates, SIGNALS)
        assert fake_clock.sleeps == [pytest.approx(0.3)]
