"""
Run report serialization.

``report_to_payload()`` produces the response body shared by the HTTP trigger
and ``trendily check-alerts --output``::

    {
      "ok": true,
      "run_slug": "4f0c...",
      "forced": false,
      "sent": 2,
      "attempts": 3,
      "details": [
        {"id": "...", "email": "a@x.io", "query": "ai agents", "pct": 30,
         "status": "sent"},
        {"id": "...", "email": "b@x.io", "query": "ai agents", "pct": 30,
         "status": "errored",
         "error": {"kind": "dispatch", "scope": "recipient", "message": "..."}},
        ...
      ],
      "warnings": [{"kind": "persistence", "scope": "record", "message": "..."}]
    }

Every ``ErrorKind`` is matched explicitly in ``error_scope()`` and
``http_status_for()``; adding a kind without updating both is a type error.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, assert_never

from trendily.errors import ErrorKind, RunError, TrendilyError
from trendily.models.outcome import DecisionOutcome, RunReport


def error_scope(kind: ErrorKind) -> str:
    """How far an error of ``kind`` reaches: the run, a group, a record or a recipient."""
    match kind:
        case ErrorKind.AUTHORIZATION | ErrorKind.CONFIGURATION:
            return "run"
        case ErrorKind.FETCH:
            return "group"
        case ErrorKind.PERSISTENCE:
            return "record"
        case ErrorKind.DISPATCH:
            return "recipient"
        case _:
            assert_never(kind)


def http_status_for(kind: ErrorKind) -> int:
    """HTTP status for a fatal error of ``kind`` at the trigger boundary."""
    match kind:
        case ErrorKind.AUTHORIZATION:
            return 401
        case ErrorKind.CONFIGURATION | ErrorKind.PERSISTENCE:
            return 500
        case ErrorKind.FETCH | ErrorKind.DISPATCH:
            return 502
        case _:
            assert_never(kind)


def error_to_dict(error: RunError) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "kind": error.kind.value,
        "scope": error.scope or error_scope(error.kind),
        "message": error.message,
    }
    if error.keyword is not None:
        payload["keyword"] = error.keyword
    return payload


def outcome_to_dict(outcome: DecisionOutcome) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": outcome.subscription_id,
        "email": outcome.email,
        "query": outcome.keyword,
        "pct": outcome.pct_change,
        "status": outcome.status.value,
    }
    if outcome.reason is not None:
        row["reason"] = outcome.reason.value
    if outcome.error is not None:
        row["error"] = error_to_dict(outcome.error)
    return row


def report_to_payload(report: RunReport) -> dict[str, Any]:
    """Serialize a ``RunReport`` to the trigger response body."""
    return {
        "ok": True,
        "run_slug": report.run_slug,
        "forced": report.forced,
        "sent": report.sent_count,
        "attempts": report.attempt_count,
        "details": [outcome_to_dict(o) for o in report.outcomes],
        "warnings": [error_to_dict(w) for w in report.warnings],
        "started_at": report.started_at.isoformat() if report.started_at else None,
        "finished_at": report.finished_at.isoformat() if report.finished_at else None,
    }


def fatal_error_payload(exc: TrendilyError) -> dict[str, Any]:
    """Response body for a run that stopped before evaluating anything."""
    return {"ok": False, "error": exc.message, "kind": exc.kind.value}


def write_run_report(report: RunReport, path: Path) -> Path:
    """Write the report payload as pretty-printed JSON; returns ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(report_to_payload(report), indent=2, default=str), encoding="utf-8"
    )
    return path
