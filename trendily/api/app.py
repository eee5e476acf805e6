"""
HTTP trigger and helper endpoints (FastAPI).

Routes:
  GET|POST /api/check-alerts   Run the alert pipeline.  Credential in ``?key=``,
                               ``Authorization: Bearer`` or ``X-Alert-Secret``;
                               ``?force=true`` bypasses gating.
  GET      /api/trends         Fetch a keyword's series (``?q=&geo=``).
  GET      /api/chart          QuickChart URL for a series (``?q=&points=``).
  GET      /api/email-test     Send a test email (``?to=``, credential required).
  GET      /api/ping           Liveness probe.

Status codes for ``/api/check-alerts``:
  200  any run that completed, including partial failures
  401  bad or missing credential, or no secret configured
  500  mailer not configured, or subscriptions unreadable

Endpoints are plain ``def`` so FastAPI runs the blocking pipeline in its
worker threadpool.

Run::

    trendily serve
    # or
    uvicorn trendily.api.app:create_app --factory
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from fastapi import FastAPI, Header, Query
from fastapi.responses import JSONResponse

from trendily.config import AppConfig, load_config
from trendily.errors import AuthorizationError, ConfigurationError, TrendilyError
from trendily.ingestion.base import TrendSource
from trendily.models.trend import TrendPoint
from trendily.notify.base import EmailMessage, Mailer
from trendily.pipeline.factory import (
    build_chart_renderer,
    build_mailer,
    build_orchestrator,
    build_trend_source,
)
from trendily.pipeline.orchestrator import AlertRunOrchestrator, verify_credential
from trendily.reporting.run_report import (
    fatal_error_payload,
    http_status_for,
    report_to_payload,
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
DEFAULT_QUERY = "artificial intelligence"

TEST_EMAIL_SUBJECT = "Trendily test email"
TEST_EMAIL_HTML = (
    '<div style="font-family:system-ui">'
    "<h2>Trendily delivery test</h2>"
    "<p>If you are reading this, email delivery is configured correctly.</p>"
    "</div>"
)


def extract_credential(
    key: Optional[str],
    authorization: Optional[str],
    x_alert_secret: Optional[str],
) -> Optional[str]:
    """First credential found in query key, bearer header, then ``X-Alert-Secret``."""
    if key:
        return key
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return x_alert_secret or None


def _parse_points(raw: str) -> list[TrendPoint]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("points must be a JSON array")
    return [
        TrendPoint(
            label=str(p.get("label", p.get("title", ""))),
            interest=float(p.get("interest", 0)),
        )
        for p in data
    ]


def create_app(
    config: Optional[AppConfig] = None,
    orchestrator_factory: Optional[Callable[[AppConfig], AlertRunOrchestrator]] = None,
    trend_source_factory: Optional[Callable[[AppConfig], TrendSource]] = None,
    mailer_factory: Optional[Callable[[AppConfig], Optional[Mailer]]] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config:               AppConfig; loaded from disk when omitted.
        orchestrator_factory: Builds the orchestrator per request.
        trend_source_factory: Builds the trend source for ``/api/trends``.
        mailer_factory:       Builds the mailer for ``/api/email-test``.
    """
    cfg = config or load_config()
    make_orchestrator = orchestrator_factory or build_orchestrator
    make_trend_source = trend_source_factory or build_trend_source
    make_mailer = mailer_factory or build_mailer

    app = FastAPI(
        title="Trendily",
        description="Keyword trend alerts",
        version=API_VERSION,
    )
    app.state.config = cfg

    @app.api_route("/api/check-alerts", methods=["GET", "POST"])
    def check_alerts(
        key: Optional[str] = Query(None),
        force: str = Query("false"),
        authorization: Optional[str] = Header(None),
        x_alert_secret: Optional[str] = Header(None),
    ) -> JSONResponse:
        forced = force.strip().lower() in ("true", "1")
        credential = extract_credential(key, authorization, x_alert_secret)
        try:
            report = make_orchestrator(cfg).run(credential, forced=forced, trigger="http")
        except TrendilyError as exc:
            status = http_status_for(exc.kind)
            log = logger.warning if status < 500 else logger.error
            log("check-alerts refused | kind=%s status=%d error=%s", exc.kind, status, exc.message)
            return JSONResponse(fatal_error_payload(exc), status_code=status)
        return JSONResponse(report_to_payload(report), status_code=200)

    @app.get("/api/trends")
    def trends(
        q: str = Query(DEFAULT_QUERY),
        geo: Optional[str] = Query(None),
    ) -> JSONResponse:
        keyword = q.strip() or DEFAULT_QUERY
        result = make_trend_source(cfg).fetch(keyword, geo or cfg.trends.default_geo)
        if not result.ok:
            return JSONResponse(
                {"trends": [], "error": result.error or "No trend data"}, status_code=502
            )
        return JSONResponse(
            {
                "trends": [p.model_dump() for p in result.points],
                "source": result.source,
            }
        )

    @app.get("/api/chart")
    def chart(
        q: str = Query("trend"),
        points: Optional[str] = Query(None),
    ) -> JSONResponse:
        if not points:
            return JSONResponse({"ok": False, "error": "missing points"}, status_code=400)
        try:
            series = _parse_points(points)
        except (ValueError, TypeError, AttributeError) as exc:
            return JSONResponse({"ok": False, "error": f"invalid points: {exc}"}, status_code=400)
        rendered = build_chart_renderer(cfg).render(q, series)
        if rendered.url is None:
            return JSONResponse({"ok": False, "error": rendered.error}, status_code=400)
        return JSONResponse({"ok": True, "url": rendered.url})

    @app.get("/api/email-test")
    def email_test(
        to: Optional[str] = Query(None),
        key: Optional[str] = Query(None),
        authorization: Optional[str] = Header(None),
        x_alert_secret: Optional[str] = Header(None),
    ) -> JSONResponse:
        credential = extract_credential(key, authorization, x_alert_secret)
        try:
            verify_credential(cfg, credential)
        except AuthorizationError as exc:
            return JSONResponse(fatal_error_payload(exc), status_code=401)
        if not to:
            return JSONResponse({"ok": False, "error": "Missing ?to="}, status_code=400)

        mailer = make_mailer(cfg)
        if mailer is None:
            missing = ConfigurationError("Missing RESEND_API_KEY")
            return JSONResponse(fatal_error_payload(missing), status_code=500)

        message = EmailMessage(
            sender=cfg.mailer.sender, to=to,
            subject=TEST_EMAIL_SUBJECT, html=TEST_EMAIL_HTML,
        )
        try:
            result = mailer.send(message)
        except Exception as exc:
            logger.error("Test email raised | to=%s error=%s", to, exc)
            return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)
        if not result.ok:
            return JSONResponse({"ok": False, "error": result.error}, status_code=500)
        return JSONResponse({"ok": True, "id": result.message_id})

    @app.get("/api/ping")
    def ping() -> dict[str, Any]:
        return {"pong": True, "version": API_VERSION}

    return app

