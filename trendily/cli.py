"""
Trendily CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute the action.
  5. Report the result to stdout.

Install and run::

    pip install -e .
    trendily --help
    trendily init-db
    trendily validate-config
    trendily subscribe me@example.com "ai agents" --threshold 15
    trendily check-alerts --force --output data/outputs/last_run.json
    trendily serve --port 8000
    trendily start-scheduler --interval-hours 24
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="trendily",
    help="Trendily: keyword trend tracking and email alerts.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from trendily.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from trendily.utils.logging import configure_logging
    configure_logging(config.logging)


def _connect(config):
    from trendily.db.connection import get_connection

    return get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from trendily.db.schema import ALL_TABLE_NAMES
    from trendily.db.store import init_database

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    init_database(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config (secrets masked).",
    ),
) -> None:
    """Validate the configuration file and print parsed values."""
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Alert secret:     {'set' if config.security.alert_secret else 'NOT SET'}")
    typer.echo(f"  Mailer API key:   {'set' if config.mailer.api_key else 'NOT SET'}")
    typer.echo(f"  Sender:           {config.mailer.sender}")
    typer.echo(f"  Test recipients:  {', '.join(config.mailer.allowed_recipients) or '(all)'}")
    typer.echo(f"  Trend providers:  {', '.join(config.trends.providers)}")
    typer.echo(f"  Cooldown hours:   {config.alerts.cooldown_hours}")
    typer.echo(f"  Volume floor:     {config.alerts.volume_floor or 'disabled'}")
    typer.echo(f"  Send interval:    {config.alerts.send_interval_ms} ms")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(mode="json"), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("check-alerts")
def check_alerts(
    force: bool = typer.Option(
        False,
        "--force",
        help="Bypass threshold, cooldown and volume gating.",
    ),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        help="Write the run report as JSON to this path.",
    ),
    key: Optional[str] = typer.Option(
        None,
        "--key",
        help="Alert secret (default: TRENDILY_ALERT_SECRET).",
    ),
    trigger: str = typer.Option(
        "cli",
        "--trigger",
        help="Recorded trigger: cli or scheduler.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Evaluate every active subscription and send qualifying alerts."""
    from trendily.errors import TrendilyError
    from trendily.pipeline.factory import build_orchestrator
    from trendily.reporting.run_report import write_run_report

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if trigger not in ("cli", "scheduler"):
        typer.echo(f"[ERROR] Unknown trigger '{trigger}'.", err=True)
        raise typer.Exit(code=1)

    secret = config.security.alert_secret
    credential = key or (secret.get_secret_value() if secret else None)

    typer.echo(f"Checking alerts | forced={force}")
    try:
        report = build_orchestrator(config).run(credential, forced=force, trigger=trigger)
    except TrendilyError as exc:
        typer.echo(f"[ERROR] {exc.kind}: {exc.message}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Run:      {report.run_slug}")
    typer.echo(f"  Attempts: {report.attempt_count}")
    typer.echo(f"  Sent:     {report.sent_count}")
    typer.echo(f"  Skipped:  {report.skipped_count}")
    typer.echo(f"  Errored:  {report.errored_count}")
    for outcome in report.outcomes:
        if outcome.error is not None:
            typer.echo(
                f"    {outcome.status} {outcome.email} [{outcome.keyword}]: "
                f"{outcome.error.kind} {outcome.error.message}"
            )
    for warning in report.warnings:
        typer.echo(f"  [WARN] {warning.kind}: {warning.message}")

    if output:
        path = write_run_report(report, Path(output))
        typer.echo(f"  Report written to {path}")

    typer.echo("[OK] Alert run complete.")


@app.command("subscribe")
def subscribe(
    email: str = typer.Argument(..., help="Recipient address."),
    keyword: str = typer.Argument(..., help="Keyword to track."),
    threshold: Optional[float] = typer.Option(
        None,
        "--threshold",
        help="Week-over-week % change that triggers an alert (default from config).",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Subscribe an address to a keyword.  Existing subscriptions are kept as-is."""
    from pydantic import ValidationError

    from trendily.db.repositories.subscription_repo import SubscriptionRepository
    from trendily.db.schema import apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    effective = config.alerts.default_threshold if threshold is None else threshold
    try:
        with _connect(config) as conn:
            apply_schema(conn)
            sub, created = SubscriptionRepository(conn).subscribe(email, keyword, effective)
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid subscription: {exc}", err=True)
        raise typer.Exit(code=1)

    if created:
        typer.echo(f"[OK] Subscribed {sub.email} to '{sub.keyword}' (threshold {sub.threshold:g}%).")
    else:
        typer.echo(f"[OK] {sub.email} is already subscribed to '{sub.keyword}'.")


@app.command("unsubscribe")
def unsubscribe(
    email: str = typer.Argument(..., help="Recipient address."),
    keyword: str = typer.Argument(..., help="Tracked keyword."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Deactivate a subscription.  The row is kept for history."""
    from trendily.db.repositories.subscription_repo import SubscriptionRepository
    from trendily.db.schema import apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _connect(config) as conn:
        apply_schema(conn)
        found = SubscriptionRepository(conn).set_active(email, keyword, active=False)

    if not found:
        typer.echo(f"[ERROR] No subscription for {email} / '{keyword}'.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Unsubscribed {email.strip().lower()} from '{keyword.strip()}'.")


@app.command("list-subscriptions")
def list_subscriptions(
    limit: int = typer.Option(20, "--limit", help="Maximum rows to show."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List subscriptions, newest first."""
    from trendily.db.repositories.subscription_repo import SubscriptionRepository
    from trendily.db.schema import apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _connect(config) as conn:
        apply_schema(conn)
        subs = SubscriptionRepository(conn).list_recent(limit=limit)

    if not subs:
        typer.echo("No subscriptions.")
        return

    typer.echo(f"{'EMAIL':<32} {'KEYWORD':<28} {'THRESH':>6}  {'ACTIVE':<6} LAST NOTIFIED")
    for s in subs:
        last = s.last_notified_at.isoformat(timespec="minutes") if s.last_notified_at else "-"
        typer.echo(
            f"{s.email:<32} {s.keyword:<28} {s.threshold:>6g}  "
            f"{'yes' if s.active else 'no':<6} {last}"
        )


@app.command("fetch-trends")
def fetch_trends(
    keyword: str = typer.Argument(..., help="Keyword to fetch."),
    geo: Optional[str] = typer.Option(None, "--geo", help="Region code, e.g. FR."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Fetch a keyword's series and print its signals."""
    from trendily.pipeline.factory import build_trend_source
    from trendily.signals.metrics import derive_signals, momentum_score

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    result = build_trend_source(config).fetch(keyword, geo or config.trends.default_geo)
    if not result.ok:
        typer.echo(f"[ERROR] {result.error}", err=True)
        raise typer.Exit(code=1)

    signals = derive_signals(result.points)
    typer.echo(f"Source: {result.source} | {len(result.points)} points")
    for p in result.points[-12:]:
        typer.echo(f"  {p.label:<28} {p.interest:>6g}")
    typer.echo("")
    typer.echo(f"  Week over week: {signals.pct_change if signals.pct_change is not None else 'n/a'}")
    typer.echo(f"  Average:        {signals.average}")
    typer.echo(f"  Stability:      {signals.stability}%")
    typer.echo(f"  Score:          {momentum_score(signals)}")


@app.command("send-test-email")
def send_test_email(
    to: str = typer.Argument(..., help="Recipient address."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Send a one-off test email through the configured mailer."""
    from trendily.api.app import TEST_EMAIL_HTML, TEST_EMAIL_SUBJECT
    from trendily.notify.base import EmailMessage
    from trendily.pipeline.factory import build_mailer

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    mailer = build_mailer(config)
    if mailer is None:
        typer.echo("[ERROR] Missing RESEND_API_KEY.", err=True)
        raise typer.Exit(code=1)

    result = mailer.send(
        EmailMessage(
            sender=config.mailer.sender, to=to,
            subject=TEST_EMAIL_SUBJECT, html=TEST_EMAIL_HTML,
        )
    )
    if not result.ok:
        typer.echo(f"[ERROR] {result.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Test email sent (id={result.message_id}).")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)."),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default from config)."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Run the HTTP trigger server."""
    import uvicorn

    from trendily.api.app import create_app

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    typer.echo(f"Serving on http://{bind_host}:{bind_port}")
    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_config=None)


@app.command("start-scheduler")
def start_scheduler(
    interval_hours: Optional[float] = typer.Option(
        None,
        "--interval-hours",
        help="Hours between runs (default from config).",
    ),
    skip_initial: bool = typer.Option(
        False,
        "--skip-initial",
        help="Wait one interval before the first run.",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Run check-alerts on a fixed interval.  Blocks until Ctrl-C."""
    from trendily.scheduler import SchedulerDaemon

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        daemon = SchedulerDaemon(
            interval_hours=interval_hours or config.scheduler.interval_hours,
            config_path=config_path,
            skip_initial_run=skip_initial,
        )
    except (RuntimeError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    daemon.start()


if __name__ == "__main__":
    app()
