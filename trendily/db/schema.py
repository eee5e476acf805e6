"""
SQLite schema DDL for the subscription store.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Tables:
  1. subscriptions  one row per (email, keyword); the alert pipeline only
                    ever updates ``last_notified_at``.
  2. trend_history  one row per (keyword, period label); upserted each run.
  3. alert_runs     one audit row per alert run.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

_DDL_SUBSCRIPTIONS = """
CREATE TABLE IF NOT EXISTS subscriptions (
    id                TEXT    PRIMARY KEY,
    email             TEXT    NOT NULL,
    keyword           TEXT    NOT NULL,
    threshold         REAL    NOT NULL DEFAULT 10,
    last_notified_at  TEXT,
    active            INTEGER NOT NULL DEFAULT 1,
    created_at        TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now')),
    UNIQUE (email, keyword)
);
"""

_DDL_SUBSCRIPTIONS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_subscriptions_active_created
    ON subscriptions(active, created_at);
CREATE INDEX IF NOT EXISTS idx_subscriptions_keyword
    ON subscriptions(keyword);
"""

_DDL_TREND_HISTORY = """
CREATE TABLE IF NOT EXISTS trend_history (
    history_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    keyword     TEXT    NOT NULL,
    label       TEXT    NOT NULL,
    interest    REAL    NOT NULL,
    source      TEXT,
    fetched_at  TEXT    NOT NULL,
    UNIQUE (keyword, label)
);
"""

_DDL_ALERT_RUNS = """
CREATE TABLE IF NOT EXISTS alert_runs (
    run_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug         TEXT    NOT NULL UNIQUE,
    triggered_by     TEXT    NOT NULL,
    forced           INTEGER NOT NULL DEFAULT 0,
    status           TEXT    NOT NULL DEFAULT 'started',
    sent_count       INTEGER NOT NULL DEFAULT 0,
    attempt_count    INTEGER NOT NULL DEFAULT 0,
    errored_count    INTEGER NOT NULL DEFAULT 0,
    config_snapshot  TEXT    NOT NULL DEFAULT '{}',
    error_message    TEXT,
    started_at       TEXT    NOT NULL,
    finished_at      TEXT
);
"""

_ALL_DDL = [
    _DDL_SUBSCRIPTIONS,
    _DDL_SUBSCRIPTIONS_INDEXES,
    _DDL_TREND_HISTORY,
    _DDL_ALERT_RUNS,
]

ALL_TABLE_NAMES = [
    "subscriptions",
    "trend_history",
    "alert_runs",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn`` (idempotent)."""
    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)
    conn.commit()
    logger.info("Schema applied: %d tables created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
