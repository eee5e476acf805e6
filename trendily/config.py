"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``  committed static defaults
  2. ``config/local.toml``    optional local overrides (gitignored)
  3. ``.env``                 local secrets (gitignored, never overrides real env)
  4. Environment variables    ``TRENDILY_*`` prefix, plus the bare provider
                              names (``RESEND_API_KEY``, ``SERPAPI_KEY``, ...)

Entry point: ``load_config(config_path=None) -> AppConfig``

Secrets are ``SecretStr``; ``AppConfig.model_dump(mode="json")`` masks them,
so the dump is safe to store as a run's ``config_snapshot``.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, SecretStr, field_validator

DEFAULT_SENDER = "Trendily <onboarding@resend.dev>"
KNOWN_PROVIDERS = ("serpapi", "google_trends")
MIN_SEND_INTERVAL_MS = 300

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/trendily.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class SecurityConfig(BaseModel):
    """Shared secret guarding the alert trigger."""

    model_config = ConfigDict(frozen=True)

    alert_secret: Optional[SecretStr] = None


class MailerConfig(BaseModel):
    """Resend mailer settings.

    ``allowed_recipients`` turns on test mode: when non-empty, alerts are only
    delivered to these addresses and every other subscriber is skipped.
    """

    model_config = ConfigDict(frozen=True)

    api_key: Optional[SecretStr] = None
    sender: str = DEFAULT_SENDER
    base_url: str = "https://api.resend.com"
    timeout_seconds: float = 15.0
    allowed_recipients: list[str] = []

    @field_validator("allowed_recipients")
    @classmethod
    def normalize_recipients(cls, v: list[str]) -> list[str]:
        return [r.strip().lower() for r in v if r.strip()]


class TrendsConfig(BaseModel):
    """Trend source settings."""

    model_config = ConfigDict(frozen=True)

    serpapi_key: Optional[SecretStr] = None
    default_geo: Optional[str] = None
    timeframe: str = "today 12-m"
    max_points: int = 52
    timeout_seconds: float = 20.0
    providers: list[str] = list(KNOWN_PROVIDERS)

    @field_validator("max_points")
    @classmethod
    def validate_max_points(cls, v: int) -> int:
        if v < 2:
            raise ValueError(f"max_points must be >= 2, got {v}.")
        return v

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one trend provider must be configured.")
        unknown = [p for p in v if p not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(
                f"Unknown trend providers {unknown}. Must be among {list(KNOWN_PROVIDERS)}."
            )
        return v


class AlertsConfig(BaseModel):
    """Alert policy and dispatch pacing."""

    model_config = ConfigDict(frozen=True)

    default_threshold: float = 10.0
    cooldown_hours: float = 24.0
    volume_floor: Optional[int] = None
    subscription_limit: int = 200
    send_interval_ms: int = MIN_SEND_INTERVAL_MS
    max_concurrent_sends: int = 1
    history_enabled: bool = True
    chart_enabled: bool = True

    @field_validator("cooldown_hours")
    @classmethod
    def validate_cooldown(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"cooldown_hours must be >= 0, got {v}.")
        return v

    @field_validator("subscription_limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"subscription_limit must be >= 1, got {v}.")
        return v

    @field_validator("send_interval_ms")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v < MIN_SEND_INTERVAL_MS:
            raise ValueError(
                f"send_interval_ms must be >= {MIN_SEND_INTERVAL_MS}, got {v}."
            )
        return v

    @field_validator("max_concurrent_sends")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v != 1:
            raise ValueError(f"max_concurrent_sends must be 1, got {v}.")
        return v


class ChartConfig(BaseModel):
    """QuickChart rendering settings."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://quickchart.io/chart"
    width: int = 600
    height: int = 300


class ServerConfig(BaseModel):
    """HTTP trigger bind address."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8000


class SchedulerConfig(BaseModel):
    """Scheduler daemon settings."""

    model_config = ConfigDict(frozen=True)

    interval_hours: float = 24.0

    @field_validator("interval_hours")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"interval_hours must be > 0, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/trendily.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    Every CLI command, the HTTP app and the orchestrator receive an
    ``AppConfig`` built by ``load_config()``.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    security: SecurityConfig = SecurityConfig()
    mailer: MailerConfig = MailerConfig()
    trends: TrendsConfig = TrendsConfig()
    alerts: AlertsConfig = AlertsConfig()
    chart: ChartConfig = ChartConfig()
    server: ServerConfig = ServerConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        if value := os.environ.get(name):
            return value
    return None


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variables to the raw config dict.

    Supported overrides:
      TRENDILY_ALERT_SECRET | ALERT_SECRET        → security.alert_secret
      TRENDILY_RESEND_API_KEY | RESEND_API_KEY    → mailer.api_key
      TRENDILY_EMAIL_FROM | EMAIL_FROM            → mailer.sender
      TRENDILY_TEST_RECIPIENTS (comma separated)  → mailer.allowed_recipients
      TRENDILY_SERPAPI_KEY | SERPAPI_KEY          → trends.serpapi_key
      TRENDILY_DB_PATH                            → database.db_path
      TRENDILY_LOG_LEVEL                          → logging.level
      TRENDILY_DEBUG                              → debug
    """
    if secret := _first_env("TRENDILY_ALERT_SECRET", "ALERT_SECRET"):
        raw.setdefault("security", {})["alert_secret"] = secret

    if api_key := _first_env("TRENDILY_RESEND_API_KEY", "RESEND_API_KEY"):
        raw.setdefault("mailer", {})["api_key"] = api_key

    if sender := _first_env("TRENDILY_EMAIL_FROM", "EMAIL_FROM"):
        raw.setdefault("mailer", {})["sender"] = sender

    if recipients := os.environ.get("TRENDILY_TEST_RECIPIENTS"):
        raw.setdefault("mailer", {})["allowed_recipients"] = recipients.split(",")

    if serpapi_key := _first_env("TRENDILY_SERPAPI_KEY", "SERPAPI_KEY"):
        raw.setdefault("trends", {})["serpapi_key"] = serpapi_key

    if db_path := os.environ.get("TRENDILY_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("TRENDILY_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("TRENDILY_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        security=SecurityConfig(**raw.get("security", {})),
        mailer=MailerConfig(**raw.get("mailer", {})),
        trends=TrendsConfig(**raw.get("trends", {})),
        alerts=AlertsConfig(**raw.get("alerts", {})),
        chart=ChartConfig(**raw.get("chart", {})),
        server=ServerConfig(**raw.get("server", {})),
        scheduler=SchedulerConfig(**raw.get("scheduler", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
