"""Engine settings loaded from the environment (.env supported)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time, timedelta, timezone
import os

from dotenv import load_dotenv

from mailer import DEFAULT_DISPATCH_TIMEOUT
from .templates import BrandProfile


def _env_flag(name: str, default: str = "") -> bool:
    return (os.getenv(name, default) or "").lower() in {"1", "true", "yes", "on"}


def _parse_daily_at(value: str | None) -> time | None:
    if not value:
        return None
    hour, _, minute = value.strip().partition(":")
    return time(hour=int(hour), minute=int(minute or 0))


@dataclass(slots=True, frozen=True)
class EngineSettings:
    db_dsn: str | None = None
    business_utc_offset_hours: float = -6
    company_name: str = "Alarmas ADZ"
    max_concurrency: int = 5
    dispatch_timeout: float = DEFAULT_DISPATCH_TIMEOUT
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    http_token: str | None = None
    daily_at: time | None = None
    bot_token: str | None = None
    summary_chat_id: int = 0
    dry_run: bool = False
    brand: BrandProfile = field(default_factory=BrandProfile)

    @property
    def business_tz(self) -> timezone:
        return timezone(timedelta(hours=self.business_utc_offset_hours))

    @classmethod
    def from_env(cls) -> "EngineSettings":
        load_dotenv()
        company_name = os.getenv("COMPANY_NAME", "Alarmas ADZ")
        return cls(
            db_dsn=os.getenv("DB_DSN"),
            business_utc_offset_hours=float(os.getenv("BUSINESS_UTC_OFFSET_HOURS", "-6") or "-6"),
            company_name=company_name,
            max_concurrency=max(1, int(os.getenv("NOTIFY_MAX_CONCURRENCY", "5") or "5")),
            dispatch_timeout=float(os.getenv("NOTIFY_DISPATCH_TIMEOUT", str(DEFAULT_DISPATCH_TIMEOUT)) or DEFAULT_DISPATCH_TIMEOUT),
            http_host=os.getenv("NOTIFY_HTTP_HOST", "0.0.0.0"),
            http_port=int(os.getenv("NOTIFY_HTTP_PORT", "8080") or "0"),
            http_token=os.getenv("NOTIFY_HTTP_TOKEN") or None,
            daily_at=_parse_daily_at(os.getenv("NOTIFY_DAILY_AT")),
            bot_token=os.getenv("BOT_TOKEN") or None,
            summary_chat_id=int(os.getenv("SUMMARY_CHAT_ID", "0") or "0"),
            dry_run=_env_flag("NOTIFY_DRY_RUN"),
            brand=BrandProfile(company_name=company_name),
        )


__all__ = ["EngineSettings"]
