"""Helpers to build the SMTP mailer from environment settings."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from .smtp_client import DEFAULT_HOST, DEFAULT_PORT, SmtpConfig, SmtpMailer

logger = logging.getLogger(__name__)

load_dotenv()

_mailer: SmtpMailer | None = None


def load_smtp_config() -> SmtpConfig:
    username = os.getenv("SMTP_USER") or os.getenv("GMAIL_USER")
    password = os.getenv("SMTP_PASSWORD") or os.getenv("GMAIL_APP_PASSWORD")
    if not username or not password:
        raise RuntimeError("SMTP credentials are not configured. Check SMTP_USER/SMTP_PASSWORD (or GMAIL_USER/GMAIL_APP_PASSWORD) in .env")
    return SmtpConfig(
        username=username,
        password=password,
        host=os.getenv("SMTP_HOST", DEFAULT_HOST),
        port=int(os.getenv("SMTP_PORT", str(DEFAULT_PORT)) or DEFAULT_PORT),
        from_name=os.getenv("MAIL_FROM_NAME") or os.getenv("COMPANY_NAME") or "Alarmas ADZ",
        start_tls=os.getenv("SMTP_STARTTLS", "1").lower() in {"1", "true", "yes", "on"},
    )


def get_mailer() -> SmtpMailer:
    global _mailer
    if _mailer is None:
        config = load_smtp_config()
        _mailer = SmtpMailer(config)
        logger.info("SMTP mailer configured for %s:%s as %s", config.host, config.port, config.username)
    return _mailer


__all__ = ["get_mailer", "load_smtp_config"]
