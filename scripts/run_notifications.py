"""
Run automatic notifications once, optionally as of a given business date.

Usage:
    python -m scripts.run_notifications
    python -m scripts.run_notifications --date 2025-03-15 --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from datetime import date, datetime, time, timezone

import asyncpg
from dotenv import load_dotenv

from mailer import get_mailer
from notifications import EngineSettings, NotificationRunner
from notifications.webhook import summary_payload
from services.db import NotificationStore, ensure_notification_schema


def run_instant(target: date | None, settings: EngineSettings) -> datetime | None:
    """Noon business time of ``target`` as a UTC timestamp."""
    if target is None:
        return None
    return datetime.combine(target, time(hour=12), tzinfo=settings.business_tz).astimezone(timezone.utc)


async def run_once(dsn: str, settings: EngineSettings, target: date | None, dry_run: bool) -> dict:
    pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=max(2, settings.max_concurrency + 1))
    try:
        async with pool.acquire() as conn:
            await ensure_notification_schema(conn)
        runner = NotificationRunner(NotificationStore(pool), get_mailer(), settings=settings)
        summary = await runner.run(run_instant(target, settings), dry_run=dry_run)
        return summary_payload(summary)
    finally:
        await pool.close()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run automatic customer notifications once")
    parser.add_argument("--date", help="Business date YYYY-MM-DD (default: today)")
    parser.add_argument("--dry-run", action="store_true", help="Evaluate and render without sending")
    return parser.parse_args()


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    dsn = os.getenv("DB_DSN")
    if not dsn:
        raise SystemExit("DB_DSN is not set")
    args = parse_args()
    target = date.fromisoformat(args.date) if args.date else None
    settings = EngineSettings.from_env()
    result = asyncio.run(run_once(dsn, settings, target, args.dry_run))
    print(json.dumps(result, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
