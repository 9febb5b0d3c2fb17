import asyncio
import logging
from datetime import datetime, timedelta

import asyncpg

from mailer import get_mailer
from notifications import (
    EngineSettings,
    NotificationRunner,
    NotificationServer,
    RunSummary,
    TelegramSummaryReporter,
    start_notification_server,
)
from services.db import NotificationStore, ensure_notification_schema

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = EngineSettings.from_env()

pool: asyncpg.Pool | None = None
server: NotificationServer | None = None
daily_task: asyncio.Task | None = None
reporter: TelegramSummaryReporter | None = None


async def schedule_daily_job(settings: EngineSettings, job_coro, job_name: str) -> None:
    """Run ``job_coro`` every day at ``settings.daily_at`` business time."""
    tz = settings.business_tz
    while True:
        now_local = datetime.now(tz)
        target = now_local.replace(
            hour=settings.daily_at.hour,
            minute=settings.daily_at.minute,
            second=0,
            microsecond=0,
        )
        if target <= now_local:
            target += timedelta(days=1)
        wait_seconds = (target - now_local).total_seconds()
        logging.info("Next %s run scheduled in %.0f seconds", job_name, wait_seconds)
        await asyncio.sleep(wait_seconds)
        try:
            await job_coro()
        except Exception as exc:  # noqa: BLE001
            logging.exception("Daily job %s failed: %s", job_name, exc)
            await asyncio.sleep(60)


async def _report(summary: RunSummary) -> None:
    if reporter is not None:
        await reporter(summary)


async def main():
    global pool, server, daily_task, reporter
    if not settings.db_dsn:
        raise RuntimeError("DB_DSN is not set")
    pool = await asyncpg.create_pool(dsn=settings.db_dsn, min_size=1, max_size=max(5, settings.max_concurrency + 2))
    async with pool.acquire() as _conn:
        await ensure_notification_schema(_conn)
    runner = NotificationRunner(NotificationStore(pool), get_mailer(), settings=settings)
    if settings.bot_token and settings.summary_chat_id:
        reporter = TelegramSummaryReporter.from_token(settings.bot_token, settings.summary_chat_id)
    else:
        logger.info("Run summaries will not be posted (BOT_TOKEN / SUMMARY_CHAT_ID not set)")

    async def _scheduled_run() -> None:
        await _report(await runner.run())

    if settings.daily_at is not None and daily_task is None:
        daily_task = asyncio.create_task(
            schedule_daily_job(settings, _scheduled_run, "automatic_notifications")
        )
    if settings.http_port > 0:
        server = await start_notification_server(
            runner,
            host=settings.http_host,
            port=settings.http_port,
            token=settings.http_token,
            on_summary=_report,
        )
    else:
        logger.info("Notification HTTP server disabled (NOTIFY_HTTP_PORT not set)")
    if server is None and daily_task is None:
        raise RuntimeError("Nothing to do: set NOTIFY_HTTP_PORT or NOTIFY_DAILY_AT")
    try:
        await asyncio.Event().wait()
    finally:
        if daily_task is not None:
            daily_task.cancel()
        if server is not None:
            await server.stop()
        if reporter is not None:
            await reporter.close()
        await pool.close()

if __name__ == "__main__":
    asyncio.run(main())
