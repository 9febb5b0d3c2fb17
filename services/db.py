from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
import logging
from typing import Any, AsyncIterator

import asyncpg

from notifications.history import HistoryEntry
from notifications.rules import Customer, NotificationConfig, NotificationTemplate, pick_active_template

logger = logging.getLogger(__name__)

# pg_advisory_lock key shared by every process running automatic notifications
RUN_LOCK_KEY = 0x4E4F5449


async def ensure_notification_schema(conn: asyncpg.Connection) -> None:
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS notification_templates (
            id          uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            name        text NOT NULL DEFAULT '',
            type        text NOT NULL,
            subject     text NOT NULL,
            body        text NOT NULL,
            variables   jsonb NOT NULL DEFAULT '[]'::jsonb,
            is_active   boolean NOT NULL DEFAULT true,
            created_at  timestamptz NOT NULL DEFAULT NOW(),
            updated_at  timestamptz NOT NULL DEFAULT NOW()
        );
        """
    )
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS notification_config (
            id                 uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            notification_type  text NOT NULL,
            is_enabled         boolean NOT NULL DEFAULT true,
            trigger_condition  jsonb NOT NULL DEFAULT '{}'::jsonb,
            send_time          time NOT NULL DEFAULT '09:00:00',
            created_at         timestamptz NOT NULL DEFAULT NOW(),
            updated_at         timestamptz NOT NULL DEFAULT NOW()
        );
        """
    )
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS notification_history (
            id                   bigserial PRIMARY KEY,
            customer_id          text,
            notification_type    text NOT NULL,
            recipient_email      text NOT NULL,
            subject              text NOT NULL DEFAULT '',
            body                 text,
            status               text NOT NULL CHECK (status IN ('sent','failed','bounced')),
            error_message        text,
            provider_message_id  text,
            sent_at              timestamptz NOT NULL DEFAULT NOW()
        );
        """
    )
    await conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS ux_notification_config_type
        ON notification_config(notification_type);
        """
    )
    await conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_notification_templates_type_active
        ON notification_templates(type, is_active);
        """
    )
    await conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_notification_history_customer_type
        ON notification_history(customer_id, notification_type, sent_at DESC);
        """
    )
    await conn.execute(
        """
        INSERT INTO notification_config (notification_type, is_enabled, trigger_condition)
        VALUES
            ('birthday', true, '{}'::jsonb),
            ('annual_fee_due', true, '{"days_before": 30}'::jsonb),
            ('payment_reminder', true, '{"months_overdue": 2, "repeat_every_days": 15}'::jsonb)
        ON CONFLICT (notification_type) DO NOTHING;
        """
    )


class NotificationStore:
    """Read access to customers, templates and configs; append access to history."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ping(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.fetchval("SELECT 1")

    @asynccontextmanager
    async def run_lock(self) -> AsyncIterator[None]:
        """Serialise overlapping runs so each one sees the history of the previous."""
        async with self.pool.acquire() as conn:
            await conn.execute("SELECT pg_advisory_lock($1)", RUN_LOCK_KEY)
            logger.debug("Run lock %s acquired", RUN_LOCK_KEY)
            try:
                yield
            finally:
                await conn.execute("SELECT pg_advisory_unlock($1)", RUN_LOCK_KEY)

    async def fetch_customers(self) -> list[Customer]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, name, email, birth_date, annual_fee_due_date,
                       last_payment_date, account_number
                FROM customers
                WHERE email IS NOT NULL AND email <> ''
                ORDER BY id
                """
            )
        customers: list[Customer] = []
        for row in rows:
            try:
                customers.append(Customer.from_record(dict(row)))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping customer %s with unreadable data: %s", row["id"], exc)
        return customers

    async def fetch_config(self, notification_type: str) -> NotificationConfig | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT notification_type, is_enabled, trigger_condition, send_time
                FROM notification_config
                WHERE notification_type=$1
                LIMIT 1
                """,
                notification_type,
            )
        if not row:
            return None
        return NotificationConfig.from_record(dict(row))

    async def fetch_active_template(self, notification_type: str) -> NotificationTemplate | None:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, name, type, subject, body, is_active, created_at, updated_at
                FROM notification_templates
                WHERE type=$1 AND is_active
                """,
                notification_type,
            )
        return pick_active_template(NotificationTemplate.from_record(dict(row)) for row in rows)

    async def fetch_template(self, template_id: Any) -> NotificationTemplate | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, name, type, subject, body, is_active, created_at, updated_at
                FROM notification_templates
                WHERE id::text=$1
                """,
                str(template_id),
            )
        return NotificationTemplate.from_record(dict(row)) if row else None

    async def last_attempt_since(self, customer_id: Any, notification_type: str, since: datetime) -> datetime | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                """
                SELECT MAX(sent_at)
                FROM notification_history
                WHERE customer_id=$1
                  AND notification_type=$2
                  AND sent_at >= $3
                """,
                str(customer_id),
                notification_type,
                since,
            )

    async def append_history(self, entry: HistoryEntry) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO notification_history (
                    customer_id,
                    notification_type,
                    recipient_email,
                    subject,
                    body,
                    status,
                    error_message,
                    provider_message_id,
                    sent_at
                )
                VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9)
                """,
                str(entry.customer_id) if entry.customer_id is not None else None,
                entry.notification_type,
                entry.recipient_email,
                entry.subject,
                entry.body,
                entry.status,
                entry.error_message[:500] if entry.error_message else None,
                entry.provider_message_id,
                entry.sent_at,
            )
