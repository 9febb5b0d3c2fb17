"""Notification history: dedup checks before sending, audit rows after."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
import logging
from typing import Any, Protocol

from mailer import DeliveryResult
from .rules import Candidate, PaymentReminderParams, TriggerParams
from .triggers import BUSINESS_TZ, business_date

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    customer_id: Any
    notification_type: str
    recipient_email: str
    subject: str
    status: str
    sent_at: datetime
    body: str | None = None
    error_message: str | None = None
    provider_message_id: str | None = None


class HistoryStore(Protocol):
    async def last_attempt_since(self, customer_id: Any, notification_type: str, since: datetime) -> datetime | None: ...

    async def append_history(self, entry: HistoryEntry) -> None: ...


class DedupGuard:
    """Suppresses a candidate already notified inside its cool-down window.

    Every type gets a same business-day check so a re-triggered run does not
    send twice; payment reminders also honour ``repeat_every_days``. Failed
    attempts count as well, a bad address is not retried inside the window.
    """

    def __init__(self, store: HistoryStore, *, business_tz: tzinfo = BUSINESS_TZ) -> None:
        self.store = store
        self.business_tz = business_tz

    def window_start(self, now: datetime, params: TriggerParams) -> datetime:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        start = datetime.combine(business_date(now, self.business_tz), time.min, tzinfo=self.business_tz)
        if isinstance(params, PaymentReminderParams):
            start = min(start, now - timedelta(days=params.repeat_every_days))
        return start

    async def should_suppress(self, candidate: Candidate, now: datetime, params: TriggerParams) -> bool:
        since = self.window_start(now, params)
        last = await self.store.last_attempt_since(candidate.customer.id, candidate.notification_type, since)
        if last is None:
            return False
        logger.info(
            "Skipping %s for %s - already attempted at %s",
            candidate.notification_type,
            candidate.recipient,
            last.isoformat() if isinstance(last, datetime) else last,
        )
        return True


class HistoryRecorder:
    def __init__(self, store: HistoryStore) -> None:
        self.store = store

    async def record(
        self,
        *,
        customer_id: Any,
        notification_type: str,
        subject: str,
        body: str | None,
        result: DeliveryResult,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            customer_id=customer_id,
            notification_type=notification_type,
            recipient_email=result.recipient,
            subject=subject,
            body=body,
            status=result.status,
            sent_at=result.attempted_at or datetime.now(timezone.utc),
            error_message=result.error,
            provider_message_id=result.message_id,
        )
        await self.store.append_history(entry)
        return entry

    async def record_candidate(
        self,
        candidate: Candidate,
        *,
        subject: str,
        body: str | None,
        result: DeliveryResult,
    ) -> HistoryEntry:
        return await self.record(
            customer_id=candidate.customer.id,
            notification_type=candidate.notification_type,
            subject=subject,
            body=body,
            result=result,
        )


__all__ = ["DedupGuard", "HistoryEntry", "HistoryRecorder", "HistoryStore"]
