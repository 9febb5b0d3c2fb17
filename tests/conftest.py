"""Test configuration: in-memory record store and mailer."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterable

import pytest

from mailer import MailerError, OutboundEmail
from notifications import (
    ANNUAL_FEE_DUE,
    BIRTHDAY,
    PAYMENT_REMINDER,
    Customer,
    EngineSettings,
    HistoryEntry,
    NotificationConfig,
    NotificationRunner,
    NotificationTemplate,
)
from notifications.rules import pick_active_template

# 12:00 business time (UTC-6) on 2025-03-15
NOW = datetime(2025, 3, 15, 18, 0, tzinfo=timezone.utc)

RECENT_PAYMENT = date(2025, 3, 1)


def make_customer(id: Any, name: str, email: str | None = None, **fields: Any) -> Customer:
    fields.setdefault("last_payment_date", RECENT_PAYMENT)
    return Customer(id=id, name=name, email=email, **fields)


def make_template(kind: str, **fields: Any) -> NotificationTemplate:
    fields.setdefault("id", f"tpl-{kind}")
    fields.setdefault("subject", f"{kind} for {{{{customer_name}}}}")
    fields.setdefault("body", "Hola {{customer_name}}\n{{company_name}}")
    return NotificationTemplate(type=kind, **fields)


def default_config_rows() -> dict[str, dict[str, Any]]:
    return {
        BIRTHDAY: {"notification_type": BIRTHDAY, "is_enabled": True, "trigger_condition": {}},
        ANNUAL_FEE_DUE: {
            "notification_type": ANNUAL_FEE_DUE,
            "is_enabled": True,
            "trigger_condition": '{"days_before": 30}',
        },
        PAYMENT_REMINDER: {
            "notification_type": PAYMENT_REMINDER,
            "is_enabled": True,
            "trigger_condition": {"months_overdue": 2, "repeat_every_days": 15},
        },
    }


class FakeStore:
    def __init__(
        self,
        customers: Iterable[Customer] = (),
        config_rows: dict[str, dict[str, Any]] | None = None,
        templates: Iterable[NotificationTemplate] = (),
        history: Iterable[HistoryEntry] = (),
    ) -> None:
        self.customers = list(customers)
        self.config_rows = default_config_rows() if config_rows is None else dict(config_rows)
        self.templates = list(templates)
        self.history: list[HistoryEntry] = list(history)
        self.lock = asyncio.Lock()
        self.customers_error: Exception | None = None
        self.config_errors: dict[str, Exception] = {}
        self.history_error: Exception | None = None

    @asynccontextmanager
    async def run_lock(self):
        async with self.lock:
            yield

    async def ping(self) -> None:
        if self.customers_error:
            raise self.customers_error

    async def fetch_customers(self) -> list[Customer]:
        if self.customers_error:
            raise self.customers_error
        return list(self.customers)

    async def fetch_config(self, notification_type: str) -> NotificationConfig | None:
        if notification_type in self.config_errors:
            raise self.config_errors[notification_type]
        row = self.config_rows.get(notification_type)
        return NotificationConfig.from_record(row) if row else None

    async def fetch_active_template(self, notification_type: str) -> NotificationTemplate | None:
        return pick_active_template(t for t in self.templates if t.type == notification_type)

    async def fetch_template(self, template_id: Any) -> NotificationTemplate | None:
        return next((t for t in self.templates if str(t.id) == str(template_id)), None)

    async def last_attempt_since(self, customer_id: Any, notification_type: str, since: datetime) -> datetime | None:
        if self.history_error:
            raise self.history_error
        times = [
            entry.sent_at
            for entry in self.history
            if str(entry.customer_id) == str(customer_id)
            and entry.notification_type == notification_type
            and entry.sent_at >= since
        ]
        return max(times, default=None)

    async def append_history(self, entry: HistoryEntry) -> None:
        self.history.append(entry)

    def history_for(self, notification_type: str, status: str | None = None) -> list[HistoryEntry]:
        return [
            entry
            for entry in self.history
            if entry.notification_type == notification_type and (status is None or entry.status == status)
        ]


class FakeMailer:
    def __init__(self, fail_for: Iterable[str] = (), hang_for: Iterable[str] = ()) -> None:
        self.sent: list[OutboundEmail] = []
        self.fail_for = set(fail_for)
        self.hang_for = set(hang_for)

    async def send(self, outbound: OutboundEmail) -> str:
        if outbound.to in self.hang_for:
            await asyncio.sleep(5)
        if outbound.to in self.fail_for:
            raise MailerError("SMTP error 550: mailbox unavailable", recipient=outbound.to, code=550)
        self.sent.append(outbound)
        return f"<{len(self.sent)}@test>"

    def recipients(self) -> list[str]:
        return sorted(message.to for message in self.sent)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def customers() -> list[Customer]:
    return [
        make_customer(1, "Ana", "ana@example.com", birth_date=date(1990, 3, 15)),
        make_customer(2, "Beto", None, birth_date=date(1985, 3, 15), last_payment_date=None),
        make_customer(3, "Carla", "carla@example.com", annual_fee_due_date=date(2025, 4, 14), account_number="ACC-3"),
        make_customer(4, "Diego", "diego@example.com", annual_fee_due_date=date(2025, 4, 14)),
        make_customer(5, "Elena", "elena@example.com", last_payment_date=date(2024, 12, 1), account_number="ACC-5"),
        make_customer(6, "Fer", "fer@example.com", last_payment_date=None),
        make_customer(
            7,
            "Gabi",
            "gabi@example.com",
            birth_date=date(1992, 3, 16),
            annual_fee_due_date=date(2025, 4, 15),
        ),
    ]


@pytest.fixture
def templates() -> list[NotificationTemplate]:
    return [
        make_template(BIRTHDAY, subject="Feliz cumpleaños {{customer_name}}"),
        make_template(
            ANNUAL_FEE_DUE,
            subject="Anualidad {{account_number}}",
            body="Vence el {{due_date}}: ${{amount}}",
        ),
        make_template(
            PAYMENT_REMINDER,
            subject="Recordatorio de pago",
            body="{{months_overdue}} meses, total ${{amount}}, último pago {{last_payment_date}}",
        ),
    ]


@pytest.fixture
def store(customers, templates) -> FakeStore:
    return FakeStore(customers=customers, templates=templates)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(max_concurrency=2, dispatch_timeout=0.2)


@pytest.fixture
def runner(store, mailer, settings) -> NotificationRunner:
    return NotificationRunner(store, mailer, settings=settings)
