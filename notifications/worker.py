"""Run orchestrator for automatic notifications.

One run evaluates every trigger type against the same customer snapshot.
Types run concurrently and fail independently; inside a type, candidates
are processed with bounded concurrency, each one strictly in the order
dedup -> render -> dispatch -> record.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Mapping, Sequence

from mailer import DeliveryResult, Mailer, OutboundEmail, dispatch
from .exceptions import StoreUnavailableError, TemplateNotFoundError
from .history import DedupGuard, HistoryRecorder
from .rules import (
    ANNUAL_FEE_DUE,
    BIRTHDAY,
    CUSTOM,
    PAYMENT_REMINDER,
    Candidate,
    Customer,
    NotificationTemplate,
)
from .settings import EngineSettings
from .templates import render_template, wrap_html
from .triggers import TriggerEvaluator, default_triggers

logger = logging.getLogger(__name__)

SUMMARY_KEYS: Mapping[str, str] = {
    BIRTHDAY: "birthdays",
    ANNUAL_FEE_DUE: "annualFees",
    PAYMENT_REMINDER: "paymentReminders",
}


@dataclass(slots=True)
class TypeOutcome:
    notification_type: str
    sent: int = 0
    suppressed: int = 0
    failed: int = 0
    idle: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RunSummary:
    outcomes: dict[str, TypeOutcome]
    started_at: datetime
    finished_at: datetime | None = None
    dry_run: bool = False

    def count(self, notification_type: str) -> int:
        outcome = self.outcomes.get(notification_type)
        return outcome.sent if outcome else 0

    @property
    def birthdays(self) -> int:
        return self.count(BIRTHDAY)

    @property
    def annual_fees(self) -> int:
        return self.count(ANNUAL_FEE_DUE)

    @property
    def payment_reminders(self) -> int:
        return self.count(PAYMENT_REMINDER)

    @property
    def errors(self) -> list[str]:
        return [error for outcome in self.outcomes.values() for error in outcome.errors]

    def results(self) -> dict[str, int]:
        return {key: self.count(kind) for kind, key in SUMMARY_KEYS.items()}

    def suppressed(self) -> dict[str, int]:
        return {
            key: self.outcomes[kind].suppressed if kind in self.outcomes else 0
            for kind, key in SUMMARY_KEYS.items()
        }

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.results())
        data["errors"] = self.errors
        return data


@dataclass(slots=True)
class DirectSendRequest:
    customer_email: str
    customer_name: str = ""
    customer_id: Any = None
    template_id: Any = None
    subject: str | None = None
    body: str | None = None
    variables: Mapping[str, Any] = field(default_factory=dict)
    notification_type: str = CUSTOM


class NotificationRunner:
    def __init__(
        self,
        store: Any,
        mailer: Mailer,
        *,
        settings: EngineSettings | None = None,
        triggers: Sequence[TriggerEvaluator] | None = None,
    ) -> None:
        self.store = store
        self.mailer = mailer
        self.settings = settings or EngineSettings()
        self.triggers = list(
            triggers
            if triggers is not None
            else default_triggers(business_tz=self.settings.business_tz, company_name=self.settings.company_name)
        )
        self.guard = DedupGuard(store, business_tz=self.settings.business_tz)
        self.recorder = HistoryRecorder(store)

    async def run(self, now: datetime | None = None, *, dry_run: bool | None = None) -> RunSummary:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        dry_run = self.settings.dry_run if dry_run is None else dry_run
        summary = RunSummary(outcomes={}, started_at=datetime.now(timezone.utc), dry_run=dry_run)
        logger.info("Starting automatic notification processing (now=%s, dry_run=%s)", now.isoformat(), dry_run)

        async with AsyncExitStack() as stack:
            try:
                await stack.enter_async_context(self.store.run_lock())
                customers = await self.store.fetch_customers()
            except Exception as exc:
                raise StoreUnavailableError(f"Record store unavailable: {exc}") from exc
            logger.info("Loaded %s customers with e-mail", len(customers))
            outcomes = await asyncio.gather(
                *(self._run_type(trigger, now, customers, dry_run) for trigger in self.triggers)
            )

        summary.outcomes = {outcome.notification_type: outcome for outcome in outcomes}
        summary.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Automatic notifications processed: %s errors=%s",
            summary.results(),
            len(summary.errors),
        )
        return summary

    async def _run_type(
        self,
        trigger: TriggerEvaluator,
        now: datetime,
        customers: Sequence[Customer],
        dry_run: bool,
    ) -> TypeOutcome:
        outcome = TypeOutcome(notification_type=trigger.notification_type)
        try:
            await self._run_pipeline(trigger, now, customers, dry_run, outcome)
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s notifications failed", trigger.label)
            outcome.errors.append(f"{trigger.label} notifications error: {exc}")
        logger.info("Processed %s %s notifications", outcome.sent, trigger.notification_type)
        return outcome

    async def _run_pipeline(
        self,
        trigger: TriggerEvaluator,
        now: datetime,
        customers: Sequence[Customer],
        dry_run: bool,
        outcome: TypeOutcome,
    ) -> None:
        kind = trigger.notification_type
        config = await self.store.fetch_config(kind)
        if config is None or not config.enabled:
            logger.info("%s notifications disabled or not configured", kind)
            outcome.idle = True
            return
        template = await self.store.fetch_active_template(kind)
        if template is None:
            logger.info("No active %s template found", kind)
            outcome.idle = True
            return

        candidates = trigger.evaluate(now, config, customers)
        if not candidates:
            return
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def _bounded(candidate: Candidate) -> None:
            async with semaphore:
                await self._process_candidate(candidate, template, config.params, now, dry_run, outcome)

        await asyncio.gather(*(_bounded(candidate) for candidate in candidates))

    async def _process_candidate(
        self,
        candidate: Candidate,
        template: NotificationTemplate,
        params: Any,
        now: datetime,
        dry_run: bool,
        outcome: TypeOutcome,
    ) -> None:
        kind = candidate.notification_type
        recipient = candidate.recipient
        try:
            if await self.guard.should_suppress(candidate, now, params):
                outcome.suppressed += 1
                return
        except Exception as exc:  # noqa: BLE001
            logger.warning("History check failed for %s %s: %s", kind, recipient, exc)
            outcome.failed += 1
            outcome.errors.append(f"{kind}: {recipient}: history check failed: {exc}")
            return

        subject = render_template(template.subject, candidate.variables)
        body = render_template(template.body, candidate.variables, escape=True)
        html_body = wrap_html(subject, body, self.settings.brand)
        if dry_run:
            logger.info("[dry-run] %s to %s: %s", kind, recipient, subject)
            outcome.sent += 1
            return

        result = await dispatch(
            self.mailer,
            OutboundEmail(to=recipient, subject=subject, html=html_body),
            timeout=self.settings.dispatch_timeout,
        )
        try:
            await self.recorder.record_candidate(candidate, subject=subject, body=html_body, result=result)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to record %s history for %s", kind, recipient)
            outcome.errors.append(f"{kind}: {recipient}: history not recorded: {exc}")

        if result.ok:
            outcome.sent += 1
        else:
            outcome.failed += 1
            outcome.errors.append(f"{kind}: {recipient}: {result.error}")

    async def send_direct(self, request: DirectSendRequest) -> DeliveryResult:
        """Send one message from a stored template or inline subject/body."""
        subject = request.subject or ""
        body = request.body or ""
        if request.template_id:
            template = await self.store.fetch_template(request.template_id)
            if template is None:
                raise TemplateNotFoundError(str(request.template_id))
            subject, body = template.subject, template.body
        variables = dict(request.variables)
        variables.setdefault("customer_name", request.customer_name)
        variables.setdefault("company_name", self.settings.company_name)
        subject = render_template(subject, variables)
        html_body = wrap_html(subject, render_template(body, variables, escape=True), self.settings.brand)

        logger.info("Sending notification to: %s, type: %s", request.customer_email, request.notification_type)
        result = await dispatch(
            self.mailer,
            OutboundEmail(to=request.customer_email, subject=subject, html=html_body),
            timeout=self.settings.dispatch_timeout,
        )
        try:
            await self.recorder.record(
                customer_id=request.customer_id,
                notification_type=request.notification_type,
                subject=subject,
                body=html_body,
                result=result,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Error logging %s to history", request.customer_email)
        return result


__all__ = [
    "DirectSendRequest",
    "NotificationRunner",
    "RunSummary",
    "SUMMARY_KEYS",
    "TypeOutcome",
]
