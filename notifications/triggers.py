"""Trigger evaluators: decide which customers are due a notification today.

Every evaluator works on one snapshot of ``now`` and of the customer list
and returns candidates with their template variables. Whether the trigger
is enabled and has an active template is decided by the runner before an
evaluator is called.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal
import logging
from typing import Iterable, Mapping, cast

from .exceptions import ConfigError
from .rules import (
    ANNUAL_FEE_DUE,
    BIRTHDAY,
    PAYMENT_REMINDER,
    AnnualFeeParams,
    BirthdayParams,
    Candidate,
    Customer,
    NotificationConfig,
    PaymentReminderParams,
    TriggerParams,
)

logger = logging.getLogger(__name__)

BUSINESS_TZ = timezone(timedelta(hours=-6))
NEVER_PAID_MONTHS = 3
NOT_AVAILABLE = "N/A"


def business_date(now: datetime, business_tz: tzinfo = BUSINESS_TZ) -> date:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(business_tz).date()


def format_local_date(value: date) -> str:
    """Format like ``toLocaleDateString('es-MX')``: day/month/year without padding."""
    return f"{value.day}/{value.month}/{value.year}"


def subtract_months(value: date, months: int) -> date:
    index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar months elapsed from ``start`` to ``end`` (never negative)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(months, 0)


def is_birthday(birth_date: date, today: date) -> bool:
    if (birth_date.month, birth_date.day) == (today.month, today.day):
        return True
    # 29 Feb birthdays are celebrated on 28 Feb in non-leap years
    return (
        birth_date.month == 2
        and birth_date.day == 29
        and today.month == 2
        and today.day == 28
        and not calendar.isleap(today.year)
    )


class TriggerEvaluator:
    notification_type: str = ""
    label: str = ""
    params_type: type = object

    def __init__(self, *, business_tz: tzinfo = BUSINESS_TZ, company_name: str = "Alarmas ADZ") -> None:
        self.business_tz = business_tz
        self.company_name = company_name

    def business_date(self, now: datetime) -> date:
        return business_date(now, self.business_tz)

    def evaluate(
        self,
        now: datetime,
        config: NotificationConfig,
        customers: Iterable[Customer],
    ) -> list[Candidate]:
        params = config.params
        if not isinstance(params, self.params_type):
            raise ConfigError(
                self.notification_type,
                f"expected {self.params_type.__name__}, got {type(params).__name__}",
            )
        today = self.business_date(now)
        candidates: list[Candidate] = []
        seen: set[object] = set()
        for customer in customers:
            if not customer.email or customer.id in seen:
                continue
            variables = self.match(customer, today, params)
            if variables is None:
                continue
            seen.add(customer.id)
            candidates.append(
                Candidate(customer=customer, notification_type=self.notification_type, variables=variables)
            )
        logger.info(
            "%s: %s candidates for business date %s",
            self.notification_type,
            len(candidates),
            today.isoformat(),
        )
        return candidates

    def match(self, customer: Customer, today: date, params: TriggerParams) -> Mapping[str, str] | None:
        raise NotImplementedError


class BirthdayTrigger(TriggerEvaluator):
    notification_type = BIRTHDAY
    label = "Birthday"
    params_type = BirthdayParams

    def match(self, customer: Customer, today: date, params: TriggerParams) -> Mapping[str, str] | None:
        if customer.birth_date is None or not is_birthday(customer.birth_date, today):
            return None
        logger.debug("Birthday match: %s (%s) born %s", customer.name, customer.email, customer.birth_date)
        return {
            "customer_name": customer.name,
            "company_name": self.company_name,
        }


class AnnualFeeTrigger(TriggerEvaluator):
    notification_type = ANNUAL_FEE_DUE
    label = "Annual fee"
    params_type = AnnualFeeParams

    def match(self, customer: Customer, today: date, params: TriggerParams) -> Mapping[str, str] | None:
        params = cast(AnnualFeeParams, params)
        due = customer.annual_fee_due_date
        if due is None or due != today + timedelta(days=params.days_before):
            return None
        return {
            "customer_name": customer.name,
            "account_number": customer.account_number or NOT_AVAILABLE,
            "due_date": format_local_date(due),
            "amount": params.amount,
            "company_name": self.company_name,
        }


class PaymentReminderTrigger(TriggerEvaluator):
    notification_type = PAYMENT_REMINDER
    label = "Payment reminder"
    params_type = PaymentReminderParams

    def match(self, customer: Customer, today: date, params: TriggerParams) -> Mapping[str, str] | None:
        params = cast(PaymentReminderParams, params)
        last_payment = customer.last_payment_date
        if last_payment is not None and last_payment >= subtract_months(today, params.months_overdue):
            return None
        months = months_between(last_payment, today) if last_payment else NEVER_PAID_MONTHS
        amount = (Decimal(months) * params.unit_rate).quantize(Decimal("0.01"))
        return {
            "customer_name": customer.name,
            "account_number": customer.account_number or NOT_AVAILABLE,
            "amount": format(amount, "f"),
            "months_overdue": str(months),
            "last_payment_date": format_local_date(last_payment) if last_payment else NOT_AVAILABLE,
            "company_name": self.company_name,
        }


def default_triggers(*, business_tz: tzinfo = BUSINESS_TZ, company_name: str = "Alarmas ADZ") -> list[TriggerEvaluator]:
    return [
        BirthdayTrigger(business_tz=business_tz, company_name=company_name),
        AnnualFeeTrigger(business_tz=business_tz, company_name=company_name),
        PaymentReminderTrigger(business_tz=business_tz, company_name=company_name),
    ]


__all__ = [
    "AnnualFeeTrigger",
    "BUSINESS_TZ",
    "BirthdayTrigger",
    "PaymentReminderTrigger",
    "TriggerEvaluator",
    "business_date",
    "default_triggers",
    "format_local_date",
    "months_between",
    "subtract_months",
]
