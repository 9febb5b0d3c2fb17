"""Notification records and typed trigger parameters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
import json
import logging
from typing import Any, Iterable, Mapping, Union

from .exceptions import ConfigError
from .templates import extract_variables

logger = logging.getLogger(__name__)

BIRTHDAY = "birthday"
ANNUAL_FEE_DUE = "annual_fee_due"
PAYMENT_REMINDER = "payment_reminder"
CUSTOM = "custom"

TRIGGER_TYPES: tuple[str, ...] = (BIRTHDAY, ANNUAL_FEE_DUE, PAYMENT_REMINDER)

# Fixed literal until the fee is priced per account.
DEFAULT_ANNUAL_FEE_AMOUNT = "1,500.00"
DEFAULT_UNIT_RATE = Decimal("500")


@dataclass(slots=True, frozen=True)
class Customer:
    id: Any
    name: str
    email: str | None = None
    birth_date: date | None = None
    annual_fee_due_date: date | None = None
    last_payment_date: date | None = None
    account_number: str | None = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Customer":
        email = (row.get("email") or "").strip() or None
        account = row.get("account_number")
        return cls(
            id=row["id"],
            name=str(row.get("name") or ""),
            email=email,
            birth_date=coerce_date(row.get("birth_date")),
            annual_fee_due_date=coerce_date(row.get("annual_fee_due_date")),
            last_payment_date=coerce_date(row.get("last_payment_date")),
            account_number=str(account) if account not in (None, "") else None,
        )


@dataclass(slots=True, frozen=True)
class NotificationTemplate:
    id: Any
    type: str
    subject: str
    body: str
    name: str = ""
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def variables(self) -> frozenset[str]:
        return frozenset(extract_variables(self.subject, self.body))

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "NotificationTemplate":
        return cls(
            id=row["id"],
            type=str(row.get("type") or CUSTOM),
            subject=str(row.get("subject") or ""),
            body=str(row.get("body") or ""),
            name=str(row.get("name") or ""),
            is_active=bool(row.get("is_active", True)),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass(slots=True, frozen=True)
class BirthdayParams:
    """Birthdays take no parameters; the match is always on the exact day."""


@dataclass(slots=True, frozen=True)
class AnnualFeeParams:
    days_before: int = 30
    amount: str = DEFAULT_ANNUAL_FEE_AMOUNT


@dataclass(slots=True, frozen=True)
class PaymentReminderParams:
    months_overdue: int = 2
    repeat_every_days: int = 15
    unit_rate: Decimal = DEFAULT_UNIT_RATE


TriggerParams = Union[BirthdayParams, AnnualFeeParams, PaymentReminderParams]


@dataclass(slots=True, frozen=True)
class NotificationConfig:
    notification_type: str
    enabled: bool
    params: TriggerParams
    send_time: time | None = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "NotificationConfig":
        notification_type = str(row["notification_type"])
        return cls(
            notification_type=notification_type,
            enabled=bool(row.get("is_enabled")),
            params=parse_trigger_params(notification_type, row.get("trigger_condition")),
            send_time=_coerce_time(row.get("send_time")),
        )


@dataclass(slots=True, frozen=True)
class Candidate:
    customer: Customer
    notification_type: str
    variables: Mapping[str, str] = field(default_factory=dict)

    @property
    def recipient(self) -> str:
        return self.customer.email or ""


def _timestamp_key(value: datetime | None) -> tuple[bool, float]:
    if value is None:
        return (False, 0.0)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (True, value.timestamp())


def pick_active_template(templates: Iterable[NotificationTemplate]) -> NotificationTemplate | None:
    """Pick the template used for a type when several are active.

    Most recently updated wins, then most recently created, then the
    greatest id as text.
    """
    active = [template for template in templates if template.is_active]
    if not active:
        return None
    active.sort(
        key=lambda t: (_timestamp_key(t.updated_at), _timestamp_key(t.created_at), str(t.id)),
        reverse=True,
    )
    if len(active) > 1:
        logger.warning(
            "%s active %s templates; using %s",
            len(active),
            active[0].type,
            active[0].id,
        )
    return active[0]


def coerce_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Unsupported date value: {value!r}")


def _coerce_time(value: Any) -> time | None:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def _load_condition(notification_type: str, raw: Any) -> Mapping[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ConfigError(notification_type, f"trigger_condition is not JSON ({exc})") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError(notification_type, "trigger_condition must be an object")
    return raw


def _int_param(notification_type: str, data: Mapping[str, Any], key: str, default: int, minimum: int) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(notification_type, f"{key} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(notification_type, f"{key} must be an integer, got {value!r}") from exc
    if number < minimum:
        raise ConfigError(notification_type, f"{key} must be >= {minimum}, got {number}")
    return number


def parse_trigger_params(notification_type: str, raw: Any) -> TriggerParams:
    data = _load_condition(notification_type, raw)
    if notification_type == BIRTHDAY:
        return BirthdayParams()
    if notification_type == ANNUAL_FEE_DUE:
        return AnnualFeeParams(
            days_before=_int_param(notification_type, data, "days_before", 30, 0),
            amount=str(data.get("amount") or DEFAULT_ANNUAL_FEE_AMOUNT),
        )
    if notification_type == PAYMENT_REMINDER:
        unit_rate = data.get("unit_rate")
        try:
            rate = Decimal(str(unit_rate)) if unit_rate is not None else DEFAULT_UNIT_RATE
        except InvalidOperation as exc:
            raise ConfigError(notification_type, f"unit_rate must be numeric, got {unit_rate!r}") from exc
        return PaymentReminderParams(
            months_overdue=_int_param(notification_type, data, "months_overdue", 2, 1),
            repeat_every_days=_int_param(notification_type, data, "repeat_every_days", 15, 0),
            unit_rate=rate,
        )
    raise ConfigError(notification_type, "unknown notification type")


__all__ = [
    "ANNUAL_FEE_DUE",
    "AnnualFeeParams",
    "BIRTHDAY",
    "BirthdayParams",
    "CUSTOM",
    "Candidate",
    "Customer",
    "NotificationConfig",
    "NotificationTemplate",
    "PAYMENT_REMINDER",
    "PaymentReminderParams",
    "TRIGGER_TYPES",
    "TriggerParams",
    "coerce_date",
    "parse_trigger_params",
    "pick_active_template",
]
