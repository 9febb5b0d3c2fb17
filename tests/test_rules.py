"""Tests for trigger parameters and template selection."""

from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from notifications import (
    ANNUAL_FEE_DUE,
    BIRTHDAY,
    PAYMENT_REMINDER,
    AnnualFeeParams,
    BirthdayParams,
    ConfigError,
    Customer,
    NotificationConfig,
    NotificationTemplate,
    PaymentReminderParams,
    parse_trigger_params,
)
from notifications.rules import pick_active_template


def test_defaults_when_condition_missing():
    assert parse_trigger_params(BIRTHDAY, None) == BirthdayParams()
    assert parse_trigger_params(ANNUAL_FEE_DUE, {}) == AnnualFeeParams(days_before=30, amount="1,500.00")
    assert parse_trigger_params(PAYMENT_REMINDER, "") == PaymentReminderParams(
        months_overdue=2, repeat_every_days=15, unit_rate=Decimal("500")
    )


def test_condition_decoded_from_json_string():
    params = parse_trigger_params(PAYMENT_REMINDER, '{"months_overdue": 3, "repeat_every_days": "7", "extra": 1}')

    assert params == PaymentReminderParams(months_overdue=3, repeat_every_days=7, unit_rate=Decimal("500"))


@pytest.mark.parametrize(
    "kind, raw",
    [
        (ANNUAL_FEE_DUE, "{not json"),
        (ANNUAL_FEE_DUE, {"days_before": "soon"}),
        (ANNUAL_FEE_DUE, {"days_before": -1}),
        (PAYMENT_REMINDER, {"months_overdue": 0}),
        (PAYMENT_REMINDER, {"repeat_every_days": True}),
        (PAYMENT_REMINDER, {"unit_rate": "abc"}),
        (BIRTHDAY, "[1, 2]"),
        ("suspension_notice", {}),
    ],
)
def test_malformed_condition_raises_config_error(kind, raw):
    with pytest.raises(ConfigError):
        parse_trigger_params(kind, raw)


def test_config_from_record():
    config = NotificationConfig.from_record(
        {
            "notification_type": ANNUAL_FEE_DUE,
            "is_enabled": True,
            "trigger_condition": {"days_before": 7, "amount": "2,000.00"},
            "send_time": "09:30:00",
        }
    )

    assert config.enabled is True
    assert config.params == AnnualFeeParams(days_before=7, amount="2,000.00")
    assert config.send_time == time(9, 30)


def test_customer_from_record_normalizes_fields():
    customer = Customer.from_record(
        {
            "id": "c-1",
            "name": "Ana",
            "email": "  ",
            "birth_date": "1990-03-15",
            "annual_fee_due_date": datetime(2025, 4, 14, 10, 0),
            "last_payment_date": None,
            "account_number": "",
        }
    )

    assert customer.email is None
    assert customer.birth_date == date(1990, 3, 15)
    assert customer.annual_fee_due_date == date(2025, 4, 14)
    assert customer.account_number is None


def test_template_variables_derived_from_subject_and_body():
    template = NotificationTemplate(id=1, type=BIRTHDAY, subject="Hola {{customer_name}}", body="{{company_name}} {{customer_name}}")

    assert template.variables == frozenset({"customer_name", "company_name"})


def test_pick_active_template_prefers_most_recently_updated():
    older = NotificationTemplate(
        id="b", type=BIRTHDAY, subject="old", body="", updated_at=datetime(2025, 1, 1, tzinfo=timezone.utc)
    )
    newer = NotificationTemplate(
        id="a", type=BIRTHDAY, subject="new", body="", updated_at=datetime(2025, 2, 1, tzinfo=timezone.utc)
    )
    inactive = NotificationTemplate(
        id="c", type=BIRTHDAY, subject="off", body="", is_active=False, updated_at=datetime(2025, 3, 1, tzinfo=timezone.utc)
    )

    assert pick_active_template([older, inactive, newer]).subject == "new"
    assert pick_active_template([newer, older]).subject == "new"


def test_pick_active_template_tie_breaks_on_created_then_id():
    stamp = datetime(2025, 1, 1, tzinfo=timezone.utc)
    first = NotificationTemplate(id="1", type=BIRTHDAY, subject="one", body="", updated_at=stamp, created_at=stamp)
    second = NotificationTemplate(id="2", type=BIRTHDAY, subject="two", body="", updated_at=stamp, created_at=stamp)

    assert pick_active_template([first, second]).subject == "two"
    assert pick_active_template([second, first]).subject == "two"


def test_pick_active_template_none_when_nothing_active():
    assert pick_active_template([]) is None
    assert pick_active_template([NotificationTemplate(id=1, type=BIRTHDAY, subject="", body="", is_active=False)]) is None
