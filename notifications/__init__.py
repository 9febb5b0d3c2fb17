"""Automatic notification engine exports."""

from .exceptions import ConfigError, NotificationError, StoreUnavailableError, TemplateNotFoundError
from .rules import (
    ANNUAL_FEE_DUE,
    BIRTHDAY,
    PAYMENT_REMINDER,
    TRIGGER_TYPES,
    AnnualFeeParams,
    BirthdayParams,
    Candidate,
    Customer,
    NotificationConfig,
    NotificationTemplate,
    PaymentReminderParams,
    parse_trigger_params,
)
from .templates import BrandProfile, extract_variables, render_template, wrap_html
from .triggers import AnnualFeeTrigger, BirthdayTrigger, PaymentReminderTrigger, default_triggers
from .history import DedupGuard, HistoryEntry, HistoryRecorder
from .settings import EngineSettings
from .worker import DirectSendRequest, NotificationRunner, RunSummary, TypeOutcome
from .webhook import NotificationServer, start_notification_server
from .report import TelegramSummaryReporter, format_summary_lines

__all__ = [
    "ANNUAL_FEE_DUE",
    "BIRTHDAY",
    "PAYMENT_REMINDER",
    "TRIGGER_TYPES",
    "AnnualFeeParams",
    "AnnualFeeTrigger",
    "BirthdayParams",
    "BirthdayTrigger",
    "BrandProfile",
    "Candidate",
    "ConfigError",
    "Customer",
    "DedupGuard",
    "DirectSendRequest",
    "EngineSettings",
    "HistoryEntry",
    "HistoryRecorder",
    "NotificationConfig",
    "NotificationError",
    "NotificationRunner",
    "NotificationServer",
    "NotificationTemplate",
    "PaymentReminderParams",
    "PaymentReminderTrigger",
    "RunSummary",
    "StoreUnavailableError",
    "TelegramSummaryReporter",
    "TemplateNotFoundError",
    "TypeOutcome",
    "default_triggers",
    "extract_variables",
    "format_summary_lines",
    "parse_trigger_params",
    "render_template",
    "start_notification_server",
    "wrap_html",
]
