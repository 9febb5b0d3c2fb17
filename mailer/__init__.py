"""
Outgoing e-mail integration.

Contains the SMTP client and the delivery dispatcher used by notifications.
"""

from .smtp_client import (
    MailerError,
    OutboundEmail,
    SmtpConfig,
    SmtpMailer,
)
from .smtp_service import get_mailer, load_smtp_config
from .dispatcher import (
    DEFAULT_DISPATCH_TIMEOUT,
    DeliveryResult,
    Mailer,
    dispatch,
)

__all__ = [
    "MailerError",
    "OutboundEmail",
    "SmtpConfig",
    "SmtpMailer",
    "get_mailer",
    "load_smtp_config",
    "DEFAULT_DISPATCH_TIMEOUT",
    "DeliveryResult",
    "Mailer",
    "dispatch",
]
