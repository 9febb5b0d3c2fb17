"""
Async SMTP client used to deliver notification e-mails.

Defaults target Gmail (smtp.gmail.com:587 with STARTTLS and an app password).
"""

from __future__ import annotations

from dataclasses import dataclass
import email.message
import email.policy
import email.utils
import logging

import aiosmtplib

logger = logging.getLogger(__name__)

DEFAULT_HOST = "smtp.gmail.com"
DEFAULT_PORT = 587
DEFAULT_TIMEOUT = 20.0


class MailerError(RuntimeError):
    """Raised when the SMTP server rejects or cannot accept a message."""

    def __init__(self, message: str, *, recipient: str | None = None, code: int | None = None):
        super().__init__(message)
        self.recipient = recipient
        self.code = code


@dataclass(slots=True)
class SmtpConfig:
    """Connection settings for the outgoing mail server."""

    username: str
    password: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    from_name: str = "Alarmas ADZ"
    start_tls: bool = True
    timeout: float = DEFAULT_TIMEOUT

    @property
    def from_address(self) -> str:
        return email.utils.formataddr((self.from_name, self.username))


@dataclass(slots=True)
class OutboundEmail:
    to: str
    subject: str
    html: str
    from_address: str | None = None


class SmtpMailer:
    """Thin async wrapper around aiosmtplib; one connection per message."""

    def __init__(self, config: SmtpConfig) -> None:
        self.config = config

    def build_message(self, outbound: OutboundEmail) -> email.message.EmailMessage:
        message = email.message.EmailMessage(policy=email.policy.default)
        message["From"] = outbound.from_address or self.config.from_address
        message["To"] = outbound.to
        message["Subject"] = outbound.subject
        message["Message-ID"] = email.utils.make_msgid(domain=self.config.username.rpartition("@")[2] or None)
        message.set_content("Este mensaje requiere un cliente de correo con soporte HTML.", charset="utf-8")
        message.add_alternative(outbound.html, subtype="html", charset="utf-8")
        return message

    async def send(self, outbound: OutboundEmail) -> str:
        """Send one message and return its Message-ID."""
        message = self.build_message(outbound)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.config.host,
                port=self.config.port,
                username=self.config.username,
                password=self.config.password,
                start_tls=self.config.start_tls,
                timeout=self.config.timeout,
            )
        except aiosmtplib.SMTPResponseException as exc:
            raise MailerError(f"SMTP error {exc.code}: {exc.message}", recipient=outbound.to, code=exc.code) from exc
        except aiosmtplib.SMTPException as exc:
            raise MailerError(f"SMTP error: {exc}", recipient=outbound.to) from exc
        message_id = str(message["Message-ID"])
        logger.info("Email sent to %s (%s)", outbound.to, message_id)
        return message_id


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "MailerError",
    "OutboundEmail",
    "SmtpConfig",
    "SmtpMailer",
]
