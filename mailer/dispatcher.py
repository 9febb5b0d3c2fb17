"""
Delivery hand-off to the mail transport.

- Every call sends at most one message.
- Transport errors and timeouts are returned as a failed ``DeliveryResult``;
  nothing raised by the transport escapes ``dispatch``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Awaitable, Protocol

from .smtp_client import MailerError, OutboundEmail

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_TIMEOUT = 30.0


class Mailer(Protocol):
    def send(self, outbound: OutboundEmail) -> Awaitable[str]: ...


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    recipient: str
    ok: bool
    message_id: str | None = None
    error: str | None = None
    attempted_at: datetime | None = None

    @classmethod
    def sent(cls, recipient: str, message_id: str | None) -> "DeliveryResult":
        return cls(recipient=recipient, ok=True, message_id=message_id, attempted_at=datetime.now(timezone.utc))

    @classmethod
    def failed(cls, recipient: str, error: str) -> "DeliveryResult":
        return cls(recipient=recipient, ok=False, error=error, attempted_at=datetime.now(timezone.utc))

    @property
    def status(self) -> str:
        return "sent" if self.ok else "failed"


async def dispatch(
    mailer: Mailer,
    outbound: OutboundEmail,
    *,
    timeout: float = DEFAULT_DISPATCH_TIMEOUT,
) -> DeliveryResult:
    if not outbound.to:
        return DeliveryResult.failed(outbound.to, "recipient address missing")
    try:
        message_id = await asyncio.wait_for(mailer.send(outbound), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Send to %s timed out after %.1fs", outbound.to, timeout)
        return DeliveryResult.failed(outbound.to, f"timed out after {timeout:g}s")
    except asyncio.CancelledError:
        raise
    except MailerError as exc:
        logger.warning("Send to %s rejected: %s", outbound.to, exc)
        return DeliveryResult.failed(outbound.to, str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Send to %s failed: %s", outbound.to, exc)
        return DeliveryResult.failed(outbound.to, str(exc) or exc.__class__.__name__)
    return DeliveryResult.sent(outbound.to, message_id)


__all__ = ["DEFAULT_DISPATCH_TIMEOUT", "DeliveryResult", "Mailer", "dispatch"]
