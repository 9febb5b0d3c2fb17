"""Operator report: post each run summary to a Telegram chat."""

from __future__ import annotations

import logging

from aiogram import Bot

from .worker import RunSummary

logger = logging.getLogger(__name__)

MAX_ERROR_LINES = 10


def format_summary_lines(summary: RunSummary) -> list[str]:
    title = "📨 Automatic notifications"
    if summary.dry_run:
        title += " (dry run)"
    suppressed = summary.suppressed()
    lines = [
        title,
        f"Birthdays: {summary.birthdays} (skipped {suppressed['birthdays']})",
        f"Annual fees: {summary.annual_fees} (skipped {suppressed['annualFees']})",
        f"Payment reminders: {summary.payment_reminders} (skipped {suppressed['paymentReminders']})",
    ]
    errors = summary.errors
    if errors:
        lines.append("\nErrors:")
        for err in errors[:MAX_ERROR_LINES]:
            lines.append(f"- {err}")
        if len(errors) > MAX_ERROR_LINES:
            lines.append(f"… {len(errors) - MAX_ERROR_LINES} more")
    return lines


class TelegramSummaryReporter:
    def __init__(self, bot: Bot, chat_id: int) -> None:
        self.bot = bot
        self.chat_id = chat_id

    @classmethod
    def from_token(cls, token: str, chat_id: int) -> "TelegramSummaryReporter":
        return cls(Bot(token=token), chat_id)

    async def __call__(self, summary: RunSummary) -> None:
        try:
            await self.bot.send_message(self.chat_id, "\n".join(format_summary_lines(summary)))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to send notification summary: %s", exc)

    async def close(self) -> None:
        await self.bot.session.close()


__all__ = ["TelegramSummaryReporter", "format_summary_lines"]
