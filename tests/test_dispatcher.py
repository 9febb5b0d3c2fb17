"""Tests for the delivery dispatcher."""

import asyncio

import pytest

from conftest import FakeMailer
from mailer import OutboundEmail, dispatch


def _outbound(to="ana@example.com"):
    return OutboundEmail(to=to, subject="Hola", html="<p>Hola</p>")


async def test_dispatch_success_returns_message_id():
    mailer = FakeMailer()

    result = await dispatch(mailer, _outbound(), timeout=1)

    assert result.ok
    assert result.status == "sent"
    assert result.message_id == "<1@test>"
    assert result.attempted_at is not None
    assert mailer.recipients() == ["ana@example.com"]


async def test_dispatch_rejection_becomes_failed_result():
    result = await dispatch(FakeMailer(fail_for=["ana@example.com"]), _outbound(), timeout=1)

    assert not result.ok
    assert result.status == "failed"
    assert "550" in result.error


async def test_dispatch_times_out():
    result = await dispatch(FakeMailer(hang_for=["ana@example.com"]), _outbound(), timeout=0.05)

    assert not result.ok
    assert result.error == "timed out after 0.05s"


async def test_dispatch_without_recipient_does_not_call_transport():
    mailer = FakeMailer()

    result = await dispatch(mailer, _outbound(to=""), timeout=1)

    assert not result.ok
    assert result.error == "recipient address missing"
    assert mailer.sent == []


async def test_dispatch_unexpected_error_is_contained():
    class BrokenMailer:
        async def send(self, outbound):
            raise ConnectionResetError()

    result = await dispatch(BrokenMailer(), _outbound(), timeout=1)

    assert not result.ok
    assert result.error == "ConnectionResetError"


async def test_dispatch_propagates_cancellation():
    task = asyncio.ensure_future(dispatch(FakeMailer(hang_for=["ana@example.com"]), _outbound(), timeout=10))
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
