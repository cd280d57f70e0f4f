import asyncio
import re

import pytest

from authcore.application.ports.otp_store import OtpKeys, OtpPolicy, minutes
from authcore.application.services.otp_service import OtpService, render_otp_message
from authcore.exceptions import DeliveryFailedError, RateLimitError
from authcore.infrastructure.notifications.channel_notifier import ChannelNotifier
from authcore.infrastructure.otp_store.memory_otp_store import InMemoryOtpStore
from authcore.utils import generate_otp_code, generate_otp_reference


class FakeNotifier:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    async def send(self, recipient, subject, body):
        self.sent.append((recipient, subject, body))
        return self.ok


class SlowNotifier:
    async def send(self, recipient, subject, body):
        await asyncio.sleep(1)
        return True


def make_service(notifier=None, timeout=1.0):
    store = InMemoryOtpStore(OtpPolicy())
    notifier = notifier or FakeNotifier()
    return OtpService(store=store, notifier=notifier, timeout=timeout), store, notifier


def test_generated_codes_are_four_digits():
    for _ in range(200):
        code = generate_otp_code()
        assert re.fullmatch(r"[1-9][0-9]{3}", code)


def test_message_mentions_code_and_expiry():
    subject, body = render_otp_message("4821", 300, "Ann")
    assert subject
    assert "4821" in body
    assert "5 minutes" in body
    assert "Dear Ann" in body


@pytest.mark.asyncio
async def test_send_code_delivers_but_never_returns_code():
    svc, store, notifier = make_service()
    dispatch = await svc.send_code("a@x.io", name="Ann")

    assert dispatch.identifier == "a@x.io"
    assert dispatch.expires_in == 300
    assert dispatch.reference
    assert len(notifier.sent) == 1
    code = re.search(r"\b(\d{4})\b", notifier.sent[0][2]).group(1)
    assert not hasattr(dispatch, "code")
    assert code not in (dispatch.identifier, dispatch.reference)
    assert store.has(OtpKeys.for_identifier("a@x.io").code)
    await store.verify("a@x.io", code)


@pytest.mark.asyncio
async def test_second_send_within_cooldown_is_rejected():
    svc, _, notifier = make_service()
    await svc.send_code("a@x.io")
    with pytest.raises(RateLimitError) as exc:
        await svc.send_code("a@x.io")
    assert exc.value.reason == "cooldown"
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_delivery_failure_keeps_issued_code_and_cooldown():
    svc, store, _ = make_service(notifier=FakeNotifier(ok=False))
    with pytest.raises(DeliveryFailedError):
        await svc.send_code("a@x.io")

    keys = OtpKeys.for_identifier("a@x.io")
    assert store.has(keys.code)
    assert store.has(keys.cooldown)


@pytest.mark.asyncio
async def test_delivery_timeout_is_delivery_failure():
    svc, _, _ = make_service(notifier=SlowNotifier(), timeout=0.05)
    with pytest.raises(DeliveryFailedError):
        await svc.send_code("a@x.io")


@pytest.mark.asyncio
async def test_missing_channel_fails_delivery():
    svc, _, _ = make_service(notifier=ChannelNotifier(email=FakeNotifier(), sms=None))
    with pytest.raises(DeliveryFailedError):
        await svc.send_code("9800000000")


@pytest.mark.asyncio
async def test_channel_notifier_routes_by_identifier():
    email, sms = FakeNotifier(), FakeNotifier()
    notifier = ChannelNotifier(email=email, sms=sms)
    assert await notifier.send("a@x.io", "s", "b") is True
    assert await notifier.send("9800000000", "s", "b") is True
    assert [r for r, _, _ in email.sent] == ["a@x.io"]
    assert [r for r, _, _ in sms.sent] == ["9800000000"]


def test_reference_is_opaque_and_bounded():
    reference = generate_otp_reference("a@x.io", now=1700000000.0)
    assert len(reference) <= 32
    assert len(generate_otp_reference("someone.long@example.com", now=1700000000.0)) == 32
    assert reference == generate_otp_reference("a@x.io", now=1700000000.0)
    assert reference != generate_otp_reference("a@x.io", now=1700000001.0)


def test_minutes_wording():
    assert minutes(60) == "1 minute"
    assert minutes(1800) == "30 minutes"
    assert minutes(3600) == "1 hour"
