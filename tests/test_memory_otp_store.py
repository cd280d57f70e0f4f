import asyncio

import pytest

from authcore.application.ports.otp_store import OtpKeys, OtpPolicy
from authcore.exceptions import InvalidCodeError, NotFoundError, RateLimitError
from authcore.infrastructure.otp_store.memory_otp_store import InMemoryOtpStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_store():
    clock = FakeClock()
    return InMemoryOtpStore(OtpPolicy(), clock=clock), clock


ID = "a@x.io"


@pytest.mark.asyncio
async def test_fresh_identifier_passes_all_gates():
    store, _ = make_store()
    await store.check_restrictions(ID)
    await store.track_request(ID)


@pytest.mark.asyncio
async def test_issue_starts_cooldown_and_expiry_clears_it():
    store, clock = make_store()
    await store.issue(ID, "1234")

    with pytest.raises(RateLimitError) as exc:
        await store.check_restrictions(ID)
    assert exc.value.reason == "cooldown"
    assert 0 < exc.value.retry_after <= 60
    assert exc.value.message == "Please wait 1 minute before requesting a new OTP."

    clock.advance(61)
    await store.check_restrictions(ID)


@pytest.mark.asyncio
async def test_fourth_request_in_window_sets_spam_lock():
    store, clock = make_store()
    for _ in range(3):
        await store.track_request(ID)

    with pytest.raises(RateLimitError) as exc:
        await store.track_request(ID)
    assert exc.value.reason == "spam"
    assert exc.value.retry_after == 3600
    assert store.has(OtpKeys.for_identifier(ID).spam_lock)

    with pytest.raises(RateLimitError) as exc:
        await store.check_restrictions(ID)
    assert exc.value.reason == "spam"

    clock.advance(3601)
    await store.check_restrictions(ID)
    await store.track_request(ID)


@pytest.mark.asyncio
async def test_request_window_resets_after_expiry():
    store, clock = make_store()
    for _ in range(3):
        await store.track_request(ID)
    clock.advance(3601)
    for _ in range(3):
        await store.track_request(ID)


@pytest.mark.asyncio
async def test_verify_correct_code_consumes_it():
    store, _ = make_store()
    await store.issue(ID, "4821")
    await store.verify(ID, " 4821 ")

    keys = OtpKeys.for_identifier(ID)
    assert not store.has(keys.code)
    assert not store.has(keys.attempts)
    with pytest.raises(NotFoundError):
        await store.verify(ID, "4821")


@pytest.mark.asyncio
async def test_verify_without_code_is_not_found():
    store, _ = make_store()
    with pytest.raises(NotFoundError) as exc:
        await store.verify(ID, "1111")
    assert exc.value.message == "OTP expired or not found. Please request a new OTP."


@pytest.mark.asyncio
async def test_expired_code_is_not_found():
    store, clock = make_store()
    await store.issue(ID, "4821")
    clock.advance(301)
    with pytest.raises(NotFoundError):
        await store.verify(ID, "4821")


@pytest.mark.asyncio
async def test_wrong_codes_count_down_then_lock():
    store, clock = make_store()
    await store.issue(ID, "4821")

    with pytest.raises(InvalidCodeError) as exc:
        await store.verify(ID, "0000")
    assert exc.value.remaining_attempts == 2
    assert exc.value.message == "Invalid OTP. 2 attempts remaining"

    with pytest.raises(InvalidCodeError) as exc:
        await store.verify(ID, "0000")
    assert exc.value.remaining_attempts == 1

    with pytest.raises(RateLimitError) as exc:
        await store.verify(ID, "0000")
    assert exc.value.reason == "locked"

    keys = OtpKeys.for_identifier(ID)
    assert store.has(keys.lock)
    assert not store.has(keys.code)
    assert not store.has(keys.attempts)

    # the right code is gone too
    with pytest.raises(NotFoundError):
        await store.verify(ID, "4821")

    clock.advance(61)
    with pytest.raises(RateLimitError) as exc:
        await store.check_restrictions(ID)
    assert exc.value.reason == "locked"
    assert exc.value.message.endswith("Try again after 30 minutes.")

    clock.advance(1800)
    await store.check_restrictions(ID)


@pytest.mark.asyncio
async def test_lock_takes_priority_over_cooldown():
    store, _ = make_store()
    await store.issue(ID, "4821")
    for _ in range(3):
        with pytest.raises((InvalidCodeError, RateLimitError)):
            await store.verify(ID, "0000")
    with pytest.raises(RateLimitError) as exc:
        await store.check_restrictions(ID)
    assert exc.value.reason == "locked"


@pytest.mark.asyncio
async def test_reissue_replaces_code_and_keeps_attempts():
    store, clock = make_store()
    await store.issue(ID, "1111")
    with pytest.raises(InvalidCodeError):
        await store.verify(ID, "2222")

    clock.advance(61)
    await store.issue(ID, "3333")
    with pytest.raises(InvalidCodeError):
        await store.verify(ID, "1111")
    await store.verify(ID, "3333")


@pytest.mark.asyncio
async def test_identifiers_are_isolated():
    store, _ = make_store()
    await store.issue(ID, "4821")
    await store.check_restrictions("b@x.io")
    with pytest.raises(NotFoundError):
        await store.verify("b@x.io", "4821")


@pytest.mark.asyncio
async def test_concurrent_wrong_codes_lock_once_and_leave_no_attempts():
    store, _ = make_store()
    keys = OtpKeys.for_identifier(ID)
    await store.issue(ID, "1234")

    results = await asyncio.gather(*(store.verify(ID, "0000") for _ in range(4)), return_exceptions=True)

    assert sum(1 for r in results if isinstance(r, RateLimitError) and r.reason == "locked") == 1
    assert sum(1 for r in results if isinstance(r, InvalidCodeError)) == 2
    assert isinstance(results[-1], NotFoundError)
    assert not store.has(keys.code)
    assert not store.has(keys.attempts)
    assert store.has(keys.lock)
