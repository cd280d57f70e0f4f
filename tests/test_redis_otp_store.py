import asyncio
import time

import pytest

from authcore.application.ports.otp_store import OtpKeys, OtpPolicy
from authcore.exceptions import InvalidCodeError, NotFoundError, RateLimitError
from authcore.infrastructure.otp_store.redis_otp_store import RedisOtpStore


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def set(self, *args, **kwargs):
        self.ops.append((self.client._set, args, kwargs))

    def incr(self, *args):
        self.ops.append((self.client._incr, args, {}))

    def delete(self, *args):
        self.ops.append((self.client._delete, args, {}))

    def exists(self, *args):
        self.ops.append((self.client._exists, args, {}))

    async def execute(self):
        # yield like a network round trip, then run the queued commands with no
        # await between them, like MULTI/EXEC
        await asyncio.sleep(0)
        return [op(*args, **kwargs) for op, args, kwargs in self.ops]


class FakeAsyncRedis:
    """Just the commands the OTP store issues, with decode_responses semantics."""

    def __init__(self):
        self.store = {}
        self.closed = False

    def _live(self, key):
        rec = self.store.get(key)
        if rec is None:
            return None
        value, expires_at = rec
        if expires_at is not None and expires_at <= time.monotonic():
            del self.store[key]
            return None
        return value

    def _set(self, key, value, ex=None, nx=False):
        if nx and self._live(key) is not None:
            return None
        self.store[key] = (str(value), time.monotonic() + ex if ex else None)
        return True

    def _incr(self, key):
        value = int(self._live(key) or 0) + 1
        expires_at = self.store[key][1] if key in self.store else None
        self.store[key] = (str(value), expires_at)
        return value

    def _delete(self, *keys):
        return sum(1 for key in keys if self._live(key) is not None and self.store.pop(key))

    def _exists(self, *keys):
        return sum(1 for key in keys if self._live(key) is not None)

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def get(self, key):
        await asyncio.sleep(0)
        return self._live(key)

    async def set(self, key, value, ex=None, nx=False):
        return self._set(key, value, ex=ex, nx=nx)

    async def mget(self, *keys):
        await asyncio.sleep(0)
        return [self._live(key) for key in keys]

    async def exists(self, key):
        return self._exists(key)

    async def delete(self, *keys):
        return self._delete(*keys)

    async def ttl(self, key):
        if self._live(key) is None:
            return -2
        expires_at = self.store[key][1]
        if expires_at is None:
            return -1
        return max(int(expires_at - time.monotonic() + 0.999), 0)

    async def aclose(self):
        self.closed = True


ID = "a@x.io"


def make_store():
    client = FakeAsyncRedis()
    return RedisOtpStore(client=client, policy=OtpPolicy()), client


def test_requires_url_or_client():
    with pytest.raises(ValueError):
        RedisOtpStore()


@pytest.mark.asyncio
async def test_issue_writes_code_and_cooldown_with_ttls():
    store, client = make_store()
    keys = OtpKeys.for_identifier(ID)
    await store.issue(ID, "4821")

    assert await client.get(keys.code) == "4821"
    assert await client.get(keys.cooldown) == "true"
    assert 0 < await client.ttl(keys.code) <= 300
    assert 0 < await client.ttl(keys.cooldown) <= 60

    with pytest.raises(RateLimitError) as exc:
        await store.check_restrictions(ID)
    assert exc.value.reason == "cooldown"
    assert 0 < exc.value.retry_after <= 60


@pytest.mark.asyncio
async def test_request_counter_expires_with_window():
    store, client = make_store()
    keys = OtpKeys.for_identifier(ID)
    await store.track_request(ID)
    await store.track_request(ID)

    assert await client.get(keys.request_count) == "2"
    assert 0 < await client.ttl(keys.request_count) <= 3600


@pytest.mark.asyncio
async def test_fourth_request_sets_spam_lock():
    store, client = make_store()
    for _ in range(3):
        await store.track_request(ID)
    with pytest.raises(RateLimitError) as exc:
        await store.track_request(ID)
    assert exc.value.reason == "spam"
    assert await client.exists(OtpKeys.for_identifier(ID).spam_lock)

    with pytest.raises(RateLimitError) as exc:
        await store.check_restrictions(ID)
    assert exc.value.reason == "spam"


@pytest.mark.asyncio
async def test_concurrent_requests_never_exceed_budget():
    store, _ = make_store()
    results = await asyncio.gather(*(store.track_request(ID) for _ in range(6)), return_exceptions=True)
    assert sum(1 for r in results if r is None) == 3
    assert all(isinstance(r, RateLimitError) for r in results if r is not None)


@pytest.mark.asyncio
async def test_verify_consumes_code_once():
    store, client = make_store()
    await store.issue(ID, "4821")
    await store.verify(ID, "4821")
    assert await client.get(OtpKeys.for_identifier(ID).code) is None
    with pytest.raises(NotFoundError):
        await store.verify(ID, "4821")


@pytest.mark.asyncio
async def test_three_wrong_codes_lock_identifier():
    store, client = make_store()
    keys = OtpKeys.for_identifier(ID)
    await store.issue(ID, "4821")

    with pytest.raises(InvalidCodeError) as exc:
        await store.verify(ID, "0000")
    assert exc.value.remaining_attempts == 2
    with pytest.raises(InvalidCodeError):
        await store.verify(ID, "0000")
    with pytest.raises(RateLimitError) as exc:
        await store.verify(ID, "0000")
    assert exc.value.reason == "locked"

    assert await client.get(keys.code) is None
    assert await client.get(keys.attempts) is None
    assert 0 < await client.ttl(keys.lock) <= 1800

    with pytest.raises(RateLimitError) as exc:
        await store.check_restrictions(ID)
    assert exc.value.reason == "locked"


@pytest.mark.asyncio
async def test_prefix_namespaces_keys():
    client = FakeAsyncRedis()
    store = RedisOtpStore(client=client, prefix="test:")
    await store.issue(ID, "4821")
    assert await client.get("test:otp:" + ID) == "4821"
    assert await client.get("otp:" + ID) is None


@pytest.mark.asyncio
async def test_close_releases_client():
    store, client = make_store()
    await store.close()
    assert client.closed


@pytest.mark.asyncio
async def test_concurrent_wrong_codes_lock_and_leave_no_attempts():
    store, client = make_store()
    keys = OtpKeys.for_identifier(ID)
    await store.issue(ID, "1234")

    results = await asyncio.gather(*(store.verify(ID, "0000") for _ in range(4)), return_exceptions=True)

    assert all(isinstance(r, (InvalidCodeError, RateLimitError, NotFoundError)) for r in results)
    assert any(isinstance(r, RateLimitError) and r.reason == "locked" for r in results)
    assert sum(1 for r in results if isinstance(r, InvalidCodeError)) <= 2
    assert await client.get(keys.code) is None
    assert await client.get(keys.attempts) is None
    assert await client.exists(keys.lock)


@pytest.mark.asyncio
async def test_concurrent_right_and_wrong_code_leave_no_attempts():
    store, client = make_store()
    keys = OtpKeys.for_identifier(ID)
    await store.issue(ID, "1234")

    ok, wrong = await asyncio.gather(store.verify(ID, "1234"), store.verify(ID, "0000"), return_exceptions=True)

    assert ok is None
    assert isinstance(wrong, (NotFoundError, InvalidCodeError))
    assert await client.get(keys.code) is None
    if isinstance(wrong, NotFoundError):
        assert await client.get(keys.attempts) is None
