import logging
from typing import Optional

from redis import asyncio as aioredis

from ...application.ports.otp_store import OtpKeys, OtpPolicy, OtpStore
from . import gates

logger = logging.getLogger(__name__)


class RedisOtpStore(OtpStore):
    """OTP store shared by every worker process through Redis.

    Counters are created with their window and incremented inside one
    MULTI/EXEC block, so the count used for a decision is always the value
    this request produced.
    """

    def __init__(self, url: Optional[str] = None, policy: Optional[OtpPolicy] = None, prefix: str = "",
                 client: Optional[aioredis.Redis] = None, socket_timeout: float = 5.0) -> None:
        if client is None:
            if not url:
                raise ValueError("RedisOtpStore needs a url or a client")
            client = aioredis.Redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self.client = client
        self.policy = policy or OtpPolicy()
        self.prefix = prefix

    def _keys(self, identifier: str) -> OtpKeys:
        return OtpKeys.for_identifier(identifier, prefix=self.prefix)

    async def _ttl(self, key: str) -> int:
        ttl = await self.client.ttl(key)
        return int(ttl) if ttl and int(ttl) > 0 else 0

    async def _incr_within(self, key: str, ttl: int) -> int:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(key, 0, ex=ttl, nx=True)
            pipe.incr(key)
            _, count = await pipe.execute()
        return int(count)

    async def check_restrictions(self, identifier: str) -> None:
        keys = self._keys(identifier)
        lock, spam, cooldown = await self.client.mget(keys.lock, keys.spam_lock, keys.cooldown)
        if lock is not None:
            raise gates.locked(self.policy, await self._ttl(keys.lock))
        if spam is not None:
            raise gates.spam_locked(self.policy, await self._ttl(keys.spam_lock))
        if cooldown is not None:
            raise gates.cooling_down(self.policy, await self._ttl(keys.cooldown))

    async def track_request(self, identifier: str) -> None:
        keys = self._keys(identifier)
        count = await self._incr_within(keys.request_count, self.policy.request_window_seconds)
        if count > self.policy.max_requests:
            await self.client.set(keys.spam_lock, "locked", ex=self.policy.spam_lock_seconds)
            raise gates.spam_locked(self.policy, self.policy.spam_lock_seconds)

    async def issue(self, identifier: str, code: str) -> None:
        keys = self._keys(identifier)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(keys.code, code, ex=self.policy.ttl_seconds)
            pipe.set(keys.cooldown, "true", ex=self.policy.cooldown_seconds)
            await pipe.execute()

    async def verify(self, identifier: str, candidate: str) -> None:
        keys = self._keys(identifier)
        stored = await self.client.get(keys.code)
        if stored is None:
            raise gates.missing_code()

        if gates.codes_match(stored, candidate):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(keys.code)
                pipe.delete(keys.attempts)
                removed, _ = await pipe.execute()
            # a concurrent verify consumed the code first
            if not removed:
                raise gates.missing_code()
            return

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(keys.attempts, 0, ex=self.policy.ttl_seconds, nx=True)
            pipe.incr(keys.attempts)
            pipe.exists(keys.code)
            _, attempts, live = await pipe.execute()
        if not live:
            # consumed or locked by a concurrent verify after our read
            await self.client.delete(keys.attempts)
            raise gates.missing_code()
        if int(attempts) >= self.policy.max_attempts:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(keys.code, keys.attempts)
                pipe.set(keys.lock, "locked", ex=self.policy.lock_seconds)
                await pipe.execute()
            logger.warning("OTP verification locked after repeated failures")
            raise gates.attempts_exhausted(self.policy)
        raise gates.wrong_code(self.policy, int(attempts))

    async def close(self) -> None:
        await self.client.aclose()
