import math
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ...application.ports.otp_store import OtpKeys, OtpPolicy, OtpStore
from . import gates


class InMemoryOtpStore(OtpStore):
    """Single-process OTP store with the same key layout as the Redis one.

    Each transition runs under one lock, so increment-then-compare cannot
    interleave between concurrent requests for the same identifier.
    """

    def __init__(self, policy: Optional[OtpPolicy] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.policy = policy or OtpPolicy()
        self._clock = clock
        self._store: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    # key primitives, caller holds the lock
    def _get(self, key: str) -> Optional[str]:
        rec = self._store.get(key)
        if not rec:
            return None
        value, expires_at = rec
        if expires_at <= self._clock():
            del self._store[key]
            return None
        return value

    def _ttl(self, key: str) -> int:
        rec = self._store.get(key)
        if not rec:
            return 0
        return max(math.ceil(rec[1] - self._clock()), 0)

    def _set(self, key: str, value: str, ttl: int) -> None:
        self._store[key] = (value, self._clock() + ttl)

    def _incr(self, key: str, ttl: int) -> int:
        current = self._get(key)
        if current is None:
            self._set(key, "1", ttl)
            return 1
        count = int(current) + 1
        # keep the original expiry, like INCR on an existing key
        self._store[key] = (str(count), self._store[key][1])
        return count

    def _delete(self, *keys: str) -> None:
        for key in keys:
            self._store.pop(key, None)

    def has(self, key: str) -> bool:
        with self._lock:
            return self._get(key) is not None

    async def check_restrictions(self, identifier: str) -> None:
        keys = OtpKeys.for_identifier(identifier)
        with self._lock:
            if self._get(keys.lock) is not None:
                raise gates.locked(self.policy, self._ttl(keys.lock))
            if self._get(keys.spam_lock) is not None:
                raise gates.spam_locked(self.policy, self._ttl(keys.spam_lock))
            if self._get(keys.cooldown) is not None:
                raise gates.cooling_down(self.policy, self._ttl(keys.cooldown))

    async def track_request(self, identifier: str) -> None:
        keys = OtpKeys.for_identifier(identifier)
        with self._lock:
            count = self._incr(keys.request_count, self.policy.request_window_seconds)
            if count > self.policy.max_requests:
                self._set(keys.spam_lock, "locked", self.policy.spam_lock_seconds)
                raise gates.spam_locked(self.policy, self.policy.spam_lock_seconds)

    async def issue(self, identifier: str, code: str) -> None:
        keys = OtpKeys.for_identifier(identifier)
        with self._lock:
            self._set(keys.code, code, self.policy.ttl_seconds)
            self._set(keys.cooldown, "true", self.policy.cooldown_seconds)

    async def verify(self, identifier: str, candidate: str) -> None:
        keys = OtpKeys.for_identifier(identifier)
        with self._lock:
            stored = self._get(keys.code)
            if stored is None:
                raise gates.missing_code()
            if gates.codes_match(stored, candidate):
                self._delete(keys.code, keys.attempts)
                return
            attempts = self._incr(keys.attempts, self.policy.ttl_seconds)
            if attempts >= self.policy.max_attempts:
                self._delete(keys.code, keys.attempts)
                self._set(keys.lock, "locked", self.policy.lock_seconds)
                raise gates.attempts_exhausted(self.policy)
            raise gates.wrong_code(self.policy, attempts)
