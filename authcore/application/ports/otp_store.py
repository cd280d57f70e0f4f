from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class OtpPolicy:
    ttl_seconds: int = 300
    cooldown_seconds: int = 60
    max_attempts: int = 3
    lock_seconds: int = 1800
    max_requests: int = 3
    request_window_seconds: int = 3600
    spam_lock_seconds: int = 3600

    @classmethod
    def from_settings(cls, settings) -> "OtpPolicy":
        return cls(
            ttl_seconds=settings.OTP_TTL_SECONDS,
            cooldown_seconds=settings.OTP_COOLDOWN_SECONDS,
            max_attempts=settings.OTP_MAX_ATTEMPTS,
            lock_seconds=settings.OTP_LOCK_SECONDS,
            max_requests=settings.OTP_MAX_REQUESTS,
            request_window_seconds=settings.OTP_REQUEST_WINDOW_SECONDS,
            spam_lock_seconds=settings.OTP_SPAM_LOCK_SECONDS,
        )


@dataclass(frozen=True)
class OtpKeys:
    code: str
    cooldown: str
    attempts: str
    lock: str
    request_count: str
    spam_lock: str

    @classmethod
    def for_identifier(cls, identifier: str, prefix: str = "") -> "OtpKeys":
        return cls(
            code=f"{prefix}otp:{identifier}",
            cooldown=f"{prefix}otp_cooldown:{identifier}",
            attempts=f"{prefix}otp_attempts:{identifier}",
            lock=f"{prefix}otp_lock:{identifier}",
            request_count=f"{prefix}otp_request_count:{identifier}",
            spam_lock=f"{prefix}otp_spam_lock:{identifier}",
        )


def minutes(seconds: int) -> str:
    value = max(seconds // 60, 1)
    if value % 60 == 0:
        hours = value // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return "1 minute" if value == 1 else f"{value} minutes"


class OtpStore(Protocol):
    """Per-identifier OTP state machine.

    Every transition is atomic for a single identifier at the store layer;
    callers never read-then-write the underlying keys themselves.
    """

    async def check_restrictions(self, identifier: str) -> None:
        """Raise RateLimitError if a lock, spam lock or cooldown is active."""
        ...

    async def track_request(self, identifier: str) -> None:
        """Count an issuance request; raise RateLimitError once the hourly budget is spent."""
        ...

    async def issue(self, identifier: str, code: str) -> None:
        """Replace the live code and start the cooldown."""
        ...

    async def verify(self, identifier: str, candidate: str) -> None:
        """Consume the live code or raise NotFoundError / InvalidCodeError / RateLimitError."""
        ...
