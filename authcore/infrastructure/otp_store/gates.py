"""Errors raised by the OTP store transitions, shared by every backend."""
import hmac

from ...application.ports.otp_store import OtpPolicy, minutes
from ...exceptions import InvalidCodeError, NotFoundError, RateLimitError

LOCKED = "locked"
SPAM = "spam"
COOLDOWN = "cooldown"


def locked(policy: OtpPolicy, retry_after: int) -> RateLimitError:
    return RateLimitError(
        LOCKED, retry_after,
        f"Account is locked due to multiple failed attempts. Try again after {minutes(policy.lock_seconds)}.",
    )


def spam_locked(policy: OtpPolicy, retry_after: int) -> RateLimitError:
    return RateLimitError(
        SPAM, retry_after,
        f"Too many OTP requests. Please wait {minutes(policy.spam_lock_seconds)} before trying again.",
    )


def cooling_down(policy: OtpPolicy, retry_after: int) -> RateLimitError:
    return RateLimitError(
        COOLDOWN, retry_after,
        f"Please wait {minutes(policy.cooldown_seconds)} before requesting a new OTP.",
    )


def attempts_exhausted(policy: OtpPolicy) -> RateLimitError:
    return RateLimitError(
        LOCKED, policy.lock_seconds,
        f"Too many attempts. Try again after {minutes(policy.lock_seconds)}.",
    )


def missing_code() -> NotFoundError:
    return NotFoundError("OTP expired or not found. Please request a new OTP.")


def wrong_code(policy: OtpPolicy, attempts: int) -> InvalidCodeError:
    return InvalidCodeError(remaining_attempts=policy.max_attempts - attempts)


def codes_match(stored: str, candidate: str) -> bool:
    return hmac.compare_digest(stored.strip().encode(), candidate.strip().encode())
