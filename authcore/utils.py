import asyncio
import base64
import hashlib
import logging
import secrets
import time
from typing import Awaitable, Optional, Type, TypeVar

from .exceptions import AppError, ServerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def hash_identifier(identifier: str) -> str:
    """One-way hash so emails and phone numbers stay out of log lines."""
    return hashlib.sha256(identifier.encode()).hexdigest()


def generate_otp_code() -> str:
    """Uniform 4-digit code in [1000, 9999]."""
    return str(1000 + secrets.randbelow(9000))


def generate_otp_reference(identifier: str, now: Optional[float] = None) -> str:
    stamp = int((now if now is not None else time.time()) * 1000)
    return base64.b64encode(f"{identifier}:{stamp}".encode()).decode()[:32]


async def bounded(call: Awaitable[T], timeout: float, operation: str,
                  error: Type[AppError] = ServerError) -> T:
    """Await ``call`` for at most ``timeout`` seconds.

    A timeout is reported as ``error`` so the request fails instead of hanging.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"{operation} timed out after {timeout}s")
        raise error(f"{operation} timed out")
