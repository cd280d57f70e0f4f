"""Password hashing and token signing."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi.concurrency import run_in_threadpool
from passlib.context import CryptContext

from ..exceptions import AuthError, ServerError

logger = logging.getLogger(__name__)


class PasswordHasher:
    """bcrypt through passlib; hashing runs off the event loop because it is slow on purpose."""

    def __init__(self, rounds: int = 12):
        self.context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    async def hash(self, password: str) -> str:
        return await run_in_threadpool(self.context.hash, password)

    async def verify(self, password: str, password_hash: Optional[str]) -> bool:
        if not password_hash:
            return False
        return await run_in_threadpool(self.context.verify, password, password_hash)


class TokenSigner:
    def __init__(self, secret_key: Optional[str], algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def _require_key(self) -> str:
        if not self.secret_key:
            logger.critical("JWT_SECRET_KEY is not configured")
            raise ServerError("Token signing key is not configured")
        return self.secret_key

    def sign(self, claims: Dict[str, Any], lifetime: timedelta, token_use: str) -> str:
        """Create a signed JWT that expires after ``lifetime``"""
        key = self._require_key()
        now = datetime.now(timezone.utc)
        to_encode = claims.copy()
        to_encode.update({"iat": now, "exp": now + lifetime, "tokenUse": token_use})
        return jwt.encode(to_encode, key, algorithm=self.algorithm)

    def decode(self, token: str, token_use: str = "access") -> Dict[str, Any]:
        """Verify a JWT and return its payload, raising AuthError when it cannot be trusted"""
        key = self._require_key()
        try:
            payload = jwt.decode(token, key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("Token has expired")
            raise AuthError("Token expired")
        except jwt.InvalidTokenError as e:
            logger.info(f"JWT error: {e}")
            raise AuthError("Invalid token format")
        if payload.get("tokenUse") != token_use or not payload.get("id") or not payload.get("accountType"):
            raise AuthError("Invalid token payload")
        return payload
