import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from ..ports.account_store import AccountRecord, AccountType
from ..ports.audit_logger import AuditLogger
from .identity_resolver import IdentityResolver
from ...core.security import PasswordHasher, TokenSigner
from ...exceptions import AuthError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class IssuedSession:
    account: Dict[str, Any]
    account_type: AccountType
    access_token: str
    refresh_token: str


def token_claims(record: AccountRecord, account_type: AccountType) -> Dict[str, Any]:
    claims: Dict[str, Any] = {
        "id": record.id,
        "accountType": account_type.value,
        "email": record.email,
    }
    if account_type is AccountType.CUSTOMER:
        claims["customerType"] = record.customer_type
    else:
        claims["roleInCompany"] = record.role_in_company
    return claims


@dataclass
class SessionService:
    resolver: IdentityResolver
    hasher: PasswordHasher
    signer: TokenSigner
    access_lifetime: timedelta = timedelta(days=1)
    refresh_lifetime: timedelta = timedelta(days=7)
    audit: Optional[AuditLogger] = None

    async def authenticate(self, email: str, password: str) -> IssuedSession:
        resolved = await self.resolver.find_by_email(email, include_password=True)
        if resolved is None:
            self._audit(email, False, details={"reason": "not_registered"})
            raise ValidationError("You are not registered", details={"suggestion": "Please register first"})

        if not await self.hasher.verify(password, resolved.record.password_hash):
            self._audit(email, False, account_id=resolved.record.id, details={"reason": "invalid_credentials"})
            raise AuthError("Password is incorrect", details={"suggestion": "Please enter correct password"})

        claims = token_claims(resolved.record, resolved.account_type)
        access_token = self.signer.sign(claims, self.access_lifetime, token_use="access")
        refresh_token = self.signer.sign(claims, self.refresh_lifetime, token_use="refresh")

        self._audit(email, True, account_id=resolved.record.id, account_type=resolved.account_type.value)
        return IssuedSession(
            account=resolved.record.public_view(resolved.account_type.value),
            account_type=resolved.account_type,
            access_token=access_token,
            refresh_token=refresh_token,
        )

    async def current_account(self, token: Optional[str]) -> Dict[str, Any]:
        """Profile of the account an access token was issued to."""
        if not token:
            raise AuthError("Authentication token missing")
        payload = self.signer.decode(token, token_use="access")
        try:
            account_type = AccountType(payload["accountType"])
        except ValueError:
            raise AuthError("Invalid token payload")
        record = await self.resolver.find_by_id(account_type, payload["id"])
        if record is None:
            raise NotFoundError("User not found")
        return record.public_view(account_type.value)

    def _audit(self, email: str, success: bool, **kwargs) -> None:
        if self.audit is not None:
            self.audit.log("login", email, success=success, **kwargs)
