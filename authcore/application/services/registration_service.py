import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..ports.account_store import AccountStore
from ..ports.audit_logger import AuditLogger
from .identity_resolver import IdentityResolver
from .otp_service import OtpDispatch, OtpService
from ...core.security import PasswordHasher
from ...exceptions import ConflictError, ValidationError
from ...schemas.auth import RegistrationRequest, parse_registration
from ...utils import bounded

logger = logging.getLogger(__name__)

CONFLICT_MESSAGES = {
    "email": ("EMAIL_EXISTS", "Email already registered"),
    "phone": ("PHONE_EXISTS", "Phone number already registered"),
}


@dataclass
class RegistrationService:
    """Two-phase sign-up: ``initiate`` sends a code, ``complete`` redeems it and creates the account."""

    resolver: IdentityResolver
    otp: OtpService
    accounts: AccountStore
    hasher: PasswordHasher
    audit: Optional[AuditLogger] = None
    timeout: float = 10.0

    async def _ensure_available(self, request: RegistrationRequest) -> None:
        taken = await self.resolver.find_conflict(request.email, request.phone)
        if taken:
            code, message = CONFLICT_MESSAGES[taken]
            raise ConflictError(message, details={"errorCode": code, "suggestion": "Try logging in or use a different " + taken})

    def _audit(self, action: str, identifier: str, success: bool, **kwargs) -> None:
        if self.audit is not None:
            self.audit.log(action, identifier, success=success, **kwargs)

    async def initiate(self, payload: Mapping[str, Any]) -> OtpDispatch:
        request = parse_registration(payload)
        try:
            await self._ensure_available(request)
            dispatch = await self.otp.send_code(request.identifier, name=request.name)
        except Exception as exc:
            self._audit("register_initiate", request.identifier, False,
                        account_type=request.account_type.value, details={"error": type(exc).__name__})
            raise
        self._audit("register_initiate", request.identifier, True, account_type=request.account_type.value)
        return dispatch

    async def complete(self, identifier: Optional[str], code: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Redeem ``code`` for ``identifier`` and create the account described by ``payload``.

        Returns the new account without its password hash or reset-token fields.
        """
        request = parse_registration(payload)
        identifier = identifier or request.identifier
        if identifier != request.identifier:
            raise ValidationError("Identifier does not match the registration details")
        if not code or not code.strip():
            raise ValidationError("OTP is required")

        try:
            await self.otp.verify_code(identifier, code)

            # narrows the window between initiation and create; the unique index closes it
            await self._ensure_available(request)

            password_hash = await self.hasher.hash(request.password)
            record = await bounded(
                self.accounts.create(request.to_new_account(password_hash)), self.timeout, "Account creation"
            )
        except Exception as exc:
            self._audit("register_complete", identifier, False,
                        account_type=request.account_type.value, details={"error": type(exc).__name__})
            raise
        logger.info(f"Created {request.account_type.value} account {record.id}")
        self._audit("register_complete", identifier, True, account_id=record.id, account_type=request.account_type.value)
        return record.public_view(request.account_type.value)
