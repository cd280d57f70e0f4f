import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.account_store import (
    ADMIN_ROLES,
    BUSINESS_ROLES,
    RESOLUTION_ORDER,
    AccountRecord,
    AccountStore,
    AccountType,
)
from ...utils import bounded

logger = logging.getLogger(__name__)


@dataclass
class ResolvedAccount:
    record: AccountRecord
    account_type: AccountType


def classify(record: AccountRecord) -> AccountType:
    """Variant of ``record``: its stored discriminator, else inferred from its role."""
    if record.account_type:
        try:
            return AccountType(record.account_type.lower())
        except ValueError:
            logger.warning(f"Unknown account type {record.account_type!r} on account {record.id}")
    # Legacy rows without a discriminator
    if record.role_in_company in BUSINESS_ROLES:
        return AccountType.BUSINESS
    if record.customer_type:
        return AccountType.CUSTOMER
    if record.role_in_company in ADMIN_ROLES:
        return AccountType.ADMIN
    return AccountType.STAFF


@dataclass
class IdentityResolver:
    """The one place that knows accounts live in four separate collections."""

    accounts: AccountStore
    timeout: float = 10.0

    async def find_by_email(self, email: str, include_password: bool = False) -> Optional[ResolvedAccount]:
        lookups = [
            self.accounts.find_by_email(account_type, email, include_password=include_password)
            for account_type in RESOLUTION_ORDER
        ]
        results = await bounded(asyncio.gather(*lookups), self.timeout, "Account lookup")
        matches = [record for record in results if record is not None]
        if not matches:
            return None
        if len(matches) > 1:
            logger.error(f"Email registered in {len(matches)} account collections; using priority order")
        record = matches[0]
        return ResolvedAccount(record=record, account_type=classify(record))

    async def find_by_id(self, account_type: AccountType, account_id: str) -> Optional[AccountRecord]:
        return await bounded(self.accounts.find_by_id(account_type, account_id), self.timeout, "Account lookup")

    async def find_conflict(self, email: str, phone: Optional[str] = None) -> Optional[str]:
        """Return "email" or "phone" if either is already used by any account, else None."""
        checks = [self.accounts.exists_by_email(account_type, email) for account_type in RESOLUTION_ORDER]
        if phone:
            checks += [self.accounts.exists_by_phone(account_type, phone) for account_type in RESOLUTION_ORDER]
        results = await bounded(asyncio.gather(*checks), self.timeout, "Uniqueness check")
        if any(results[:len(RESOLUTION_ORDER)]):
            return "email"
        if any(results[len(RESOLUTION_ORDER):]):
            return "phone"
        return None
