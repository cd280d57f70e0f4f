from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Protocol


class AccountType(str, Enum):
    ADMIN = "admin"
    BUSINESS = "business"
    CUSTOMER = "customer"
    STAFF = "staff"


# Lookup priority when more than one collection answers for an email.
RESOLUTION_ORDER = (
    AccountType.BUSINESS,
    AccountType.CUSTOMER,
    AccountType.STAFF,
    AccountType.ADMIN,
)

BUSINESS_ROLES = frozenset({"owner", "manager", "ceo", "cbo", "HR", "director"})
ADMIN_ROLES = frozenset({"superadmin", "admin", "moderator", "support", "developer"})
STAFF_ROLES = frozenset({
    "manager", "ceo", "cbo", "HR", "director", "accountant", "cleaner",
    "driver", "marketer", "factoryWorker", "warehouseWorker", "helper",
})
CUSTOMER_TYPES = frozenset({"new", "occasional", "regular", "loyal"})

SENSITIVE_FIELDS = frozenset({
    "password",
    "passwordHash",
    "resetPasswordToken",
    "resetPasswordExpire",
})


@dataclass
class AccountRecord:
    """One stored account, whichever collection it lives in.

    ``account_type`` is the discriminator written at creation time; rows
    created before it existed carry ``None`` and are classified by role.
    """
    id: str
    email: str
    created_at: datetime
    account_type: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    role_in_company: Optional[str] = None
    customer_type: Optional[str] = None
    password_hash: Optional[str] = field(default=None, repr=False)
    profile: Dict[str, Any] = field(default_factory=dict)

    def public_view(self, account_type: Optional[str] = None) -> Dict[str, Any]:
        view: Dict[str, Any] = {
            key: value for key, value in self.profile.items() if key not in SENSITIVE_FIELDS
        }
        view.update({
            "id": self.id,
            "email": self.email,
            "phone": self.phone,
            "name": self.name,
            "accountType": account_type or self.account_type,
            "createdAt": self.created_at.isoformat(),
        })
        if self.customer_type is not None:
            view["customerType"] = self.customer_type
        if self.role_in_company is not None:
            view["roleInCompany"] = self.role_in_company
        return view


@dataclass
class NewAccount:
    account_type: AccountType
    email: str
    password_hash: str = field(repr=False)
    phone: Optional[str] = None
    name: Optional[str] = None
    role_in_company: Optional[str] = None
    customer_type: Optional[str] = None
    profile: Dict[str, Any] = field(default_factory=dict)


class AccountStore(Protocol):
    """Four independent collections, one per AccountType."""

    async def exists_by_email(self, account_type: AccountType, email: str) -> bool:
        ...

    async def exists_by_phone(self, account_type: AccountType, phone: str) -> bool:
        ...

    async def find_by_email(self, account_type: AccountType, email: str, include_password: bool = False) -> Optional[AccountRecord]:
        ...

    async def find_by_id(self, account_type: AccountType, account_id: str) -> Optional[AccountRecord]:
        ...

    async def create(self, account: NewAccount) -> AccountRecord:
        """Insert atomically; raise ConflictError when email or phone is taken."""
        ...
