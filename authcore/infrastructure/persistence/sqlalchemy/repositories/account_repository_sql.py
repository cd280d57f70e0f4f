import logging
from typing import Optional, Type

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import AccountBase, AdminAccount, BusinessAccount, CustomerAccount, StaffAccount
from .....application.ports.account_store import AccountRecord, AccountStore, AccountType, NewAccount
from .....exceptions import ConflictError

logger = logging.getLogger(__name__)

MODEL_BY_TYPE = {
    AccountType.ADMIN: AdminAccount,
    AccountType.BUSINESS: BusinessAccount,
    AccountType.CUSTOMER: CustomerAccount,
    AccountType.STAFF: StaffAccount,
}

# NewAccount.profile key -> column
PROFILE_COLUMNS = {
    "permanentAddress": "permanent_address",
    "temporaryAddress": "temporary_address",
    "isEmailVerified": "is_email_verified",
    "isPhoneVerified": "is_phone_verified",
    "companyId": "company_id",
}


class SqlAccountStore(AccountStore):
    def __init__(self, engine: Engine):
        self.engine = engine

    def _to_record(self, row: AccountBase, include_password: bool = False) -> AccountRecord:
        profile = {
            key: getattr(row, column)
            for key, column in PROFILE_COLUMNS.items()
            if hasattr(row, column)
        }
        profile["isActive"] = row.is_active
        profile["updatedAt"] = row.updated_at.isoformat() if row.updated_at else None
        return AccountRecord(
            id=row.id,
            email=row.email,
            created_at=row.created_at,
            account_type=row.account_type,
            phone=row.phone,
            name=row.name,
            role_in_company=getattr(row, "role_in_company", None),
            customer_type=getattr(row, "customer_type", None),
            password_hash=row.password_hash if include_password else None,
            profile=profile,
        )

    def _exists(self, model: Type[AccountBase], column: str, value: str) -> bool:
        with Session(self.engine) as session:
            return session.exec(select(model.id).where(getattr(model, column) == value)).first() is not None

    def _find(self, model: Type[AccountBase], column: str, value: str, include_password: bool) -> Optional[AccountRecord]:
        with Session(self.engine) as session:
            row = session.exec(select(model).where(getattr(model, column) == value)).first()
            return self._to_record(row, include_password) if row else None

    def _create(self, account: NewAccount) -> AccountRecord:
        model = MODEL_BY_TYPE[account.account_type]
        columns = model.model_fields
        fields = {
            "email": account.email,
            "phone": account.phone,
            "password_hash": account.password_hash,
            "account_type": account.account_type.value,
            "name": account.name,
        }
        for key, column in PROFILE_COLUMNS.items():
            if key in account.profile and column in columns:
                fields[column] = account.profile[key]
        if account.role_in_company is not None and "role_in_company" in columns:
            fields["role_in_company"] = account.role_in_company
        if account.customer_type is not None and "customer_type" in columns:
            fields["customer_type"] = account.customer_type

        row = model(**fields)
        with Session(self.engine) as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info(f"Unique constraint rejected new {account.account_type.value} account")
                raise ConflictError("An account with this email or phone already exists")
            session.refresh(row)
            return self._to_record(row)

    async def exists_by_email(self, account_type: AccountType, email: str) -> bool:
        return await run_in_threadpool(self._exists, MODEL_BY_TYPE[account_type], "email", email)

    async def exists_by_phone(self, account_type: AccountType, phone: str) -> bool:
        return await run_in_threadpool(self._exists, MODEL_BY_TYPE[account_type], "phone", phone)

    async def find_by_email(self, account_type: AccountType, email: str, include_password: bool = False) -> Optional[AccountRecord]:
        return await run_in_threadpool(self._find, MODEL_BY_TYPE[account_type], "email", email, include_password)

    async def find_by_id(self, account_type: AccountType, account_id: str) -> Optional[AccountRecord]:
        return await run_in_threadpool(self._find, MODEL_BY_TYPE[account_type], "id", account_id, False)

    async def create(self, account: NewAccount) -> AccountRecord:
        return await run_in_threadpool(self._create, account)
