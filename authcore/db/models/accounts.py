# authcore/db/models/accounts.py
from typing import Optional, Dict, Any
from sqlmodel import SQLModel, Field
from sqlalchemy import JSON
from datetime import datetime, timezone
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountBase(SQLModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(max_length=254, unique=True, index=True)
    phone: Optional[str] = Field(default=None, max_length=20, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    # discriminator; NULL only on rows written before it was introduced
    account_type: Optional[str] = Field(default=None, max_length=20)
    name: Optional[str] = Field(default=None, max_length=100)
    permanent_address: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    temporary_address: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    is_email_verified: bool = Field(default=False)
    is_phone_verified: bool = Field(default=False)
    is_active: bool = Field(default=True)
    reset_password_token: Optional[str] = Field(default=None)
    reset_password_expire: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class AdminAccount(AccountBase, table=True):
    __tablename__ = "admin_accounts"
    role_in_company: str = Field(default="admin", max_length=30)


class BusinessAccount(AccountBase, table=True):
    __tablename__ = "business_accounts"
    role_in_company: str = Field(default="owner", max_length=30)


class CustomerAccount(AccountBase, table=True):
    __tablename__ = "customer_accounts"
    customer_type: str = Field(default="new", max_length=20)


class StaffAccount(AccountBase, table=True):
    __tablename__ = "staff_accounts"
    role_in_company: str = Field(default="helper", max_length=30)
    company_id: Optional[str] = Field(default=None, index=True)
